#!/usr/bin/python3

from pathlib import Path

import click

from zkdeploy.config import DeploymentConfigError, load_config
from zkdeploy.options import params_option
from zkdeploy.records import (
    deployment_targets,
    latest_filepath,
    list_historical_deployments,
    read_latest_deployment,
)
from zkdeploy.utils import _load_json


def _display_record(title: str, filepath: Path, record: dict) -> None:
    click.secho(f"\n{title} ({filepath.name})", fg="green")
    click.secho(f"    Recorded at {record.get('timestamp')}", fg="yellow")
    for index, (address, constructor_args) in enumerate(deployment_targets(record), start=1):
        suffix = f" {constructor_args}" if constructor_args else ""
        click.secho(f"        {index}. {address}{suffix}", fg="cyan")


@click.command(name="list-deployments")
@params_option
@click.option(
    "--history",
    "-h",
    "show_history",
    help="Also list historical deployment records",
    is_flag=True,
    default=False,
)
def cli(params_filepath, show_history):
    """List the latest (and optionally historical) deployment records of a network."""
    try:
        config = load_config(params_filepath, require_private_key=False)
    except DeploymentConfigError as e:
        raise click.ClickException(str(e))

    try:
        latest = read_latest_deployment(config.network, config.deployments_dir)
    except FileNotFoundError as e:
        raise click.ClickException(str(e))

    filepath = latest_filepath(config.network, config.deployments_dir)
    _display_record(f"{config.network} Latest", filepath, latest)

    if show_history:
        for filepath in list_historical_deployments(config.network, config.deployments_dir):
            _display_record(f"{config.network} History", filepath, _load_json(filepath))


if __name__ == "__main__":
    cli()
