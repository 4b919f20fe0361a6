#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, network_option
from dotenv import load_dotenv

from zkdeploy.config import load_config
from zkdeploy.networks import connect_collaborators
from zkdeploy.options import params_option, verify_option
from zkdeploy.runner import FATAL_ERRORS, run_single


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@params_option
@verify_option
def cli(network, params_filepath, verify):
    """Deploy a single contract without constructor arguments, record it and verify it."""
    load_dotenv()
    try:
        config = load_config(params_filepath)
        compiler, deployer, verifier = connect_collaborators(config)
        run_single(config, compiler, deployer, verifier, verify=verify)
    except FATAL_ERRORS as e:
        raise click.ClickException(str(e))


if __name__ == "__main__":
    cli()
