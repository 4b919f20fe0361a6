#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, network_option
from dotenv import load_dotenv

from zkdeploy.config import load_config
from zkdeploy.networks import build_compiler, validate_network
from zkdeploy.options import address_option, params_option
from zkdeploy.records import deployment_targets, read_latest_deployment
from zkdeploy.runner import FATAL_ERRORS
from zkdeploy.verify import ExplorerVerifier, verify_contracts


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@params_option
@address_option
def cli(network, params_filepath, addresses):
    """Verify contracts listed in the latest deployment record of a network."""
    load_dotenv()
    try:
        config = load_config(params_filepath, require_private_key=False)
        validate_network(config)
        record = read_latest_deployment(config.network, config.deployments_dir)
    except FATAL_ERRORS as e:
        raise click.ClickException(str(e))

    targets = deployment_targets(record)
    if addresses:
        wanted = {address.lower() for address in addresses}
        targets = [target for target in targets if target[0].lower() in wanted]
        missing = wanted - {address.lower() for address, _ in targets}
        if missing:
            raise click.BadParameter(
                f"Not found in the latest {config.network} record: {', '.join(sorted(missing))}",
                param_hint="--address",
            )
    if not targets:
        raise click.ClickException("No deployed contracts to verify.")

    compiler = build_compiler(config)
    try:
        verifier = ExplorerVerifier.from_config(config, artifact_loader=compiler.get_artifact)
    except FATAL_ERRORS as e:
        raise click.ClickException(str(e))
    results = verify_contracts(
        verifier,
        targets,
        contract=config.qualified_contract_name,
        bytecode_hash=config.bytecode_hash,
    )

    click.secho("\nVerification Summary:", fg="green")
    for result in results:
        color = "red" if result.error else "cyan"
        click.secho(f"    {result.address}: {result.status}", fg=color)
        if result.error:
            click.secho(f"        {result.error}", fg="red")


if __name__ == "__main__":
    cli()
