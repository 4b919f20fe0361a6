#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, network_option
from dotenv import load_dotenv

from zkdeploy.config import load_config
from zkdeploy.networks import connect_collaborators
from zkdeploy.options import count_option, params_option, verify_option
from zkdeploy.runner import FATAL_ERRORS, run_batch


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@params_option
@count_option
@verify_option
def cli(network, params_filepath, contract_count, verify):
    """
    Deploy a batch of contracts one after another, record them and verify them.

    ape run deploy --network abstract:testnet:node --count 3
    """
    load_dotenv()
    try:
        config = load_config(params_filepath, contract_count=contract_count)
        compiler, deployer, verifier = connect_collaborators(config)
        run_batch(config, compiler, deployer, verifier, verify=verify)
    except FATAL_ERRORS as e:
        raise click.ClickException(str(e))


if __name__ == "__main__":
    cli()
