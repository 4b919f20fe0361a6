from pathlib import Path

import click

from zkdeploy.constants import DEFAULT_PARAMS_FILEPATH
from zkdeploy.types import ContractAddress, ContractCount

params_option = click.option(
    "--params",
    "-p",
    "params_filepath",
    help="Deployment params YAML file",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    default=DEFAULT_PARAMS_FILEPATH,
    show_default=True,
)

count_option = click.option(
    "--count",
    "-c",
    "contract_count",
    help="Number of contracts to deploy; defaults to CONTRACT_COUNT or 1",
    type=ContractCount(),
    required=False,
    default=None,
)

verify_option = click.option(
    "--verify/--no-verify",
    help="Verify deployed contracts on the block explorer",
    default=True,
    show_default=True,
)

address_option = click.option(
    "--address",
    "-a",
    "addresses",
    help="Contract address to verify; defaults to every contract in the latest record",
    type=ContractAddress(),
    multiple=True,
    required=False,
)
