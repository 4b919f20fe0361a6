import click
from eth_utils import is_address, to_checksum_address

from zkdeploy.config import DeploymentConfigError, parse_contract_count

ZERO_ADDRESS = "0x" + "00" * 20


class ContractCount(click.ParamType):
    """Batch size given on the command line; follows the same rules as CONTRACT_COUNT."""

    name = "count"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            value = str(value)
        try:
            return parse_contract_count(value)
        except DeploymentConfigError as e:
            self.fail(str(e).replace("CONTRACT_COUNT", "count"), param, ctx)


class ContractAddress(click.ParamType):
    name = "contract_address"

    def convert(self, value, param, ctx):
        if not is_address(value):
            self.fail(f"{value} is not a valid ethereum address", param, ctx)
        if value.lower() == ZERO_ADDRESS:
            self.fail("The zero address cannot hold a deployed contract", param, ctx)
        return to_checksum_address(value)
