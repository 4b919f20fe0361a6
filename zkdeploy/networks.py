from ape import networks
from web3 import Web3

from zkdeploy.compiler import ProjectCompiler
from zkdeploy.config import DeploymentConfig, DeploymentConfigError
from zkdeploy.deployer import CompilerAPI, DeployerAPI, Web3Deployer, load_wallet
from zkdeploy.eravm import ZkSyncDeployer
from zkdeploy.verify import ExplorerVerifier
from zkdeploy.zksolc import ZksolcCompiler

LOCAL_BLOCKCHAIN_ENVIRONMENTS = ("local",)


def is_local_network() -> bool:
    return networks.provider.network.name in LOCAL_BLOCKCHAIN_ENVIRONMENTS


def validate_network(config: DeploymentConfig) -> None:
    """Checks that the connected provider serves the chain named in the params file."""
    if config.chain_id is None or is_local_network():
        return
    provider_chain_id = networks.provider.network.chain_id
    if config.chain_id != provider_chain_id:
        raise DeploymentConfigError(
            f"chain_id in params file ({config.chain_id}) does not match "
            f"chain_id of current network ({provider_chain_id})."
        )


def get_web3() -> Web3:
    """The web3 connection of the active ape provider."""
    return networks.provider.web3


def get_rpc_url(config: DeploymentConfig) -> str:
    return config.rpc_url or networks.provider.uri


def build_compiler(config: DeploymentConfig) -> CompilerAPI:
    """zksolc (EraVM bytecode) when the params configure it, otherwise the ape project compiler."""
    if config.zksolc is not None:
        return ZksolcCompiler.from_config(config)
    return ProjectCompiler()


def print_network_info(config: DeploymentConfig, account_address: str) -> None:
    compiler_name = f"zksolc {config.zksolc.version}" if config.zksolc else "solc"
    print(
        f"Account: {account_address}",
        f"Network: {config.network}",
        f"Ecosystem: {networks.provider.network.ecosystem.name}",
        f"Chain ID: {networks.provider.network.chain_id}",
        f"Contract: {config.qualified_contract_name}",
        f"Compiler: {compiler_name}",
        f"Records: {config.deployments_dir}",
        sep="\n",
    )


def connect_collaborators(config: DeploymentConfig):
    """
    Builds the compiler, deployer and verifier for the active ape provider.
    """
    validate_network(config)
    compiler = build_compiler(config)
    wallet = load_wallet(config.private_key)
    print_network_info(config, wallet.address)

    deployer: DeployerAPI
    if config.zksolc is not None:
        deployer = ZkSyncDeployer.from_url(get_rpc_url(config), wallet=wallet, compiler=compiler)
    else:
        deployer = Web3Deployer(w3=get_web3(), wallet=wallet, compiler=compiler)
    verifier = ExplorerVerifier.from_config(config, artifact_loader=compiler.get_artifact)
    return compiler, deployer, verifier
