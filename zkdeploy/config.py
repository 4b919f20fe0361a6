import os
from pathlib import Path
from typing import Any, Dict, Mapping, NamedTuple, Optional

from zkdeploy.constants import (
    CONTRACT_COUNT_ENVVAR,
    DEFAULT_CONTRACT_COUNT,
    DEFAULT_ZKSOLC_OPTIMIZER,
    DEFAULT_ZKSOLC_PATH,
    DEPLOYMENT_DELAY,
    DEPLOYMENTS_DIR,
    PRIVATE_KEY_ENVVAR,
    VERIFICATION_WARMUP,
)
from zkdeploy.utils import _load_yaml


class DeploymentConfigError(ValueError):
    pass


class ZksolcSettings(NamedTuple):
    """EraVM compiler settings; mirrors the zksolc standard JSON settings."""

    version: str
    path: str = DEFAULT_ZKSOLC_PATH
    solc_path: Optional[str] = None
    optimizer: Optional[Dict[str, Any]] = None
    enable_eravm_extensions: bool = False
    force_evmla: bool = False


class DeploymentConfig(NamedTuple):
    """Everything a deployment run needs, read once at startup."""

    private_key: str
    network: str
    verify_url: str
    contract_name: str
    contract_source: str
    contract_count: int = DEFAULT_CONTRACT_COUNT
    chain_id: Optional[int] = None
    bytecode_hash: Optional[str] = None
    solidity_version: Optional[str] = None
    zksolc: Optional[ZksolcSettings] = None
    optimizer: Optional[Dict[str, Any]] = None
    rpc_url: Optional[str] = None
    deployment_delay: float = DEPLOYMENT_DELAY
    verification_warmup: float = VERIFICATION_WARMUP
    deployments_dir: Path = DEPLOYMENTS_DIR

    @property
    def qualified_contract_name(self) -> str:
        """e.g. contracts/HelloAbstract.sol:HelloAbstract"""
        return f"{self.contract_source}:{self.contract_name}"

    @property
    def zksolc_version(self) -> Optional[str]:
        return self.zksolc.version if self.zksolc else None


def parse_contract_count(value: Optional[str]) -> int:
    """
    Parses the number of contracts to deploy.
    Unset or empty means the default; anything other than a positive integer is rejected.
    """
    if value is None or str(value).strip() == "":
        return DEFAULT_CONTRACT_COUNT
    try:
        count = int(str(value).strip())
    except ValueError:
        raise DeploymentConfigError(f"{CONTRACT_COUNT_ENVVAR} must be an integer; got '{value}'.")
    if count < 1:
        raise DeploymentConfigError(f"{CONTRACT_COUNT_ENVVAR} must be at least 1; got {count}.")
    return count


def _require(section: Mapping, key: str, section_name: str) -> Any:
    value = section.get(key)
    if value is None or value == "":
        raise DeploymentConfigError(f"{section_name}.{key} is not set in params file.")
    return value


def _section(params: Mapping, name: str, required: bool = True) -> Mapping:
    section = params.get(name)
    if section is None:
        if required:
            raise DeploymentConfigError(f"{name} is not set in params file.")
        return dict()
    if not isinstance(section, dict):
        raise DeploymentConfigError(f"Malformed '{name}' section in params file.")
    return section


def _zksolc_settings(compiler: Mapping) -> Optional[ZksolcSettings]:
    """
    compiler.zksolc is either a bare version string or a mapping of settings.
    Unset means solc EVM bytecode.
    """
    zksolc = compiler.get("zksolc")
    if zksolc is None:
        return None
    if not isinstance(zksolc, dict):
        zksolc = {"version": zksolc}
    return ZksolcSettings(
        version=str(_require(zksolc, "version", "compiler.zksolc")),
        path=str(zksolc.get("path") or DEFAULT_ZKSOLC_PATH),
        solc_path=zksolc.get("solc_path"),
        optimizer=dict(zksolc.get("optimizer") or DEFAULT_ZKSOLC_OPTIMIZER),
        enable_eravm_extensions=bool(zksolc.get("enable_eravm_extensions", False)),
        force_evmla=bool(zksolc.get("force_evmla", False)),
    )


def config_from_params(
    params: Mapping,
    environ: Optional[Mapping[str, str]] = None,
    contract_count: Optional[int] = None,
    require_private_key: bool = True,
) -> DeploymentConfig:
    """
    Builds a deployment config from parsed params plus the environment.
    An explicit contract_count takes precedence over CONTRACT_COUNT.
    """
    environ = os.environ if environ is None else environ

    private_key = environ.get(PRIVATE_KEY_ENVVAR, "")
    if require_private_key and not private_key:
        raise DeploymentConfigError(f"{PRIVATE_KEY_ENVVAR} is required in .env file")

    if contract_count is None:
        contract_count = parse_contract_count(environ.get(CONTRACT_COUNT_ENVVAR))
    elif contract_count < 1:
        raise DeploymentConfigError(f"Contract count must be at least 1; got {contract_count}.")

    if not isinstance(params, dict):
        raise DeploymentConfigError("Malformed params file.")

    deployment = _section(params, "deployment")
    contract = _section(params, "contract")
    compiler = _section(params, "compiler", required=False)
    timing = _section(params, "timing", required=False)

    chain_id = deployment.get("chain_id")
    solidity_version = compiler.get("solidity")
    bytecode_hash = contract.get("bytecode_hash")

    config = DeploymentConfig(
        private_key=private_key,
        network=_require(deployment, "network", "deployment"),
        verify_url=_require(deployment, "verify_url", "deployment"),
        contract_name=_require(contract, "name", "contract"),
        contract_source=_require(contract, "source", "contract"),
        contract_count=contract_count,
        chain_id=int(chain_id) if chain_id is not None else None,
        bytecode_hash=str(bytecode_hash) if bytecode_hash is not None else None,
        solidity_version=str(solidity_version) if solidity_version is not None else None,
        zksolc=_zksolc_settings(compiler),
        optimizer=dict(compiler.get("optimizer") or {}),
        deployment_delay=float(timing.get("deployment_delay", DEPLOYMENT_DELAY)),
        verification_warmup=float(timing.get("verification_warmup", VERIFICATION_WARMUP)),
        rpc_url=deployment.get("rpc_url"),
        deployments_dir=Path(deployment.get("deployments_dir", DEPLOYMENTS_DIR)),
    )
    if config.deployment_delay < 0 or config.verification_warmup < 0:
        raise DeploymentConfigError("Delays in params file must not be negative.")
    if config.zksolc and not (config.solidity_version or config.zksolc.solc_path):
        raise DeploymentConfigError("compiler.solidity is not set in params file.")
    return config


def load_config(
    filepath: Path,
    environ: Optional[Mapping[str, str]] = None,
    contract_count: Optional[int] = None,
    require_private_key: bool = True,
) -> DeploymentConfig:
    """Loads the deployment config from a params YAML file and the environment."""
    print("Validating parameters YAML...")
    params = _load_yaml(filepath) or dict()
    return config_from_params(
        params,
        environ=environ,
        contract_count=contract_count,
        require_private_key=require_private_key,
    )
