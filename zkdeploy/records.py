import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from zkdeploy.constants import HISTORICAL_FILENAME_PREFIX, LATEST_FILENAME_SUFFIX
from zkdeploy.utils import _load_json, iso_timestamp

STANDARD_RECORD_JSON_FORMAT = {"indent": 2}


def _compiler_info(solidity_version: Optional[str]) -> Dict[str, str]:
    if solidity_version is None:
        return dict()
    return {"solidity": solidity_version}


def _without_unset(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drops keys whose value is unknown so they are absent from the JSON document."""
    return {key: value for key, value in data.items() if value is not None}


class DeploymentRecord(NamedTuple):
    """Outcome of a single-deploy run."""

    network: str
    contract_address: Optional[str]
    deployment_fee: str
    gas_used: Optional[str]
    status: str
    timestamp: str
    contract_name: str
    solidity_version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "network": self.network,
            "contractAddress": self.contract_address,
            "deploymentFee": self.deployment_fee,
            "gasUsed": self.gas_used,
            "status": self.status,
            "timestamp": self.timestamp,
            "contractName": self.contract_name,
        }
        data = _without_unset(data)
        data["compiler"] = _compiler_info(self.solidity_version)
        return data


class BatchEntry(NamedTuple):
    """A single deployment within a batch; index is 1-based."""

    index: int
    network: str
    contract_address: Optional[str]
    deployment_fee: str
    gas_used: Optional[str]
    status: str
    timestamp: str
    deployment_date: str
    contract_name: str
    constructor_args: List[Any]
    solidity_version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "index": self.index,
            "network": self.network,
            "contractAddress": self.contract_address,
            "deploymentFee": self.deployment_fee,
            "gasUsed": self.gas_used,
            "status": self.status,
            "timestamp": self.timestamp,
            "deploymentDate": self.deployment_date,
            "contractName": self.contract_name,
            "constructorArgs": list(self.constructor_args),
        }
        data = _without_unset(data)
        data["compiler"] = _compiler_info(self.solidity_version)
        return data


class BatchDeploymentRecord(NamedTuple):
    batch_size: int
    deployments: List[BatchEntry]
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batchSize": self.batch_size,
            "deployments": [entry.to_dict() for entry in self.deployments],
            "timestamp": self.timestamp,
        }


def historical_filename(timestamp: str) -> str:
    """deployment-2024-05-01T12-30-45-123Z.json for 2024-05-01T12:30:45.123Z"""
    safe_timestamp = timestamp.replace(":", "-").replace(".", "-")
    return f"{HISTORICAL_FILENAME_PREFIX}{safe_timestamp}.json"


def latest_filepath(network: str, deployments_dir: Path) -> Path:
    return Path(deployments_dir) / f"{network}{LATEST_FILENAME_SUFFIX}"


def _unused_filepath(filepath: Path) -> Path:
    """Historical records are never overwritten; clashing names get a numeric suffix."""
    candidate = filepath
    counter = 1
    while candidate.exists():
        candidate = filepath.with_name(f"{filepath.stem}-{counter}{filepath.suffix}")
        counter += 1
    return candidate


def save_deployment_info(
    info: Dict[str, Any],
    network: str,
    deployments_dir: Path,
    moment: Optional[datetime] = None,
) -> Tuple[Path, Path]:
    """
    Writes a timestamped historical record under <deployments_dir>/<network>/
    and overwrites <deployments_dir>/<network>-deployment.json with the same content.
    """
    deployments_dir = Path(deployments_dir)
    network_dir = deployments_dir / network
    network_dir.mkdir(parents=True, exist_ok=True)

    content = json.dumps(info, **STANDARD_RECORD_JSON_FORMAT)

    historical_filepath = _unused_filepath(network_dir / historical_filename(iso_timestamp(moment)))
    historical_filepath.write_text(content)
    print(f"Historical deployment info saved to: {historical_filepath}")

    latest = latest_filepath(network, deployments_dir)
    latest.write_text(content)
    print(f"Latest deployment info updated at: {latest}")

    return historical_filepath, latest


def read_latest_deployment(network: str, deployments_dir: Path) -> Dict[str, Any]:
    filepath = latest_filepath(network, deployments_dir)
    if not filepath.exists():
        raise FileNotFoundError(f"No deployment record found for network '{network}' at {filepath}")
    return _load_json(filepath)


def list_historical_deployments(network: str, deployments_dir: Path) -> List[Path]:
    """Historical record files for a network, oldest first."""
    network_dir = Path(deployments_dir) / network
    if not network_dir.is_dir():
        return list()
    return sorted(network_dir.glob(f"{HISTORICAL_FILENAME_PREFIX}*.json"))


def deployment_targets(info: Dict[str, Any]) -> List[Tuple[str, List[Any]]]:
    """
    Returns (address, constructor args) for every contract in a record,
    accepting both the single and the batch record shapes.
    """
    if "deployments" in info:
        entries = info["deployments"]
    elif "contractName" in info:
        entries = [info]
    else:
        raise ValueError("Malformed deployment record.")

    targets = list()
    for entry in entries:
        address = entry.get("contractAddress")
        if not address:
            continue  # nothing was deployed
        targets.append((address, list(entry.get("constructorArgs", []))))
    return targets
