import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

import yaml
from eth_utils import denoms

from zkdeploy.constants import CONTRACTS_DIR


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_ether(wei: int) -> str:
    """
    Formats a wei amount as a decimal ether string.
    Always keeps at least one fractional digit, e.g. '0.0', '1.0', '0.000123'.
    """
    wei = int(wei)
    sign = "-" if wei < 0 else ""
    whole, fraction = divmod(abs(wei), denoms.ether)
    fraction_digits = str(fraction).rjust(18, "0").rstrip("0") or "0"
    return f"{sign}{whole}.{fraction_digits}"


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    """UTC ISO-8601 timestamp with millisecond precision, e.g. 2024-05-01T12:30:45.123Z"""
    moment = (moment or utc_now()).astimezone(timezone.utc)
    milliseconds = moment.microsecond // 1000
    return f"{moment.strftime('%Y-%m-%dT%H:%M:%S')}.{milliseconds:03d}Z"


def format_deployment_date(moment: Optional[datetime] = None) -> str:
    """Local time as MM/DD/YYYY HH:MM:SS (24-hour clock)."""
    moment = (moment or utc_now()).astimezone()
    return moment.strftime("%m/%d/%Y %H:%M:%S")


def collect_sources(contracts_dir: Path = CONTRACTS_DIR) -> Dict[str, str]:
    """Returns the content of every solidity source under contracts_dir, keyed by relative path."""
    contracts_dir = Path(contracts_dir)
    if not contracts_dir.is_dir():
        raise FileNotFoundError(f"Contracts directory not found at {contracts_dir}")

    sources = dict()
    base = contracts_dir.parent
    for filepath in sorted(contracts_dir.rglob("*.sol")):
        source_name = filepath.relative_to(base).as_posix()
        sources[source_name] = filepath.read_text()
    return sources
