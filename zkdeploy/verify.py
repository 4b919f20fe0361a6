import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

import requests
from eth_abi import encode

from zkdeploy.config import ZksolcSettings
from zkdeploy.constants import (
    ALREADY_VERIFIED,
    CONTRACTS_DIR,
    SINGLE_FILE_CODE_FORMAT,
    STANDARD_JSON_CODE_FORMAT,
    VERIFICATION_MAX_POLLS,
    VERIFICATION_POLL_INTERVAL,
    VerificationRequestState,
    VerificationStatus,
)
from zkdeploy.deployer import Artifact
from zkdeploy.utils import collect_sources
from zkdeploy.zksolc import standard_json_input, standard_json_settings


class VerificationError(Exception):
    """Raised when the explorer rejects or fails a verification request."""


class VerificationResult(NamedTuple):
    status: str
    address: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"status": self.status, "address": self.address}
        if self.error is not None:
            data["error"] = self.error
        return data


class VerificationService(ABC):
    @abstractmethod
    def verify(
        self,
        address: str,
        constructor_args: Sequence[Any],
        contract: Optional[str] = None,
        bytecode_hash: Optional[str] = None,
    ) -> None:
        """Returns when the explorer confirms the source; raises otherwise."""
        raise NotImplementedError


def encode_constructor_args(artifact: Artifact, constructor_args: Sequence[Any]) -> str:
    """ABI-encodes constructor arguments as a 0x-prefixed hex string."""
    input_types = artifact.constructor_input_types
    if len(input_types) != len(constructor_args):
        raise VerificationError(
            f"Constructor parameters length mismatch - {artifact.contract_name} ABI requires "
            f"{len(input_types)}, Got {len(constructor_args)}."
        )
    if not input_types:
        return "0x"
    return "0x" + encode(input_types, list(constructor_args)).hex()


class ExplorerVerifier(VerificationService):
    """
    Submits contract sources to a zkSync-style explorer verification API
    and polls the resulting verification request until it settles.
    """

    def __init__(
        self,
        verify_url: str,
        contract_name: str,
        contract_source: str,
        artifact_loader: Callable[[str], Artifact],
        sources: Dict[str, str],
        solidity_version: Optional[str],
        zksolc_version: Optional[str] = None,
        optimizer: Optional[Dict[str, Any]] = None,
        zksolc: Optional[ZksolcSettings] = None,
        poll_interval: float = VERIFICATION_POLL_INTERVAL,
        max_polls: int = VERIFICATION_MAX_POLLS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.verify_url = verify_url.rstrip("/")
        self.contract_name = contract_name
        self.contract_source = contract_source
        self.artifact_loader = artifact_loader
        self.sources = sources
        self.solidity_version = solidity_version
        self.zksolc_version = zksolc_version
        self.optimizer = dict(optimizer or {})
        self.zksolc = zksolc
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.sleep = sleep

    @classmethod
    def from_config(
        cls,
        config,
        artifact_loader: Callable[[str], Artifact],
        contracts_dir: Path = CONTRACTS_DIR,
        **kwargs,
    ) -> "ExplorerVerifier":
        return cls(
            verify_url=config.verify_url,
            contract_name=config.contract_name,
            contract_source=config.contract_source,
            artifact_loader=artifact_loader,
            sources=collect_sources(contracts_dir),
            solidity_version=config.solidity_version,
            zksolc_version=config.zksolc_version,
            optimizer=config.optimizer,
            zksolc=config.zksolc,
            **kwargs,
        )

    def _standard_json_input(self, bytecode_hash: Optional[str]) -> Dict[str, Any]:
        settings = standard_json_settings(self.optimizer, self.zksolc, bytecode_hash)
        return standard_json_input(self.sources, settings)

    def _single_file_source(self) -> str:
        try:
            return self.sources[self.contract_source]
        except KeyError:
            raise VerificationError(f"Source file {self.contract_source} not found.")

    def build_request(
        self,
        address: str,
        constructor_args: Sequence[Any],
        contract: Optional[str] = None,
        bytecode_hash: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        With an explicit contract path the full standard JSON input is submitted;
        without one the contract's own source file is submitted as a single file.
        """
        artifact = self.artifact_loader(self.contract_name)
        payload = {
            "contractAddress": address,
            "constructorArguments": encode_constructor_args(artifact, constructor_args),
            "compilerSolcVersion": self.solidity_version,
            "optimizationUsed": bool(self.optimizer.get("enabled", False)),
        }
        if contract:
            payload["contractName"] = contract
            payload["codeFormat"] = STANDARD_JSON_CODE_FORMAT
            payload["sourceCode"] = self._standard_json_input(bytecode_hash)
        else:
            payload["contractName"] = self.contract_name
            payload["codeFormat"] = SINGLE_FILE_CODE_FORMAT
            payload["sourceCode"] = self._single_file_source()
        if self.zksolc_version:
            version = str(self.zksolc_version)
            payload["compilerZksolcVersion"] = version if version.startswith("v") else f"v{version}"
        return payload

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(data, dict):
            return str(data.get("message") or data.get("error") or data)
        return str(data)

    def _submit(self, payload: Dict[str, Any]) -> int:
        response = requests.post(self.verify_url, json=payload)
        if not response.ok:
            raise VerificationError(self._error_message(response))
        try:
            return int(response.json())
        except (TypeError, ValueError):
            raise VerificationError(f"Unexpected verification response: {response.text}")

    def _poll(self, request_id: int) -> None:
        status_url = f"{self.verify_url}/{request_id}"
        for attempt in range(self.max_polls):
            if attempt:
                self.sleep(self.poll_interval)
            response = requests.get(status_url)
            if not response.ok:
                raise VerificationError(self._error_message(response))
            data = response.json()
            state = data.get("status")
            if state == VerificationRequestState.SUCCESSFUL.value:
                return
            if state == VerificationRequestState.FAILED.value:
                compilation_errors = "; ".join(data.get("compilationErrors") or [])
                raise VerificationError(
                    data.get("error") or compilation_errors or "Verification failed"
                )
        raise VerificationError(
            f"Verification request {request_id} still pending after {self.max_polls} polls"
        )

    def verify(
        self,
        address: str,
        constructor_args: Sequence[Any],
        contract: Optional[str] = None,
        bytecode_hash: Optional[str] = None,
    ) -> None:
        payload = self.build_request(address, constructor_args, contract, bytecode_hash)
        request_id = self._submit(payload)
        print(f"(i) Verification request {request_id} submitted for {address}")
        self._poll(request_id)


def _is_already_verified(error: Exception) -> bool:
    return ALREADY_VERIFIED in str(error).lower()


def verify_contract(
    service: VerificationService,
    address: str,
    constructor_args: Sequence[Any],
    contract: Optional[str] = None,
    bytecode_hash: Optional[str] = None,
) -> VerificationResult:
    """
    Verifies with the contract path and bytecode hash hint first, then retries without them.
    An 'already verified' rejection of the first attempt is terminal.
    """
    print(f"Starting verification for contract at {address}...")
    try:
        service.verify(
            address,
            list(constructor_args),
            contract=contract,
            bytecode_hash=bytecode_hash,
        )
        print(f"Contract at {address} verified successfully!")
        return VerificationResult(status=VerificationStatus.SUCCESS.value, address=address)
    except Exception as error:
        if _is_already_verified(error):
            print(f"Contract at {address} already verified!")
            return VerificationResult(
                status=VerificationStatus.ALREADY_VERIFIED.value, address=address
            )
        print(f"Error verifying contract at {address}: {error}")

    try:
        print(f"Attempting alternative verification for {address}...")
        service.verify(address, list(constructor_args))
        print(f"Contract at {address} verified successfully with alternative method!")
        return VerificationResult(
            status=VerificationStatus.SUCCESS_ALTERNATIVE.value, address=address
        )
    except Exception as alt_error:
        print(f"Alternative verification failed for {address}: {alt_error}")
        return VerificationResult(
            status=VerificationStatus.FAILED.value, address=address, error=str(alt_error)
        )


def verify_contracts(
    service: VerificationService,
    targets: Sequence[Tuple[str, Sequence[Any]]],
    contract: Optional[str] = None,
    bytecode_hash: Optional[str] = None,
) -> List[VerificationResult]:
    """Verifies all (address, constructor args) targets concurrently; results keep input order."""
    if not targets:
        return list()

    def _verify(target: Tuple[str, Sequence[Any]]) -> VerificationResult:
        address, constructor_args = target
        return verify_contract(service, address, constructor_args, contract, bytecode_hash)

    with ThreadPoolExecutor(max_workers=len(targets)) as executor:
        return list(executor.map(_verify, targets))
