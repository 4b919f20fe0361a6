from abc import ABC, abstractmethod
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address
from web3 import Web3
from web3.exceptions import TimeExhausted

from zkdeploy.config import DeploymentConfigError
from zkdeploy.constants import RECEIPT_STATUS_SUCCESS, RECEIPT_TIMEOUT, DeploymentStatus
from zkdeploy.utils import format_ether


class Artifact(NamedTuple):
    """A compiled, deployable contract."""

    contract_name: str
    source: Optional[str]
    abi: List[Dict[str, Any]]
    bytecode: str

    @property
    def constructor_input_types(self) -> List[str]:
        for entry in self.abi:
            if entry.get("type") == "constructor":
                return [abi_input["type"] for abi_input in entry.get("inputs", [])]
        return list()


class Receipt(NamedTuple):
    status: int
    gas_used: int
    contract_address: Optional[str]
    tx_hash: str


class DeploymentResult(NamedTuple):
    address: Optional[str]
    fee: str
    gas_used: Optional[str]
    status: str


class ContractHandle(ABC):
    """A submitted deployment whose transaction may not be mined yet."""

    @property
    @abstractmethod
    def address(self) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def wait(self) -> Optional[Receipt]:
        """Blocks until the deployment transaction is included; None if no receipt is available."""
        raise NotImplementedError


class CompilerAPI(ABC):
    @abstractmethod
    def clean(self) -> None:
        """Removes cached build artifacts."""
        raise NotImplementedError

    @abstractmethod
    def compile(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_artifact(self, contract_name: str) -> Artifact:
        raise NotImplementedError


class DeployerAPI(ABC):
    @abstractmethod
    def load_artifact(self, contract_name: str) -> Artifact:
        raise NotImplementedError

    @abstractmethod
    def estimate_deploy_fee(self, artifact: Artifact, constructor_args: Sequence[Any]) -> int:
        """Estimated deployment fee in wei."""
        raise NotImplementedError

    @abstractmethod
    def deploy(self, artifact: Artifact, constructor_args: Sequence[Any]) -> ContractHandle:
        raise NotImplementedError


def load_wallet(private_key: str) -> LocalAccount:
    """Signing identity for deployments."""
    try:
        return Account.from_key(private_key)
    except (ValueError, TypeError) as e:
        raise DeploymentConfigError(f"Invalid private key: {e}")


class Web3ContractHandle(ContractHandle):
    def __init__(self, w3: Web3, tx_hash, timeout: float = RECEIPT_TIMEOUT):
        self.w3 = w3
        self.tx_hash = tx_hash
        self.timeout = timeout
        self._receipt: Optional[Receipt] = None

    @property
    def address(self) -> Optional[str]:
        if self._receipt is None or not self._receipt.contract_address:
            return None
        return to_checksum_address(self._receipt.contract_address)

    def wait(self) -> Optional[Receipt]:
        if self._receipt is not None:
            return self._receipt
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(self.tx_hash, timeout=self.timeout)
        except TimeExhausted:
            print(f"No receipt for deployment transaction {Web3.to_hex(self.tx_hash)}.")
            return None
        self._receipt = Receipt(
            status=receipt["status"],
            gas_used=receipt["gasUsed"],
            contract_address=receipt.get("contractAddress"),
            tx_hash=Web3.to_hex(receipt["transactionHash"]),
        )
        return self._receipt


class Web3Deployer(DeployerAPI):
    """
    Represents a signing account plus contract creation over a web3 connection.
    """

    def __init__(
        self,
        w3: Web3,
        wallet: LocalAccount,
        compiler: CompilerAPI,
        receipt_timeout: float = RECEIPT_TIMEOUT,
    ):
        self.w3 = w3
        self.wallet = wallet
        self.compiler = compiler
        self.receipt_timeout = receipt_timeout

    def load_artifact(self, contract_name: str) -> Artifact:
        return self.compiler.get_artifact(contract_name)

    def _constructor(self, artifact: Artifact, constructor_args: Sequence[Any]):
        contract = self.w3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)
        return contract.constructor(*constructor_args)

    def estimate_deploy_fee(self, artifact: Artifact, constructor_args: Sequence[Any]) -> int:
        constructor = self._constructor(artifact, constructor_args)
        gas = constructor.estimate_gas({"from": self.wallet.address})
        return gas * self.w3.eth.gas_price

    def deploy(self, artifact: Artifact, constructor_args: Sequence[Any]) -> ContractHandle:
        constructor = self._constructor(artifact, constructor_args)
        transaction = constructor.build_transaction(
            {
                "from": self.wallet.address,
                "nonce": self.w3.eth.get_transaction_count(self.wallet.address),
            }
        )
        signed = self.wallet.sign_transaction(transaction)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        print(f"(i) Deployment transaction sent: {Web3.to_hex(tx_hash)}")
        return Web3ContractHandle(self.w3, tx_hash, timeout=self.receipt_timeout)


def deploy_contract(
    deployer: DeployerAPI,
    artifact: Artifact,
    constructor_args: Sequence[Any],
    label: str = "",
) -> DeploymentResult:
    """
    Estimates the fee, submits the deployment and waits for it to be mined.
    A missing or unsuccessful receipt is reported as failed rather than raised.
    """
    fee = deployer.estimate_deploy_fee(artifact, list(constructor_args))
    parsed_fee = format_ether(fee)
    print(f"Estimated deployment fee{label}: {parsed_fee} ETH")

    handle = deployer.deploy(artifact, list(constructor_args))
    receipt = handle.wait()

    succeeded = receipt is not None and receipt.status == RECEIPT_STATUS_SUCCESS
    status = DeploymentStatus.SUCCESS if succeeded else DeploymentStatus.FAILED
    return DeploymentResult(
        address=handle.address,
        fee=parsed_fee,
        gas_used=str(receipt.gas_used) if receipt is not None else None,
        status=status.value,
    )
