import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from zkdeploy.config import DeploymentConfig
from zkdeploy.deployer import Artifact, CompilerAPI, ContractHandle, DeployerAPI, Receipt
from zkdeploy.verify import VerificationService

# Common constants
PRIVATE_KEY = "0x" + "11" * 32
NETWORK = "abstractTestnet"
VERIFY_URL = "https://verify.example.com/contract_verification"
CONTRACT_NAME = "HelloAbstract"
CONTRACT_SOURCE = "contracts/HelloAbstract.sol"
FIXED_MOMENT = datetime(2024, 5, 1, 12, 30, 45, 123000, tzinfo=timezone.utc)
GWEI = 10**9

CONSTRUCTOR_ABI = {
    "type": "constructor",
    "stateMutability": "nonpayable",
    "inputs": [
        {"name": "index", "type": "uint256", "internalType": "uint256"},
        {"name": "deploymentDate", "type": "string", "internalType": "string"},
    ],
}

ARTIFACT = Artifact(
    contract_name=CONTRACT_NAME,
    source=CONTRACT_SOURCE,
    abi=[CONSTRUCTOR_ABI],
    bytecode="0x6080604052",
)


def contract_address(number: int) -> str:
    return "0x" + f"{number:040x}"


# Fakes for the external collaborators
class FakeCompiler(CompilerAPI):
    def __init__(self, events: list, fail_on: str = None):
        self.events = events
        self.fail_on = fail_on

    def _step(self, name: str) -> None:
        self.events.append((name,))
        if self.fail_on == name:
            raise RuntimeError(f"{name} failed")

    def clean(self):
        self._step("clean")

    def compile(self):
        self._step("compile")

    def get_artifact(self, contract_name):
        return ARTIFACT


class FakeHandle(ContractHandle):
    def __init__(self, address, receipt):
        self._address = address
        self._receipt = receipt

    @property
    def address(self):
        return self._address

    def wait(self):
        return self._receipt


class FakeDeployer(DeployerAPI):
    """
    Deploys to predictable addresses (0x...01, 0x...02, ...).
    receipt_statuses maps a 0-based deployment number to a receipt status, or None for no receipt.
    """

    def __init__(
        self,
        events: list,
        fee: int = 25_000 * GWEI * 1000,
        receipt_statuses: dict = None,
        fail_estimate: bool = False,
        fail_deploy_at: int = None,
    ):
        self.events = events
        self.fee = fee
        self.receipt_statuses = receipt_statuses or dict()
        self.fail_estimate = fail_estimate
        self.fail_deploy_at = fail_deploy_at
        self.deployments = 0

    def load_artifact(self, contract_name):
        self.events.append(("load_artifact", contract_name))
        return ARTIFACT

    def estimate_deploy_fee(self, artifact, constructor_args):
        self.events.append(("estimate", list(constructor_args)))
        if self.fail_estimate:
            raise ConnectionError("fee estimation failed")
        return self.fee

    def deploy(self, artifact, constructor_args):
        number = self.deployments
        self.events.append(("deploy", list(constructor_args)))
        if self.fail_deploy_at == number:
            raise ConnectionError("RPC unavailable")
        self.deployments += 1

        address = contract_address(number + 1)
        status = self.receipt_statuses.get(number, 1)
        if status is None:
            return FakeHandle(address, None)
        receipt = Receipt(
            status=status,
            gas_used=150_000 + number,
            contract_address=address,
            tx_hash="0x" + f"{number:064x}",
        )
        return FakeHandle(address, receipt)


class FakeVerifier(VerificationService):
    """
    outcomes maps an address to a list of per-attempt outcomes;
    an exception instance is raised, anything else counts as success.
    """

    def __init__(self, outcomes: dict = None, barrier: threading.Barrier = None):
        self.outcomes = outcomes or dict()
        self.barrier = barrier
        self.requests = list()
        self._lock = threading.Lock()

    def verify(self, address, constructor_args, contract=None, bytecode_hash=None):
        with self._lock:
            attempt = sum(1 for request in self.requests if request[0] == address)
            self.requests.append((address, list(constructor_args), contract, bytecode_hash))
        if self.barrier is not None:
            self.barrier.wait()
        attempts = self.outcomes.get(address, [])
        outcome = attempts[attempt] if attempt < len(attempts) else None
        if isinstance(outcome, Exception):
            raise outcome


class RecordingSleep:
    def __init__(self, events: list, on_sleep=None):
        self.events = events
        self.on_sleep = on_sleep

    def __call__(self, seconds):
        self.events.append(("sleep", seconds))
        if self.on_sleep:
            self.on_sleep(seconds)


# Fixtures
@pytest.fixture
def events():
    return list()


@pytest.fixture
def deployments_dir(tmp_path) -> Path:
    return tmp_path / "deployments"


@pytest.fixture
def config(deployments_dir):
    return DeploymentConfig(
        private_key=PRIVATE_KEY,
        network=NETWORK,
        verify_url=VERIFY_URL,
        contract_name=CONTRACT_NAME,
        contract_source=CONTRACT_SOURCE,
        contract_count=1,
        chain_id=11124,
        bytecode_hash="none",
        solidity_version="0.8.28",
        optimizer={"enabled": True, "runs": 200},
        deployments_dir=deployments_dir,
    )


@pytest.fixture
def clock():
    return lambda: FIXED_MOMENT


@pytest.fixture
def compiler(events):
    return FakeCompiler(events)


@pytest.fixture
def deployer(events):
    return FakeDeployer(events)


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def sleep(events):
    return RecordingSleep(events)


@pytest.fixture
def params():
    return {
        "deployment": {
            "network": NETWORK,
            "chain_id": 11124,
            "verify_url": VERIFY_URL,
            "deployments_dir": "deployments",
        },
        "contract": {
            "name": CONTRACT_NAME,
            "source": CONTRACT_SOURCE,
            "bytecode_hash": "none",
        },
        "compiler": {
            "solidity": "0.8.28",
            "zksolc": None,
            "optimizer": {"enabled": True, "runs": 200},
        },
        "timing": {
            "deployment_delay": 2,
            "verification_warmup": 60,
        },
    }
