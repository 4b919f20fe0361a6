from typing import Any, Sequence

from eth_abi import encode
from eth_account.signers.local import LocalAccount
from web3 import Web3
from zksync2.core.types import EthBlockParams
from zksync2.module.module_builder import ZkSyncBuilder
from zksync2.signer.eth_signer import PrivateKeyEthSigner
from zksync2.transaction.transaction_builders import TxCreateContract

from zkdeploy.constants import RECEIPT_TIMEOUT
from zkdeploy.deployer import (
    Artifact,
    CompilerAPI,
    ContractHandle,
    DeployerAPI,
    Web3ContractHandle,
)


def encode_constructor_call(artifact: Artifact, constructor_args: Sequence[Any]) -> bytes:
    input_types = artifact.constructor_input_types
    if len(input_types) != len(constructor_args):
        raise ValueError(
            f"{artifact.contract_name} constructor takes {len(input_types)} arguments, "
            f"got {len(constructor_args)}."
        )
    if not input_types:
        return b""
    return encode(input_types, list(constructor_args))


class ZkSyncDeployer(DeployerAPI):
    """
    Deploys EraVM bytecode through the ContractDeployer system contract
    with signed EIP-712 transactions.
    """

    def __init__(
        self,
        zk_web3: Web3,
        wallet: LocalAccount,
        compiler: CompilerAPI,
        receipt_timeout: float = RECEIPT_TIMEOUT,
    ):
        self.zk_web3 = zk_web3
        self.wallet = wallet
        self.compiler = compiler
        self.receipt_timeout = receipt_timeout
        self.chain_id = zk_web3.zksync.chain_id
        self.signer = PrivateKeyEthSigner(wallet, self.chain_id)

    @classmethod
    def from_url(
        cls, rpc_url: str, wallet: LocalAccount, compiler: CompilerAPI, **kwargs
    ) -> "ZkSyncDeployer":
        return cls(ZkSyncBuilder.build(rpc_url), wallet, compiler, **kwargs)

    def load_artifact(self, contract_name: str) -> Artifact:
        return self.compiler.get_artifact(contract_name)

    def _create_transaction(
        self, artifact: Artifact, constructor_args: Sequence[Any], gas_price: int
    ) -> TxCreateContract:
        nonce = self.zk_web3.zksync.get_transaction_count(
            self.wallet.address, EthBlockParams.PENDING.value
        )
        return TxCreateContract(
            web3=self.zk_web3,
            chain_id=self.chain_id,
            nonce=nonce,
            from_=self.wallet.address,
            gas_limit=0,
            gas_price=gas_price,
            bytecode=Web3.to_bytes(hexstr=artifact.bytecode),
            call_data=encode_constructor_call(artifact, constructor_args),
        )

    def estimate_deploy_fee(self, artifact: Artifact, constructor_args: Sequence[Any]) -> int:
        gas_price = self.zk_web3.zksync.gas_price
        create_contract = self._create_transaction(artifact, constructor_args, gas_price)
        gas = self.zk_web3.zksync.eth_estimate_gas(create_contract.tx)
        return gas * gas_price

    def deploy(self, artifact: Artifact, constructor_args: Sequence[Any]) -> ContractHandle:
        gas_price = self.zk_web3.zksync.gas_price
        create_contract = self._create_transaction(artifact, constructor_args, gas_price)
        gas = self.zk_web3.zksync.eth_estimate_gas(create_contract.tx)

        tx_712 = create_contract.tx712(gas)
        signature = self.signer.sign_typed_data(tx_712.to_eip712_struct())
        tx_hash = self.zk_web3.zksync.send_raw_transaction(tx_712.encode(signature))
        print(f"(i) Deployment transaction sent: {Web3.to_hex(tx_hash)}")
        return Web3ContractHandle(self.zk_web3, tx_hash, timeout=self.receipt_timeout)
