from typing import Dict

from ape import project
from ape.contracts import ContractContainer

from zkdeploy.deployer import Artifact, CompilerAPI


def get_contract_container(contract: str, project_manager=project) -> ContractContainer:
    try:
        contract_container = getattr(project_manager, contract)
    except AttributeError:
        raise ValueError(f"No contract found with name '{contract}'.")
    return contract_container


class ProjectCompiler(CompilerAPI):
    """
    Compiles the local ape project and exposes its contracts as deployable artifacts.
    """

    def __init__(self, project_manager=None):
        self.project = project_manager or project
        self._artifacts: Dict[str, Artifact] = dict()

    def clean(self) -> None:
        print("Cleaning build artifacts...")
        self._artifacts.clear()
        self.project.clean()

    def compile(self) -> None:
        print("Compiling contracts...")
        contract_types = self.project.load_contracts(use_cache=False)
        print(f"(i) Compiled {len(contract_types)} contract type(s).")

    def get_artifact(self, contract_name: str) -> Artifact:
        if contract_name in self._artifacts:
            return self._artifacts[contract_name]

        contract_type = get_contract_container(contract_name, self.project).contract_type
        deployment_bytecode = contract_type.deployment_bytecode
        bytecode = deployment_bytecode.bytecode if deployment_bytecode else None
        if not bytecode or bytecode == "0x":
            raise ValueError(f"Contract '{contract_name}' has no deployment bytecode.")

        artifact = Artifact(
            contract_name=contract_type.name,
            source=contract_type.source_id,
            abi=[entry.model_dump(mode="json", by_alias=True) for entry in contract_type.abi],
            bytecode=bytecode,
        )
        self._artifacts[contract_name] = artifact
        return artifact
