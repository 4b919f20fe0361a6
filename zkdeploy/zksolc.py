import json
import shutil
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from solcx.install import get_executable, install_solc
from solcx.exceptions import SolcNotInstalled

from zkdeploy.config import ZksolcSettings
from zkdeploy.constants import CONTRACTS_DIR, ZKSOLC_BUILD_DIR, ZKSOLC_OUTPUT_FILENAME
from zkdeploy.deployer import Artifact, CompilerAPI
from zkdeploy.utils import _load_json, collect_sources


class ZksolcError(Exception):
    """Raised when zksolc cannot be run or reports compilation errors."""


def standard_json_settings(
    optimizer: Optional[Dict[str, Any]] = None,
    zksolc: Optional[ZksolcSettings] = None,
    bytecode_hash: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Compiler settings of a solidity standard JSON input.
    EraVM builds use the zksolc optimizer and flags in place of the solc optimizer.
    """
    settings = {
        "optimizer": dict(optimizer or {}),
        "outputSelection": {"*": {"*": ["abi"]}},
    }
    if zksolc is not None:
        settings["optimizer"] = dict(zksolc.optimizer or {})
        settings["outputSelection"] = {"*": {"*": ["abi", "evm.bytecode"]}}
        settings["enableEraVMExtensions"] = zksolc.enable_eravm_extensions
        settings["forceEVMLA"] = zksolc.force_evmla
    if bytecode_hash:
        settings["metadata"] = {"bytecodeHash": bytecode_hash}
    return settings


def standard_json_input(sources: Dict[str, str], settings: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "language": "Solidity",
        "sources": {name: {"content": content} for name, content in sources.items()},
        "settings": settings,
    }


def resolve_solc_path(solidity_version: str) -> str:
    """Path of the solc binary zksolc drives; installed through py-solc-x when missing."""
    try:
        return str(get_executable(solidity_version))
    except SolcNotInstalled:
        print(f"Installing solc {solidity_version}...")
        install_solc(solidity_version)
        return str(get_executable(solidity_version))


class ZksolcCompiler(CompilerAPI):
    """
    Compiles every source under contracts/ to EraVM bytecode with zksolc,
    keeping the standard JSON output under artifacts-zk/.
    """

    def __init__(
        self,
        settings: ZksolcSettings,
        solidity_version: str,
        bytecode_hash: Optional[str] = None,
        contracts_dir: Path = CONTRACTS_DIR,
        build_dir: Path = ZKSOLC_BUILD_DIR,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.settings = settings
        self.solidity_version = solidity_version
        self.bytecode_hash = bytecode_hash
        self.contracts_dir = Path(contracts_dir)
        self.build_dir = Path(build_dir)
        self.run = run
        self._output: Optional[Dict[str, Any]] = None

    @classmethod
    def from_config(cls, config, **kwargs) -> "ZksolcCompiler":
        return cls(
            settings=config.zksolc,
            solidity_version=config.solidity_version,
            bytecode_hash=config.bytecode_hash,
            **kwargs,
        )

    @property
    def output_filepath(self) -> Path:
        return self.build_dir / ZKSOLC_OUTPUT_FILENAME

    def clean(self) -> None:
        print("Cleaning build artifacts...")
        self._output = None
        shutil.rmtree(self.build_dir, ignore_errors=True)

    def command(self) -> list:
        solc_path = self.settings.solc_path or resolve_solc_path(self.solidity_version)
        return [self.settings.path, "--standard-json", "--solc", solc_path]

    def compile(self) -> None:
        print(f"Compiling contracts with zksolc {self.settings.version}...")
        settings = standard_json_settings(zksolc=self.settings, bytecode_hash=self.bytecode_hash)
        compiler_input = standard_json_input(collect_sources(self.contracts_dir), settings)

        try:
            process = self.run(
                self.command(),
                input=json.dumps(compiler_input),
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            raise ZksolcError(f"zksolc executable not found at '{self.settings.path}'.")
        if process.returncode != 0:
            raise ZksolcError(process.stderr.strip() or f"zksolc exited with {process.returncode}")

        output = json.loads(process.stdout)
        errors = [
            error.get("formattedMessage") or error.get("message", "")
            for error in output.get("errors", [])
            if error.get("severity") == "error"
        ]
        if errors:
            raise ZksolcError("\n".join(errors))

        self.build_dir.mkdir(parents=True, exist_ok=True)
        self.output_filepath.write_text(json.dumps(output, indent=2))
        self._output = output
        contract_count = sum(len(contracts) for contracts in output.get("contracts", {}).values())
        print(f"(i) Compiled {contract_count} contract type(s).")

    def _load_output(self) -> Dict[str, Any]:
        if self._output is None:
            if not self.output_filepath.exists():
                raise ValueError("Contracts have not been compiled with zksolc.")
            self._output = _load_json(self.output_filepath)
        return self._output

    def get_artifact(self, contract_name: str) -> Artifact:
        for source, contracts in self._load_output().get("contracts", {}).items():
            if contract_name not in contracts:
                continue
            compiled = contracts[contract_name]
            bytecode = compiled.get("evm", {}).get("bytecode", {}).get("object")
            if not bytecode:
                raise ValueError(f"Contract '{contract_name}' has no deployment bytecode.")
            return Artifact(
                contract_name=contract_name,
                source=source,
                abi=compiled.get("abi", []),
                bytecode=bytecode if bytecode.startswith("0x") else f"0x{bytecode}",
            )
        raise ValueError(f"No contract found with name '{contract_name}'.")
