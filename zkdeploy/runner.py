import time
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence, Tuple

from zkdeploy.config import DeploymentConfig, DeploymentConfigError
from zkdeploy.constants import PRIVATE_KEY_ENVVAR, VerificationStatus
from zkdeploy.deployer import Artifact, CompilerAPI, DeployerAPI, deploy_contract
from zkdeploy.records import (
    BatchDeploymentRecord,
    BatchEntry,
    DeploymentRecord,
    save_deployment_info,
)
from zkdeploy.utils import format_deployment_date, iso_timestamp, utc_now
from zkdeploy.verify import (
    VerificationResult,
    VerificationService,
    verify_contract,
    verify_contracts,
)

Sleep = Callable[[float], None]
Clock = Callable[[], datetime]


class DeploymentAborted(Exception):
    """Raised when a required step fails and the run cannot continue."""

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Deployment aborted during {stage}: {cause}")


# Errors the scripts report as a failed command rather than a traceback
FATAL_ERRORS = (DeploymentConfigError, DeploymentAborted, FileNotFoundError)


def _run_stage(stage: str, func: Callable, *args, **kwargs) -> Any:
    try:
        return func(*args, **kwargs)
    except Exception as e:
        raise DeploymentAborted(stage, e) from e


def _check_private_key(config: DeploymentConfig) -> None:
    if not config.private_key:
        raise DeploymentConfigError(f"{PRIVATE_KEY_ENVVAR} is required in .env file")


def _prepare(config: DeploymentConfig, compiler: CompilerAPI, deployer: DeployerAPI) -> Artifact:
    """Cleans and compiles the project, then loads the artifact to deploy."""
    _run_stage("clean", compiler.clean)
    _run_stage("compilation", compiler.compile)
    return _run_stage("artifact loading", deployer.load_artifact, config.contract_name)


def _seconds_to_ms(seconds: float) -> str:
    return f"{seconds * 1000:g}"


def run_single(
    config: DeploymentConfig,
    compiler: CompilerAPI,
    deployer: DeployerAPI,
    verifier: VerificationService,
    verify: bool = True,
    sleep: Sleep = time.sleep,
    clock: Clock = utc_now,
) -> Tuple[DeploymentRecord, Optional[VerificationResult]]:
    """Deploys one instance without constructor arguments, records it and verifies it."""
    _check_private_key(config)
    print("Starting deployment process...")

    artifact = _prepare(config, compiler, deployer)

    print(f"Deploying {config.contract_name} contract...")
    result = _run_stage("deployment", deploy_contract, deployer, artifact, [])
    print(f"Deployment status: {result.status}")
    print(f"Gas used: {result.gas_used}")
    print(f"Contract deployed to: {result.address}")

    record = DeploymentRecord(
        network=config.network,
        contract_address=result.address,
        deployment_fee=result.fee,
        gas_used=result.gas_used,
        status=result.status,
        timestamp=iso_timestamp(clock()),
        contract_name=config.contract_name,
        solidity_version=config.solidity_version,
    )
    _run_stage(
        "record saving",
        save_deployment_info,
        record.to_dict(),
        config.network,
        config.deployments_dir,
        clock(),
    )

    if not verify:
        return record, None
    if result.address is None:
        print("No contract address available; skipping verification.")
        return record, None

    print("Starting contract verification...")
    print("Waiting for contract to be ready for verification...")
    sleep(config.verification_warmup)
    verification = verify_contract(
        verifier,
        result.address,
        [],
        contract=config.qualified_contract_name,
        bytecode_hash=config.bytecode_hash,
    )
    return record, verification


def _deploy_batch_entry(
    config: DeploymentConfig,
    deployer: DeployerAPI,
    artifact: Artifact,
    index: int,
    clock: Clock,
) -> BatchEntry:
    number = index + 1
    print(f"Starting deployment #{number}...")

    deployment_date = format_deployment_date(clock())
    constructor_args = [index, deployment_date]
    result = _run_stage(
        f"deployment #{number}",
        deploy_contract,
        deployer,
        artifact,
        constructor_args,
        label=f" for #{number}",
    )
    print(f"Contract #{number} deployed to: {result.address}")

    return BatchEntry(
        index=number,
        network=config.network,
        contract_address=result.address,
        deployment_fee=result.fee,
        gas_used=result.gas_used,
        status=result.status,
        timestamp=iso_timestamp(clock()),
        deployment_date=deployment_date,
        contract_name=config.contract_name,
        constructor_args=constructor_args,
        solidity_version=config.solidity_version,
    )


def verify_batch(
    config: DeploymentConfig,
    verifier: VerificationService,
    entries: Sequence[BatchEntry],
) -> List[VerificationResult]:
    """
    Verifies every deployed entry concurrently. Entries without an address
    are reported as failed without contacting the explorer.
    """
    targets = [
        (entry.contract_address, entry.constructor_args)
        for entry in entries
        if entry.contract_address
    ]
    verified = iter(
        verify_contracts(
            verifier,
            targets,
            contract=config.qualified_contract_name,
            bytecode_hash=config.bytecode_hash,
        )
    )

    results = list()
    for entry in entries:
        if entry.contract_address:
            results.append(next(verified))
        else:
            results.append(
                VerificationResult(
                    status=VerificationStatus.FAILED.value,
                    address="",
                    error="No contract address to verify",
                )
            )
    return results


def print_summary(
    record: BatchDeploymentRecord,
    results: Optional[Sequence[VerificationResult]] = None,
) -> None:
    print("\nDeployment Summary:")
    for position, entry in enumerate(record.deployments):
        verification = results[position].status if results else "skipped"
        print(f"\nContract #{position + 1}:")
        print(f"Address: {entry.contract_address}")
        print(f"Status: {entry.status}")
        print(f"Gas Used: {entry.gas_used}")
        print(f"Deployment Date: {entry.deployment_date}")
        print(f"Verification: {verification}")


def run_batch(
    config: DeploymentConfig,
    compiler: CompilerAPI,
    deployer: DeployerAPI,
    verifier: VerificationService,
    verify: bool = True,
    sleep: Sleep = time.sleep,
    clock: Clock = utc_now,
) -> Tuple[BatchDeploymentRecord, List[VerificationResult]]:
    """
    Deploys contract_count instances one after another, records them as one batch,
    then verifies all of them concurrently.
    """
    _check_private_key(config)
    count = config.contract_count
    print(f"Starting deployment process for {count} contracts...")

    artifact = _prepare(config, compiler, deployer)

    print("Deploying contracts sequentially...")
    entries = list()
    for index in range(count):
        if index > 0:
            print(f"Waiting {_seconds_to_ms(config.deployment_delay)}ms before next deployment...")
            sleep(config.deployment_delay)
        entries.append(_deploy_batch_entry(config, deployer, artifact, index, clock))

    record = BatchDeploymentRecord(
        batch_size=count,
        deployments=entries,
        timestamp=iso_timestamp(clock()),
    )
    _run_stage(
        "record saving",
        save_deployment_info,
        record.to_dict(),
        config.network,
        config.deployments_dir,
        clock(),
    )

    results = list()
    if verify:
        print(f"Waiting {config.verification_warmup:g} seconds before starting verifications...")
        sleep(config.verification_warmup)
        print("Starting parallel contract verifications...")
        results = verify_batch(config, verifier, entries)

    print_summary(record, results)
    return record, results
