from enum import Enum
from pathlib import Path

import zkdeploy

#
# Filesystem
#

PACKAGE_DIR = Path(zkdeploy.__file__).parent
PARAMS_DIR = PACKAGE_DIR / "params"
DEFAULT_PARAMS_FILEPATH = PARAMS_DIR / "abstract-testnet.yml"
DEPLOYMENTS_DIR = Path("deployments")
CONTRACTS_DIR = Path("contracts")

ZKSOLC_BUILD_DIR = Path("artifacts-zk")
ZKSOLC_OUTPUT_FILENAME = "zksolc-output.json"

HISTORICAL_FILENAME_PREFIX = "deployment-"
LATEST_FILENAME_SUFFIX = "-deployment.json"

#
# Environment
#

PRIVATE_KEY_ENVVAR = "PRIVATE_KEY"
CONTRACT_COUNT_ENVVAR = "CONTRACT_COUNT"

#
# Timing (seconds)
#

DEPLOYMENT_DELAY = 2
VERIFICATION_WARMUP = 60

VERIFICATION_POLL_INTERVAL = 5
VERIFICATION_MAX_POLLS = 60

#
# Deployment
#

DEFAULT_CONTRACT_COUNT = 1
RECEIPT_STATUS_SUCCESS = 1
RECEIPT_TIMEOUT = 120

#
# Compilation
#

DEFAULT_ZKSOLC_PATH = "zksolc"
DEFAULT_ZKSOLC_OPTIMIZER = {"enabled": True, "mode": "3"}


class DeploymentStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


#
# Verification
#

ALREADY_VERIFIED = "already verified"

STANDARD_JSON_CODE_FORMAT = "solidity-standard-json-input"
SINGLE_FILE_CODE_FORMAT = "solidity-single-file"


class VerificationStatus(str, Enum):
    SUCCESS = "success"
    ALREADY_VERIFIED = "already-verified"
    SUCCESS_ALTERNATIVE = "success-alternative"
    FAILED = "failed"


# Verification request states as reported by the explorer API
class VerificationRequestState(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    SUCCESSFUL = "successful"
    FAILED = "failed"
