from pathlib import Path

import pytest
import yaml

from tests.conftest import CONTRACT_NAME, NETWORK, PRIVATE_KEY, VERIFY_URL
from zkdeploy.config import (
    DeploymentConfig,
    DeploymentConfigError,
    ZksolcSettings,
    config_from_params,
    load_config,
    parse_contract_count,
)
from zkdeploy.constants import DEFAULT_PARAMS_FILEPATH


@pytest.mark.parametrize("value,expected", [(None, 1), ("", 1), ("3", 3), (" 2 ", 2), ("1", 1)])
def test_parse_contract_count(value, expected):
    assert parse_contract_count(value) == expected


@pytest.mark.parametrize("value", ["abc", "1.5", "0", "-1"])
def test_parse_contract_count_rejects_invalid_values(value):
    with pytest.raises(DeploymentConfigError):
        parse_contract_count(value)


def test_missing_private_key_is_fatal(params):
    with pytest.raises(DeploymentConfigError, match="PRIVATE_KEY is required"):
        config_from_params(params, environ={})

    with pytest.raises(DeploymentConfigError, match="PRIVATE_KEY is required"):
        config_from_params(params, environ={"PRIVATE_KEY": ""})


def test_missing_private_key_allowed_when_not_required(params):
    config = config_from_params(params, environ={}, require_private_key=False)
    assert config.private_key == ""


def test_config_from_params(params):
    config = config_from_params(params, environ={"PRIVATE_KEY": PRIVATE_KEY})

    assert config.private_key == PRIVATE_KEY
    assert config.network == NETWORK
    assert config.verify_url == VERIFY_URL
    assert config.contract_name == CONTRACT_NAME
    assert config.contract_count == 1
    assert config.chain_id == 11124
    assert config.bytecode_hash == "none"
    assert config.solidity_version == "0.8.28"
    assert config.zksolc_version is None
    assert config.optimizer == {"enabled": True, "runs": 200}
    assert config.deployment_delay == 2
    assert config.verification_warmup == 60
    assert config.deployments_dir == Path("deployments")
    assert config.qualified_contract_name == "contracts/HelloAbstract.sol:HelloAbstract"


def test_contract_count_from_environment(params):
    environ = {"PRIVATE_KEY": PRIVATE_KEY, "CONTRACT_COUNT": "3"}
    assert config_from_params(params, environ=environ).contract_count == 3


def test_explicit_contract_count_overrides_environment(params):
    environ = {"PRIVATE_KEY": PRIVATE_KEY, "CONTRACT_COUNT": "not-a-number"}
    config = config_from_params(params, environ=environ, contract_count=5)
    assert config.contract_count == 5

    with pytest.raises(DeploymentConfigError):
        config_from_params(params, environ=environ, contract_count=0)


def test_invalid_contract_count_in_environment(params):
    environ = {"PRIVATE_KEY": PRIVATE_KEY, "CONTRACT_COUNT": "-2"}
    with pytest.raises(DeploymentConfigError, match="at least 1"):
        config_from_params(params, environ=environ)


def test_timing_defaults_when_section_missing(params):
    del params["timing"]
    del params["compiler"]
    config = config_from_params(params, environ={"PRIVATE_KEY": PRIVATE_KEY})
    assert config.deployment_delay == 2
    assert config.verification_warmup == 60
    assert config.solidity_version is None
    assert config.optimizer == {}


@pytest.mark.parametrize(
    "section,key,message",
    [
        ("deployment", "network", "deployment.network is not set"),
        ("deployment", "verify_url", "deployment.verify_url is not set"),
        ("contract", "name", "contract.name is not set"),
        ("contract", "source", "contract.source is not set"),
    ],
)
def test_missing_required_params(params, section, key, message):
    del params[section][key]
    with pytest.raises(DeploymentConfigError, match=message):
        config_from_params(params, environ={"PRIVATE_KEY": PRIVATE_KEY})


def test_missing_required_section(params):
    del params["contract"]
    with pytest.raises(DeploymentConfigError, match="contract is not set"):
        config_from_params(params, environ={"PRIVATE_KEY": PRIVATE_KEY})


def test_negative_delays_rejected(params):
    params["timing"]["deployment_delay"] = -1
    with pytest.raises(DeploymentConfigError):
        config_from_params(params, environ={"PRIVATE_KEY": PRIVATE_KEY})


def test_load_config_from_file(tmp_path, params):
    filepath = tmp_path / "params.yml"
    filepath.write_text(yaml.safe_dump(params))

    config = load_config(filepath, environ={"PRIVATE_KEY": PRIVATE_KEY, "CONTRACT_COUNT": "4"})
    assert config.contract_count == 4
    assert config.network == NETWORK


def test_shipped_params_file_loads():
    config = load_config(DEFAULT_PARAMS_FILEPATH, environ={"PRIVATE_KEY": PRIVATE_KEY})
    assert config.network == "abstractTestnet"
    assert config.contract_name == "HelloAbstract"
    assert config.solidity_version == "0.8.28"
    assert config.verify_url.endswith("/contract_verification")
    assert config.rpc_url == "https://api.testnet.abs.xyz"
    assert config.zksolc == ZksolcSettings(
        version="1.5.7",
        path="zksolc",
        solc_path=None,
        optimizer={"enabled": True, "mode": "3"},
        enable_eravm_extensions=False,
        force_evmla=False,
    )
    assert config.zksolc_version == "1.5.7"


def test_optimizer_default_is_not_shared():
    first = DeploymentConfig(
        private_key=PRIVATE_KEY,
        network=NETWORK,
        verify_url=VERIFY_URL,
        contract_name=CONTRACT_NAME,
        contract_source="contracts/HelloAbstract.sol",
    )
    assert first.optimizer is None
    assert first.zksolc is None
    assert first.zksolc_version is None


def test_zksolc_settings(params):
    params["compiler"]["zksolc"] = {
        "version": "1.5.7",
        "path": "/opt/zksolc",
        "solc_path": "/opt/solc-0.8.28",
        "enable_eravm_extensions": True,
        "optimizer": {"enabled": True, "mode": "z"},
    }
    config = config_from_params(params, environ={"PRIVATE_KEY": PRIVATE_KEY})

    assert config.zksolc.path == "/opt/zksolc"
    assert config.zksolc.solc_path == "/opt/solc-0.8.28"
    assert config.zksolc.enable_eravm_extensions is True
    assert config.zksolc.force_evmla is False
    assert config.zksolc.optimizer == {"enabled": True, "mode": "z"}


def test_zksolc_version_only(params):
    params["compiler"]["zksolc"] = "1.5.7"
    config = config_from_params(params, environ={"PRIVATE_KEY": PRIVATE_KEY})

    assert config.zksolc.version == "1.5.7"
    assert config.zksolc.path == "zksolc"
    assert config.zksolc.optimizer == {"enabled": True, "mode": "3"}


def test_zksolc_settings_require_a_version(params):
    params["compiler"]["zksolc"] = {"path": "zksolc"}
    with pytest.raises(DeploymentConfigError, match="compiler.zksolc.version is not set"):
        config_from_params(params, environ={"PRIVATE_KEY": PRIVATE_KEY})


def test_zksolc_needs_a_solc(params):
    params["compiler"]["zksolc"] = "1.5.7"
    del params["compiler"]["solidity"]
    with pytest.raises(DeploymentConfigError, match="compiler.solidity is not set"):
        config_from_params(params, environ={"PRIVATE_KEY": PRIVATE_KEY})
