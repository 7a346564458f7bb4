"""Tests for configuration loading."""

import pytest

from proof_relayer.config import ConfigError, load_agent_config, load_runtime_settings
from proof_relayer.models.agent import DEFAULT_TRUSTED_SIGNER


class TestLoadAgentConfig:
    def test_defaults_from_empty_env(self):
        config = load_agent_config({})
        assert config.trusted_signer == DEFAULT_TRUSTED_SIGNER
        assert config.max_fee_price == 50

    def test_overrides(self):
        config = load_agent_config({
            "RELAYER_TRUSTED_SIGNER": "0xabc",
            "RELAYER_MAX_PROOF_AGE": "600",
            "RELAYER_MAX_FEE_PRICE": "30",
            "RELAYER_FEE_BUFFER_PERCENT": "35",
            "RELAYER_LARGE_TRADE_THRESHOLD": "5000000000",
            "RELAYER_RISK_GATING": "false",
            "RELAYER_POLL_INTERVAL": "1.5",
            "RELAYER_VALIDITY_WINDOW": "120",
        })
        assert config.trusted_signer == "0xabc"
        assert config.max_proof_age_seconds == 600
        assert config.max_fee_price == 30
        assert config.fee_buffer_percent == 35
        assert config.large_trade_threshold == 5_000_000_000
        assert config.risk_gating_enabled is False
        assert config.poll_interval_seconds == 1.5
        assert config.submission_validity_seconds == 120

    def test_legacy_names(self):
        config = load_agent_config({
            "MAX_GAS_PRICE_GWEI": "40",
            "MEV_PROTECTION_ENABLED": "0",
        })
        assert config.max_fee_price == 40
        assert config.risk_gating_enabled is False

    def test_blank_values_ignored(self):
        config = load_agent_config({"RELAYER_MAX_FEE_PRICE": "  "})
        assert config.max_fee_price == 50

    def test_invalid_number(self):
        with pytest.raises(ConfigError):
            load_agent_config({"RELAYER_MAX_FEE_PRICE": "cheap"})

    def test_invalid_bool(self):
        with pytest.raises(ConfigError):
            load_agent_config({"RELAYER_RISK_GATING": "maybe"})

    def test_out_of_bounds(self):
        with pytest.raises(ConfigError):
            load_agent_config({"RELAYER_POLL_INTERVAL": "0"})


class TestLoadRuntimeSettings:
    def test_defaults(self):
        settings = load_runtime_settings({})
        assert settings.rpc_url == "https://sepolia.base.org"
        assert settings.proofs_file == "execution_proofs.json"
        assert settings.db_path == ":memory:"
        assert settings.chain_id is None

    def test_values(self):
        settings = load_runtime_settings({
            "RPC_URL": "http://localhost:8545",
            "HOOK_ADDRESS": "0x" + "1" * 40,
            "CHAIN_ID": "84532",
            "RELAYER_DB": "/tmp/proofs.sqlite",
        })
        assert settings.chain_id == 84532
        assert settings.hook_address == "0x" + "1" * 40
        assert settings.db_path == "/tmp/proofs.sqlite"

    def test_bad_chain_id(self):
        with pytest.raises(ConfigError):
            load_runtime_settings({"CHAIN_ID": "base"})
