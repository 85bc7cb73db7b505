"""
Unit tests for configuration loading.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from x402_payment_core.config import (
    AppConfig,
    LedgerConfig,
    LoggingConfig,
    PaymentConfig,
    get_config,
    reset_config,
    set_config,
)


class TestEnvironmentDefaults:
    """Test values read from the environment."""

    def test_master_key_from_env(self, monkeypatch):
        monkeypatch.setenv("ENCRYPTION_MASTER_KEY", "passphrase")
        assert AppConfig().security.encryption_master_key == "passphrase"

    def test_master_key_not_in_repr(self, monkeypatch):
        monkeypatch.setenv("ENCRYPTION_MASTER_KEY", "do-not-print")
        assert "do-not-print" not in repr(AppConfig().security)

    def test_pay_to_prefers_system_account(self, monkeypatch):
        monkeypatch.setenv("HEDERA_SYSTEM_ACCOUNT_ID", "0.0.5005")
        monkeypatch.setenv("HEDERA_OPERATOR_ID", "0.0.6006")
        assert PaymentConfig().pay_to == "0.0.5005"

    def test_pay_to_falls_back_to_operator(self, monkeypatch):
        monkeypatch.delenv("HEDERA_SYSTEM_ACCOUNT_ID", raising=False)
        monkeypatch.setenv("HEDERA_OPERATOR_ID", "0.0.6006")
        assert PaymentConfig().pay_to == "0.0.6006"

    def test_price_from_env(self, monkeypatch):
        monkeypatch.setenv("X402_PAYMENT_PRICE", "0.25")
        assert PaymentConfig().price == Decimal("0.25")

    def test_logs_queue_flag(self, monkeypatch):
        monkeypatch.setenv("ENABLE_LOGS_QUEUE", "true")
        assert AppConfig().features.enable_logs_queue is True

    def test_facilitator_url(self, monkeypatch):
        monkeypatch.setenv("X402_FACILITATOR_URL", "https://facilitator.example")
        assert AppConfig().facilitator.base_url == "https://facilitator.example"

    def test_mirror_node_override(self, monkeypatch):
        monkeypatch.setenv("HEDERA_MIRROR_NODE_URL", "http://mirror.local")
        assert LedgerConfig().mirror_node_urls["hedera-testnet"] == "http://mirror.local"


class TestValidation:
    def test_log_level_normalized(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(PydanticValidationError):
            LoggingConfig(level="LOUD")

    def test_network_normalized(self):
        assert LedgerConfig(default_network="mainnet").default_network == "hedera-mainnet"

    def test_unknown_network(self):
        with pytest.raises(PydanticValidationError):
            LedgerConfig(default_network="ropsten")


class TestGlobalConfig:
    def test_set_and_get(self, test_config):
        assert get_config() is test_config

    def test_reset_rebuilds_from_env(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "staging")
        reset_config()

        assert get_config().environment == "staging"

    def test_custom_values(self):
        config = AppConfig(custom={"region": "eu"})
        set_config(config)

        assert get_config().get_custom("region") == "eu"
        assert get_config().get_custom("missing", "default") == "default"
