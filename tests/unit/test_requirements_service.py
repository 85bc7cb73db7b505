"""
Tests for PaymentRequirementsIssuer.
"""

from decimal import Decimal

import pytest

from x402_payment_core.config import PaymentConfig
from x402_payment_core.exceptions import ConfigurationError
from x402_payment_core.services.requirements_service import PaymentRequirementsIssuer

from tests.conftest import SYSTEM_ACCOUNT


class TestIssue:
    """Test building requirements from configuration."""

    def test_default_requirements(self):
        """Test the configured price, recipient and network are used."""
        requirements = PaymentRequirementsIssuer().issue()

        assert requirements.scheme == "exact"
        assert requirements.network == "hedera-testnet"
        assert requirements.max_amount_required == "100000"
        assert requirements.pay_to == SYSTEM_ACCOUNT
        assert requirements.resource == "/api/v1/mcp/messages"
        assert requirements.max_timeout_seconds == 60
        assert requirements.extra.fee_payer == SYSTEM_ACCOUNT
        assert requirements.extra.price == "0.001 HBAR"

    def test_wire_format_is_camel_case(self):
        wire = PaymentRequirementsIssuer().issue().to_wire()

        assert wire["maxAmountRequired"] == "100000"
        assert wire["payTo"] == SYSTEM_ACCOUNT
        assert wire["maxTimeoutSeconds"] == 60
        assert wire["extra"]["feePayer"] == SYSTEM_ACCOUNT

    def test_custom_resource(self):
        requirements = PaymentRequirementsIssuer().issue(resource="/api/v1/reports")
        assert requirements.resource == "/api/v1/reports"

    def test_requirements_are_immutable(self):
        requirements = PaymentRequirementsIssuer().issue()
        with pytest.raises(Exception):
            requirements.pay_to = "0.0.9999"

    @pytest.mark.parametrize(
        "price,expected",
        [
            ("1", "100000000"),
            ("0.000000019", "1"),
            ("0.123456789", "12345678"),
        ],
    )
    def test_price_truncates_to_tinybars(self, price, expected):
        """Test fractions of a tinybar are dropped, never rounded up."""
        config = PaymentConfig(pay_to=SYSTEM_ACCOUNT, price=Decimal(price))
        requirements = PaymentRequirementsIssuer(config=config).issue()
        assert requirements.max_amount_required == expected

    def test_bare_network_name_normalized(self):
        requirements = PaymentRequirementsIssuer(network="mainnet").issue()
        assert requirements.network == "hedera-mainnet"


class TestIssueConfigurationErrors:
    """Test invalid configuration fails locally."""

    @pytest.mark.parametrize("pay_to", [None, "", "0.0.0"])
    def test_missing_pay_to(self, pay_to):
        config = PaymentConfig(pay_to=pay_to, price=Decimal("0.001"))

        with pytest.raises(ConfigurationError) as exc_info:
            PaymentRequirementsIssuer(config=config).issue()
        assert exc_info.value.context["setting"] == "HEDERA_SYSTEM_ACCOUNT_ID"

    def test_malformed_pay_to(self):
        config = PaymentConfig(pay_to="account-5005", price=Decimal("0.001"))

        with pytest.raises(ConfigurationError) as exc_info:
            PaymentRequirementsIssuer(config=config).issue()
        assert "0.0.xxxxx" in exc_info.value.message

    def test_unknown_network(self):
        with pytest.raises(ConfigurationError):
            PaymentRequirementsIssuer(network="ropsten").issue()

    @pytest.mark.parametrize("price", ["0", "-1", "0.000000001"])
    def test_price_must_be_at_least_one_tinybar(self, price):
        config = PaymentConfig(pay_to=SYSTEM_ACCOUNT, price=Decimal(price))

        with pytest.raises(ConfigurationError):
            PaymentRequirementsIssuer(config=config).issue()
