"""
Unit tests for account id, transaction id and network helpers.
"""

import pytest

from x402_payment_core.exceptions import ValidationError
from x402_payment_core.utils.ledger_utils import (
    is_valid_account_id,
    is_valid_transaction_id,
    normalize_network,
    sdk_network_name,
    to_mirror_transaction_id,
    validate_account_id,
)


class TestAccountIds:
    @pytest.mark.parametrize("value", ["0.0.1", "0.0.5005", "1.2.345678"])
    def test_valid(self, value):
        assert is_valid_account_id(value)
        assert validate_account_id(value) == value

    @pytest.mark.parametrize("value", ["", "0.0", "0.0.x", "0.0.1.2", " 0.0.1", None, 5005])
    def test_invalid(self, value):
        assert not is_valid_account_id(value)

    def test_validate_names_the_field(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_account_id("bad", field="recipient")
        assert exc_info.value.context["field"] == "recipient"


class TestTransactionIds:
    def test_sdk_form(self):
        assert is_valid_transaction_id("0.0.7001@1700000000.123456789")

    def test_mirror_form(self):
        assert is_valid_transaction_id("0.0.7001-1700000000-123456789")

    @pytest.mark.parametrize("value", ["", "not-a-tx", "0.0.7001@1700000000", None])
    def test_invalid(self, value):
        assert not is_valid_transaction_id(value)

    def test_to_mirror_form(self):
        assert (
            to_mirror_transaction_id("0.0.7001@1700000000.000000042")
            == "0.0.7001-1700000000-000000042"
        )

    def test_mirror_form_unchanged(self):
        assert to_mirror_transaction_id("0.0.7001-1-2") == "0.0.7001-1-2"


class TestNetworks:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("testnet", "hedera-testnet"),
            ("Testnet", "hedera-testnet"),
            ("hedera-testnet", "hedera-testnet"),
            ("mainnet", "hedera-mainnet"),
            ("hedera-previewnet", "hedera-previewnet"),
            ("ropsten", None),
            ("", None),
            (None, None),
        ],
    )
    def test_normalize(self, value, expected):
        assert normalize_network(value) == expected

    def test_sdk_network_name(self):
        assert sdk_network_name("hedera-mainnet") == "mainnet"
        assert sdk_network_name("testnet") == "testnet"

    def test_sdk_network_name_unknown(self):
        with pytest.raises(ValueError):
            sdk_network_name("ropsten")
