"""
Unit test conftest.py - Component-specific fixtures.

This module provides fixtures specific to unit testing:
- Vault and cipher fixtures with the test session and key
- An in-memory ledger with a funded payer and the system account
- Facilitator and executor fixtures wired to that ledger
"""

from unittest.mock import Mock

import pytest

from x402_payment_core.facilitator.facilitator_service import FacilitatorService
from x402_payment_core.ledger.in_memory_ledger import InMemoryLedger
from x402_payment_core.schemas.credential_schemas import DecryptedHederaCredential
from x402_payment_core.services.credential_service import CredentialVault
from x402_payment_core.services.transfer_service import TransferExecutor
from x402_payment_core.utils.encryption_utils import CredentialCipher

from tests.conftest import PAYER_ACCOUNT, PAYER_KEY, SYSTEM_ACCOUNT, TEST_MASTER_KEY

# ==================== CIPHER AND VAULT FIXTURES ====================


@pytest.fixture(scope="function")
def cipher():
    """Cipher built from the test master key."""
    return CredentialCipher(TEST_MASTER_KEY)


@pytest.fixture(scope="function")
def vault(db_session, cipher):
    """Credential vault with test session."""
    return CredentialVault(db_session, cipher=cipher)


@pytest.fixture
def hedera_credential_data():
    """Plaintext hedera credential as a client submits it."""
    return {
        "operatorAccountId": PAYER_ACCOUNT,
        "privateKey": PAYER_KEY,
        "network": "testnet",
    }


# ==================== LEDGER FIXTURES ====================


@pytest.fixture(scope="function")
def ledger():
    """In-memory testnet with a payer holding 10 HBAR and an empty system account."""
    ledger = InMemoryLedger("hedera-testnet")
    ledger.create_account(PAYER_ACCOUNT, PAYER_KEY, balance_hbar="10")
    ledger.create_account(SYSTEM_ACCOUNT, "system-key", balance_hbar="0")
    return ledger


@pytest.fixture
def payer_credential():
    return DecryptedHederaCredential(
        operator_account_id=PAYER_ACCOUNT, private_key=PAYER_KEY, network="hedera-testnet"
    )


@pytest.fixture(scope="function")
def executor(ledger):
    """Transfer executor bound to the in-memory ledger."""
    return TransferExecutor(client_factory=ledger.client_for)


@pytest.fixture(scope="function")
def facilitator(ledger):
    """Facilitator reading receipts from the in-memory ledger."""
    return FacilitatorService(reader_factory=ledger.reader, fee_payer=SYSTEM_ACCOUNT)


# ==================== MOCK FIXTURES (ONLY WHEN NECESSARY) ====================


@pytest.fixture(scope="function")
def mock_http_client():
    """
    Mock HTTP client for testing facilitator and mirror node calls.

    Only use this when testing HTTP-dependent functionality
    without requiring actual external services.
    """
    mock_client = Mock()
    mock_response = Mock()
    mock_response.status_code = 200
    mock_response.json.return_value = {}
    mock_client.get.return_value = mock_response
    mock_client.post.return_value = mock_response
    return mock_client


@pytest.fixture(scope="function")
def completed_transfer(executor, payer_credential):
    """Receipt of a successful 0.001 HBAR transfer to the system account."""
    return executor.execute_transfer(payer_credential, SYSTEM_ACCOUNT, "0.001")
