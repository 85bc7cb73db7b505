"""
Shared test fixtures.

Every test runs against an explicit AppConfig (no environment lookups), a
fresh cipher built from a fixed test key, and an in-memory SQLite database.
"""

from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from x402_payment_core.config import (
    AppConfig,
    FacilitatorConfig,
    FeatureFlags,
    LedgerConfig,
    PaymentConfig,
    QueueConfig,
    SecurityConfig,
    reset_config,
    set_config,
)
from x402_payment_core.context.user_context import UserContext
from x402_payment_core.db import DatabaseConfig, DatabaseManager, import_all_models
from x402_payment_core.db.db_config import Base, set_db_manager
from x402_payment_core.exceptions import clear_correlation_id
from x402_payment_core.schemas.payment_schemas import (
    PaymentMetadata,
    PaymentPayload,
    PaymentRequirements,
)
from x402_payment_core.utils.encryption_utils import set_cipher
from x402_payment_core.utils.logger import reset_logging

TEST_MASTER_KEY = "a3f1c9e27b4d8a6f0e5c3b2a1d9f8e7c6b5a4d3c2e1f0a9b8c7d6e5f4a3b2c1d"
SYSTEM_ACCOUNT = "0.0.5005"
PAYER_ACCOUNT = "0.0.7001"
PAYER_KEY = "302e020100300506032b657004220420payer-test-key"


def make_test_config(**overrides) -> AppConfig:
    """AppConfig with deterministic values for tests."""
    values = dict(
        environment="test",
        debug=False,
        queue=QueueConfig(connection_string=""),
        features=FeatureFlags(enable_logs_queue=False, enable_operation_logging=True),
        security=SecurityConfig(encryption_master_key=TEST_MASTER_KEY),
        ledger=LedgerConfig(default_network="hedera-testnet"),
        facilitator=FacilitatorConfig(
            base_url="http://facilitator.test",
            fee_payer=SYSTEM_ACCOUNT,
        ),
        payment=PaymentConfig(pay_to=SYSTEM_ACCOUNT, price=Decimal("0.001")),
    )
    values.update(overrides)
    return AppConfig(**values)


def make_requirements(**overrides) -> PaymentRequirements:
    """Requirements for a 0.001 HBAR payment to the system account."""
    values = dict(
        network="hedera-testnet",
        max_amount_required="100000",
        resource="/api/chat",
        description="Live chat session",
        pay_to=SYSTEM_ACCOUNT,
        max_timeout_seconds=60,
    )
    values.update(overrides)
    return PaymentRequirements(**values)


def make_payload(
    transaction_id="0.0.7001@1700000000.000000001", signature="0xsigned", **overrides
) -> PaymentPayload:
    """Signed payload claiming ``transaction_id`` on testnet."""
    values = dict(
        network="hedera-testnet",
        account_id=PAYER_ACCOUNT,
        amount="100000",
        nonce="1700000000000",
        session_id="0x" + "ab" * 16,
        metadata=PaymentMetadata(transaction_id=transaction_id, agent_id="0x01"),
        signature=signature,
    )
    values.update(overrides)
    return PaymentPayload(**values)


@pytest.fixture(autouse=True)
def test_config():
    """Install the test configuration and reset process-wide singletons."""
    config = make_test_config()
    set_config(config)
    set_cipher(None)
    reset_logging()

    yield config

    set_cipher(None)
    reset_logging()
    reset_config()
    UserContext.clear_current_user()
    UserContext.set_payment_attempt(None)
    clear_correlation_id()


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """Create SQLite in-memory database configuration for testing."""
    return DatabaseConfig(
        db_type="sqlite",
        database=":memory:",
        echo=False,
        development_mode=True,
    )


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Database manager with all models registered."""
    import_all_models()
    manager = DatabaseManager(db_config)
    set_db_manager(manager)

    yield manager

    set_db_manager(None)
    manager.close()


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Create a database session for each test.

    Tables are created before and dropped after each test so every test
    starts from an empty credential table.
    """
    Base.metadata.create_all(db_manager.engine)
    session = db_manager.get_session()

    yield session

    session.rollback()
    db_manager.close_session()
    Base.metadata.drop_all(db_manager.engine)
