"""
Constants and enums for the x402 payment core.

This module centralizes the magic strings and constants used by the vault,
the ledger adapters and the payment flow so they stay consistent.
"""

from enum import Enum


class CredentialStatus(str, Enum):
    """Lifecycle status of a stored credential."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class CredentialKind(str, Enum):
    """Credential types with a known payload schema."""

    HEDERA = "hedera"


class LedgerNetwork(str, Enum):
    """Canonical network tokens used on the wire."""

    TESTNET = "hedera-testnet"
    MAINNET = "hedera-mainnet"
    PREVIEWNET = "hedera-previewnet"


class PaymentScheme(str, Enum):
    """Payment schemes understood by the facilitator."""

    EXACT = "exact"


class PaymentStage(str, Enum):
    """Stages of a single payment attempt."""

    REQUESTED = "REQUESTED"
    TRANSFERRED = "TRANSFERRED"
    VERIFIED = "VERIFIED"
    SETTLED = "SETTLED"
    FAILED = "FAILED"


class LedgerStatus(str, Enum):
    """Receipt status strings reported by the ledger."""

    SUCCESS = "SUCCESS"
    NOT_FOUND = "NOT_FOUND"
    INSUFFICIENT_PAYER_BALANCE = "INSUFFICIENT_PAYER_BALANCE"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    INVALID_ACCOUNT_ID = "INVALID_ACCOUNT_ID"


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    AZURE_STORAGE_CONNECTION = "AzureWebJobsStorage"
    APP_ENV = "APP_ENV"
    LOG_LEVEL = "LOG_LEVEL"
    ENABLE_LOGS_QUEUE = "ENABLE_LOGS_QUEUE"
    ENCRYPTION_MASTER_KEY = "ENCRYPTION_MASTER_KEY"
    HEDERA_NETWORK = "HEDERA_NETWORK"
    HEDERA_OPERATOR_ID = "HEDERA_OPERATOR_ID"
    HEDERA_SYSTEM_ACCOUNT_ID = "HEDERA_SYSTEM_ACCOUNT_ID"
    HEDERA_MIRROR_NODE_URL = "HEDERA_MIRROR_NODE_URL"
    FACILITATOR_URL = "X402_FACILITATOR_URL"
    PAYMENT_PRICE = "X402_PAYMENT_PRICE"
    VAULT_DB_PATH = "VAULT_DB_PATH"
    VAULT_DB_HOST = "VAULT_DB_HOST"
    VAULT_DB_PORT = "VAULT_DB_PORT"
    VAULT_DB_NAME = "VAULT_DB_NAME"
    VAULT_DB_USER = "VAULT_DB_USER"
    VAULT_DB_PASSWORD = "VAULT_DB_PASSWORD"
    VAULT_DB_ECHO = "VAULT_DB_ECHO"


class LogContextKey(str, Enum):
    """Standard keys for logging context."""

    OPERATION_ID = "operation_id"
    CORRELATION_ID = "correlation_id"
    USER_ID = "user_id"
    PAYMENT_ATTEMPT_ID = "payment_attempt_id"
    TRANSACTION_ID = "transaction_id"
    DURATION_MS = "duration_ms"
    STATUS = "status"
    ERROR_CODE = "error_code"


# Fields of a hedera credential that are encrypted at rest
HEDERA_SECRET_FIELDS = ("operatorAccountId", "privateKey")

# Fields of a hedera credential that are decrypted on read when they look encrypted
HEDERA_DECRYPTED_FIELDS = ("operatorAccountId", "privateKey", "network")

# Keys left in clear when masking an unknown credential type
NON_SENSITIVE_FIELDS = frozenset({"network", "status", "type", "name", "description"})

X402_VERSION = 1
PAYMENT_HEADER = "X-PAYMENT"


class Limits:
    """System limits and thresholds."""

    DEFAULT_MAX_TIMEOUT_SECONDS = 60
    MAX_CREDENTIAL_TYPE_LENGTH = 50
    MAX_USER_ID_LENGTH = 40
    MASK_MIN_LENGTH = 6
    MAX_REMEMBERED_PAYMENTS = 10_000


class Timeouts:
    """Timeout values in seconds."""

    FACILITATOR_CALL = 30
    MIRROR_NODE_CALL = 15
