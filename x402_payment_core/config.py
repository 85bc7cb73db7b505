"""
Centralized configuration management for the x402 payment core.

This module provides a unified configuration system with support for:
- Environment variables
- Feature flags
- Validation using Pydantic

Configuration is resolved once per process and shared; nothing here is
request-scoped.
"""

import os
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .constants import EnvironmentVariable, LedgerNetwork, Limits, LogLevel, Timeouts


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _default_pay_to() -> Optional[str]:
    return os.getenv(EnvironmentVariable.HEDERA_SYSTEM_ACCOUNT_ID.value) or os.getenv(
        EnvironmentVariable.HEDERA_OPERATOR_ID.value
    )


class QueueConfig(BaseModel):
    """Queue configuration for Azure Storage Queues."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.AZURE_STORAGE_CONNECTION.value, ""),
        description="Azure Storage connection string",
    )
    logs_queue_name: str = Field(default="payment-audit-logs", description="Audit log queue name")
    logs_batch_size: int = Field(default=10, description="Log entries buffered before sending")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class FeatureFlags(BaseModel):
    """Feature flags for controlling runtime behavior."""

    enable_logs_queue: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.ENABLE_LOGS_QUEUE.value),
        description="Ship structured logs to an Azure Storage queue",
    )
    enable_operation_logging: bool = Field(
        default=True, description="Log ENTER/EXIT/ERROR around decorated operations"
    )


class SecurityConfig(BaseModel):
    """Security-related configuration."""

    encryption_master_key: Optional[str] = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.ENCRYPTION_MASTER_KEY.value),
        description="Master key: 64 hex chars, or a passphrase stretched with PBKDF2",
        repr=False,
    )


class LedgerConfig(BaseModel):
    """Ledger network configuration."""

    default_network: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.HEDERA_NETWORK.value, LedgerNetwork.TESTNET.value
        ),
        description="Network assumed when a credential does not name one",
    )
    mirror_node_urls: Dict[str, str] = Field(
        default_factory=lambda: {
            LedgerNetwork.TESTNET.value: os.getenv(
                EnvironmentVariable.HEDERA_MIRROR_NODE_URL.value,
                "https://testnet.mirrornode.hedera.com",
            ),
            LedgerNetwork.MAINNET.value: "https://mainnet-public.mirrornode.hedera.com",
            LedgerNetwork.PREVIEWNET.value: "https://previewnet.mirrornode.hedera.com",
        },
        description="Mirror node base URL per canonical network",
    )
    request_timeout_seconds: int = Field(
        default=Timeouts.MIRROR_NODE_CALL, description="Mirror node request timeout"
    )

    @field_validator("default_network")
    def validate_default_network(cls, v: str) -> str:
        """Normalize the default network to its canonical token."""
        from .utils.ledger_utils import normalize_network

        canonical = normalize_network(v)
        if canonical is None:
            raise ValueError(f"Unsupported ledger network: {v}")
        return canonical


class FacilitatorConfig(BaseModel):
    """Facilitator endpoint and advertisement configuration."""

    base_url: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.FACILITATOR_URL.value, "http://localhost:3001"
        ),
        description="Base URL of the facilitator service",
    )
    request_timeout_seconds: int = Field(
        default=Timeouts.FACILITATOR_CALL, description="Facilitator request timeout"
    )
    fee_payer: Optional[str] = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.HEDERA_OPERATOR_ID.value),
        description="Account advertised as fee payer",
    )
    supported_networks: List[str] = Field(
        default_factory=lambda: [LedgerNetwork.TESTNET.value, LedgerNetwork.MAINNET.value],
        description="Networks listed by GET /supported",
    )


class PaymentConfig(BaseModel):
    """Inputs of the payment requirements issuer."""

    pay_to: Optional[str] = Field(
        default_factory=_default_pay_to, description="Recipient account of payments"
    )
    price: Decimal = Field(
        default_factory=lambda: Decimal(
            os.getenv(EnvironmentVariable.PAYMENT_PRICE.value, "0.001")
        ),
        description="Price per request in HBAR",
    )
    resource: str = Field(default="/api/v1/mcp/messages", description="Paid resource path")
    description: str = Field(
        default="Payment required for live chat message", description="Resource description"
    )
    mime_type: str = Field(default="application/json", description="Resource MIME type")
    max_timeout_seconds: int = Field(
        default=Limits.DEFAULT_MAX_TIMEOUT_SECONDS, description="Deadline for transfer+verify+settle"
    )
    token: str = Field(default="HBAR", description="Token symbol placed in payloads")


class AppConfig(BaseModel):
    """Main application configuration."""

    environment: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.APP_ENV.value, "development"),
        description="Application environment",
    )
    debug: bool = Field(
        default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true",
        description="Debug mode",
    )

    queue: QueueConfig = Field(default_factory=QueueConfig, description="Queue configuration")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    features: FeatureFlags = Field(default_factory=FeatureFlags, description="Feature flags")
    security: SecurityConfig = Field(
        default_factory=SecurityConfig, description="Security configuration"
    )
    ledger: LedgerConfig = Field(default_factory=LedgerConfig, description="Ledger configuration")
    facilitator: FacilitatorConfig = Field(
        default_factory=FacilitatorConfig, description="Facilitator configuration"
    )
    payment: PaymentConfig = Field(
        default_factory=PaymentConfig, description="Payment requirements configuration"
    )

    custom: Dict[str, Any] = Field(default_factory=dict, description="Custom configuration values")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()

    def get_custom(self, key: str, default: Any = None) -> Any:
        """Get a custom configuration value."""
        return self.custom.get(key, default)


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
