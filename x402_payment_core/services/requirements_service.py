"""
Payment requirements issuer: builds the HTTP 402 challenge from configuration.

Pure and synchronous; performs no network calls.
"""

from typing import Optional

from ..config import PaymentConfig, get_config
from ..constants import X402_VERSION, PaymentScheme
from ..exceptions import ConfigurationError
from ..schemas.payment_schemas import PaymentRequirements, RequirementsExtra
from ..utils.amount_utils import to_minor_units
from ..utils.ledger_utils import is_valid_account_id, normalize_network
from ..utils.logger import get_logger

# Placeholder some deployments ship in their env templates
UNSET_ACCOUNT_ID = "0.0.0"


class PaymentRequirementsIssuer:
    """Issues immutable PaymentRequirements for a paid resource."""

    def __init__(self, config: Optional[PaymentConfig] = None, network: Optional[str] = None):
        app_config = get_config()
        self.config = config or app_config.payment
        self.network = network or app_config.ledger.default_network
        self.logger = get_logger()

    def issue(self, resource: Optional[str] = None) -> PaymentRequirements:
        """
        Build the requirements for ``resource`` (the configured resource by default).

        Raises:
            ConfigurationError: If payTo is missing or not a valid account id,
                the network is unknown, or the price is not positive
        """
        pay_to = self._resolve_pay_to()

        network = normalize_network(self.network)
        if network is None:
            raise ConfigurationError(
                f"Unsupported ledger network: {self.network}", setting="HEDERA_NETWORK"
            )

        if self.config.price <= 0:
            raise ConfigurationError("Payment price must be positive", setting="X402_PAYMENT_PRICE")
        max_amount = to_minor_units(self.config.price)
        if max_amount <= 0:
            raise ConfigurationError(
                "Payment price is smaller than one tinybar", setting="X402_PAYMENT_PRICE"
            )

        requirements = PaymentRequirements(
            scheme=PaymentScheme.EXACT.value,
            network=network,
            max_amount_required=str(max_amount),
            resource=resource or self.config.resource,
            description=self.config.description,
            mime_type=self.config.mime_type,
            pay_to=pay_to,
            max_timeout_seconds=self.config.max_timeout_seconds,
            asset=None,
            extra=RequirementsExtra(
                fee_payer=pay_to,
                x402_version=X402_VERSION,
                price=f"{self.config.price} {self.config.token}",
            ),
        )

        self.logger.info(
            "Payment requirements issued",
            extra={
                "resource": requirements.resource,
                "network": network,
                "max_amount_required": requirements.max_amount_required,
                "pay_to": pay_to,
            },
        )
        return requirements

    def _resolve_pay_to(self) -> str:
        pay_to = self.config.pay_to
        if not pay_to or pay_to == UNSET_ACCOUNT_ID:
            raise ConfigurationError(
                "HEDERA_SYSTEM_ACCOUNT_ID or HEDERA_OPERATOR_ID environment variable is not set",
                setting="HEDERA_SYSTEM_ACCOUNT_ID",
            )
        if not is_valid_account_id(pay_to):
            raise ConfigurationError(
                f"Invalid system account ID format: {pay_to}. Expected format: 0.0.xxxxx",
                setting="HEDERA_SYSTEM_ACCOUNT_ID",
            )
        return pay_to
