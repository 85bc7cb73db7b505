"""Service layer for business logic."""

from .credential_service import CredentialVault, mask_value
from .payment_flow_service import (
    IdempotencyStore,
    PaymentAttempt,
    PaymentDeadline,
    PaymentFlowOrchestrator,
)
from .requirements_service import PaymentRequirementsIssuer
from .transfer_service import TransferExecutor

__all__ = [
    "CredentialVault",
    "mask_value",
    "IdempotencyStore",
    "PaymentAttempt",
    "PaymentDeadline",
    "PaymentFlowOrchestrator",
    "PaymentRequirementsIssuer",
    "TransferExecutor",
]
