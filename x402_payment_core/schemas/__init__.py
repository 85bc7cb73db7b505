"""Pydantic schemas for credentials and x402 payment objects."""

from .credential_schemas import CredentialRead, DecryptedHederaCredential, HederaCredentialData
from .payment_schemas import (
    FacilitatorRequest,
    PaymentFlowResult,
    PaymentMetadata,
    PaymentPayload,
    PaymentProof,
    PaymentRequirements,
    RequirementsExtra,
    SettlementResult,
    SupportedKind,
    SupportedResponse,
    TransferReceipt,
    VerificationResult,
)

__all__ = [
    "CredentialRead",
    "DecryptedHederaCredential",
    "HederaCredentialData",
    "FacilitatorRequest",
    "PaymentFlowResult",
    "PaymentMetadata",
    "PaymentPayload",
    "PaymentProof",
    "PaymentRequirements",
    "RequirementsExtra",
    "SettlementResult",
    "SupportedKind",
    "SupportedResponse",
    "TransferReceipt",
    "VerificationResult",
]
