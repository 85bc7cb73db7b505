"""
Pydantic schemas for the x402 payment objects.

Field names are snake_case in Python and camelCase on the wire; dump with
``by_alias=True`` (or use ``to_wire()``) when producing JSON for clients.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..constants import X402_VERSION, Limits, PaymentScheme, PaymentStage
from ..utils.amount_utils import to_human_units


class WireModel(BaseModel):
    """Base for models exchanged with facilitators and clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class RequirementsExtra(WireModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="allow"
    )

    fee_payer: str = Field(description="Account paying ledger fees")
    x402_version: int = Field(default=X402_VERSION)
    price: Optional[str] = Field(default=None, description="Human price, e.g. '0.001 HBAR'")


class PaymentRequirements(WireModel):
    """The HTTP 402 challenge: what must be paid, to whom, on which network."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    scheme: str = Field(default=PaymentScheme.EXACT.value)
    network: str
    max_amount_required: str = Field(description="Integer minor units (tinybars)")
    resource: str
    description: str = ""
    mime_type: str = "application/json"
    pay_to: str
    max_timeout_seconds: int = Field(default=Limits.DEFAULT_MAX_TIMEOUT_SECONDS, gt=0)
    asset: Optional[str] = None
    extra: Optional[RequirementsExtra] = None

    @field_validator("max_amount_required")
    @classmethod
    def validate_minor_units(cls, v: str) -> str:
        if not (v.isascii() and v.isdigit()):
            raise ValueError("maxAmountRequired must be a non-negative integer string")
        return v


class PaymentMetadata(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    transaction_id: Optional[str] = None
    agent_id: Optional[str] = None
    purpose: Optional[str] = None


class PaymentPayload(WireModel):
    """What the payer presents to the facilitator after transferring."""

    network: str
    account_id: str
    amount: str = Field(description="Integer minor units transferred")
    token: str = "HBAR"
    nonce: str
    session_id: str
    metadata: PaymentMetadata = Field(default_factory=PaymentMetadata)
    signature: str = ""

    def signing_view(self) -> Dict[str, Any]:
        """Wire dict without the signature, the content that gets signed."""
        data = self.to_wire()
        data.pop("signature", None)
        return data


class PaymentProof(WireModel):
    """What the facilitator saw on the ledger."""

    transaction_id: str
    status: str
    network: str
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class VerificationResult(WireModel):
    valid: bool
    transaction_id: Optional[str] = None
    status: Optional[str] = None
    proof: Optional[PaymentProof] = None
    error: Optional[str] = None


class SettlementResult(WireModel):
    success: bool
    transaction_id: Optional[str] = None
    status: Optional[str] = None
    proof: Optional[PaymentProof] = None
    error: Optional[str] = None
    message: Optional[str] = None


class FacilitatorRequest(WireModel):
    """Body of POST /verify and POST /settle."""

    payment_payload: PaymentPayload
    payment_requirements: PaymentRequirements


class SupportedKind(WireModel):
    x402_version: int = X402_VERSION
    scheme: str = PaymentScheme.EXACT.value
    network: str
    extra: Dict[str, Any] = Field(default_factory=dict)


class SupportedResponse(WireModel):
    kinds: List[SupportedKind] = Field(default_factory=list)


class TransferReceipt(WireModel):
    """Outcome of a submitted ledger transfer."""

    transaction_id: str
    status: str
    amount_in_minor_units: int
    network: str
    payer_account_id: Optional[str] = None
    recipient_account_id: Optional[str] = None

    @property
    def amount_in_hbar(self) -> Decimal:
        return to_human_units(self.amount_in_minor_units)


class StageRecord(WireModel):
    stage: PaymentStage
    at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    detail: Optional[str] = None


class PaymentFlowResult(WireModel):
    """Consolidated output of one payment attempt, complete or partial."""

    attempt_id: str
    stage: PaymentStage = PaymentStage.REQUESTED
    requirements: Optional[PaymentRequirements] = None
    transaction: Optional[TransferReceipt] = None
    payload: Optional[PaymentPayload] = None
    verification: Optional[VerificationResult] = None
    settlement: Optional[SettlementResult] = None
    history: List[StageRecord] = Field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        """camelCase dict for API responses (the signature is left out)."""
        data = self.model_dump(mode="json", by_alias=True, exclude={"history"})
        if data.get("payload"):
            data["payload"].pop("signature", None)
        return data
