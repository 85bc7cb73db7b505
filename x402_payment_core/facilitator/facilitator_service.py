"""
Facilitator: independently verifies that a claimed transfer exists and
succeeded on the ledger, then confirms settlement.

The payload's claims are never trusted; only the ledger receipt decides.
Neither operation raises: every failure becomes ``valid: false`` or
``success: false`` with an error string. Settlement re-runs verification and
never moves funds.
"""

from typing import Iterable, Optional

from ..config import get_config
from ..constants import X402_VERSION, PaymentScheme
from ..exceptions import BaseError
from ..ledger.base import SUCCESS_STATUS, LedgerReaderFactory
from ..schemas.payment_schemas import (
    PaymentPayload,
    PaymentProof,
    PaymentRequirements,
    SettlementResult,
    SupportedKind,
    SupportedResponse,
    VerificationResult,
)
from ..utils.ledger_utils import is_valid_transaction_id, normalize_network
from ..utils.logger import get_logger


class FacilitatorService:
    """Verify and settle x402 payments against the ledger."""

    def __init__(
        self,
        reader_factory: LedgerReaderFactory,
        fee_payer: Optional[str] = None,
        supported_networks: Optional[Iterable[str]] = None,
    ):
        facilitator_config = get_config().facilitator
        self.reader_factory = reader_factory
        self.fee_payer = fee_payer if fee_payer is not None else facilitator_config.fee_payer
        self.supported_networks = list(
            supported_networks
            if supported_networks is not None
            else facilitator_config.supported_networks
        )
        self.logger = get_logger()

    def verify(
        self, payload: PaymentPayload, requirements: PaymentRequirements
    ) -> VerificationResult:
        """
        Check the payload against the requirements, then query the receipt.

        Structural checks run first and fail without touching the ledger.
        """
        structural_error = self._check_structure(payload, requirements)
        if structural_error:
            self.logger.warning(
                "Payment rejected before ledger query",
                extra={"reason": structural_error, "network": payload.network},
            )
            return VerificationResult(valid=False, error=structural_error)

        transaction_id = payload.metadata.transaction_id
        network = normalize_network(payload.network)

        reader = None
        try:
            reader = self.reader_factory(network)
            receipt = reader.query_receipt(transaction_id)
        except BaseError as e:
            return self._query_failed(transaction_id, e.message)
        except Exception as e:
            return self._query_failed(transaction_id, str(e) or type(e).__name__)
        finally:
            if reader is not None:
                reader.close()

        status = receipt.status
        valid = status == SUCCESS_STATUS
        proof = PaymentProof(transaction_id=transaction_id, status=status, network=payload.network)

        self.logger.info(
            "Payment verified" if valid else "Payment verification failed",
            extra={"transaction_id": transaction_id, "ledger_status": status, "valid": valid},
        )
        return VerificationResult(
            valid=valid,
            transaction_id=transaction_id,
            status=status,
            proof=proof,
            error=None if valid else f"Transaction status: {status}",
        )

    def settle(self, payload: PaymentPayload, requirements: PaymentRequirements) -> SettlementResult:
        """Re-verify and confirm; the transfer already happened on-ledger."""
        verification = self.verify(payload, requirements)

        if not verification.valid:
            return SettlementResult(
                success=False,
                transaction_id=verification.transaction_id,
                status=verification.status,
                message="Payment verification failed",
                error=verification.error or "Transaction verification failed",
                proof=verification.proof,
            )

        self.logger.info(
            "Payment settled", extra={"transaction_id": verification.transaction_id}
        )
        return SettlementResult(
            success=True,
            transaction_id=verification.transaction_id,
            status=verification.status,
            message="Payment settled successfully",
            proof=verification.proof,
        )

    def supported(self) -> SupportedResponse:
        """Payment kinds this facilitator accepts."""
        if not self.fee_payer:
            return SupportedResponse(kinds=[])
        return SupportedResponse(
            kinds=[
                SupportedKind(
                    x402_version=X402_VERSION,
                    scheme=PaymentScheme.EXACT.value,
                    network=network,
                    extra={"feePayer": self.fee_payer},
                )
                for network in self.supported_networks
            ]
        )

    def _check_structure(
        self, payload: PaymentPayload, requirements: PaymentRequirements
    ) -> Optional[str]:
        if payload.network != requirements.network:
            return (
                f"Network mismatch: payload has {payload.network}, "
                f"requirements expect {requirements.network}"
            )
        if normalize_network(payload.network) is None:
            return f"Unsupported network: {payload.network}"
        if not payload.signature:
            return "Payment signature is missing"

        transaction_id = payload.metadata.transaction_id
        if not transaction_id or not isinstance(transaction_id, str):
            return "Transaction ID not found in payment payload metadata"
        if not is_valid_transaction_id(transaction_id):
            return f"Invalid transaction ID format: {transaction_id}"
        return None

    def _query_failed(self, transaction_id: str, reason: str) -> VerificationResult:
        self.logger.warning(
            "Ledger query failed during verification",
            extra={"transaction_id": transaction_id, "reason": reason},
        )
        return VerificationResult(
            valid=False,
            transaction_id=transaction_id,
            error=f"Failed to verify transaction on Hedera: {reason}",
        )
