"""
Payment flow orchestrator: transfer, then verify, then settle.

One call to ``PaymentFlowOrchestrator.run`` is one payment attempt. Each
attempt moves through

    REQUESTED -> TRANSFERRED -> VERIFIED -> SETTLED

and drops to FAILED from any non-terminal stage. An attempt whose
verification comes back invalid never reaches VERIFIED, and nothing leaves
SETTLED or FAILED. The whole flow runs under the requirements'
``maxTimeoutSeconds`` deadline, checked between stages and passed on as the
facilitator request timeout.

Failures raise a PaymentError subclass carrying the partial
PaymentFlowResult, so callers always see which stages completed and the
ledger transaction id once one exists.
"""

import secrets
import threading
import time
import uuid
from collections import OrderedDict
from typing import Callable, Dict, Optional, Protocol

from ..constants import Limits, PaymentStage
from ..context.operation_context import operation
from ..context.user_context import user_context
from ..exceptions import (
    CredentialNotFoundError,
    DuplicatePaymentError,
    InvalidStateTransitionError,
    PaymentError,
    PaymentTimeoutError,
    SettlementError,
    TransferError,
    ValidationError,
    VerificationError,
)
from ..schemas.credential_schemas import DecryptedHederaCredential
from ..schemas.payment_schemas import (
    PaymentFlowResult,
    PaymentMetadata,
    PaymentPayload,
    PaymentRequirements,
    SettlementResult,
    StageRecord,
    TransferReceipt,
    VerificationResult,
)
from ..utils.amount_utils import parse_minor_units, to_human_units
from ..utils.ledger_utils import normalize_network
from ..utils.logger import get_logger
from .transfer_service import TransferExecutor

AGENT_ID = "0x01"
PAYMENT_PURPOSE = "live-chat"


class CredentialSource(Protocol):
    def get_decrypted(self, user_id: str) -> Optional[DecryptedHederaCredential]: ...


class FacilitatorPort(Protocol):
    def verify(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        timeout: Optional[float] = None,
    ) -> VerificationResult: ...

    def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        timeout: Optional[float] = None,
    ) -> SettlementResult: ...


class PaymentAttempt:
    """Stage machine for one payment attempt; owns the PaymentFlowResult."""

    TRANSITIONS: Dict[PaymentStage, frozenset] = {
        PaymentStage.REQUESTED: frozenset({PaymentStage.TRANSFERRED, PaymentStage.FAILED}),
        PaymentStage.TRANSFERRED: frozenset({PaymentStage.VERIFIED, PaymentStage.FAILED}),
        PaymentStage.VERIFIED: frozenset({PaymentStage.SETTLED, PaymentStage.FAILED}),
        PaymentStage.SETTLED: frozenset(),
        PaymentStage.FAILED: frozenset(),
    }

    def __init__(
        self,
        requirements: Optional[PaymentRequirements] = None,
        attempt_id: Optional[str] = None,
    ):
        self.result = PaymentFlowResult(
            attempt_id=attempt_id or str(uuid.uuid4()),
            stage=PaymentStage.REQUESTED,
            requirements=requirements,
            history=[StageRecord(stage=PaymentStage.REQUESTED)],
        )

    @property
    def attempt_id(self) -> str:
        return self.result.attempt_id

    @property
    def stage(self) -> PaymentStage:
        return self.result.stage

    @property
    def is_terminal(self) -> bool:
        return not self.TRANSITIONS[self.stage]

    def advance(self, target: PaymentStage, detail: Optional[str] = None) -> None:
        """
        Move to ``target``.

        Raises:
            InvalidStateTransitionError: If ``target`` is not reachable from the current stage
        """
        if target not in self.TRANSITIONS[self.stage]:
            raise InvalidStateTransitionError(
                self.stage.value, target.value, attempt_id=self.attempt_id
            )
        self.result.stage = target
        self.result.history.append(StageRecord(stage=target, detail=detail))

    def fail(self, detail: str) -> None:
        """Move to FAILED unless the attempt already ended."""
        if not self.is_terminal:
            self.advance(PaymentStage.FAILED, detail)

    def record_transfer(self, receipt: TransferReceipt) -> None:
        self.advance(PaymentStage.TRANSFERRED, receipt.transaction_id)
        self.result.transaction = receipt

    def record_verification(self, verification: VerificationResult) -> None:
        self.result.verification = verification
        if verification.valid:
            self.advance(PaymentStage.VERIFIED, verification.status)
        else:
            self.fail(verification.error or "Verification returned invalid")

    def record_settlement(self, settlement: SettlementResult) -> None:
        self.result.settlement = settlement
        if settlement.success:
            self.advance(PaymentStage.SETTLED, settlement.message)
        else:
            self.fail(settlement.error or "Settlement failed")


class PaymentDeadline:
    """Wall-clock allowance shared by transfer, verify and settle."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self, stage: str, transaction_id: Optional[str] = None) -> None:
        """
        Raises:
            PaymentTimeoutError: If the deadline has passed
        """
        if self.expired:
            raise PaymentTimeoutError(
                f"Payment deadline of {self.seconds}s exceeded before {stage}",
                stage=stage,
                transaction_id=transaction_id,
            )


class IdempotencyStore:
    """
    Remembers payment attempts by caller-supplied idempotency key.

    A key maps to the attempt's result. Completed attempts are replayed; any
    other recorded use of the key is a duplicate.

    Only the most recent ``max_completed`` completed keys are kept; older ones
    are forgotten and would pay again. Keys of unfinished attempts are never
    evicted. The store lives in process memory, so callers that need replay
    across restarts must keep their own record of completed keys.
    """

    def __init__(self, max_completed: int = Limits.MAX_REMEMBERED_PAYMENTS):
        self.max_completed = max_completed
        self._lock = threading.Lock()
        self._results: Dict[str, PaymentFlowResult] = {}
        self._completed: "OrderedDict[str, bool]" = OrderedDict()

    def claim(self, key: str, attempt: PaymentAttempt) -> Optional[PaymentFlowResult]:
        """
        Register ``attempt`` under ``key``.

        Returns:
            The recorded result when the key already completed, else None

        Raises:
            DuplicatePaymentError: If the key is in flight or its attempt failed
        """
        with self._lock:
            existing = self._results.get(key)
            if existing is None:
                self._results[key] = attempt.result
                self._completed[key] = False
                return None
            if self._completed[key]:
                return existing

        earlier_transaction = existing.transaction.transaction_id if existing.transaction else None
        raise DuplicatePaymentError(
            "Idempotency key already used by an attempt that did not complete",
            idempotency_key=key,
            transaction_id=earlier_transaction,
            result=existing,
            earlier_attempt_id=existing.attempt_id,
        )

    def complete(self, key: str) -> None:
        with self._lock:
            self._completed[key] = True
            self._completed.move_to_end(key)
            self._evict_completed()

    def _evict_completed(self) -> None:
        done = [key for key, completed in self._completed.items() if completed]
        for key in done[: max(0, len(done) - self.max_completed)]:
            self._results.pop(key, None)
            self._completed.pop(key, None)

    def release(self, key: str) -> None:
        """Forget ``key``; used when the attempt failed before any funds moved."""
        with self._lock:
            self._results.pop(key, None)
            self._completed.pop(key, None)


class PaymentFlowOrchestrator:
    """Runs transfer, verification and settlement for a user's payment."""

    def __init__(
        self,
        credentials: CredentialSource,
        executor: TransferExecutor,
        facilitator: FacilitatorPort,
        idempotency: Optional[IdempotencyStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.credentials = credentials
        self.executor = executor
        self.facilitator = facilitator
        self.idempotency = idempotency or IdempotencyStore()
        self.clock = clock
        self.logger = get_logger()

    @operation()
    def run(
        self,
        user_id: str,
        requirements: PaymentRequirements,
        idempotency_key: Optional[str] = None,
    ) -> PaymentFlowResult:
        """
        Pay ``requirements`` from ``user_id``'s stored account.

        Args:
            user_id: Owner of the paying credential
            requirements: Requirements issued for the resource
            idempotency_key: Optional caller token; a completed attempt under
                the same key is returned instead of paying again

        Returns:
            PaymentFlowResult at stage SETTLED

        Raises:
            ValidationError: Missing requirements or network mismatch (nothing submitted)
            CredentialNotFoundError: The user has no usable hedera credential
            TransferError: The transfer failed; the facilitator was not called
            VerificationError: Verification was invalid or unreachable; no settlement
            SettlementError: Settlement failed after a valid verification
            PaymentTimeoutError: The deadline passed between stages
            DuplicatePaymentError: The idempotency key belongs to an unfinished attempt
        """
        if requirements is None:
            raise ValidationError("Payment requirements are required", field="requirements")

        attempt = PaymentAttempt(requirements=requirements)
        if idempotency_key:
            replay = self.idempotency.claim(idempotency_key, attempt)
            if replay is not None:
                self.logger.info(
                    "Replaying completed payment",
                    extra={"idempotency_key": idempotency_key, "attempt_id": replay.attempt_id},
                )
                return replay

        with user_context(user_id, attempt.attempt_id):
            try:
                result = self._execute(attempt, user_id, requirements)
            except Exception as e:
                attempt.fail(type(e).__name__)
                if isinstance(e, PaymentError) and e.result is None:
                    e.attach_result(attempt.result)
                if idempotency_key and not self._funds_may_have_moved(attempt, e):
                    self.idempotency.release(idempotency_key)
                raise

        if idempotency_key:
            self.idempotency.complete(idempotency_key)
        return result

    def _execute(
        self, attempt: PaymentAttempt, user_id: str, requirements: PaymentRequirements
    ) -> PaymentFlowResult:
        deadline = PaymentDeadline(requirements.max_timeout_seconds, clock=self.clock)

        credential = self._load_credential(user_id)
        self._check_network(credential, requirements)
        amount_hbar = to_human_units(parse_minor_units(requirements.max_amount_required))

        deadline.check("transfer")
        receipt = self.executor.execute_transfer(
            credential,
            requirements.pay_to,
            amount_hbar,
            network=requirements.network,
        )
        attempt.record_transfer(receipt)
        transaction_id = receipt.transaction_id

        deadline.check("verify", transaction_id)
        payload = self._build_payload(credential, requirements, receipt)
        attempt.result.payload = payload

        verification = self._call_facilitator(
            "verify", self.facilitator.verify, payload, requirements, deadline
        )
        attempt.record_verification(verification)
        if not verification.valid:
            raise VerificationError(
                f"Payment verification failed: {verification.error or 'invalid'}",
                proof=verification.proof.to_wire() if verification.proof else None,
                transaction_id=transaction_id,
                result=attempt.result,
            )

        deadline.check("settle", transaction_id)
        settlement = self._call_facilitator(
            "settle", self.facilitator.settle, payload, requirements, deadline
        )
        attempt.record_settlement(settlement)
        if not settlement.success:
            raise SettlementError(
                f"Payment settlement failed: {settlement.error or 'unknown error'}",
                proof=settlement.proof.to_wire() if settlement.proof else None,
                transaction_id=transaction_id,
                result=attempt.result,
            )

        self.logger.info(
            "Payment flow completed",
            extra={
                "attempt_id": attempt.attempt_id,
                "transaction_id": transaction_id,
                "amount_tinybars": receipt.amount_in_minor_units,
            },
        )
        return attempt.result

    @staticmethod
    def _call_facilitator(stage, call, payload, requirements, deadline):
        """Run a facilitator call; a failure after the deadline passed is a timeout."""
        try:
            return call(payload, requirements, timeout=deadline.remaining())
        except PaymentTimeoutError:
            raise
        except PaymentError as e:
            if not deadline.expired:
                raise
            raise PaymentTimeoutError(
                f"Payment deadline of {deadline.seconds}s exceeded during {stage}",
                stage=stage,
                transaction_id=payload.metadata.transaction_id,
                cause=e,
            ) from e

    @staticmethod
    def _funds_may_have_moved(attempt: PaymentAttempt, error: Exception) -> bool:
        if attempt.result.transaction is not None:
            return True
        return isinstance(error, TransferError) and error.outcome_unknown

    def _load_credential(self, user_id: str) -> DecryptedHederaCredential:
        credential = self.credentials.get_decrypted(user_id)
        if credential is None:
            raise CredentialNotFoundError(
                "User has no active hedera credential", user_id=user_id
            )
        return credential

    def _check_network(
        self, credential: DecryptedHederaCredential, requirements: PaymentRequirements
    ) -> None:
        required = normalize_network(requirements.network)
        if required is None:
            raise ValidationError(
                f"Unsupported ledger network: {requirements.network}", field="network"
            )
        if normalize_network(credential.network) != required:
            raise ValidationError(
                f"Credential network {credential.network} does not match "
                f"required network {requirements.network}",
                field="network",
            )

    def _build_payload(
        self,
        credential: DecryptedHederaCredential,
        requirements: PaymentRequirements,
        receipt: TransferReceipt,
    ) -> PaymentPayload:
        payload = PaymentPayload(
            network=requirements.network,
            account_id=credential.operator_account_id,
            amount=str(receipt.amount_in_minor_units),
            token="HBAR",
            nonce=secrets.token_hex(16),
            session_id="0x" + secrets.token_hex(16),
            metadata=PaymentMetadata(
                transaction_id=receipt.transaction_id,
                agent_id=AGENT_ID,
                purpose=PAYMENT_PURPOSE,
            ),
        )
        signature = self.executor.sign_payload(credential, payload)
        return payload.model_copy(update={"signature": signature})
