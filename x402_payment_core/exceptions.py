"""
Consolidated exception system with error codes, context, and correlation support.

Every error raised by the vault, the ledger adapters, the facilitator and the
payment flow derives from BaseError, so callers always receive a discriminated
outcome (``error.kind``) with a stable error code and structured context.
Errors never carry private keys or raw ciphertext in their message or context.
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from .schemas.payment_schemas import PaymentFlowResult

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"
    CONFIGURATION_ERROR = "1003"
    TIMEOUT_ERROR = "1004"
    DECRYPTION_ERROR = "1005"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"
    TYPE_MISMATCH = "2003"

    # Resource errors (3xxx)
    NOT_FOUND = "3000"
    DUPLICATE = "3001"
    CONFLICT = "3002"

    # Business logic errors (4xxx)
    BUSINESS_RULE_VIOLATION = "4000"
    INVALID_STATE_TRANSITION = "4001"
    TRANSFER_FAILED = "4010"
    VERIFICATION_FAILED = "4011"
    SETTLEMENT_FAILED = "4012"

    # External service errors (5xxx)
    EXTERNAL_API_ERROR = "5002"
    LEDGER_ERROR = "5010"
    FACILITATOR_ERROR = "5011"


class BaseError(Exception):
    """Base exception with context, error codes, logging, and error chaining."""

    kind = "internal"

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """
        Initialize base error with rich context.

        Args:
            message: Human-readable error message
            error_code: Standardized error code from ErrorCode enum
            status_code: HTTP status code for API responses
            cause: Original exception that caused this error
            **context: Additional context information
        """
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_id = str(uuid.uuid4())
        self.context = context

        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id

        self.context["error_id"] = self.error_id

        if cause:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        self._log_error()

        super().__init__(message)

    def _log_error(self) -> None:
        """Log error with appropriate level based on status code."""
        # Imported here: the logger module depends on config, which is imported lazily
        from .utils.logger import get_logger

        logger = get_logger()

        log_data = {
            "error_id": self.error_id,
            "error_kind": self.kind,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "error_message": self.message,
            "timestamp": self.timestamp,
            "context": {
                k: v for k, v in self.context.items() if k not in ["cause", "traceback", "result"]
            },
        }

        if "correlation_id" in self.context:
            log_data["correlation_id"] = self.context["correlation_id"]

        if self.status_code >= 500:
            logger.error(f"Error {self.error_code.value}: {self.message}", extra=log_data)
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code.value}: {self.message}", extra=log_data)
        else:
            logger.info(f"Error {self.error_code.value}: {self.message}", extra=log_data)

    def to_dict(
        self, include_cause: bool = False, include_traceback: bool = False
    ) -> Dict[str, Any]:
        """
        Convert to dict for API responses.

        Args:
            include_cause: Include cause information (useful for debugging)
            include_traceback: Include full traceback (only in debug mode)

        Returns:
            Dictionary representation suitable for JSON serialization
        """
        result: Dict[str, Any] = {
            "error": {
                "id": self.error_id,
                "kind": self.kind,
                "code": self.error_code.value,
                "message": self.message,
                "timestamp": self.timestamp,
                "context": {
                    k: v
                    for k, v in self.context.items()
                    if k not in ["cause", "error_id", "correlation_id"]
                },
            }
        }

        if "correlation_id" in self.context:
            result["error"]["correlation_id"] = self.context["correlation_id"]

        if include_cause and "cause" in self.context:
            result["error"]["cause"] = {
                "type": self.context["cause"]["type"],
                "message": self.context["cause"]["message"],
            }
            if include_traceback:
                result["error"]["cause"]["traceback"] = self.context["cause"]["traceback"]

        return result

    def add_context(self, **kwargs: Any) -> "BaseError":
        """
        Add additional context to the error (fluent interface).

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    @property
    def error_chain(self) -> List[Exception]:
        """Get the full chain of errors."""
        chain: List[Exception] = [self]
        current = self.cause
        while current:
            chain.append(current)
            current = getattr(current, "cause", None)
        return chain


# ==================== LOCAL (PRE-NETWORK) ERRORS ====================


class ConfigurationError(BaseError):
    """Missing or invalid process configuration (cipher key, payTo, network)."""

    kind = "configuration"

    def __init__(self, message: str, setting: Optional[str] = None, **kwargs):
        if setting:
            kwargs["setting"] = setting
        super().__init__(
            message, error_code=ErrorCode.CONFIGURATION_ERROR, status_code=500, **kwargs
        )


class ValidationError(BaseError):
    """Validation errors."""

    kind = "validation"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize validation error with field context."""
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


class RepositoryError(BaseError):
    """Persistence layer errors."""

    kind = "repository"

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize repository error with database context."""
        super().__init__(message, error_code, status_code, cause, **context)


class NotFoundError(RepositoryError):
    """Requested resource does not exist."""

    kind = "not_found"

    def __init__(self, message: str = "Resource not found", **kwargs):
        super().__init__(message, error_code=ErrorCode.NOT_FOUND, status_code=404, **kwargs)


class CredentialNotFoundError(NotFoundError):
    """Raised when a user has no active credential of the requested type."""

    def __init__(self, message: str = "Credential not found", **kwargs):
        super().__init__(message, **kwargs)


class DecryptionError(BaseError):
    """
    Stored ciphertext failed authentication or could not be parsed.

    Distinct from NotFoundError: the record exists but its secret is unusable
    (tampered value or rotated master key).
    """

    kind = "decryption"

    def __init__(self, message: str = "Failed to decrypt credential data", **kwargs):
        super().__init__(message, error_code=ErrorCode.DECRYPTION_ERROR, status_code=500, **kwargs)


class LedgerError(BaseError):
    """The ledger (SDK or mirror node) could not be reached or answered unexpectedly."""

    kind = "ledger"

    def __init__(self, message: str, cause: Optional[Exception] = None, **context):
        context["service_name"] = "ledger"
        super().__init__(message, ErrorCode.LEDGER_ERROR, 502, cause, **context)


# ==================== PAYMENT ERRORS ====================


class PaymentError(BaseError):
    """
    Base class for errors raised by the payment flow.

    Carries the ledger transaction id when one exists and the partial
    PaymentFlowResult describing every stage completed before the failure.
    """

    kind = "payment"

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        status_code: int = 402,
        transaction_id: Optional[str] = None,
        result: Optional["PaymentFlowResult"] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        self.transaction_id = transaction_id
        self.result = result
        if transaction_id:
            context["transaction_id"] = transaction_id
        super().__init__(message, error_code, status_code, cause, **context)

    def attach_result(self, result: "PaymentFlowResult") -> "PaymentError":
        """Attach the partial flow result (fluent interface)."""
        self.result = result
        if self.transaction_id is None and result.transaction is not None:
            self.transaction_id = result.transaction.transaction_id
            self.context["transaction_id"] = self.transaction_id
        return self


class TransferError(PaymentError):
    """
    The ledger transfer did not complete.

    ``outcome_unknown`` is set when the submission itself failed in a way that
    leaves it unclear whether the ledger accepted the transaction.
    """

    kind = "transfer"

    def __init__(
        self,
        message: str,
        status: Optional[str] = None,
        outcome_unknown: bool = False,
        **kwargs,
    ):
        self.status = status
        self.outcome_unknown = outcome_unknown
        if status:
            kwargs["ledger_status"] = status
        kwargs["outcome_unknown"] = outcome_unknown
        super().__init__(message, error_code=ErrorCode.TRANSFER_FAILED, **kwargs)


class VerificationError(PaymentError):
    """Facilitator verification returned invalid or could not be reached."""

    kind = "verification"

    def __init__(self, message: str, proof: Optional[Dict[str, Any]] = None, **kwargs):
        self.proof = proof
        if proof:
            kwargs["proof"] = proof
        super().__init__(message, error_code=ErrorCode.VERIFICATION_FAILED, **kwargs)


class SettlementError(PaymentError):
    """Facilitator settlement failed after a valid verification."""

    kind = "settlement"

    def __init__(self, message: str, proof: Optional[Dict[str, Any]] = None, **kwargs):
        self.proof = proof
        if proof:
            kwargs["proof"] = proof
        super().__init__(message, error_code=ErrorCode.SETTLEMENT_FAILED, **kwargs)


class PaymentTimeoutError(PaymentError):
    """The payment deadline (maxTimeoutSeconds) elapsed before the flow finished."""

    kind = "timeout"

    def __init__(self, message: str, stage: Optional[str] = None, **kwargs):
        if stage:
            kwargs["stage"] = stage
        super().__init__(message, error_code=ErrorCode.TIMEOUT_ERROR, status_code=504, **kwargs)


class DuplicatePaymentError(PaymentError):
    """An idempotency key was reused for an attempt that did not complete."""

    kind = "duplicate"

    def __init__(self, message: str, idempotency_key: Optional[str] = None, **kwargs):
        if idempotency_key:
            kwargs["idempotency_key"] = idempotency_key
        super().__init__(message, error_code=ErrorCode.DUPLICATE, status_code=409, **kwargs)


class InvalidStateTransitionError(BaseError):
    """A payment attempt was asked to move to a stage it cannot reach."""

    kind = "state_transition"

    def __init__(self, current: str, target: str, **kwargs):
        super().__init__(
            f"Invalid payment stage transition: {current} -> {target}",
            error_code=ErrorCode.INVALID_STATE_TRANSITION,
            status_code=409,
            current_stage=current,
            target_stage=target,
            **kwargs,
        )


# Factory functions for common error patterns
def not_found(
    resource_type: str, cause: Optional[Exception] = None, **identifiers
) -> NotFoundError:
    """
    Factory for not found errors.

    Args:
        resource_type: Type of resource (e.g., 'Credential')
        cause: Original exception if any
        **identifiers: Resource identifiers (e.g., user_id='123')

    Returns:
        Configured NotFoundError instance with 404 status
    """
    id_parts = [f"{k}={v}" for k, v in identifiers.items()]
    message = f"{resource_type} not found"
    if id_parts:
        message += f": {', '.join(id_parts)}"

    return NotFoundError(message, cause=cause, resource_type=resource_type, **identifiers)


def validation_failed(
    field: str, value: Any, reason: str, cause: Optional[Exception] = None
) -> ValidationError:
    """
    Factory for validation errors.

    Args:
        field: Field that failed validation
        value: The invalid value
        reason: Why validation failed
        cause: Original exception if any

    Returns:
        Configured ValidationError instance
    """
    return ValidationError(
        f"Validation failed for {field}: {reason}",
        field=field,
        error_code=ErrorCode.VALIDATION_FAILED,
        cause=cause,
        value=str(value),
        reason=reason,
    )


# Correlation ID management
def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current thread."""
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the current thread's correlation ID."""
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    """Clear the current thread's correlation ID."""
    if hasattr(_thread_local, "correlation_id"):
        delattr(_thread_local, "correlation_id")
