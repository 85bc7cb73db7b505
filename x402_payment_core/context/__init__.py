"""Context management for operations and per-user isolation."""

from .operation_context import OperationContext, OperationHandler, operation
from .user_context import UserContext, UserLockRegistry, get_user_locks, user_context

__all__ = [
    "operation",
    "OperationContext",
    "OperationHandler",
    "UserContext",
    "UserLockRegistry",
    "get_user_locks",
    "user_context",
]
