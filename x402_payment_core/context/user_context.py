"""
User context management for vault access and payment attempts.

Thread-local storage keeps the user (and payment attempt) currently being
served so log records can be tagged without threading ids through every call.
UserLockRegistry serializes vault writes per user while unrelated users
proceed in parallel.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Generator, Optional

from ..exceptions import ErrorCode, ValidationError


class UserContext:
    """
    Manages the current user context using thread-local storage.
    """

    _thread_local = threading.local()

    @classmethod
    def set_current_user(cls, user_id: str) -> None:
        """
        Set the current user ID for the execution context.

        Raises:
            ValidationError: If user_id is empty
        """
        if not user_id or not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError(
                "user_id must be a non-empty string",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="user_id",
            )
        cls._thread_local.user_id = user_id.strip()

    @classmethod
    def get_current_user_id(cls) -> Optional[str]:
        """Get the current user ID or None if not set."""
        return getattr(cls._thread_local, "user_id", None)

    @classmethod
    def clear_current_user(cls) -> None:
        if hasattr(cls._thread_local, "user_id"):
            delattr(cls._thread_local, "user_id")

    @classmethod
    def set_payment_attempt(cls, attempt_id: Optional[str]) -> None:
        cls._thread_local.payment_attempt_id = attempt_id

    @classmethod
    def get_payment_attempt_id(cls) -> Optional[str]:
        return getattr(cls._thread_local, "payment_attempt_id", None)


@contextmanager
def user_context(
    user_id: str, payment_attempt_id: Optional[str] = None
) -> Generator[None, None, None]:
    """
    Context manager for temporarily setting the current user.

    The previous user and payment attempt are restored on exit, so contexts nest.

    Example:
        with user_context("user-123"):
            vault.get("user-123", "hedera")
    """
    previous_user = UserContext.get_current_user_id()
    previous_attempt = UserContext.get_payment_attempt_id()

    UserContext.set_current_user(user_id)
    if payment_attempt_id is not None:
        UserContext.set_payment_attempt(payment_attempt_id)
    try:
        yield
    finally:
        if previous_user:
            UserContext.set_current_user(previous_user)
        else:
            UserContext.clear_current_user()
        UserContext.set_payment_attempt(previous_attempt)


class UserLockRegistry:
    """Hands out one re-entrant lock per user id."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def get_lock(self, user_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[user_id] = lock
            return lock

    @contextmanager
    def user_lock(self, user_id: str) -> Generator[None, None, None]:
        """Hold the lock for ``user_id`` for the duration of the block."""
        lock = self.get_lock(user_id)
        with lock:
            yield


# Shared by every vault instance in the process
_user_locks = UserLockRegistry()


def get_user_locks() -> UserLockRegistry:
    """Get the process-wide user lock registry."""
    return _user_locks
