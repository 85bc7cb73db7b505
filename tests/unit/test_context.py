"""
Tests for user context, per-user locks and the operation decorator.
"""

import threading
import time
from unittest.mock import Mock

import pytest

from x402_payment_core.context.operation_context import OperationHandler, operation
from x402_payment_core.context.user_context import (
    UserContext,
    UserLockRegistry,
    get_user_locks,
    user_context,
)
from x402_payment_core.exceptions import ValidationError, get_correlation_id


class TestUserContext:
    def test_set_and_get(self):
        UserContext.set_current_user("  user-42 ")
        assert UserContext.get_current_user_id() == "user-42"

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_rejects_empty_user(self, value):
        with pytest.raises(ValidationError):
            UserContext.set_current_user(value)

    def test_context_manager_restores_previous(self):
        with user_context("outer", "attempt-1"):
            with user_context("inner", "attempt-2"):
                assert UserContext.get_current_user_id() == "inner"
                assert UserContext.get_payment_attempt_id() == "attempt-2"
            assert UserContext.get_current_user_id() == "outer"
            assert UserContext.get_payment_attempt_id() == "attempt-1"

        assert UserContext.get_current_user_id() is None
        assert UserContext.get_payment_attempt_id() is None

    def test_context_is_thread_local(self):
        seen = []

        def worker():
            seen.append(UserContext.get_current_user_id())

        with user_context("user-42"):
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()

        assert seen == [None]


class TestUserLockRegistry:
    """Test per-user write serialization."""

    def test_same_user_same_lock(self):
        registry = UserLockRegistry()
        assert registry.get_lock("a") is registry.get_lock("a")
        assert registry.get_lock("a") is not registry.get_lock("b")

    def test_lock_is_reentrant(self):
        registry = UserLockRegistry()
        with registry.user_lock("a"):
            with registry.user_lock("a"):
                pass

    def test_serializes_same_user(self):
        registry = UserLockRegistry()
        active = []
        overlaps = []

        def worker():
            with registry.user_lock("user-42"):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert overlaps == []

    def test_process_wide_registry(self):
        assert get_user_locks() is get_user_locks()


class TestOperation:
    """Test the operation decorator."""

    def test_returns_result(self):
        @operation()
        def add(a, b):
            return a + b

        assert add(1, 2) == 3

    def test_enriches_base_errors(self):
        @operation(name="vault.check")
        def fail():
            raise ValidationError("bad input")

        with pytest.raises(ValidationError) as exc_info:
            fail()

        assert exc_info.value.context["operation_name"] == "vault.check"
        assert "operation_id" in exc_info.value.context

    def test_other_errors_propagate_unchanged(self):
        @operation
        def fail():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            fail()

    def test_sets_correlation_id(self):
        @operation()
        def noop():
            return get_correlation_id()

        assert noop() is not None

    def test_arguments_not_logged(self):
        """Test private keys passed to operations never reach the log."""
        logger = Mock()
        handler = OperationHandler(logger=logger)

        with handler.operation("transfer_service.execute_transfer", source_module="m"):
            pass

        logged = str(logger.info.call_args_list)
        assert "ENTER: transfer_service.execute_transfer" in logged
        assert "private" not in logged

    def test_logging_disabled_by_flag(self, test_config):
        test_config.features.enable_operation_logging = False
        logger = Mock()

        with OperationHandler(logger=logger).operation("quiet"):
            pass

        logger.info.assert_not_called()
