"""Tests for lodger_services.retry_service.run_with_conflict_retry."""

import pytest

from lodger_kernel.exceptions import ConcurrencyConflictError, TenancyNotFoundError
from lodger_services.retry_service import run_with_conflict_retry


class _Flaky:
    """Raises a conflict for the first ``failures`` calls."""

    def __init__(self, failures: int, error: Exception | None = None):
        self.failures = failures
        self.error = error or ConcurrencyConflictError("tenancy", "t-1")
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "done"


class TestConflictRetry:

    def test_success_first_time(self):
        op = _Flaky(0)
        assert run_with_conflict_retry(op) == "done"
        assert op.calls == 1

    def test_single_conflict_retried_once(self, captured_logs):
        op = _Flaky(1)
        assert run_with_conflict_retry(op) == "done"
        assert op.calls == 2
        assert any(r["message"] == "conflict_retry" for r in captured_logs())

    def test_second_conflict_propagates(self, captured_logs):
        op = _Flaky(2)
        with pytest.raises(ConcurrencyConflictError):
            run_with_conflict_retry(op)
        assert op.calls == 2
        exhausted = [r for r in captured_logs() if r["message"] == "conflict_retry_exhausted"]
        assert exhausted[0]["attempts"] == 2

    def test_other_errors_not_retried(self):
        op = _Flaky(1, TenancyNotFoundError("t-1"))
        with pytest.raises(TenancyNotFoundError):
            run_with_conflict_retry(op)
        assert op.calls == 1

    def test_max_retries_configurable(self):
        op = _Flaky(3)
        assert run_with_conflict_retry(op, max_retries=3) == "done"
        assert op.calls == 4
