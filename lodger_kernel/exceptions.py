"""
Typed Exception Hierarchy for the Lodger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (an HTTP layer, a batch runner, a test) must be able to react to a
rejected operation without parsing message text.  Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (current state, attempted action, numeric bounds)

Example - RIGHT way:
    try:
        notices.offer_extension(tenancy_id, months=6, new_rent=rent)
    except RentIncreaseCapExceededError as e:
        api_response(code=e.code, max_allowed_rent=e.max_allowed_rent)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LodgerKernelError (base)
    |
    +-- NotFoundError
    |   +-- TenancyNotFoundError
    |   +-- ObligationNotFoundError
    |   +-- NoticeNotFoundError
    |
    +-- InvalidStateError
    |   +-- InvalidTransitionError
    |   +-- EscalationTooEarlyError
    |   +-- PendingExtensionExistsError
    |   +-- ActiveBreachNoticeExistsError
    |   +-- NoticeTypeMismatchError
    |   +-- TerminationNotDueError
    |
    +-- ValidationFailureError
    |   +-- InvalidAmountError
    |   +-- InvalidTenancyTermsError
    |   +-- RentIncreaseCapExceededError
    |   +-- InvalidExtensionResponseError
    |   +-- InsufficientFundsError
    |
    +-- ConcurrencyConflictError        (the only retryable error)
    |
    +-- BatchError
        +-- TaskNotRegisteredError

===============================================================================
RETRY SEMANTICS
===============================================================================

NotFound, InvalidState and ValidationFailure errors are surfaced verbatim and
never retried.  ConcurrencyConflictError sets ``retryable = True``; callers
re-run the whole atomic operation once (see
lodger_services.retry_service.run_with_conflict_retry).
"""

from datetime import date
from decimal import Decimal
from typing import Any


class LodgerKernelError(Exception):
    """Base exception for all lodger kernel errors."""

    code: str = "LODGER_KERNEL_ERROR"
    retryable: bool = False


# Not-found exceptions


class NotFoundError(LodgerKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class TenancyNotFoundError(NotFoundError):
    """Tenancy with given ID was not found."""

    code: str = "TENANCY_NOT_FOUND"

    def __init__(self, tenancy_id: Any):
        self.tenancy_id = str(tenancy_id)
        super().__init__(f"Tenancy not found: {tenancy_id}")


class ObligationNotFoundError(NotFoundError):
    """Payment obligation with given ID was not found."""

    code: str = "OBLIGATION_NOT_FOUND"

    def __init__(self, obligation_id: Any):
        self.obligation_id = str(obligation_id)
        super().__init__(f"Payment obligation not found: {obligation_id}")


class NoticeNotFoundError(NotFoundError):
    """Notice with given ID was not found."""

    code: str = "NOTICE_NOT_FOUND"

    def __init__(self, notice_id: Any):
        self.notice_id = str(notice_id)
        super().__init__(f"Notice not found: {notice_id}")


# Invalid-state exceptions


class InvalidStateError(LodgerKernelError):
    """Base exception for operations not legal in the current state."""

    code: str = "INVALID_STATE"


class InvalidTransitionError(InvalidStateError):
    """No transition exists for the requested action from the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        current_state: str,
        action: str,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_type} {entity_id}: "
            f"not allowed from state '{current_state}'"
        )


class EscalationTooEarlyError(InvalidStateError):
    """Breach escalation attempted before the remedy deadline."""

    code: str = "ESCALATION_TOO_EARLY"

    def __init__(self, notice_id: Any, remedy_deadline: date, attempted_on: date):
        self.notice_id = str(notice_id)
        self.remedy_deadline = remedy_deadline
        self.attempted_on = attempted_on
        super().__init__(
            f"Cannot escalate breach notice {notice_id} before remedy deadline "
            f"{remedy_deadline.isoformat()} (attempted {attempted_on.isoformat()})"
        )


class PendingExtensionExistsError(InvalidStateError):
    """A pending extension offer already exists for the tenancy."""

    code: str = "PENDING_EXTENSION_EXISTS"

    def __init__(self, tenancy_id: Any, notice_id: Any):
        self.tenancy_id = str(tenancy_id)
        self.notice_id = str(notice_id)
        super().__init__(
            f"Tenancy {tenancy_id} already has a pending extension offer: {notice_id}"
        )


class ActiveBreachNoticeExistsError(InvalidStateError):
    """An active breach notice already exists for the tenancy."""

    code: str = "ACTIVE_BREACH_NOTICE_EXISTS"

    def __init__(self, tenancy_id: Any, notice_id: Any):
        self.tenancy_id = str(tenancy_id)
        self.notice_id = str(notice_id)
        super().__init__(
            f"Tenancy {tenancy_id} already has an active breach notice: {notice_id}"
        )


class NoticeTypeMismatchError(InvalidStateError):
    """Operation applied to a notice of the wrong type."""

    code: str = "NOTICE_TYPE_MISMATCH"

    def __init__(self, notice_id: Any, expected_type: str, actual_type: str):
        self.notice_id = str(notice_id)
        self.expected_type = expected_type
        self.actual_type = actual_type
        super().__init__(
            f"Notice {notice_id} is a {actual_type} notice, expected {expected_type}"
        )


class TerminationNotDueError(InvalidStateError):
    """Termination completed before the termination date was reached."""

    code: str = "TERMINATION_NOT_DUE"

    def __init__(self, tenancy_id: Any, termination_date: date | None, attempted_on: date):
        self.tenancy_id = str(tenancy_id)
        self.termination_date = termination_date
        self.attempted_on = attempted_on
        super().__init__(
            f"Tenancy {tenancy_id} cannot terminate before {termination_date} "
            f"(attempted {attempted_on.isoformat()})"
        )


# Validation exceptions


class ValidationFailureError(LodgerKernelError):
    """Base exception for rejected input values."""

    code: str = "VALIDATION_FAILURE"


class InvalidAmountError(ValidationFailureError):
    """Money amount is missing, negative or zero where a positive value is required."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: Decimal | None, reason: str):
        self.field = field
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid {field} ({amount}): {reason}")


class InvalidTenancyTermsError(ValidationFailureError):
    """Tenancy terms failed validation."""

    code: str = "INVALID_TENANCY_TERMS"

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid tenancy terms, {field}={value!r}: {reason}")


class RentIncreaseCapExceededError(ValidationFailureError):
    """Extension offer rent exceeds the permitted annual increase."""

    code: str = "RENT_INCREASE_CAP_EXCEEDED"

    def __init__(
        self,
        current_rent: Decimal,
        proposed_rent: Decimal,
        max_allowed_rent: Decimal,
        increase_percent: Decimal,
        max_increase_percent: Decimal,
    ):
        self.current_rent = current_rent
        self.proposed_rent = proposed_rent
        self.max_allowed_rent = max_allowed_rent
        self.increase_percent = increase_percent
        self.max_increase_percent = max_increase_percent
        super().__init__(
            f"Rent increase of {increase_percent}% exceeds the maximum of "
            f"{max_increase_percent}% per year. Maximum allowed rent: "
            f"{max_allowed_rent} (current {current_rent}, proposed {proposed_rent})"
        )


class InvalidExtensionResponseError(ValidationFailureError):
    """Extension response is neither accept nor reject."""

    code: str = "INVALID_EXTENSION_RESPONSE"

    def __init__(self, response: str):
        self.response = response
        super().__init__(
            f"Invalid extension response {response!r}: expected 'accept' or 'reject'"
        )


class InsufficientFundsError(ValidationFailureError):
    """Deduction asks for more than is still held from the deposit or advance rent."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(self, source: str, available: Decimal, requested: Decimal):
        self.source = source
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient {source} funds. Available: {available}, requested: {requested}"
        )


# Concurrency exceptions


class ConcurrencyConflictError(LodgerKernelError):
    """Two atomic operations raced on the same tenancy; retry the operation once."""

    code: str = "CONCURRENCY_CONFLICT"
    retryable: bool = True

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}; retry the operation"
        )


# Batch exceptions


class BatchError(LodgerKernelError):
    """Base exception for batch errors."""

    code: str = "BATCH_ERROR"


class TaskNotRegisteredError(BatchError):
    """Batch task type is not registered."""

    code: str = "TASK_NOT_REGISTERED"

    def __init__(self, task_type: str):
        self.task_type = task_type
        super().__init__(f"Batch task not registered: {task_type}")
