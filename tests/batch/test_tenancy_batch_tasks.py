"""
Tests for the tenancy batch tasks and the batch runner.

Validates:
- TaskRegistry registration and lookup
- Expiry sweep raises one reminder per party and dedups re-runs
- Expiry sweep never touches obligations or the tenancy row
- Schedule top-up appends the missing tail, then skips
- Schedule top-up re-reads the status and skips a tenancy given notice since prepare
- A raised exception rolls the whole run back
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

import pytest
from sqlalchemy import func, select

from lodger_batch.runner import BatchRunner
from lodger_batch.tasks import (
    BatchItemInput,
    BatchItemStatus,
    BatchTask,
    BatchTaskResult,
    TaskRegistry,
    default_task_registry,
)
from lodger_batch.tasks.tenancy_tasks import SYSTEM_ACTOR_ID
from lodger_kernel.exceptions import TaskNotRegisteredError
from lodger_modules.tenancy.models import ReminderType
from lodger_modules.tenancy.orm import PaymentObligationModel, ReminderModel, TenancyModel

EXPIRY = "tenancy.expiry_reminders"
TOP_UP = "tenancy.schedule_top_up"


def _reminders(session) -> list[ReminderModel]:
    return list(session.execute(select(ReminderModel).order_by(ReminderModel.recipient_id)).scalars())


def _obligation_count(session) -> int:
    return session.execute(select(func.count()).select_from(PaymentObligationModel)).scalar_one()


@pytest.fixture
def runner(session, policy, clock) -> BatchRunner:
    return BatchRunner(session, default_task_registry(policy), clock=clock)


class _ExplodingTask:
    """Writes a reminder for the first item, then raises."""

    task_type = "test.exploding"
    description = "Fails part-way through"

    def __init__(self, tenancy_id, recipient_id):
        self._tenancy_id = tenancy_id
        self._recipient_id = recipient_id

    def prepare_items(self, parameters: dict[str, Any], session, as_of: datetime):
        return (BatchItemInput(0, "first"), BatchItemInput(1, "second"))

    def execute_item(self, item, parameters, session, as_of) -> BatchTaskResult:
        if item.item_index == 1:
            raise RuntimeError("disk full")
        session.add(
            ReminderModel(
                tenancy_id=self._tenancy_id,
                recipient_id=self._recipient_id,
                reminder_type=ReminderType.TENANCY_EXPIRING.value,
                raised_on=as_of.date(),
                message="partial",
                created_by_id=SYSTEM_ACTOR_ID,
            )
        )
        session.flush()
        return BatchTaskResult(status=BatchItemStatus.SUCCEEDED)


# =============================================================================
# Registry
# =============================================================================


class TestTaskRegistry:

    def test_default_registry(self, policy):
        registry = default_task_registry(policy)

        assert registry.list_tasks() == (EXPIRY, TOP_UP)
        assert len(registry) == 2
        assert EXPIRY in registry
        assert isinstance(registry.get(EXPIRY), BatchTask)

    def test_duplicate_rejected(self, policy):
        registry = default_task_registry(policy)
        with pytest.raises(ValueError, match="already registered"):
            registry.register(registry.get(TOP_UP))

    def test_unknown_task(self, runner):
        with pytest.raises(TaskNotRegisteredError):
            runner.run("tenancy.unknown")

    def test_empty_registry(self):
        registry = TaskRegistry()
        assert registry.list_tasks() == ()
        with pytest.raises(TaskNotRegisteredError):
            registry.get(EXPIRY)


# =============================================================================
# Expiry reminders
# =============================================================================


class TestExpiryReminders:

    def test_sweep_reminds_both_parties(
        self, make_tenancy, runner, session, clock, landlord_id, lodger_id,
    ):
        ending = make_tenancy(end_date=date(2026, 1, 7))
        make_tenancy()
        make_tenancy(end_date=date(2026, 3, 1))
        clock.set_date(date(2025, 12, 15))

        result = runner.run(EXPIRY)

        assert (result.total_items, result.succeeded, result.skipped, result.failed) == (1, 1, 0, 0)
        reminders = _reminders(session)
        assert {r.recipient_id for r in reminders} == {landlord_id, lodger_id}
        assert all(r.tenancy_id == ending.id for r in reminders)
        assert all(r.days_until == 23 for r in reminders)
        assert all(r.created_by_id == SYSTEM_ACTOR_ID for r in reminders)
        assert reminders[0].message == "Tenancy ends on 07/01/2026 (23 day(s) from today)."

    def test_rerun_is_skipped(self, make_tenancy, runner, session, clock):
        make_tenancy(end_date=date(2026, 1, 7))
        clock.set_date(date(2025, 12, 15))
        runner.run(EXPIRY)

        clock.set_date(date(2025, 12, 16))
        again = runner.run(EXPIRY)

        assert (again.succeeded, again.skipped) == (0, 1)
        assert again.results[0].result_data["reason"] == "recently_reminded"
        assert len(_reminders(session)) == 2

    def test_sweep_leaves_ledger_and_tenancy_untouched(self, make_tenancy, runner, session, clock):
        tenancy = make_tenancy(end_date=date(2026, 1, 7))
        version_before = session.get(TenancyModel, tenancy.id).version
        obligations_before = _obligation_count(session)
        clock.set_date(date(2025, 12, 15))

        runner.run(EXPIRY)

        session.expire_all()
        assert session.get(TenancyModel, tenancy.id).version == version_before
        assert _obligation_count(session) == obligations_before

    def test_terminated_tenancy_ignored(self, make_tenancy, runner, notice_service, session, clock, lodger_id):
        tenancy = make_tenancy(end_date=date(2026, 1, 7))
        clock.set_date(date(2025, 12, 15))
        notice_service.give_notice(tenancy.id, 0, "moving_out", lodger_id)

        result = runner.run(EXPIRY)

        assert result.total_items == 0
        assert _reminders(session) == []

    def test_actor_parameter_recorded(self, make_tenancy, runner, session, clock, actor_id):
        make_tenancy(end_date=date(2026, 1, 7))
        clock.set_date(date(2025, 12, 15))

        runner.run(EXPIRY, actor_id=actor_id)

        assert all(r.created_by_id == actor_id for r in _reminders(session))


# =============================================================================
# Schedule top-up
# =============================================================================


class TestScheduleTopUp:

    def test_appends_then_skips(self, make_tenancy, runner, session, clock):
        open_ended = make_tenancy()
        make_tenancy(end_date=date(2026, 1, 7))
        clock.set_date(date(2027, 6, 1))

        first = runner.run(TOP_UP)

        assert (first.total_items, first.succeeded, first.skipped) == (2, 1, 1)
        appended = next(r for r in first.results if r.status is BatchItemStatus.SUCCEEDED)
        assert appended.result_data["tenancy_id"] == str(open_ended.id)
        assert appended.result_data["appended"] > 0
        count_after_first = _obligation_count(session)

        second = runner.run(TOP_UP)

        assert (second.succeeded, second.skipped) == (0, 2)
        assert _obligation_count(session) == count_after_first

    def test_notice_between_prepare_and_execute_skips_item(
        self, make_tenancy, notice_service, session, clock, policy, lodger_id,
    ):
        tenancy = make_tenancy()
        clock.set_date(date(2027, 6, 1))
        task = default_task_registry(policy).get(TOP_UP)
        as_of = clock.now()
        (item,) = task.prepare_items({}, session, as_of)

        outcome = notice_service.give_notice(tenancy.id, 28, "moving_out", lodger_id)
        count_after_notice = _obligation_count(session)

        result = task.execute_item(item, {}, session, as_of)

        assert result.status is BatchItemStatus.SKIPPED
        assert result.result_data["reason"] == "not_running"
        assert result.result_data["status"] == "notice_given"
        assert _obligation_count(session) == count_after_notice
        last = session.execute(
            select(PaymentObligationModel)
            .where(PaymentObligationModel.tenancy_id == tenancy.id)
            .order_by(PaymentObligationModel.payment_number.desc())
            .limit(1)
        ).scalar_one()
        assert last.id == outcome.settlement.obligation_id

    def test_completed_log(self, make_tenancy, runner, clock, captured_logs):
        make_tenancy()
        runner.run(TOP_UP)

        completed = [r for r in captured_logs() if r["message"] == "batch_run_completed"]
        assert completed[-1]["task_type"] == TOP_UP
        assert completed[-1]["skipped"] == 1
        assert completed[-1]["correlation_id"] == f"{TOP_UP}:2025-10-15"


# =============================================================================
# Run atomicity
# =============================================================================


class TestRunAtomicity:

    def test_raised_exception_rolls_back_run(self, make_tenancy, session, clock, landlord_id):
        tenancy = make_tenancy()
        registry = TaskRegistry()
        registry.register(_ExplodingTask(tenancy.id, landlord_id))
        runner = BatchRunner(session, registry, clock=clock)

        with pytest.raises(RuntimeError, match="disk full"):
            runner.run("test.exploding")

        assert _reminders(session) == []
