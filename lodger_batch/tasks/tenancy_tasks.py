"""
Batch tasks: tenancy module (expiry reminders, schedule top-up).
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from lodger_batch.tasks.base import BatchItemInput, BatchItemStatus, BatchTaskResult
from lodger_config import get_active_config
from lodger_config.schema import LodgerPolicy
from lodger_kernel.logging_config import get_logger

logger = get_logger("batch.tenancy_tasks")

SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000000")

_RUNNING_STATES = ("active", "extended")


def _actor(parameters: dict[str, Any]) -> UUID:
    actor = parameters.get("actor_id")
    if actor is None:
        return SYSTEM_ACTOR_ID
    return actor if isinstance(actor, UUID) else UUID(str(actor))


class TenancyExpiryReminderTask:
    """
    Daily sweep raising reminders for tenancies nearing their end date.

    Reads tenancies and earlier reminders only; never touches obligations.
    Re-running within the dedup window raises nothing new.
    """

    def __init__(self, policy: LodgerPolicy | None = None):
        self._policy = policy or get_active_config()

    @property
    def task_type(self) -> str:
        return "tenancy.expiry_reminders"

    @property
    def description(self) -> str:
        return "Remind landlord and lodger of tenancies ending soon"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        from lodger_modules.tenancy.orm import TenancyModel

        today = as_of.date()
        window_end = today + timedelta(days=self._policy.expiry_reminder_days)
        tenancies = session.execute(
            select(TenancyModel)
            .where(TenancyModel.status.in_(_RUNNING_STATES))
            .where(TenancyModel.end_date.is_not(None))
            .where(TenancyModel.end_date >= today)
            .where(TenancyModel.end_date <= window_end)
            .order_by(TenancyModel.end_date)
        ).scalars().all()

        return tuple(
            BatchItemInput(
                item_index=i,
                item_key=str(t.id),
                payload={"tenancy_id": str(t.id)},
            )
            for i, t in enumerate(tenancies)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        from lodger_modules.tenancy.helpers import format_date
        from lodger_modules.tenancy.models import ReminderType
        from lodger_modules.tenancy.orm import ReminderModel, TenancyModel

        today = as_of.date()
        tenancy_id = UUID(item.payload["tenancy_id"])
        tenancy = session.get(TenancyModel, tenancy_id)
        if tenancy is None or tenancy.end_date is None:
            return BatchTaskResult(
                status=BatchItemStatus.FAILED,
                error_code="TENANCY_NOT_FOUND",
                error_message=f"Tenancy {tenancy_id} vanished before the sweep reached it",
            )

        window_start = today - timedelta(days=self._policy.reminder_dedup_window_days)
        recent = session.execute(
            select(ReminderModel.id)
            .where(ReminderModel.tenancy_id == tenancy_id)
            .where(ReminderModel.reminder_type == ReminderType.TENANCY_EXPIRING.value)
            .where(ReminderModel.raised_on >= window_start)
            .limit(1)
        ).scalar_one_or_none()
        if recent is not None:
            return BatchTaskResult(
                status=BatchItemStatus.SKIPPED,
                result_data={"tenancy_id": str(tenancy_id), "reason": "recently_reminded"},
            )

        days_until = (tenancy.end_date - today).days
        message = (
            f"Tenancy ends on {format_date(tenancy.end_date)} "
            f"({days_until} day(s) from today)."
        )
        actor_id = _actor(parameters)
        for recipient in (tenancy.landlord_id, tenancy.lodger_id):
            session.add(
                ReminderModel(
                    tenancy_id=tenancy_id,
                    recipient_id=recipient,
                    reminder_type=ReminderType.TENANCY_EXPIRING.value,
                    raised_on=today,
                    message=message,
                    days_until=days_until,
                    created_by_id=actor_id,
                )
            )
        session.flush()

        logger.info(
            "tenancy_expiry_reminder_raised",
            extra={"tenancy_id": str(tenancy_id), "days_until": days_until},
        )
        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={"tenancy_id": str(tenancy_id), "days_until": days_until},
        )


class ScheduleTopUpTask:
    """Keeps each running tenancy's schedule filled to the look-ahead horizon."""

    def __init__(self, policy: LodgerPolicy | None = None):
        self._policy = policy or get_active_config()

    @property
    def task_type(self) -> str:
        return "tenancy.schedule_top_up"

    @property
    def description(self) -> str:
        return "Append missing schedule obligations within the look-ahead horizon"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        from lodger_modules.tenancy.orm import TenancyModel

        tenancies = session.execute(
            select(TenancyModel.id)
            .where(TenancyModel.status.in_(_RUNNING_STATES))
            .order_by(TenancyModel.start_date)
        ).scalars().all()
        return tuple(
            BatchItemInput(
                item_index=i,
                item_key=str(tenancy_id),
                payload={"tenancy_id": str(tenancy_id)},
            )
            for i, tenancy_id in enumerate(tenancies)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        from lodger_modules.tenancy.ledger import TenancyLedger

        ledger = TenancyLedger(session, self._policy)
        tenancy = ledger.tenancy(UUID(item.payload["tenancy_id"]))
        # status is re-read under the lock; notice may have landed since prepare_items
        if tenancy.status not in _RUNNING_STATES:
            return BatchTaskResult(
                status=BatchItemStatus.SKIPPED,
                result_data={
                    "tenancy_id": item.payload["tenancy_id"],
                    "reason": "not_running",
                    "status": tenancy.status,
                    "appended": 0,
                },
            )
        appended = ledger.extend(tenancy, as_of.date(), _actor(parameters))
        if not appended:
            return BatchTaskResult(
                status=BatchItemStatus.SKIPPED,
                result_data={"tenancy_id": item.payload["tenancy_id"], "appended": 0},
            )
        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={
                "tenancy_id": item.payload["tenancy_id"],
                "appended": len(appended),
                "last_payment_number": appended[-1].payment_number,
            },
        )
