"""
lodger_batch.runner -- runs one registered task as a single unit of work.

Every item of a run commits together.  A raised exception rolls the whole
run back and propagates; an item that returns FAILED is counted and the
run carries on.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from lodger_batch.tasks.base import BatchItemStatus, BatchTaskResult, TaskRegistry
from lodger_batch.tasks.tenancy_tasks import SYSTEM_ACTOR_ID
from lodger_kernel.db.engine import unit_of_work
from lodger_kernel.domain.clock import Clock, SystemClock
from lodger_kernel.logging_config import LogContext, get_logger

logger = get_logger("batch.runner")


@dataclass(frozen=True)
class BatchRunResult:
    """Summary of one batch run."""

    task_type: str
    total_items: int
    succeeded: int
    failed: int
    skipped: int
    duration_ms: float
    results: tuple[BatchTaskResult, ...] = field(default_factory=tuple)


class BatchRunner:
    """Runs tasks from a registry against one session and clock."""

    def __init__(
        self,
        session: Session,
        task_registry: TaskRegistry,
        clock: Clock | None = None,
    ):
        self._session = session
        self._registry = task_registry
        self._clock = clock or SystemClock()

    def run(
        self,
        task_type: str,
        parameters: dict[str, Any] | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> BatchRunResult:
        """
        Prepare and execute every item of ``task_type``.

        Raises:
            TaskNotRegisteredError: If task_type is not registered.
        """
        task = self._registry.get(task_type)
        params = dict(parameters or {})
        params.setdefault("actor_id", actor_id)
        as_of = self._clock.now()
        start = time.monotonic()

        with LogContext.bind(actor_id=actor_id, correlation_id=f"{task_type}:{as_of.date().isoformat()}"):
            logger.info("batch_run_started", extra={"task_type": task_type, "as_of": as_of})
            with unit_of_work(self._session, "batch_run", task_type):
                items = task.prepare_items(params, self._session, as_of)
                results = tuple(
                    task.execute_item(item, params, self._session, as_of) for item in items
                )

            counts = {status: 0 for status in BatchItemStatus}
            for result in results:
                counts[result.status] += 1
            run = BatchRunResult(
                task_type=task_type,
                total_items=len(items),
                succeeded=counts[BatchItemStatus.SUCCEEDED],
                failed=counts[BatchItemStatus.FAILED],
                skipped=counts[BatchItemStatus.SKIPPED],
                duration_ms=round((time.monotonic() - start) * 1000, 3),
                results=results,
            )
            logger.info(
                "batch_run_completed",
                extra={
                    "task_type": task_type,
                    "total_items": run.total_items,
                    "succeeded": run.succeeded,
                    "failed": run.failed,
                    "skipped": run.skipped,
                    "duration_ms": run.duration_ms,
                },
            )
        return run
