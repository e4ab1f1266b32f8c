"""
Batch task interface and registry.

A task splits a run into items (``prepare_items``) and handles one item at
a time (``execute_item``).  Tasks never commit: ``BatchRunner`` wraps the
whole run in a single unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from sqlalchemy.orm import Session

from lodger_kernel.exceptions import TaskNotRegisteredError


class BatchItemStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class BatchItemInput:
    item_index: int
    item_key: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BatchTaskResult:
    status: BatchItemStatus
    result_data: dict[str, Any] | None = None
    error_code: str | None = None
    error_message: str | None = None


@runtime_checkable
class BatchTask(Protocol):
    """What ``BatchRunner`` needs from a task."""

    @property
    def task_type(self) -> str: ...

    @property
    def description(self) -> str: ...

    def prepare_items(
        self, parameters: dict[str, Any], session: Session, as_of: datetime,
    ) -> tuple[BatchItemInput, ...]: ...

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult: ...


class TaskRegistry:
    """Tasks keyed by ``task_type``; each type may be registered once."""

    def __init__(self) -> None:
        self._tasks: dict[str, BatchTask] = {}

    def register(self, task: BatchTask) -> None:
        if task.task_type in self._tasks:
            raise ValueError(f"Task type '{task.task_type}' is already registered")
        self._tasks[task.task_type] = task

    def get(self, task_type: str) -> BatchTask:
        task = self._tasks.get(task_type)
        if task is None:
            raise TaskNotRegisteredError(task_type)
        return task

    def list_tasks(self) -> tuple[str, ...]:
        return tuple(sorted(self._tasks))

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_type: object) -> bool:
        return task_type in self._tasks


def default_task_registry(policy: Any = None) -> TaskRegistry:
    """Registry holding the expiry-reminder sweep and the schedule top-up."""
    from lodger_batch.tasks.tenancy_tasks import ScheduleTopUpTask, TenancyExpiryReminderTask

    registry = TaskRegistry()
    for task in (TenancyExpiryReminderTask(policy), ScheduleTopUpTask(policy)):
        registry.register(task)
    return registry
