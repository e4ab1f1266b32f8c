"""
lodger_batch.tasks -- Task protocol, registry, and tenancy task implementations.

ZERO module imports in base.py.  tenancy_tasks.py imports from
lodger_modules.tenancy.
"""

from lodger_batch.tasks.base import (
    BatchItemInput,
    BatchItemStatus,
    BatchTask,
    BatchTaskResult,
    TaskRegistry,
    default_task_registry,
)

__all__ = [
    "BatchItemInput",
    "BatchItemStatus",
    "BatchTask",
    "BatchTaskResult",
    "TaskRegistry",
    "default_task_registry",
]
