"""
lodger_services.retry_service -- Retry an atomic operation on conflict.

ConcurrencyConflictError is the only retryable error in the kernel.  The
whole operation is re-run (it owns its own transaction), never a fragment
of it.  Every other error propagates on the first attempt.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from lodger_kernel.exceptions import ConcurrencyConflictError
from lodger_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")


def run_with_conflict_retry(operation: Callable[[], T], max_retries: int = 1) -> T:
    """Run ``operation``, re-running it up to ``max_retries`` times on conflict.

    Raises:
        ConcurrencyConflictError: if the last attempt also conflicts.
    """
    attempt = 0
    while True:
        try:
            return operation()
        except ConcurrencyConflictError as exc:
            if attempt >= max_retries:
                logger.warning(
                    "conflict_retry_exhausted",
                    extra={
                        "attempts": attempt + 1,
                        "entity_type": exc.entity_type,
                        "entity_id": exc.entity_id,
                    },
                )
                raise
            attempt += 1
            logger.info(
                "conflict_retry",
                extra={
                    "attempt": attempt,
                    "entity_type": exc.entity_type,
                    "entity_id": exc.entity_id,
                },
            )
