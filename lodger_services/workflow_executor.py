"""
Guarded state transitions for the tenancy workflows.

``WorkflowExecutor.execute_transition`` answers one question: may
``action`` fire from ``current_state``?  It resolves the transition on the
declared ``Workflow``, evaluates the transition's guard against a context
mapping, and logs a ``workflow_transition`` record whatever the answer.
The entity itself is never touched; callers apply ``new_state`` inside
their own unit of work.

Guards are looked up by name in a ``GuardExecutor``.  A guard with no
registered evaluator fails closed.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable
from uuid import UUID

from lodger_kernel.domain.workflow import Guard, Workflow
from lodger_kernel.logging_config import get_logger

logger = get_logger("services.workflow_executor")

OUTCOME_SUCCESS = "success"
OUTCOME_GUARD_FAILED = "guard_failed"
OUTCOME_NO_TRANSITION = "no_transition"

GuardEvaluator = Callable[[Mapping[str, Any]], bool]


@dataclass(frozen=True)
class TransitionResult:
    success: bool
    outcome: str
    reason: str
    new_state: str | None = None
    settles: bool = False
    guard_name: str | None = None


def _on_or_after(context: Mapping[str, Any], key: str) -> bool:
    today, limit = context.get("today"), context.get(key)
    if not isinstance(today, date) or not isinstance(limit, date):
        return False
    return today >= limit


def _nothing_confirmed(context: Mapping[str, Any]) -> bool:
    return not context.get("rent_paid")


class GuardExecutor:
    """Guard name -> evaluator."""

    def __init__(self) -> None:
        self._evaluators: dict[str, GuardEvaluator] = {}

    def register(self, guard_name: str, evaluator: GuardEvaluator) -> None:
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, context: Mapping[str, Any]) -> bool:
        evaluator = self._evaluators.get(guard.name)
        if evaluator is None:
            logger.warning("guard_no_evaluator", extra={"guard_name": guard.name})
            return False
        return bool(evaluator(context))


def default_guard_executor() -> GuardExecutor:
    """The guards referenced by the tenancy, obligation and notice workflows."""
    guards = GuardExecutor()
    guards.register("remedy_deadline_passed", lambda ctx: _on_or_after(ctx, "remedy_deadline"))
    guards.register("termination_date_reached", lambda ctx: _on_or_after(ctx, "termination_date"))
    guards.register("obligation_unsettled", _nothing_confirmed)
    return guards


class WorkflowExecutor:

    def __init__(self, guard_executor: GuardExecutor | None = None) -> None:
        self._guards = guard_executor or default_guard_executor()

    def execute_transition(
        self,
        workflow: Workflow,
        entity_type: str,
        entity_id: UUID | str,
        current_state: str,
        action: str,
        context: Mapping[str, Any] | None = None,
    ) -> TransitionResult:
        started = time.monotonic()
        transition = workflow.find_transition(current_state, action)

        if transition is None:
            result = TransitionResult(
                success=False,
                outcome=OUTCOME_NO_TRANSITION,
                reason=(
                    f"No transition from '{current_state}' via action '{action}' "
                    f"in workflow '{workflow.name}'"
                ),
            )
        elif transition.guard is not None and not self._guards.evaluate(
            transition.guard, context or {},
        ):
            result = TransitionResult(
                success=False,
                outcome=OUTCOME_GUARD_FAILED,
                reason=f"Guard not satisfied: {transition.guard.name}",
                guard_name=transition.guard.name,
            )
        else:
            result = TransitionResult(
                success=True,
                outcome=OUTCOME_SUCCESS,
                reason="Transition allowed",
                new_state=transition.to_state,
                settles=transition.settles,
            )

        trace: dict[str, Any] = {
            "workflow": workflow.name,
            "action": action,
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "from_state": current_state,
            "outcome": result.outcome,
            "reason": result.reason,
            "duration_ms": round((time.monotonic() - started) * 1000, 3),
        }
        if result.new_state is not None:
            trace["to_state"] = result.new_state
        logger.info("workflow_transition", extra=trace)
        return result
