"""Tenancy Workflows.

One explicit transition table per state machine: the tenancy lifecycle,
the payment obligation ledger, breach notices, extension offers and the
notice record itself.  Services consult these tables through the
WorkflowExecutor before changing any status field.
"""

from lodger_kernel.domain.workflow import Guard, Transition, Workflow
from lodger_kernel.logging_config import get_logger

logger = get_logger("modules.tenancy.workflows")


REMEDY_DEADLINE_PASSED = Guard(
    "remedy_deadline_passed", "The breach remedy deadline has been reached"
)
TERMINATION_DATE_REACHED = Guard(
    "termination_date_reached", "The notice period has been served"
)
OBLIGATION_UNSETTLED = Guard(
    "obligation_unsettled", "No payment has been confirmed against the obligation"
)


TENANCY_LIFECYCLE_WORKFLOW = Workflow(
    name="tenancy_lifecycle",
    description="Lodger tenancy lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "active",
        "notice_given",
        "terminated",
        "extended",
    ),
    transitions=(
        Transition("draft", "active", action="activate"),
        Transition("active", "notice_given", action="give_notice", settles=True),
        Transition("extended", "notice_given", action="give_notice", settles=True),
        Transition("active", "terminated", action="terminate_immediately", settles=True),
        Transition("extended", "terminated", action="terminate_immediately", settles=True),
        Transition("notice_given", "terminated", action="terminate_immediately", settles=True),
        Transition("active", "extended", action="accept_extension"),
        Transition("extended", "extended", action="accept_extension"),
        Transition("active", "notice_given", action="escalate_breach", settles=True),
        Transition("extended", "notice_given", action="escalate_breach", settles=True),
        Transition("notice_given", "notice_given", action="escalate_breach", settles=True),
        Transition("active", "active", action="extend_schedule"),
        Transition("extended", "extended", action="extend_schedule"),
        Transition("active", "active", action="issue_breach_notice"),
        Transition("extended", "extended", action="issue_breach_notice"),
        Transition("notice_given", "notice_given", action="issue_breach_notice"),
        Transition("active", "active", action="offer_extension"),
        Transition("extended", "extended", action="offer_extension"),
        Transition(
            "notice_given", "terminated",
            action="complete_termination", guard=TERMINATION_DATE_REACHED,
        ),
    ),
    terminal_states=("terminated",),
)


# Confirmation lands on paid, partial or pending depending on the amount;
# the service picks the matching action.
OBLIGATION_WORKFLOW = Workflow(
    name="payment_obligation",
    description="Submit/confirm lifecycle of one rent obligation",
    initial_state="pending",
    states=("pending", "submitted", "paid", "partial", "waived"),
    transitions=(
        Transition("pending", "submitted", action="submit"),
        Transition("submitted", "submitted", action="submit"),
        Transition("partial", "submitted", action="submit"),
        *(
            Transition(state, target, action=action)
            for state in ("pending", "submitted", "paid", "partial")
            for action, target in (
                ("confirm", "paid"),
                ("confirm_partial", "partial"),
                ("confirm_nil", "pending"),
            )
        ),
        Transition("pending", "waived", action="waive", guard=OBLIGATION_UNSETTLED),
        Transition("submitted", "waived", action="waive", guard=OBLIGATION_UNSETTLED),
        Transition("pending", "pending", action="remind"),
        Transition("submitted", "submitted", action="remind"),
        Transition("partial", "partial", action="remind"),
    ),
    terminal_states=("waived",),
)


BREACH_NOTICE_WORKFLOW = Workflow(
    name="breach_notice",
    description="Breach notice: remedy period, then remedied or escalated",
    initial_state="remedy_period",
    states=("remedy_period", "termination_period", "remedied"),
    transitions=(
        Transition("remedy_period", "remedied", action="remedy"),
        Transition(
            "remedy_period", "termination_period",
            action="escalate", guard=REMEDY_DEADLINE_PASSED, settles=True,
        ),
    ),
    terminal_states=("termination_period", "remedied"),
)


EXTENSION_OFFER_WORKFLOW = Workflow(
    name="extension_offer",
    description="Landlord offer to extend the tenancy",
    initial_state="pending",
    states=("pending", "accepted", "rejected"),
    transitions=(
        Transition("pending", "accepted", action="accept"),
        Transition("pending", "rejected", action="reject"),
        Transition("pending", "rejected", action="lapse"),
    ),
    terminal_states=("accepted", "rejected"),
)


NOTICE_RECORD_WORKFLOW = Workflow(
    name="notice_record",
    description="Open/closed state of any notice",
    initial_state="active",
    states=("active", "completed"),
    transitions=(Transition("active", "completed", action="complete"),),
    terminal_states=("completed",),
)


TENANCY_WORKFLOWS = (
    TENANCY_LIFECYCLE_WORKFLOW,
    OBLIGATION_WORKFLOW,
    BREACH_NOTICE_WORKFLOW,
    EXTENSION_OFFER_WORKFLOW,
    NOTICE_RECORD_WORKFLOW,
)

for _wf in TENANCY_WORKFLOWS:
    logger.info(
        "tenancy_workflow_registered",
        extra={
            "workflow_name": _wf.name,
            "state_count": len(_wf.states),
            "transition_count": len(_wf.transitions),
        },
    )
