"""
Notice Service (``lodger_modules.tenancy.notice_service``).

Responsibility
--------------
Drives the notice state machines (termination, breach remedy/escalation,
extension offers) and the tenancy status they control.  Transitions that
set an effective termination date run the settlement in the same unit of
work: notice row, tenancy status, settlement insert and future-obligation
prune commit together or not at all.

Invariants enforced
-------------------
* At most one active breach notice and one pending extension offer per
  tenancy.
* Breach escalation only on or after the remedy deadline, and only once.
* Extension rent never exceeds the annual cap; offers over it are
  rejected with the maximum permissible rent, never clamped.
* Notices are never deleted; later transitions append dated audit lines.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from lodger_config import get_active_config
from lodger_config.schema import LodgerPolicy
from lodger_kernel.db.engine import unit_of_work
from lodger_kernel.db.types import round_money
from lodger_kernel.domain.clock import Clock, SystemClock
from lodger_kernel.exceptions import (
    ActiveBreachNoticeExistsError,
    EscalationTooEarlyError,
    InvalidAmountError,
    InvalidExtensionResponseError,
    InvalidTenancyTermsError,
    NoticeTypeMismatchError,
    PendingExtensionExistsError,
    RentIncreaseCapExceededError,
    TerminationNotDueError,
)
from lodger_kernel.logging_config import LogContext, get_logger
from lodger_modules.tenancy.calculations import (
    exceeds_rent_cap,
    extension_dates,
    max_allowed_rent,
    rent_increase_percent,
)
from lodger_modules.tenancy.helpers import (
    append_audit,
    audit_line,
    breach_text,
    extension_offer_text,
    format_date,
    reason_text,
)
from lodger_modules.tenancy.ledger import OBLIGATION_CONFLICT_MARKERS, TenancyLedger
from lodger_modules.tenancy.models import (
    BreachStage,
    ExtensionStatus,
    Notice,
    NoticeOutcome,
    NoticeStatus,
    NoticeType,
    Tenancy,
)
from lodger_modules.tenancy.orm import NoticeModel, TenancyModel
from lodger_modules.tenancy.service import (
    apply_tenancy_status,
    money_amount,
    require_transition,
)
from lodger_modules.tenancy.workflows import (
    BREACH_NOTICE_WORKFLOW,
    EXTENSION_OFFER_WORKFLOW,
    NOTICE_RECORD_WORKFLOW,
    TENANCY_LIFECYCLE_WORKFLOW,
)
from lodger_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.tenancy.notice_service")

_RESPONSES = {
    "accept": "accept",
    "accepted": "accept",
    "reject": "reject",
    "rejected": "reject",
}


class NoticeService:
    """
    Termination notices, breach notices and extension offers.

    Contract
    --------
    * ``give_notice`` and ``escalate_breach`` return ``NoticeOutcome`` with
      the settlement they produced (None when nothing was left to settle).
    * Every other operation returns the updated ``Notice`` (or ``Tenancy``).

    Guarantees
    ----------
    * The tenancy row is locked for the whole unit of work and its version
      column is bumped, so two settlements for one tenancy cannot both
      commit.
    * Deadlines are calendar dates read from the injected clock.

    Non-goals
    ---------
    * Does NOT deliver notices or render documents.
    * Does NOT authorise the caller; inputs are assumed authorised.
    """

    def __init__(
        self,
        session: Session,
        policy: LodgerPolicy | None = None,
        clock: Clock | None = None,
        workflow_executor: WorkflowExecutor | None = None,
    ):
        self._session = session
        self._policy = policy or get_active_config()
        self._clock = clock or SystemClock()
        self._workflows = workflow_executor or WorkflowExecutor()
        self._ledger = TenancyLedger(session, self._policy)

    # =========================================================================
    # Termination notice
    # =========================================================================

    def give_notice(
        self,
        tenancy_id: UUID,
        notice_period_days: int,
        reason: str,
        given_by: UUID,
        sub_reason: str | None = None,
        additional_notes: str | None = None,
    ) -> NoticeOutcome:
        """
        Give notice to end the tenancy.

        Zero days terminates immediately and closes every other open notice
        (a pending extension offer lapses); otherwise the tenancy moves to
        ``notice_given`` with the termination date ``notice_period_days``
        from today.  Either way the settlement runs against that date.
        """
        with LogContext.bind(tenancy_id=tenancy_id, actor_id=given_by):
            with unit_of_work(self._session, "tenancy", tenancy_id, OBLIGATION_CONFLICT_MARKERS):
                if notice_period_days < 0:
                    raise InvalidTenancyTermsError(
                        "notice_period_days", notice_period_days, "cannot be negative"
                    )
                tenancy = self._ledger.tenancy(tenancy_id)
                action = "terminate_immediately" if notice_period_days == 0 else "give_notice"
                result = require_transition(
                    self._workflows, TENANCY_LIFECYCLE_WORKFLOW,
                    "tenancy", tenancy_id, tenancy.status, action,
                )

                today = self._clock.today()
                termination_date = today + timedelta(days=notice_period_days)
                notice = NoticeModel(
                    tenancy_id=tenancy.id,
                    notice_type=NoticeType.TERMINATION.value,
                    given_by=given_by,
                    given_to=self._other_party(tenancy, given_by),
                    notice_date=today,
                    effective_date=termination_date,
                    reason=reason_text(reason, sub_reason, additional_notes),
                    status=NoticeStatus.ACTIVE.value,
                    notice_period_days=notice_period_days,
                    created_by_id=given_by,
                )
                self._session.add(notice)
                self._session.flush()
                if notice_period_days == 0:
                    self._close_open_notices(tenancy, today, given_by)

                settlement = None
                if result.settles:
                    settlement = self._ledger.settle(tenancy, termination_date, given_by)
                apply_tenancy_status(tenancy, result.new_state, given_by)
                self._session.flush()

                logger.info(
                    "notice_given",
                    extra={
                        "notice_id": str(notice.id),
                        "notice_period_days": notice_period_days,
                        "termination_date": termination_date,
                        "tenancy_status": tenancy.status,
                        "settlement_amount": str(settlement.amount) if settlement else None,
                        "settlement_kind": settlement.kind.value if settlement else None,
                    },
                )
            return NoticeOutcome(
                notice=notice.to_dto(), tenancy=tenancy.to_dto(), settlement=settlement,
            )

    def complete_termination(self, tenancy_id: UUID, actor_id: UUID) -> Tenancy:
        """notice_given -> terminated once the termination date has arrived."""
        with LogContext.bind(tenancy_id=tenancy_id, actor_id=actor_id):
            with unit_of_work(self._session, "tenancy", tenancy_id):
                tenancy = self._ledger.tenancy(tenancy_id)
                today = self._clock.today()
                result = require_transition(
                    self._workflows, TENANCY_LIFECYCLE_WORKFLOW,
                    "tenancy", tenancy_id, tenancy.status, "complete_termination",
                    context={"today": today, "termination_date": tenancy.termination_date},
                )
                if not result.success:
                    raise TerminationNotDueError(tenancy_id, tenancy.termination_date, today)

                closed = self._close_open_notices(tenancy, today, actor_id)
                apply_tenancy_status(tenancy, result.new_state, actor_id)
                self._session.flush()

                logger.info(
                    "tenancy_terminated",
                    extra={
                        "termination_date": tenancy.termination_date,
                        "completed_notices": closed,
                    },
                )
            return tenancy.to_dto()

    # =========================================================================
    # Breach notice
    # =========================================================================

    def issue_breach_notice(
        self,
        tenancy_id: UUID,
        breach_type: str,
        description: str,
        given_by: UUID,
        additional_notes: str | None = None,
    ) -> Notice:
        """Open a breach notice in its remedy period."""
        with LogContext.bind(tenancy_id=tenancy_id, actor_id=given_by):
            with unit_of_work(self._session, "tenancy", tenancy_id):
                tenancy = self._ledger.tenancy(tenancy_id)
                require_transition(
                    self._workflows, TENANCY_LIFECYCLE_WORKFLOW,
                    "tenancy", tenancy_id, tenancy.status, "issue_breach_notice",
                )
                existing = self._open_notice(tenancy.id, NoticeType.BREACH)
                if existing is not None:
                    raise ActiveBreachNoticeExistsError(tenancy_id, existing.id)

                today = self._clock.today()
                remedy_deadline = today + timedelta(days=self._policy.breach_remedy_days)
                notice = NoticeModel(
                    tenancy_id=tenancy.id,
                    notice_type=NoticeType.BREACH.value,
                    given_by=given_by,
                    given_to=self._other_party(tenancy, given_by),
                    notice_date=today,
                    effective_date=remedy_deadline,
                    reason=breach_text(breach_type, description, additional_notes),
                    status=NoticeStatus.ACTIVE.value,
                    breach_type=breach_type,
                    breach_stage=BREACH_NOTICE_WORKFLOW.initial_state,
                    remedy_deadline=remedy_deadline,
                    created_by_id=given_by,
                )
                self._session.add(notice)
                self._session.flush()

                logger.info(
                    "breach_notice_issued",
                    extra={
                        "notice_id": str(notice.id),
                        "breach_type": breach_type,
                        "remedy_deadline": remedy_deadline,
                    },
                )
            return notice.to_dto()

    def mark_remedied(
        self,
        notice_id: UUID,
        actor_id: UUID,
        remedy_notes: str | None = None,
    ) -> Notice:
        """Close a breach notice as remedied. The tenancy is untouched."""
        with LogContext.bind(notice_id=notice_id, actor_id=actor_id):
            with unit_of_work(self._session, "notice", notice_id):
                notice = self._ledger.notice(notice_id)
                self._require_type(notice, NoticeType.BREACH)
                result = require_transition(
                    self._workflows, BREACH_NOTICE_WORKFLOW,
                    "breach_notice", notice_id, notice.breach_stage, "remedy",
                )
                notice.breach_stage = result.new_state
                self._complete_notice(notice)
                notice.reason = append_audit(
                    notice.reason, audit_line("REMEDIED", self._clock.today(), remedy_notes)
                )
                notice.updated_by_id = actor_id
                self._session.flush()
                logger.info("breach_remedied", extra={"breach_type": notice.breach_type})
            return notice.to_dto()

    def escalate_breach(
        self,
        notice_id: UUID,
        actor_id: UUID,
        escalation_notes: str | None = None,
    ) -> NoticeOutcome:
        """
        Escalate an unremedied breach to termination.

        Only legal once the remedy deadline has been reached.  Sets a new
        termination deadline, moves the tenancy to ``notice_given`` and
        settles against that deadline.
        """
        with LogContext.bind(notice_id=notice_id, actor_id=actor_id):
            notice = self._ledger.notice(notice_id, for_update=False)
            tenancy_id = notice.tenancy_id
            with unit_of_work(self._session, "tenancy", tenancy_id, OBLIGATION_CONFLICT_MARKERS):
                tenancy = self._ledger.tenancy(tenancy_id)
                notice = self._ledger.notice(notice_id)
                self._require_type(notice, NoticeType.BREACH)

                today = self._clock.today()
                breach = require_transition(
                    self._workflows, BREACH_NOTICE_WORKFLOW,
                    "breach_notice", notice_id, notice.breach_stage, "escalate",
                    context={"today": today, "remedy_deadline": notice.remedy_deadline},
                )
                if not breach.success:
                    raise EscalationTooEarlyError(notice_id, notice.remedy_deadline, today)
                lifecycle = require_transition(
                    self._workflows, TENANCY_LIFECYCLE_WORKFLOW,
                    "tenancy", tenancy_id, tenancy.status, "escalate_breach",
                )

                termination_deadline = today + timedelta(days=self._policy.breach_termination_days)
                notice.breach_stage = breach.new_state
                notice.termination_deadline = termination_deadline
                notice.effective_date = termination_deadline
                notice.reason = append_audit(
                    notice.reason,
                    audit_line(
                        "ESCALATED",
                        today,
                        f"Remedy period expired. Tenancy terminates on "
                        f"{format_date(termination_deadline)}."
                        + (f" {escalation_notes}" if escalation_notes else ""),
                    ),
                )
                notice.updated_by_id = actor_id

                settlement = None
                if lifecycle.settles:
                    settlement = self._ledger.settle(tenancy, termination_deadline, actor_id)
                apply_tenancy_status(tenancy, lifecycle.new_state, actor_id)
                self._session.flush()

                logger.info(
                    "breach_escalated",
                    extra={
                        "termination_deadline": termination_deadline,
                        "settlement_amount": str(settlement.amount) if settlement else None,
                        "settlement_kind": settlement.kind.value if settlement else None,
                    },
                )
            return NoticeOutcome(
                notice=notice.to_dto(), tenancy=tenancy.to_dto(), settlement=settlement,
            )

    # =========================================================================
    # Extension offer
    # =========================================================================

    def offer_extension(
        self,
        tenancy_id: UUID,
        months: int,
        given_by: UUID,
        new_rent: Decimal | None = None,
        notes: str | None = None,
    ) -> Notice:
        """Offer to extend the tenancy by ``months``, optionally at a new rent."""
        with LogContext.bind(tenancy_id=tenancy_id, actor_id=given_by):
            with unit_of_work(self._session, "tenancy", tenancy_id):
                if months < 1:
                    raise InvalidTenancyTermsError("months", months, "must be at least 1")
                tenancy = self._ledger.tenancy(tenancy_id)
                require_transition(
                    self._workflows, TENANCY_LIFECYCLE_WORKFLOW,
                    "tenancy", tenancy_id, tenancy.status, "offer_extension",
                )
                existing = self._open_notice(tenancy.id, NoticeType.EXTENSION_OFFER)
                if existing is not None:
                    raise PendingExtensionExistsError(tenancy_id, existing.id)

                current_rent = tenancy.monthly_rent
                proposed_rent = (
                    money_amount("new_rent", new_rent) if new_rent is not None else current_rent
                )
                if proposed_rent <= 0:
                    raise InvalidAmountError("new_rent", proposed_rent, "rent must be positive")
                cap = self._policy.max_annual_rent_increase_percent
                if exceeds_rent_cap(current_rent, proposed_rent, cap):
                    logger.info(
                        "extension_rent_cap_exceeded",
                        extra={
                            "current_rent": str(current_rent),
                            "proposed_rent": str(proposed_rent),
                        },
                    )
                    raise RentIncreaseCapExceededError(
                        current_rent=round_money(current_rent),
                        proposed_rent=proposed_rent,
                        max_allowed_rent=round_money(max_allowed_rent(current_rent, cap)),
                        increase_percent=round_money(rent_increase_percent(current_rent, proposed_rent)),
                        max_increase_percent=cap,
                    )

                today = self._clock.today()
                current_end, new_end = extension_dates(
                    tenancy.start_date, tenancy.end_date, tenancy.initial_term_months, months, today,
                )
                notice = NoticeModel(
                    tenancy_id=tenancy.id,
                    notice_type=NoticeType.EXTENSION_OFFER.value,
                    given_by=given_by,
                    given_to=self._other_party(tenancy, given_by),
                    notice_date=today,
                    effective_date=new_end,
                    reason=extension_offer_text(
                        months, current_end, new_end, current_rent, proposed_rent,
                        self._policy.currency, notes,
                    ),
                    status=NoticeStatus.ACTIVE.value,
                    extension_months=months,
                    extension_status=EXTENSION_OFFER_WORKFLOW.initial_state,
                    proposed_rent=proposed_rent,
                    created_by_id=given_by,
                )
                self._session.add(notice)
                self._session.flush()

                logger.info(
                    "extension_offered",
                    extra={
                        "notice_id": str(notice.id),
                        "months": months,
                        "current_end": current_end,
                        "new_end": new_end,
                        "proposed_rent": str(proposed_rent),
                    },
                )
            return notice.to_dto()

    def respond_to_extension(
        self,
        notice_id: UUID,
        response: str,
        actor_id: UUID,
        notes: str | None = None,
    ) -> Notice:
        """
        Accept or reject a pending extension offer.

        Acceptance moves the tenancy end date, applies the offered rent,
        sets the tenancy to ``extended`` and appends the missing schedule
        tail, all in one unit of work.  Unpaid rent already scheduled on or
        after the new end is removed, and unpaid rent falling due inside the
        extension is re-priced at the offered rent.
        """
        action = _RESPONSES.get(str(response).strip().lower())
        if action is None:
            raise InvalidExtensionResponseError(str(response))

        with LogContext.bind(notice_id=notice_id, actor_id=actor_id):
            notice = self._ledger.notice(notice_id, for_update=False)
            tenancy_id = notice.tenancy_id
            with unit_of_work(self._session, "tenancy", tenancy_id, OBLIGATION_CONFLICT_MARKERS):
                tenancy = self._ledger.tenancy(tenancy_id)
                notice = self._ledger.notice(notice_id)
                self._require_type(notice, NoticeType.EXTENSION_OFFER)
                result = require_transition(
                    self._workflows, EXTENSION_OFFER_WORKFLOW,
                    "extension_offer", notice_id, notice.extension_status, action,
                )

                appended = pruned = repriced = 0
                if action == "accept":
                    lifecycle = require_transition(
                        self._workflows, TENANCY_LIFECYCLE_WORKFLOW,
                        "tenancy", tenancy_id, tenancy.status, "accept_extension",
                    )
                    current_end, _ = extension_dates(
                        tenancy.start_date, tenancy.end_date, tenancy.initial_term_months,
                        notice.extension_months, notice.notice_date,
                    )
                    new_rent = notice.proposed_rent
                    if new_rent is None:
                        new_rent = tenancy.monthly_rent
                    # a rolling schedule may already run past the new end at the old rent
                    pruned = self._ledger.prune_rent_from(tenancy.id, notice.effective_date)
                    repriced = self._ledger.reprice_from(tenancy, current_end, new_rent)
                    tenancy.end_date = notice.effective_date
                    tenancy.monthly_rent = new_rent
                    apply_tenancy_status(tenancy, lifecycle.new_state, actor_id)
                    appended = len(self._ledger.extend(tenancy, self._clock.today(), actor_id))

                notice.extension_status = result.new_state
                self._complete_notice(notice)
                notice.reason = append_audit(
                    notice.reason,
                    audit_line(
                        "ACCEPTED" if action == "accept" else "REJECTED",
                        self._clock.today(),
                        notes,
                    ),
                )
                notice.updated_by_id = actor_id
                self._session.flush()

                logger.info(
                    "extension_responded",
                    extra={
                        "response": result.new_state,
                        "new_end": notice.effective_date,
                        "appended_count": appended,
                        "pruned_count": pruned,
                        "repriced_count": repriced,
                    },
                )
            return notice.to_dto()

    # =========================================================================
    # Read side
    # =========================================================================

    def list_notices(self, tenancy_id: UUID) -> list[Notice]:
        """All notices for a tenancy, newest first."""
        self._ledger.tenancy(tenancy_id, for_update=False)
        stmt = (
            select(NoticeModel)
            .where(NoticeModel.tenancy_id == tenancy_id)
            .order_by(NoticeModel.notice_date.desc(), NoticeModel.created_at.desc())
        )
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Internals
    # =========================================================================

    def _open_notice(self, tenancy_id: UUID, notice_type: NoticeType) -> NoticeModel | None:
        return self._session.execute(
            select(NoticeModel)
            .where(NoticeModel.tenancy_id == tenancy_id)
            .where(NoticeModel.notice_type == notice_type.value)
            .where(NoticeModel.status == NoticeStatus.ACTIVE.value)
            .limit(1)
        ).scalar_one_or_none()

    def _complete_notice(self, notice: NoticeModel) -> None:
        result = require_transition(
            self._workflows, NOTICE_RECORD_WORKFLOW,
            "notice", notice.id, notice.status, "complete",
        )
        notice.status = result.new_state

    def _close_open_notices(self, tenancy: TenancyModel, today: date, actor_id: UUID) -> int:
        """Complete every open notice of a tenancy that is ending; pending offers lapse."""
        open_notices = self._session.execute(
            select(NoticeModel)
            .where(NoticeModel.tenancy_id == tenancy.id)
            .where(NoticeModel.status == NoticeStatus.ACTIVE.value)
        ).scalars().all()
        for notice in open_notices:
            if notice.notice_type == NoticeType.EXTENSION_OFFER.value:
                result = require_transition(
                    self._workflows, EXTENSION_OFFER_WORKFLOW,
                    "extension_offer", notice.id, notice.extension_status, "lapse",
                )
                notice.extension_status = result.new_state
                notice.reason = append_audit(
                    notice.reason, audit_line("LAPSED", today, "Tenancy terminated")
                )
                notice.updated_by_id = actor_id
            self._complete_notice(notice)
        return len(open_notices)

    @staticmethod
    def _require_type(notice: NoticeModel, expected: NoticeType) -> None:
        if notice.notice_type != expected.value:
            raise NoticeTypeMismatchError(notice.id, expected.value, notice.notice_type)

    @staticmethod
    def _other_party(tenancy: TenancyModel, given_by: UUID) -> UUID:
        if given_by == tenancy.lodger_id:
            return tenancy.landlord_id
        return tenancy.lodger_id
