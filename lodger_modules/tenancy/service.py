"""
Tenancy Module Service (``lodger_modules.tenancy.service``).

Responsibility
--------------
Orchestrates tenancy creation and activation, schedule generation and
extension, the two-step submit/confirm payment ledger and deductions from
the deposit or advance rent, delegating date and money arithmetic to
``calculations`` and row access to ``TenancyLedger``.

Architecture position
---------------------
**Modules layer**.  ``TenancyService`` is the public entry point for
schedule and ledger operations; ``NoticeService`` (``notice_service.py``)
owns notices and settlement.

Invariants enforced
-------------------
* Each public mutating method owns the transaction boundary
  (``commit`` on success, ``rollback`` on any exception).
* Status fields change only through the declared workflows.
* ``balance = rent_paid - rent_due`` is never stored.
* All monetary values use ``Decimal`` -- NEVER ``float``.

Failure modes
-------------
* ``NotFoundError`` subclasses for missing tenancy/obligation rows.
* ``InvalidTransitionError`` for actions not legal in the current state.
* ``ValidationFailureError`` subclasses for bad amounts or terms.
* ``ConcurrencyConflictError`` when a concurrent unit of work won the race.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from lodger_config import get_active_config
from lodger_config.schema import LodgerPolicy
from lodger_kernel.db.engine import unit_of_work
from lodger_kernel.db.types import to_decimal
from lodger_kernel.domain.clock import Clock, SystemClock
from lodger_kernel.domain.workflow import Workflow
from lodger_kernel.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    InvalidTenancyTermsError,
    InvalidTransitionError,
)
from lodger_kernel.logging_config import LogContext, get_logger
from lodger_modules.tenancy.calculations import (
    build_ledger,
    confirmed_status,
    effective_status,
    income_in_period,
    outstanding_balance,
    rent_a_room_position,
    tax_year_label,
    uk_tax_year_bounds,
)
from lodger_modules.tenancy.helpers import append_audit, audit_line, format_date, format_money
from lodger_modules.tenancy.ledger import OBLIGATION_CONFLICT_MARKERS, TenancyLedger
from lodger_modules.tenancy.models import (
    AvailableFunds,
    Deduction,
    DeductionSource,
    LedgerLine,
    ObligationKind,
    ObligationStatus,
    PaymentFrequency,
    PaymentObligation,
    PaymentSummary,
    PaymentType,
    Reminder,
    ReminderType,
    TaxYearIncome,
    Tenancy,
    TenancyStatus,
)
from lodger_modules.tenancy.orm import (
    DeductionModel,
    PaymentObligationModel,
    ReminderModel,
    TenancyModel,
)
from lodger_modules.tenancy.workflows import (
    OBLIGATION_WORKFLOW,
    TENANCY_LIFECYCLE_WORKFLOW,
)
from lodger_services.workflow_executor import (
    OUTCOME_NO_TRANSITION,
    TransitionResult,
    WorkflowExecutor,
)

logger = get_logger("modules.tenancy.service")

_CONFIRM_ACTIONS = {
    ObligationStatus.PAID: "confirm",
    ObligationStatus.PARTIAL: "confirm_partial",
    ObligationStatus.PENDING: "confirm_nil",
}


def require_transition(
    executor: WorkflowExecutor,
    workflow: Workflow,
    entity_type: str,
    entity_id: Any,
    current_state: str,
    action: str,
    context: dict[str, Any] | None = None,
) -> TransitionResult:
    """
    Run the transition check, raising when no transition exists.

    Guard failures are returned (``success`` False) so the caller can raise
    the error that names the unmet condition.
    """
    result = executor.execute_transition(
        workflow=workflow,
        entity_type=entity_type,
        entity_id=entity_id,
        current_state=current_state,
        action=action,
        context=context,
    )
    if not result.success and result.outcome == OUTCOME_NO_TRANSITION:
        raise InvalidTransitionError(entity_type, entity_id, current_state, action)
    return result


def money_amount(field: str, value: Any) -> Decimal:
    """Coerce a caller-supplied amount; junk input raises InvalidAmountError."""
    try:
        return to_decimal(value)
    except (TypeError, ValueError) as exc:
        raise InvalidAmountError(field, value, str(exc)) from exc


def apply_tenancy_status(tenancy: TenancyModel, new_state: str, actor_id: UUID) -> None:
    """Set the tenancy status and force a version bump even on a self-transition."""
    tenancy.status = new_state
    tenancy.updated_by_id = actor_id
    flag_modified(tenancy, "status")


class TenancyService:
    """
    Schedule generation and payment ledger for lodger tenancies.

    Contract
    --------
    * Mutating methods return frozen DTOs from ``models.py``.
    * Read methods never write and never commit.

    Guarantees
    ----------
    * Obligation payment numbers start at 1 and are unique per tenancy.
    * Submit never touches ``rent_paid``; confirm recomputes status from
      the confirmed amount.
    * Overdue is derived on read from the injected clock.

    Non-goals
    ---------
    * Does NOT give notices (``NoticeService``); it only re-runs an existing
      settlement when a deduction reduces the advance credit.
    * Does NOT deliver reminders; it records them for an external sender.
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
    # Tenancy creation and schedule
    # =========================================================================

    def create_tenancy(
        self,
        landlord_id: UUID,
        lodger_id: UUID,
        start_date: date,
        monthly_rent: Decimal,
        actor_id: UUID,
        payment_frequency: str = "4-weekly",
        payment_type: str = "cycle",
        payment_day_of_month: int | None = None,
        end_date: date | None = None,
        initial_term_months: int | None = None,
        activate: bool = True,
        deposit_amount: Decimal = Decimal("0"),
    ) -> Tenancy:
        """Create a tenancy in draft, activating it (and its schedule) by default."""
        tenancy_id = uuid4()
        with LogContext.bind(tenancy_id=tenancy_id, actor_id=actor_id):
            with unit_of_work(self._session, "tenancy", tenancy_id, OBLIGATION_CONFLICT_MARKERS):
                dto = Tenancy(
                    id=tenancy_id,
                    landlord_id=landlord_id,
                    lodger_id=lodger_id,
                    start_date=start_date,
                    end_date=end_date,
                    initial_term_months=initial_term_months,
                    monthly_rent=self._validated_rent(monthly_rent),
                    payment_frequency=self._validated_frequency(payment_frequency),
                    payment_type=self._validated_payment_type(payment_type),
                    payment_day_of_month=payment_day_of_month,
                    status=TenancyStatus.DRAFT,
                    deposit_amount=self._validated_deposit(deposit_amount),
                )
                self._validate_terms(dto)
                model = TenancyModel.from_dto(dto, created_by_id=actor_id)
                self._session.add(model)
                self._session.flush()

                logger.info(
                    "tenancy_created",
                    extra={
                        "landlord_id": str(landlord_id),
                        "lodger_id": str(lodger_id),
                        "start_date": start_date,
                        "monthly_rent": str(dto.monthly_rent),
                        "payment_frequency": dto.payment_frequency.value,
                        "payment_type": dto.payment_type.value,
                        "deposit_amount": str(dto.deposit_amount),
                    },
                )
                if activate:
                    self._activate(model, actor_id)
            return model.to_dto()

    def activate_tenancy(self, tenancy_id: UUID, actor_id: UUID) -> list[PaymentObligation]:
        """draft -> active, recording the advance credit and generating the schedule."""
        with LogContext.bind(tenancy_id=tenancy_id, actor_id=actor_id):
            with unit_of_work(self._session, "tenancy", tenancy_id, OBLIGATION_CONFLICT_MARKERS):
                tenancy = self._ledger.tenancy(tenancy_id)
                models = self._activate(tenancy, actor_id)
            return [m.to_dto() for m in models]

    def extend_schedule(
        self,
        tenancy_id: UUID,
        actor_id: UUID,
        new_end_date: date | None = None,
    ) -> list[PaymentObligation]:
        """
        Append the missing tail of the schedule.

        A later ``new_end_date`` moves the tenancy end date forward; an
        earlier one is rejected.  Returns only the appended obligations.
        """
        with LogContext.bind(tenancy_id=tenancy_id, actor_id=actor_id):
            with unit_of_work(self._session, "tenancy", tenancy_id, OBLIGATION_CONFLICT_MARKERS):
                tenancy = self._ledger.tenancy(tenancy_id)
                result = require_transition(
                    self._workflows, TENANCY_LIFECYCLE_WORKFLOW,
                    "tenancy", tenancy_id, tenancy.status, "extend_schedule",
                )
                if new_end_date is not None:
                    if tenancy.end_date is not None and new_end_date < tenancy.end_date:
                        raise InvalidTenancyTermsError(
                            "new_end_date",
                            new_end_date,
                            f"earlier than current end date {tenancy.end_date.isoformat()}",
                        )
                    tenancy.end_date = new_end_date
                apply_tenancy_status(tenancy, result.new_state, actor_id)
                models = self._ledger.extend(tenancy, self._clock.today(), actor_id)
            return [m.to_dto() for m in models]

    # =========================================================================
    # Payment ledger
    # =========================================================================

    def submit_payment(
        self,
        obligation_id: UUID,
        amount: Decimal,
        actor_id: UUID,
        method: str | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> PaymentObligation:
        """Lodger reports a payment. Overwrites any earlier submission."""
        with LogContext.bind(obligation_id=obligation_id, actor_id=actor_id):
            with unit_of_work(self._session, "payment_obligation", obligation_id):
                value = money_amount("amount", amount)
                if value <= 0:
                    raise InvalidAmountError("amount", value, "submitted amount must be positive")

                obligation = self._ledger.obligation(obligation_id)
                result = require_transition(
                    self._workflows, OBLIGATION_WORKFLOW,
                    "payment_obligation", obligation_id, obligation.status, "submit",
                )
                obligation.submitted_amount = value
                obligation.submitted_date = self._clock.today()
                obligation.submitted_method = method
                obligation.submitted_reference = reference
                obligation.submitted_notes = notes
                obligation.status = result.new_state
                obligation.updated_by_id = actor_id
                self._session.flush()

                logger.info(
                    "payment_submitted",
                    extra={
                        "tenancy_id": str(obligation.tenancy_id),
                        "payment_number": obligation.payment_number,
                        "amount": str(value),
                        "method": method,
                    },
                )
            return obligation.to_dto()

    def confirm_payment(
        self,
        obligation_id: UUID,
        actor_id: UUID,
        amount: Decimal | None = None,
        method: str | None = None,
        reference: str | None = None,
        notes: str | None = None,
        payment_date: date | None = None,
    ) -> PaymentObligation:
        """
        Landlord records the amount actually received.

        ``amount`` defaults to the submitted amount.  Re-confirming
        overwrites the earlier confirmation.
        """
        with LogContext.bind(obligation_id=obligation_id, actor_id=actor_id):
            with unit_of_work(self._session, "payment_obligation", obligation_id):
                obligation = self._ledger.obligation(obligation_id)
                if amount is None:
                    if obligation.submitted_amount is None:
                        raise InvalidAmountError(
                            "amount", None, "no amount given and no payment was submitted"
                        )
                    value = obligation.submitted_amount
                else:
                    value = money_amount("amount", amount)
                if value < 0:
                    raise InvalidAmountError("amount", value, "confirmed amount cannot be negative")

                target = confirmed_status(value, obligation.rent_due)
                result = require_transition(
                    self._workflows, OBLIGATION_WORKFLOW,
                    "payment_obligation", obligation_id, obligation.status,
                    _CONFIRM_ACTIONS[target],
                )
                obligation.rent_paid = value
                obligation.payment_date = payment_date or self._clock.today()
                obligation.payment_method = method or obligation.submitted_method
                obligation.payment_reference = reference or obligation.submitted_reference
                if notes:
                    obligation.notes = append_audit(obligation.notes or "", notes)
                obligation.status = result.new_state
                obligation.updated_by_id = actor_id
                self._session.flush()

                dto = obligation.to_dto()
                logger.info(
                    "payment_confirmed",
                    extra={
                        "tenancy_id": str(obligation.tenancy_id),
                        "payment_number": obligation.payment_number,
                        "rent_due": str(dto.rent_due),
                        "rent_paid": str(dto.rent_paid),
                        "balance": str(dto.balance),
                        "status": dto.status.value,
                    },
                )
            return dto

    def waive_obligation(self, obligation_id: UUID, reason: str, actor_id: UUID) -> PaymentObligation:
        """Write off an obligation nothing has been paid against."""
        with LogContext.bind(obligation_id=obligation_id, actor_id=actor_id):
            with unit_of_work(self._session, "payment_obligation", obligation_id):
                obligation = self._ledger.obligation(obligation_id)
                result = require_transition(
                    self._workflows, OBLIGATION_WORKFLOW,
                    "payment_obligation", obligation_id, obligation.status, "waive",
                    context={"rent_paid": obligation.rent_paid},
                )
                if not result.success:
                    raise InvalidTransitionError(
                        "payment_obligation", obligation_id, obligation.status, "waive"
                    )
                obligation.status = result.new_state
                obligation.notes = append_audit(
                    obligation.notes or "", audit_line("WAIVED", self._clock.today(), reason)
                )
                obligation.updated_by_id = actor_id
                self._session.flush()
                logger.info(
                    "obligation_waived",
                    extra={
                        "tenancy_id": str(obligation.tenancy_id),
                        "payment_number": obligation.payment_number,
                        "rent_due": str(obligation.rent_due),
                    },
                )
            return obligation.to_dto()

    def send_payment_reminder(self, obligation_id: UUID, actor_id: UUID) -> Reminder:
        """Record a payment reminder for the lodger."""
        with LogContext.bind(obligation_id=obligation_id, actor_id=actor_id):
            with unit_of_work(self._session, "payment_obligation", obligation_id):
                obligation = self._ledger.obligation(obligation_id, for_update=False)
                require_transition(
                    self._workflows, OBLIGATION_WORKFLOW,
                    "payment_obligation", obligation_id, obligation.status, "remind",
                )
                tenancy = self._ledger.tenancy(obligation.tenancy_id, for_update=False)
                today = self._clock.today()
                overdue = effective_status(obligation.to_dto(), today) is ObligationStatus.OVERDUE
                outstanding = obligation.rent_due - obligation.rent_paid
                message = (
                    f"Reminder: payment #{obligation.payment_number} of "
                    f"{format_money(outstanding, self._policy.currency)} "
                    f"{'was' if overdue else 'is'} due on {format_date(obligation.due_date)}"
                    f"{' and is now overdue' if overdue else ''}."
                )
                reminder = ReminderModel(
                    tenancy_id=tenancy.id,
                    recipient_id=tenancy.lodger_id,
                    reminder_type=ReminderType.PAYMENT_REMINDER.value,
                    raised_on=today,
                    message=message,
                    obligation_id=obligation.id,
                    days_until=(obligation.due_date - today).days,
                    created_by_id=actor_id,
                )
                self._session.add(reminder)
                self._session.flush()
                logger.info(
                    "payment_reminder_raised",
                    extra={
                        "tenancy_id": str(tenancy.id),
                        "payment_number": obligation.payment_number,
                        "overdue": overdue,
                    },
                )
            return reminder.to_dto()

    # =========================================================================
    # Deductions
    # =========================================================================

    def record_deduction(
        self,
        tenancy_id: UUID,
        deduction_type: str,
        description: str,
        amount: Decimal,
        actor_id: UUID,
        from_deposit: Decimal = Decimal("0"),
        from_advance: Decimal = Decimal("0"),
        notes: str | None = None,
    ) -> Deduction:
        """
        Keep back part of the deposit and/or the advance rent.

        The two parts must add up to ``amount`` and neither may exceed what
        is still held.  The lodger gets a ``deduction_made`` reminder.  On a
        tenancy that already has a termination date, a deduction from the
        advance rent re-runs the settlement so it uses the reduced credit.
        """
        with LogContext.bind(tenancy_id=tenancy_id, actor_id=actor_id):
            with unit_of_work(self._session, "tenancy", tenancy_id, OBLIGATION_CONFLICT_MARKERS):
                total = money_amount("amount", amount)
                deposit_part = money_amount("from_deposit", from_deposit)
                advance_part = money_amount("from_advance", from_advance)
                if total <= 0:
                    raise InvalidAmountError("amount", total, "deduction must be positive")
                if deposit_part < 0 or advance_part < 0:
                    raise InvalidAmountError(
                        "amount", total, "deposit and advance parts cannot be negative"
                    )
                if deposit_part + advance_part != total:
                    raise InvalidAmountError(
                        "amount", total,
                        f"deposit and advance parts add up to {deposit_part + advance_part}",
                    )

                tenancy = self._ledger.tenancy(tenancy_id)
                funds = self._available_funds(tenancy)
                if deposit_part > funds.available_deposit:
                    raise InsufficientFundsError("deposit", funds.available_deposit, deposit_part)
                if advance_part > funds.available_advance:
                    raise InsufficientFundsError(
                        "advance_rent", funds.available_advance, advance_part
                    )

                deduction = DeductionModel(
                    tenancy_id=tenancy.id,
                    deduction_type=deduction_type,
                    description=description,
                    amount=total,
                    amount_from_deposit=deposit_part,
                    amount_from_advance=advance_part,
                    deducted_from=_deduction_source(deposit_part, advance_part).value,
                    notes=notes,
                    created_by_id=actor_id,
                )
                self._session.add(deduction)
                self._session.add(
                    ReminderModel(
                        tenancy_id=tenancy.id,
                        recipient_id=tenancy.lodger_id,
                        reminder_type=ReminderType.DEDUCTION_MADE.value,
                        raised_on=self._clock.today(),
                        message=(
                            f"A deduction of {format_money(total, self._policy.currency)} "
                            f"has been made for: {description}."
                        ),
                        created_by_id=actor_id,
                    )
                )
                # settlement reads the remaining advance; bump the version
                tenancy.updated_by_id = actor_id
                flag_modified(tenancy, "advance_credit")
                self._session.flush()

                resettled = None
                if advance_part > 0 and tenancy.termination_date is not None:
                    resettled = self._ledger.settle(tenancy, tenancy.termination_date, actor_id)

                logger.info(
                    "deduction_recorded",
                    extra={
                        "deduction_type": deduction_type,
                        "amount": str(total),
                        "from_deposit": str(deposit_part),
                        "from_advance": str(advance_part),
                        "resettled_amount": str(resettled.amount) if resettled else None,
                    },
                )
            return deduction.to_dto()

    def list_deductions(self, tenancy_id: UUID) -> list[Deduction]:
        """All deductions for a tenancy, newest first."""
        self._ledger.tenancy(tenancy_id, for_update=False)
        return [m.to_dto() for m in self._ledger.deductions(tenancy_id)]

    def get_available_funds(self, tenancy_id: UUID) -> AvailableFunds:
        """Deposit and advance rent still held after deductions."""
        return self._available_funds(self._ledger.tenancy(tenancy_id, for_update=False))

    # =========================================================================
    # Read side
    # =========================================================================

    def get_tenancy(self, tenancy_id: UUID) -> Tenancy:
        return self._ledger.tenancy(tenancy_id, for_update=False).to_dto()

    def get_schedule(self, tenancy_id: UUID) -> list[LedgerLine]:
        """Ordered ledger with derived status, running balance and effective amounts."""
        self._ledger.tenancy(tenancy_id, for_update=False)
        obligations = [m.to_dto() for m in self._ledger.obligations(tenancy_id)]
        return build_ledger(obligations, self._clock.today())

    def get_outstanding_balance(self, tenancy_id: UUID, as_of: date | None = None) -> Decimal:
        """Positive = owed by the lodger, negative = credit in the lodger's favour."""
        self._ledger.tenancy(tenancy_id, for_update=False)
        obligations = [m.to_dto() for m in self._ledger.obligations(tenancy_id)]
        return outstanding_balance(obligations, as_of or self._clock.today())

    def get_payment_summary(self, tenancy_id: UUID) -> PaymentSummary:
        self._ledger.tenancy(tenancy_id, for_update=False)
        today = self._clock.today()
        obligations = [m.to_dto() for m in self._ledger.obligations(tenancy_id)]

        counts = {status: 0 for status in ObligationStatus}
        total_due = Decimal("0")
        total_paid = Decimal("0")
        for ob in obligations:
            counts[effective_status(ob, today)] += 1
            if ob.kind is ObligationKind.SETTLEMENT_REFUND or ob.status is ObligationStatus.WAIVED:
                continue
            total_due += ob.rent_due
            total_paid += ob.rent_paid

        return PaymentSummary(
            tenancy_id=tenancy_id,
            total_payments=len(obligations),
            pending_count=counts[ObligationStatus.PENDING],
            submitted_count=counts[ObligationStatus.SUBMITTED],
            paid_count=counts[ObligationStatus.PAID],
            partial_count=counts[ObligationStatus.PARTIAL],
            overdue_count=counts[ObligationStatus.OVERDUE],
            waived_count=counts[ObligationStatus.WAIVED],
            total_due=total_due,
            total_paid=total_paid,
            outstanding=outstanding_balance(obligations, today),
        )

    def get_tax_year_income(self, landlord_id: UUID, tax_year: int) -> TaxYearIncome:
        """Rent received across the landlord's tenancies in one UK tax year."""
        period_start, period_end = uk_tax_year_bounds(tax_year)
        stmt = (
            select(PaymentObligationModel)
            .join(TenancyModel, PaymentObligationModel.tenancy_id == TenancyModel.id)
            .where(TenancyModel.landlord_id == landlord_id)
            .where(PaymentObligationModel.payment_date.is_not(None))
            .where(PaymentObligationModel.payment_date >= period_start)
            .where(PaymentObligationModel.payment_date <= period_end)
        )
        obligations = [m.to_dto() for m in self._session.execute(stmt).scalars()]
        total, count = income_in_period(obligations, period_start, period_end)
        allowance = self._policy.rent_a_room_allowance
        taxable, remaining = rent_a_room_position(total, allowance)
        return TaxYearIncome(
            landlord_id=landlord_id,
            tax_year=tax_year_label(tax_year),
            period_start=period_start,
            period_end=period_end,
            total_income=total,
            allowance=allowance,
            taxable_income=taxable,
            remaining_allowance=remaining,
            payment_count=count,
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _activate(self, tenancy: TenancyModel, actor_id: UUID) -> list[PaymentObligationModel]:
        result = require_transition(
            self._workflows, TENANCY_LIFECYCLE_WORKFLOW,
            "tenancy", tenancy.id, tenancy.status, "activate",
        )
        apply_tenancy_status(tenancy, result.new_state, actor_id)
        tenancy.advance_credit = tenancy.monthly_rent * self._policy.advance_periods
        models = self._ledger.generate(tenancy, actor_id)
        logger.info(
            "tenancy_activated",
            extra={
                "tenancy_id": str(tenancy.id),
                "advance_credit": str(tenancy.advance_credit),
                "obligation_count": len(models),
            },
        )
        return models

    def _available_funds(self, tenancy: TenancyModel) -> AvailableFunds:
        from_deposit, from_advance = self._ledger.deducted_totals(tenancy.id)
        return AvailableFunds(
            tenancy_id=tenancy.id,
            original_deposit=tenancy.deposit_amount,
            original_advance=tenancy.advance_credit,
            deducted_from_deposit=from_deposit,
            deducted_from_advance=from_advance,
            available_deposit=max(tenancy.deposit_amount - from_deposit, Decimal("0")),
            available_advance=self._ledger.remaining_advance(tenancy),
        )

    @staticmethod
    def _validated_rent(monthly_rent: Decimal) -> Decimal:
        try:
            value = to_decimal(monthly_rent)
        except (TypeError, ValueError) as exc:
            raise InvalidTenancyTermsError("monthly_rent", monthly_rent, str(exc)) from exc
        if value <= 0:
            raise InvalidTenancyTermsError("monthly_rent", value, "rent must be positive")
        return value

    @staticmethod
    def _validated_deposit(deposit_amount: Decimal) -> Decimal:
        try:
            value = to_decimal(deposit_amount)
        except (TypeError, ValueError) as exc:
            raise InvalidTenancyTermsError("deposit_amount", deposit_amount, str(exc)) from exc
        if value < 0:
            raise InvalidTenancyTermsError("deposit_amount", value, "cannot be negative")
        return value

    @staticmethod
    def _validated_frequency(value: str | PaymentFrequency) -> PaymentFrequency:
        if isinstance(value, PaymentFrequency):
            return value
        try:
            return PaymentFrequency(value)
        except ValueError as exc:
            raise InvalidTenancyTermsError(
                "payment_frequency", value,
                f"must be one of {[f.value for f in PaymentFrequency]}",
            ) from exc

    @staticmethod
    def _validated_payment_type(value: str | PaymentType) -> PaymentType:
        if isinstance(value, PaymentType):
            return value
        try:
            return PaymentType(value)
        except ValueError as exc:
            raise InvalidTenancyTermsError(
                "payment_type", value, "must be 'cycle' or 'calendar'",
            ) from exc

    @staticmethod
    def _validate_terms(dto: Tenancy) -> None:
        if dto.payment_type is PaymentType.CALENDAR:
            day = dto.payment_day_of_month
            if day is None or not 1 <= day <= 31:
                raise InvalidTenancyTermsError(
                    "payment_day_of_month", day,
                    "calendar payments need a day of month between 1 and 31",
                )
        if dto.initial_term_months is not None and dto.initial_term_months < 0:
            raise InvalidTenancyTermsError(
                "initial_term_months", dto.initial_term_months, "cannot be negative",
            )


def _deduction_source(from_deposit: Decimal, from_advance: Decimal) -> DeductionSource:
    if from_advance == 0:
        return DeductionSource.DEPOSIT
    if from_deposit == 0:
        return DeductionSource.ADVANCE_RENT
    return DeductionSource.BOTH
