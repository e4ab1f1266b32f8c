"""
Tenancy ledger persistence adapter (``lodger_modules.tenancy.ledger``).

Responsibility
--------------
The thin storage side of the schedule generator, payment ledger and
settlement calculator: row loading with locks, schedule inserts, the
future-obligation prune, extension re-pricing, deduction totals and the
settlement entry insert.  All arithmetic is delegated to ``calculations``;
this class never commits (the calling service owns the transaction).
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from lodger_config.schema import LodgerPolicy
from lodger_kernel.exceptions import (
    NoticeNotFoundError,
    ObligationNotFoundError,
    TenancyNotFoundError,
)
from lodger_kernel.logging_config import get_logger
from lodger_modules.tenancy.calculations import (
    amount_for,
    compute_settlement,
    cycle_days,
    extend_schedule,
    generate_schedule,
)
from lodger_modules.tenancy.models import (
    FinalSettlement,
    ObligationKind,
    ObligationStatus,
    ScheduleLine,
)
from lodger_modules.tenancy.orm import (
    DeductionModel,
    NoticeModel,
    PaymentObligationModel,
    TenancyModel,
)

logger = get_logger("modules.tenancy.ledger")

# IntegrityError text that identifies a duplicate payment number.
OBLIGATION_CONFLICT_MARKERS = ("uq_obligation_tenancy_number", "payment_number")


class TenancyLedger:
    """Loads and writes tenancy rows inside the caller's transaction."""

    def __init__(self, session: Session, policy: LodgerPolicy):
        self._session = session
        self._policy = policy

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def tenancy(self, tenancy_id: UUID, for_update: bool = True) -> TenancyModel:
        stmt = select(TenancyModel).where(TenancyModel.id == tenancy_id)
        if for_update:
            stmt = stmt.with_for_update()
        model = self._session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise TenancyNotFoundError(tenancy_id)
        return model

    def obligation(self, obligation_id: UUID, for_update: bool = True) -> PaymentObligationModel:
        stmt = select(PaymentObligationModel).where(PaymentObligationModel.id == obligation_id)
        if for_update:
            stmt = stmt.with_for_update()
        model = self._session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise ObligationNotFoundError(obligation_id)
        return model

    def notice(self, notice_id: UUID, for_update: bool = True) -> NoticeModel:
        stmt = select(NoticeModel).where(NoticeModel.id == notice_id)
        if for_update:
            stmt = stmt.with_for_update()
        model = self._session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise NoticeNotFoundError(notice_id)
        return model

    def obligations(self, tenancy_id: UUID) -> list[PaymentObligationModel]:
        stmt = (
            select(PaymentObligationModel)
            .where(PaymentObligationModel.tenancy_id == tenancy_id)
            .order_by(PaymentObligationModel.payment_number)
        )
        return list(self._session.execute(stmt).scalars())

    def last_obligation(
        self,
        tenancy_id: UUID,
        kind: ObligationKind | None = None,
    ) -> PaymentObligationModel | None:
        stmt = select(PaymentObligationModel).where(PaymentObligationModel.tenancy_id == tenancy_id)
        if kind is not None:
            stmt = stmt.where(PaymentObligationModel.kind == kind.value)
        stmt = stmt.order_by(PaymentObligationModel.payment_number.desc()).limit(1)
        return self._session.execute(stmt).scalar_one_or_none()

    def obligation_count(self, tenancy_id: UUID) -> int:
        stmt = select(func.count()).select_from(PaymentObligationModel).where(
            PaymentObligationModel.tenancy_id == tenancy_id
        )
        return int(self._session.execute(stmt).scalar_one())

    def settled_amount(self, tenancy_id: UUID) -> Decimal:
        """Signed total of settlement entries on the ledger; refunds count negative."""
        total = Decimal("0")
        for ob in self.obligations(tenancy_id):
            if ob.status == ObligationStatus.WAIVED.value:
                continue
            if ob.kind == ObligationKind.SETTLEMENT_CHARGE.value:
                total += ob.rent_due
            elif ob.kind == ObligationKind.SETTLEMENT_REFUND.value:
                total -= ob.rent_due
        return total

    def deductions(self, tenancy_id: UUID) -> list[DeductionModel]:
        stmt = (
            select(DeductionModel)
            .where(DeductionModel.tenancy_id == tenancy_id)
            .order_by(DeductionModel.created_at.desc())
        )
        return list(self._session.execute(stmt).scalars())

    def deducted_totals(self, tenancy_id: UUID) -> tuple[Decimal, Decimal]:
        """(taken from deposit, taken from advance rent)."""
        from_deposit = Decimal("0")
        from_advance = Decimal("0")
        for deduction in self.deductions(tenancy_id):
            from_deposit += deduction.amount_from_deposit
            from_advance += deduction.amount_from_advance
        return from_deposit, from_advance

    def remaining_advance(self, tenancy: TenancyModel) -> Decimal:
        """Advance credit still held once deductions against it are taken off."""
        _, from_advance = self.deducted_totals(tenancy.id)
        return max(tenancy.advance_credit - from_advance, Decimal("0"))

    # ------------------------------------------------------------------
    # Schedule
    # ------------------------------------------------------------------

    def insert_lines(
        self,
        tenancy: TenancyModel,
        lines: list[ScheduleLine],
        actor_id: UUID,
    ) -> list[PaymentObligationModel]:
        models = [
            PaymentObligationModel.from_schedule_line(tenancy.id, line, actor_id)
            for line in lines
        ]
        self._session.add_all(models)
        self._session.flush()
        return models

    def generate(self, tenancy: TenancyModel, actor_id: UUID) -> list[PaymentObligationModel]:
        """Initial schedule; a no-op when the tenancy already has obligations."""
        if self.obligation_count(tenancy.id) > 0:
            logger.info(
                "schedule_generation_skipped",
                extra={"tenancy_id": str(tenancy.id), "reason": "obligations_exist"},
            )
            return []

        terms = tenancy.to_dto().terms
        lines = generate_schedule(
            terms,
            advance_periods=self._policy.advance_periods,
            max_periods=self._policy.initial_schedule_periods,
            default_cycle_days=self._policy.default_cycle_days,
        )
        if not lines:
            logger.info(
                "schedule_generation_noop",
                extra={
                    "tenancy_id": str(tenancy.id),
                    "start_date": terms.start_date,
                    "end_date": terms.end_date,
                },
            )
            return []

        models = self.insert_lines(tenancy, lines, actor_id)
        logger.info(
            "schedule_generated",
            extra={
                "tenancy_id": str(tenancy.id),
                "obligation_count": len(models),
                "first_due": lines[0].due_date,
                "last_due": lines[-1].due_date,
                "first_amount": str(lines[0].amount_due),
            },
        )
        return models

    def extend(
        self,
        tenancy: TenancyModel,
        today: date,
        actor_id: UUID,
    ) -> list[PaymentObligationModel]:
        """Append the missing tail of the schedule (idempotent)."""
        last = self.last_obligation(tenancy.id)
        last_number = last.payment_number if last is not None else 0
        lines = extend_schedule(
            tenancy.to_dto().terms,
            last_number,
            today,
            horizon_periods=self._policy.extension_horizon_periods,
            advance_periods=self._policy.advance_periods,
            default_cycle_days=self._policy.default_cycle_days,
        )
        models = self.insert_lines(tenancy, lines, actor_id) if lines else []
        logger.info(
            "schedule_extended",
            extra={
                "tenancy_id": str(tenancy.id),
                "previous_last_number": last_number,
                "appended_count": len(models),
                "end_date": tenancy.end_date,
            },
        )
        return models

    def prune_rent_from(self, tenancy_id: UUID, end_date: date) -> int:
        """Delete unpaid rent obligations falling due on or after ``end_date``."""
        result = self._session.execute(
            delete(PaymentObligationModel)
            .where(PaymentObligationModel.tenancy_id == tenancy_id)
            .where(PaymentObligationModel.status == ObligationStatus.PENDING.value)
            .where(PaymentObligationModel.kind == ObligationKind.RENT.value)
            .where(PaymentObligationModel.payment_date.is_(None))
            .where(PaymentObligationModel.due_date >= end_date)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def reprice_from(self, tenancy: TenancyModel, from_date: date, monthly_rent: Decimal) -> int:
        """Re-price unpaid rent obligations due on or after ``from_date``."""
        repriced = 0
        for ob in self.obligations(tenancy.id):
            if (
                ob.kind != ObligationKind.RENT.value
                or ob.status != ObligationStatus.PENDING.value
                or ob.payment_date is not None
                or ob.due_date < from_date
            ):
                continue
            ob.rent_due = amount_for(ob.payment_number, monthly_rent, self._policy.advance_periods)
            repriced += 1
        self._session.flush()
        return repriced

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def prune_after(self, tenancy_id: UUID, termination_date: date) -> int:
        """Delete pending obligations that fall due after the termination date."""
        result = self._session.execute(
            delete(PaymentObligationModel)
            .where(PaymentObligationModel.tenancy_id == tenancy_id)
            .where(PaymentObligationModel.status == ObligationStatus.PENDING.value)
            .where(PaymentObligationModel.due_date > termination_date)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def discard_open_settlements(self, tenancy_id: UUID) -> int:
        """Remove an earlier settlement entry nobody has acted on yet."""
        result = self._session.execute(
            delete(PaymentObligationModel)
            .where(PaymentObligationModel.tenancy_id == tenancy_id)
            .where(PaymentObligationModel.status == ObligationStatus.PENDING.value)
            .where(PaymentObligationModel.kind != ObligationKind.RENT.value)
            .where(PaymentObligationModel.payment_date.is_(None))
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def settle(
        self,
        tenancy: TenancyModel,
        termination_date: date,
        actor_id: UUID,
    ) -> FinalSettlement | None:
        """
        Prune unreachable obligations and insert the final settlement entry.

        Cover is measured from the last rent obligation.  Settlement
        entries kept from an earlier termination (paid or in flight) are
        netted off, so the new entry only carries the difference.  The
        advance credit used is what remains after deductions.

        Returns None (and writes nothing beyond the prune) when the tenancy
        has no rent obligations left to settle against.
        """
        superseded = self.discard_open_settlements(tenancy.id)
        pruned = self.prune_after(tenancy.id, termination_date)
        last_rent = self.last_obligation(tenancy.id, kind=ObligationKind.RENT)

        tenancy.termination_date = termination_date
        flag_modified(tenancy, "termination_date")

        if last_rent is None:
            logger.info(
                "settlement_skipped",
                extra={
                    "tenancy_id": str(tenancy.id),
                    "termination_date": termination_date,
                    "pruned_count": pruned,
                },
            )
            return None

        cycle = cycle_days(tenancy.payment_frequency, self._policy.default_cycle_days)
        settlement = compute_settlement(
            last_due_date=last_rent.due_date,
            cycle=cycle,
            monthly_rent=tenancy.monthly_rent,
            advance_credit=self.remaining_advance(tenancy),
            termination_date=termination_date,
            currency=self._policy.currency,
            already_settled=self.settled_amount(tenancy.id),
        )
        payment_number = self.last_obligation(tenancy.id).payment_number + 1
        line = ScheduleLine(
            payment_number=payment_number,
            due_date=termination_date,
            amount_due=settlement.amount,
            kind=settlement.kind,
            notes=settlement.note,
        )
        (model,) = self.insert_lines(tenancy, [line], actor_id)

        logger.info(
            "settlement_computed",
            extra={
                "tenancy_id": str(tenancy.id),
                "termination_date": termination_date,
                "last_covered_date": settlement.last_covered_date,
                "days": settlement.days,
                "pro_rata_amount": str(settlement.pro_rata_amount),
                "advance_credit": str(settlement.advance_credit),
                "already_settled": str(settlement.already_settled),
                "final_amount": str(settlement.final_amount),
                "kind": settlement.kind.value,
                "amount": str(settlement.amount),
                "payment_number": payment_number,
                "pruned_count": pruned,
                "superseded_count": superseded,
            },
        )
        return replace(settlement, payment_number=payment_number, obligation_id=model.id)
