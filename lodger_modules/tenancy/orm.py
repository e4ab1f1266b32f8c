"""
Module: lodger_modules.tenancy.orm
Responsibility:
    SQLAlchemy ORM persistence models for tenancies, their payment
    obligations, notices, reminders and deductions.  Maps frozen dataclass DTOs from
    ``lodger_modules.tenancy.models`` to relational tables.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - All monetary fields use Decimal (Numeric(38,9) via the base type map).
    - Enum fields stored as String(50).
    - (tenancy_id, payment_number) is unique: an obligation can never be
      created twice for the same period.
    - TenancyModel.version is the optimistic-lock column; two units of work
      that both change the same tenancy cannot both commit.

Failure modes:
    - IntegrityError on duplicate (tenancy_id, payment_number).
    - StaleDataError when a tenancy row changed under a concurrent update.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from lodger_kernel.db.base import TrackedBase, UUIDString


# =============================================================================
# Tenancy
# =============================================================================


class TenancyModel(TrackedBase):
    """A lodger agreement and its lifecycle status."""

    __tablename__ = "lodger_tenancies"

    __table_args__ = (
        Index("idx_tenancy_landlord", "landlord_id"),
        Index("idx_tenancy_lodger", "lodger_id"),
        Index("idx_tenancy_status_end", "status", "end_date"),
    )

    landlord_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    lodger_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    initial_term_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    monthly_rent: Mapped[Decimal]
    payment_frequency: Mapped[str] = mapped_column(String(50), default="4-weekly")
    payment_type: Mapped[str] = mapped_column(String(50), default="cycle")
    payment_day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="draft")
    advance_credit: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    deposit_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        from lodger_modules.tenancy.models import (
            PaymentFrequency,
            PaymentType,
            Tenancy,
            TenancyStatus,
        )

        return Tenancy(
            id=self.id,
            landlord_id=self.landlord_id,
            lodger_id=self.lodger_id,
            start_date=self.start_date,
            end_date=self.end_date,
            initial_term_months=self.initial_term_months,
            monthly_rent=self.monthly_rent,
            payment_frequency=PaymentFrequency(self.payment_frequency),
            payment_type=PaymentType(self.payment_type),
            payment_day_of_month=self.payment_day_of_month,
            status=TenancyStatus(self.status),
            advance_credit=self.advance_credit,
            deposit_amount=self.deposit_amount,
            termination_date=self.termination_date,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "TenancyModel":
        return cls(
            id=dto.id,
            landlord_id=dto.landlord_id,
            lodger_id=dto.lodger_id,
            start_date=dto.start_date,
            end_date=dto.end_date,
            initial_term_months=dto.initial_term_months,
            monthly_rent=dto.monthly_rent,
            payment_frequency=dto.payment_frequency.value,
            payment_type=dto.payment_type.value,
            payment_day_of_month=dto.payment_day_of_month,
            status=dto.status.value,
            advance_credit=dto.advance_credit,
            deposit_amount=dto.deposit_amount,
            termination_date=dto.termination_date,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<TenancyModel {self.id} status={self.status} rent={self.monthly_rent}>"


# =============================================================================
# Payment obligation
# =============================================================================


class PaymentObligationModel(TrackedBase):
    """One scheduled rent period, or a final settlement entry."""

    __tablename__ = "lodger_payment_obligations"

    __table_args__ = (
        UniqueConstraint("tenancy_id", "payment_number", name="uq_obligation_tenancy_number"),
        Index("idx_obligation_tenancy_due", "tenancy_id", "due_date"),
    )

    tenancy_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("lodger_tenancies.id"), nullable=False,
    )
    payment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    rent_due: Mapped[Decimal]
    rent_paid: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(50), default="pending")
    kind: Mapped[str] = mapped_column(String(50), default="rent")
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    submitted_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    submitted_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    submitted_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    submitted_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from lodger_modules.tenancy.models import (
            ObligationKind,
            ObligationStatus,
            PaymentObligation,
        )

        return PaymentObligation(
            id=self.id,
            tenancy_id=self.tenancy_id,
            payment_number=self.payment_number,
            due_date=self.due_date,
            rent_due=self.rent_due,
            rent_paid=self.rent_paid,
            status=ObligationStatus(self.status),
            kind=ObligationKind(self.kind),
            payment_date=self.payment_date,
            payment_method=self.payment_method,
            payment_reference=self.payment_reference,
            notes=self.notes,
            submitted_amount=self.submitted_amount,
            submitted_date=self.submitted_date,
            submitted_reference=self.submitted_reference,
            submitted_method=self.submitted_method,
            submitted_notes=self.submitted_notes,
        )

    @classmethod
    def from_schedule_line(cls, tenancy_id: UUID, line, created_by_id: UUID) -> "PaymentObligationModel":
        return cls(
            tenancy_id=tenancy_id,
            payment_number=line.payment_number,
            due_date=line.due_date,
            rent_due=line.amount_due,
            rent_paid=Decimal("0"),
            status="pending",
            kind=line.kind.value,
            notes=line.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<PaymentObligationModel #{self.payment_number} {self.due_date} "
            f"due={self.rent_due} paid={self.rent_paid} {self.status}>"
        )


# =============================================================================
# Notice
# =============================================================================


class NoticeModel(TrackedBase):
    """Append-only notice record; reason accumulates dated audit lines."""

    __tablename__ = "lodger_notices"

    __table_args__ = (
        Index("idx_notice_tenancy_type", "tenancy_id", "notice_type", "status"),
    )

    tenancy_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("lodger_tenancies.id"), nullable=False,
    )
    notice_type: Mapped[str] = mapped_column(String(50), nullable=False)
    given_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    given_to: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    notice_date: Mapped[date] = mapped_column(Date, nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="active")
    notice_period_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    breach_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    breach_stage: Mapped[str | None] = mapped_column(String(50), nullable=True)
    remedy_deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
    termination_deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
    extension_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    extension_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    proposed_rent: Mapped[Decimal | None] = mapped_column(nullable=True)

    def to_dto(self):
        from lodger_modules.tenancy.models import (
            BreachStage,
            ExtensionStatus,
            Notice,
            NoticeStatus,
            NoticeType,
        )

        return Notice(
            id=self.id,
            tenancy_id=self.tenancy_id,
            notice_type=NoticeType(self.notice_type),
            given_by=self.given_by,
            given_to=self.given_to,
            notice_date=self.notice_date,
            effective_date=self.effective_date,
            reason=self.reason,
            status=NoticeStatus(self.status),
            notice_period_days=self.notice_period_days,
            breach_type=self.breach_type,
            breach_stage=BreachStage(self.breach_stage) if self.breach_stage else None,
            remedy_deadline=self.remedy_deadline,
            termination_deadline=self.termination_deadline,
            extension_months=self.extension_months,
            extension_status=(
                ExtensionStatus(self.extension_status) if self.extension_status else None
            ),
            proposed_rent=self.proposed_rent,
        )

    def __repr__(self) -> str:
        return f"<NoticeModel {self.id} {self.notice_type} {self.status}>"


# =============================================================================
# Reminder
# =============================================================================


class ReminderModel(TrackedBase):
    """A reminder raised for a landlord or lodger (delivery is external)."""

    __tablename__ = "lodger_reminders"

    __table_args__ = (
        Index("idx_reminder_tenancy_type", "tenancy_id", "reminder_type", "raised_on"),
    )

    tenancy_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("lodger_tenancies.id"), nullable=False,
    )
    recipient_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    reminder_type: Mapped[str] = mapped_column(String(50), nullable=False)
    raised_on: Mapped[date] = mapped_column(Date, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    obligation_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    days_until: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def to_dto(self):
        from lodger_modules.tenancy.models import Reminder, ReminderType

        return Reminder(
            id=self.id,
            tenancy_id=self.tenancy_id,
            recipient_id=self.recipient_id,
            reminder_type=ReminderType(self.reminder_type),
            raised_on=self.raised_on,
            message=self.message,
            obligation_id=self.obligation_id,
            days_until=self.days_until,
        )


# =============================================================================
# Deduction
# =============================================================================


class DeductionModel(TrackedBase):
    """Money kept back from the deposit and/or advance rent."""

    __tablename__ = "lodger_deductions"

    __table_args__ = (
        Index("idx_deduction_tenancy", "tenancy_id"),
    )

    tenancy_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("lodger_tenancies.id"), nullable=False,
    )
    deduction_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal]
    amount_from_deposit: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    amount_from_advance: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    deducted_from: Mapped[str] = mapped_column(String(50), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from lodger_modules.tenancy.models import Deduction, DeductionSource

        return Deduction(
            id=self.id,
            tenancy_id=self.tenancy_id,
            deduction_type=self.deduction_type,
            description=self.description,
            amount=self.amount,
            amount_from_deposit=self.amount_from_deposit,
            amount_from_advance=self.amount_from_advance,
            deducted_from=DeductionSource(self.deducted_from),
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<DeductionModel {self.id} {self.deduction_type} {self.amount}>"
