"""
Tenancy Domain Models (``lodger_modules.tenancy.models``).

Responsibility
--------------
Frozen dataclass value objects for the nouns of a lodger tenancy:
tenancy terms, scheduled rent obligations, notices, final settlements,
reminders and read-side summaries.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Returned by
``TenancyService`` and ``NoticeService``; built from ORM rows via
``to_dto()``.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``PaymentObligation.balance`` is derived from ``rent_paid - rent_due``
  and never stored on its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from lodger_kernel.logging_config import get_logger

logger = get_logger("modules.tenancy.models")


class PaymentFrequency(Enum):
    """How often rent falls due."""
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    FOUR_WEEKLY = "4-weekly"


class PaymentType(Enum):
    """Fixed-length cycle vs. fixed day of each calendar month."""
    CYCLE = "cycle"
    CALENDAR = "calendar"


class TenancyStatus(Enum):
    """Tenancy lifecycle states."""
    DRAFT = "draft"
    ACTIVE = "active"
    NOTICE_GIVEN = "notice_given"
    TERMINATED = "terminated"
    EXTENDED = "extended"


class ObligationStatus(Enum):
    """Payment obligation states. OVERDUE is derived on read, never stored."""
    PENDING = "pending"
    SUBMITTED = "submitted"
    PAID = "paid"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    WAIVED = "waived"


class ObligationKind(Enum):
    """What an obligation represents in the ledger."""
    RENT = "rent"
    SETTLEMENT_CHARGE = "settlement_charge"
    SETTLEMENT_REFUND = "settlement_refund"


class NoticeType(Enum):
    TERMINATION = "termination"
    BREACH = "breach"
    EXTENSION_OFFER = "extension_offer"


class NoticeStatus(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class BreachStage(Enum):
    REMEDY_PERIOD = "remedy_period"
    TERMINATION_PERIOD = "termination_period"
    REMEDIED = "remedied"


class ExtensionStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ReminderType(Enum):
    TENANCY_EXPIRING = "tenancy_expiring"
    PAYMENT_REMINDER = "payment_reminder"
    DEDUCTION_MADE = "deduction_made"


class DeductionSource(Enum):
    """Which held funds a deduction was taken from."""
    DEPOSIT = "deposit"
    ADVANCE_RENT = "advance_rent"
    BOTH = "both"


@dataclass(frozen=True)
class TenancyTerms:
    """The inputs that fully determine a tenancy's rent schedule."""
    start_date: date
    monthly_rent: Decimal
    payment_frequency: PaymentFrequency = PaymentFrequency.FOUR_WEEKLY
    payment_type: PaymentType = PaymentType.CYCLE
    payment_day_of_month: int | None = None
    end_date: date | None = None


@dataclass(frozen=True)
class Tenancy:
    """A lodger agreement between a resident landlord and a lodger."""
    id: UUID
    landlord_id: UUID
    lodger_id: UUID
    start_date: date
    monthly_rent: Decimal
    payment_frequency: PaymentFrequency = PaymentFrequency.FOUR_WEEKLY
    payment_type: PaymentType = PaymentType.CYCLE
    payment_day_of_month: int | None = None
    end_date: date | None = None
    initial_term_months: int | None = None
    status: TenancyStatus = TenancyStatus.DRAFT
    advance_credit: Decimal = Decimal("0")
    deposit_amount: Decimal = Decimal("0")
    termination_date: date | None = None

    @property
    def terms(self) -> TenancyTerms:
        return TenancyTerms(
            start_date=self.start_date,
            monthly_rent=self.monthly_rent,
            payment_frequency=self.payment_frequency,
            payment_type=self.payment_type,
            payment_day_of_month=self.payment_day_of_month,
            end_date=self.end_date,
        )


@dataclass(frozen=True)
class ScheduleLine:
    """A computed, not yet persisted, obligation."""
    payment_number: int
    due_date: date
    amount_due: Decimal
    kind: ObligationKind = ObligationKind.RENT
    notes: str | None = None


@dataclass(frozen=True)
class PaymentObligation:
    """One scheduled rent period (or the final settlement entry)."""
    id: UUID
    tenancy_id: UUID
    payment_number: int
    due_date: date
    rent_due: Decimal
    rent_paid: Decimal = Decimal("0")
    status: ObligationStatus = ObligationStatus.PENDING
    kind: ObligationKind = ObligationKind.RENT
    payment_date: date | None = None
    payment_method: str | None = None
    payment_reference: str | None = None
    notes: str | None = None
    submitted_amount: Decimal | None = None
    submitted_date: date | None = None
    submitted_reference: str | None = None
    submitted_method: str | None = None
    submitted_notes: str | None = None

    @property
    def balance(self) -> Decimal:
        """Positive = credit, negative = still owed."""
        return self.rent_paid - self.rent_due

    @property
    def is_confirmed(self) -> bool:
        return self.payment_date is not None


@dataclass(frozen=True)
class LedgerLine:
    """Read-side view of one obligation with derived state."""
    obligation: PaymentObligation
    status: ObligationStatus
    cumulative_balance: Decimal
    effective_amount_due: Decimal


@dataclass(frozen=True)
class Notice:
    """A termination notice, breach notice or extension offer."""
    id: UUID
    tenancy_id: UUID
    notice_type: NoticeType
    given_by: UUID
    given_to: UUID
    notice_date: date
    effective_date: date
    reason: str
    status: NoticeStatus = NoticeStatus.ACTIVE
    notice_period_days: int | None = None
    breach_type: str | None = None
    breach_stage: BreachStage | None = None
    remedy_deadline: date | None = None
    termination_deadline: date | None = None
    extension_months: int | None = None
    extension_status: ExtensionStatus | None = None
    proposed_rent: Decimal | None = None


@dataclass(frozen=True)
class FinalSettlement:
    """Pro-rata settlement at an effective termination date.

    ``final_amount`` is signed: positive means the lodger owes it,
    negative means the landlord refunds ``abs(final_amount)``.  Only
    ``amount`` is rounded; the other figures are full precision.
    """
    termination_date: date
    last_covered_date: date
    cycle_days: int
    monthly_rent: Decimal
    daily_rate: Decimal
    days: int
    pro_rata_amount: Decimal
    advance_credit: Decimal
    final_amount: Decimal
    amount: Decimal
    kind: ObligationKind
    note: str
    already_settled: Decimal = Decimal("0")
    payment_number: int | None = None
    obligation_id: UUID | None = None

    @property
    def is_refund(self) -> bool:
        return self.kind is ObligationKind.SETTLEMENT_REFUND


@dataclass(frozen=True)
class NoticeOutcome:
    """Result of a notice transition that may settle the tenancy."""
    notice: Notice
    tenancy: Tenancy
    settlement: FinalSettlement | None = None


@dataclass(frozen=True)
class Reminder:
    """A reminder event raised for a landlord or lodger."""
    id: UUID
    tenancy_id: UUID
    recipient_id: UUID
    reminder_type: ReminderType
    raised_on: date
    message: str
    obligation_id: UUID | None = None
    days_until: int | None = None


@dataclass(frozen=True)
class PaymentSummary:
    """Counts and totals over a tenancy's ledger."""
    tenancy_id: UUID
    total_payments: int
    pending_count: int
    submitted_count: int
    paid_count: int
    partial_count: int
    overdue_count: int
    waived_count: int
    total_due: Decimal
    total_paid: Decimal
    outstanding: Decimal


@dataclass(frozen=True)
class TaxYearIncome:
    """Rent received in one UK tax year against the Rent-a-Room allowance."""
    landlord_id: UUID
    tax_year: str
    period_start: date
    period_end: date
    total_income: Decimal
    allowance: Decimal
    taxable_income: Decimal
    remaining_allowance: Decimal
    payment_count: int


@dataclass(frozen=True)
class Deduction:
    """An amount the landlord kept back from the deposit or advance rent."""
    id: UUID
    tenancy_id: UUID
    deduction_type: str
    description: str
    amount: Decimal
    amount_from_deposit: Decimal
    amount_from_advance: Decimal
    deducted_from: DeductionSource
    notes: str | None = None


@dataclass(frozen=True)
class AvailableFunds:
    """Deposit and advance rent still held after deductions."""
    tenancy_id: UUID
    original_deposit: Decimal
    original_advance: Decimal
    deducted_from_deposit: Decimal
    deducted_from_advance: Decimal
    available_deposit: Decimal
    available_advance: Decimal

    @property
    def total_available(self) -> Decimal:
        return self.available_deposit + self.available_advance
