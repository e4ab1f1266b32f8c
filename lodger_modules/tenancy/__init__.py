"""
Tenancy Module (``lodger_modules.tenancy``).

Responsibility
--------------
The payment cycle and tenancy lifecycle engine for UK lodger agreements:
rent schedule generation over irregular cycles, the submit/confirm
payment ledger with credit carried forward, pro-rata settlement at early
termination, and the termination, breach and extension notice state
machines that drive the tenancy's status.

Architecture position
---------------------
**Modules layer** -- pure calculations and frozen models, with ORM
persistence and two service facades (``TenancyService``,
``NoticeService``) that own their transaction boundaries.
"""

from lodger_modules.tenancy.calculations import (
    compute_settlement,
    cycle_days,
    extend_schedule,
    generate_schedule,
    outstanding_balance,
)
from lodger_modules.tenancy.models import (
    AvailableFunds,
    BreachStage,
    Deduction,
    DeductionSource,
    ExtensionStatus,
    FinalSettlement,
    LedgerLine,
    Notice,
    NoticeOutcome,
    NoticeStatus,
    NoticeType,
    ObligationKind,
    ObligationStatus,
    PaymentFrequency,
    PaymentObligation,
    PaymentSummary,
    PaymentType,
    Reminder,
    ReminderType,
    ScheduleLine,
    TaxYearIncome,
    Tenancy,
    TenancyStatus,
    TenancyTerms,
)
from lodger_modules.tenancy.notice_service import NoticeService
from lodger_modules.tenancy.service import TenancyService

__all__ = [
    "AvailableFunds",
    "BreachStage",
    "Deduction",
    "DeductionSource",
    "ExtensionStatus",
    "FinalSettlement",
    "LedgerLine",
    "Notice",
    "NoticeOutcome",
    "NoticeService",
    "NoticeStatus",
    "NoticeType",
    "ObligationKind",
    "ObligationStatus",
    "PaymentFrequency",
    "PaymentObligation",
    "PaymentSummary",
    "PaymentType",
    "Reminder",
    "ReminderType",
    "ScheduleLine",
    "TaxYearIncome",
    "Tenancy",
    "TenancyService",
    "TenancyStatus",
    "TenancyTerms",
    "compute_settlement",
    "cycle_days",
    "extend_schedule",
    "generate_schedule",
    "outstanding_balance",
]
