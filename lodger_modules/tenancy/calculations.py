"""
Tenancy Pure Calculation Functions.

Date and money arithmetic for the tenancy engine, free of I/O:
- Cycle length per payment frequency
- Due dates (fixed cycle and calendar day-of-month)
- Initial schedule generation and idempotent tail extension
- Derived obligation status and the running credit/debit ledger
- Pro-rata final settlement netted against the advance credit
- Extension rent cap and UK tax-year Rent-a-Room totals

All money stays at full Decimal precision here; ``round_money`` is only
applied to amounts that are emitted (the settlement obligation).
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Sequence

from lodger_kernel.db.types import round_money
from lodger_modules.tenancy.helpers import settlement_note
from lodger_modules.tenancy.models import (
    FinalSettlement,
    LedgerLine,
    ObligationKind,
    ObligationStatus,
    PaymentFrequency,
    PaymentObligation,
    PaymentType,
    ScheduleLine,
    TenancyTerms,
)

DEFAULT_CYCLE_DAYS = 28

CYCLE_DAYS: dict[str, int] = {
    PaymentFrequency.WEEKLY.value: 7,
    PaymentFrequency.BI_WEEKLY.value: 14,
    PaymentFrequency.MONTHLY.value: 30,
    PaymentFrequency.FOUR_WEEKLY.value: 28,
}

_UNPAID_STATES = (ObligationStatus.PENDING, ObligationStatus.SUBMITTED)


# ---------------------------------------------------------------------------
# Cycle and due dates
# ---------------------------------------------------------------------------


def cycle_days(
    frequency: PaymentFrequency | str | None,
    default: int = DEFAULT_CYCLE_DAYS,
) -> int:
    """Cycle length in days. Unknown frequencies fall back to ``default``."""
    key = frequency.value if isinstance(frequency, PaymentFrequency) else frequency
    return CYCLE_DAYS.get(key, default)


def add_months(start: date, months: int, day: int | None = None) -> date:
    """
    Move ``start`` by whole calendar months.

    The day of month (``day`` or the start's own day) is clamped to the
    length of the target month, so 31 January + 1 month is 28/29 February.
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    target_day = day if day is not None else start.day
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(target_day, last_day))


def due_date_for(terms: TenancyTerms, payment_number: int, cycle: int) -> date:
    """
    Due date of obligation ``payment_number`` (1-based).

    Cycle mode: ``start + (n - 1) x cycle``.  Calendar mode: the first
    obligation falls on the start date, obligation ``n`` on the payment
    day of the ``(n - 1)``-th following month.
    """
    if payment_number < 1:
        raise ValueError(f"payment_number must be >= 1, got {payment_number}")
    if payment_number == 1:
        return terms.start_date
    if terms.payment_type is PaymentType.CALENDAR:
        day = terms.payment_day_of_month or terms.start_date.day
        return add_months(terms.start_date, payment_number - 1, day=day)
    return terms.start_date + timedelta(days=(payment_number - 1) * cycle)


def amount_for(payment_number: int, monthly_rent: Decimal, advance_periods: int = 1) -> Decimal:
    """First obligation carries the advance periods on top of its own rent."""
    if payment_number == 1:
        return monthly_rent * (1 + advance_periods)
    return monthly_rent


def horizon_limit(terms: TenancyTerms, today: date, periods: int, cycle: int) -> date:
    """Latest due date the look-ahead may reach from ``today``."""
    if terms.payment_type is PaymentType.CALENDAR:
        return add_months(today, periods)
    return today + timedelta(days=periods * cycle)


# ---------------------------------------------------------------------------
# Schedule generation
# ---------------------------------------------------------------------------


def generate_schedule(
    terms: TenancyTerms,
    advance_periods: int = 1,
    max_periods: int = 24,
    default_cycle_days: int = DEFAULT_CYCLE_DAYS,
) -> list[ScheduleLine]:
    """
    Initial schedule for a tenancy with no obligations yet.

    Produces up to ``max_periods`` obligations due before the end date
    (when set).  An end date on or before the start date yields an empty
    schedule.
    """
    if terms.end_date is not None and terms.end_date <= terms.start_date:
        return []

    cycle = cycle_days(terms.payment_frequency, default_cycle_days)
    lines: list[ScheduleLine] = []
    for n in range(1, max_periods + 1):
        due = due_date_for(terms, n, cycle)
        if terms.end_date is not None and due >= terms.end_date:
            break
        lines.append(
            ScheduleLine(
                payment_number=n,
                due_date=due,
                amount_due=amount_for(n, terms.monthly_rent, advance_periods),
            )
        )
    return lines


def extend_schedule(
    terms: TenancyTerms,
    last_payment_number: int,
    today: date,
    horizon_periods: int = 12,
    advance_periods: int = 1,
    default_cycle_days: int = DEFAULT_CYCLE_DAYS,
) -> list[ScheduleLine]:
    """
    Missing tail of a schedule, numbered from ``last_payment_number + 1``.

    Stops at the end date (when set) or once the look-ahead horizon from
    ``today`` is reached, whichever is sooner.  Calling again with the
    returned tail applied yields nothing.
    """
    cycle = cycle_days(terms.payment_frequency, default_cycle_days)
    horizon = horizon_limit(terms, today, horizon_periods, cycle)

    lines: list[ScheduleLine] = []
    n = last_payment_number + 1
    while True:
        due = due_date_for(terms, n, cycle)
        if terms.end_date is not None and due >= terms.end_date:
            break
        if due > horizon:
            break
        lines.append(
            ScheduleLine(
                payment_number=n,
                due_date=due,
                amount_due=amount_for(n, terms.monthly_rent, advance_periods),
            )
        )
        n += 1
    return lines


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


def confirmed_status(rent_paid: Decimal, rent_due: Decimal) -> ObligationStatus:
    """Stored status after a landlord confirmation."""
    if rent_paid - rent_due >= 0:
        return ObligationStatus.PAID
    if rent_paid > 0:
        return ObligationStatus.PARTIAL
    return ObligationStatus.PENDING


def effective_status(obligation: PaymentObligation, today: date) -> ObligationStatus:
    """Stored status, with unpaid obligations past their due date read as overdue."""
    if obligation.status in _UNPAID_STATES and obligation.due_date < today:
        return ObligationStatus.OVERDUE
    return obligation.status


def ledger_effect(obligation: PaymentObligation) -> Decimal:
    """
    Contribution to the lodger's running balance (positive = credit).

    Refund entries are owed by the landlord, so their sign is inverted.
    """
    if obligation.kind is ObligationKind.SETTLEMENT_REFUND:
        return -obligation.balance
    return obligation.balance


def build_ledger(obligations: Iterable[PaymentObligation], today: date) -> list[LedgerLine]:
    """
    Ordered ledger lines with running balance and credit-adjusted amounts.

    The running balance accumulates over confirmed obligations only.  Each
    charge line's effective amount due is its ``rent_due`` less any credit
    (or plus any debit) carried from the lines before it, floored at zero.
    Stored amounts are never changed.
    """
    lines: list[LedgerLine] = []
    running = Decimal("0")
    for ob in sorted(obligations, key=lambda o: o.payment_number):
        if ob.status is ObligationStatus.WAIVED:
            effective_due = Decimal("0")
        elif ob.kind is ObligationKind.SETTLEMENT_REFUND:
            effective_due = ob.rent_due
        else:
            effective_due = max(ob.rent_due - running, Decimal("0"))
        if ob.is_confirmed and ob.status is not ObligationStatus.WAIVED:
            running += ledger_effect(ob)
        lines.append(
            LedgerLine(
                obligation=ob,
                status=effective_status(ob, today),
                cumulative_balance=running,
                effective_amount_due=effective_due,
            )
        )
    return lines


def outstanding_balance(obligations: Iterable[PaymentObligation], as_of: date) -> Decimal:
    """
    Amount the lodger currently owes (negative = credit in their favour).

    Counts every non-waived obligation that has fallen due by ``as_of`` or
    has already been confirmed.
    """
    total = Decimal("0")
    for ob in obligations:
        if ob.status is ObligationStatus.WAIVED:
            continue
        if ob.due_date <= as_of or ob.is_confirmed:
            total -= ledger_effect(ob)
    return total


# ---------------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------------


def compute_settlement(
    last_due_date: date,
    cycle: int,
    monthly_rent: Decimal,
    advance_credit: Decimal,
    termination_date: date,
    currency: str = "GBP",
    already_settled: Decimal = Decimal("0"),
) -> FinalSettlement:
    """
    Final pro-rata settlement at ``termination_date``.

    Rent is covered through ``last_due_date + cycle``.  Terminating after
    that date charges the gap at the daily rate, netted against the
    advance credit; terminating on or before it refunds the unused days
    plus the advance credit.

    ``already_settled`` is the signed total of settlement entries that
    were kept from an earlier termination (charges positive, refunds
    negative); the new entry only carries the difference.
    """
    last_covered = last_due_date + timedelta(days=cycle)
    daily_rate = monthly_rent / Decimal(cycle)

    if termination_date > last_covered:
        covered = False
        days = (termination_date - last_covered).days
        pro_rata = daily_rate * days
        final = pro_rata - advance_credit
    else:
        covered = True
        days = (last_covered - termination_date).days
        pro_rata = daily_rate * days
        final = -(pro_rata + advance_credit)
    final -= already_settled

    kind = ObligationKind.SETTLEMENT_CHARGE if final > 0 else ObligationKind.SETTLEMENT_REFUND
    note = settlement_note(
        days=days,
        covered=covered,
        last_covered_date=last_covered,
        monthly_rent=monthly_rent,
        cycle_days=cycle,
        daily_rate=daily_rate,
        pro_rata_amount=pro_rata,
        advance_credit=advance_credit,
        final_amount=final,
        already_settled=already_settled,
        currency=currency,
    )
    return FinalSettlement(
        termination_date=termination_date,
        last_covered_date=last_covered,
        cycle_days=cycle,
        monthly_rent=monthly_rent,
        daily_rate=daily_rate,
        days=days,
        pro_rata_amount=pro_rata,
        advance_credit=advance_credit,
        final_amount=final,
        already_settled=already_settled,
        amount=round_money(abs(final)),
        kind=kind,
        note=note,
    )


# ---------------------------------------------------------------------------
# Extension offers
# ---------------------------------------------------------------------------


def max_allowed_rent(current_rent: Decimal, cap_percent: Decimal) -> Decimal:
    return current_rent * (1 + cap_percent / 100)


def rent_increase_percent(current_rent: Decimal, proposed_rent: Decimal) -> Decimal:
    if current_rent == 0:
        return Decimal("0")
    return (proposed_rent - current_rent) / current_rent * 100


def exceeds_rent_cap(current_rent: Decimal, proposed_rent: Decimal, cap_percent: Decimal) -> bool:
    return proposed_rent > max_allowed_rent(current_rent, cap_percent)


def extension_dates(
    start_date: date,
    end_date: date | None,
    initial_term_months: int | None,
    months: int,
    today: date,
) -> tuple[date, date]:
    """(current end, new end) for an extension of ``months`` calendar months."""
    if end_date is not None:
        current_end = end_date
    elif initial_term_months:
        current_end = add_months(start_date, initial_term_months)
    else:
        current_end = today
    return current_end, add_months(current_end, months)


# ---------------------------------------------------------------------------
# Tax year
# ---------------------------------------------------------------------------


def uk_tax_year_bounds(tax_year: int) -> tuple[date, date]:
    """UK tax year starting in ``tax_year``: 6 April to 5 April inclusive."""
    return date(tax_year, 4, 6), date(tax_year + 1, 4, 5)


def tax_year_label(tax_year: int) -> str:
    return f"{tax_year}-{(tax_year + 1) % 100:02d}"


def rent_a_room_position(total_income: Decimal, allowance: Decimal) -> tuple[Decimal, Decimal]:
    """(taxable income, remaining allowance)."""
    taxable = max(total_income - allowance, Decimal("0"))
    remaining = max(allowance - total_income, Decimal("0"))
    return taxable, remaining


def income_in_period(
    obligations: Sequence[PaymentObligation],
    period_start: date,
    period_end: date,
) -> tuple[Decimal, int]:
    """Rent received (net of refunds paid) with a confirmation date in the period."""
    total = Decimal("0")
    count = 0
    for ob in obligations:
        if ob.payment_date is None or not (period_start <= ob.payment_date <= period_end):
            continue
        if ob.kind is ObligationKind.SETTLEMENT_REFUND:
            total -= ob.rent_paid
        else:
            total += ob.rent_paid
        count += 1
    return total, count
