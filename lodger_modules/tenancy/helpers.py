"""
Notice text helpers -- human-readable labels and audit notes.

Notice rows are their own audit trail: every reason and settlement note
is rendered once, at the moment of the transition, and appended to
rather than rewritten afterwards.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from lodger_kernel.db.types import round_money

CURRENCY_SYMBOLS = {"GBP": "£", "EUR": "€", "USD": "$"}

REASON_LABELS = {
    "breach": "Breach of Agreement",
    "end_term": "End of Term",
    "landlord_needs": "Landlord Needs Property",
    "other": "Other",
}

SUB_REASON_LABELS = {
    "violence": "Violence or threatening behaviour",
    "criminal_activity": "Criminal activity",
    "non_payment": "Non-payment of rent",
    "damage_to_property": "Damage to property",
    "nuisance": "Nuisance or anti-social behaviour",
    "unauthorized_occupants": "Unauthorised occupants",
    "other_breach": "Other breach",
    "initial_term_ending": "Initial term ending",
    "no_renewal": "Not renewing the agreement",
    "property_sale": "Sale of property",
    "personal_use": "Personal use of the room",
    "renovation": "Renovation works",
    "other_reason": "Other reason",
}

BREACH_TYPE_LABELS = {
    "non_payment": "Non-payment of rent",
    "damage_to_property": "Damage to property",
    "nuisance": "Nuisance or anti-social behaviour",
    "unauthorized_occupants": "Unauthorised occupants",
    "smoking": "Smoking in the property",
    "pets": "Keeping pets without permission",
    "other": "Other breach of agreement",
}


def format_money(amount: Decimal, currency: str = "GBP") -> str:
    """Render a rounded amount with its currency symbol, sign first."""
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    rounded = round_money(amount)
    if rounded < 0:
        return f"-{symbol}{-rounded}"
    return f"{symbol}{abs(rounded)}"


def format_date(value: date) -> str:
    """UK day/month/year."""
    return value.strftime("%d/%m/%Y")


def reason_text(reason: str, sub_reason: str | None = None, notes: str | None = None) -> str:
    text = REASON_LABELS.get(reason, reason)
    if sub_reason:
        text = f"{text}: {SUB_REASON_LABELS.get(sub_reason, sub_reason)}"
    if notes:
        text = f"{text}. {notes}"
    return text


def breach_text(breach_type: str, description: str, notes: str | None = None) -> str:
    text = f"{BREACH_TYPE_LABELS.get(breach_type, breach_type)}: {description}"
    if notes:
        text = f"{text}. {notes}"
    return text


def audit_line(label: str, on: date, notes: str | None = None) -> str:
    """A dated marker appended to a notice reason, e.g. ``[REMEDIED on 01/02/2026]``."""
    line = f"[{label} on {format_date(on)}]"
    if notes:
        line = f"{line} {notes}"
    return line


def append_audit(reason: str, line: str) -> str:
    return f"{reason}\n\n{line}" if reason else line


def extension_offer_text(
    months: int,
    current_end: date,
    new_end: date,
    current_rent: Decimal,
    new_rent: Decimal,
    currency: str = "GBP",
    notes: str | None = None,
) -> str:
    text = (
        f"Offer to extend the tenancy by {months} month(s), from "
        f"{format_date(current_end)} to {format_date(new_end)}. "
    )
    if new_rent != current_rent:
        text += (
            f"Rent changes from {format_money(current_rent, currency)} to "
            f"{format_money(new_rent, currency)}."
        )
    else:
        text += f"Rent remains {format_money(current_rent, currency)}."
    if notes:
        text = f"{text} {notes}"
    return text


def settlement_note(
    *,
    days: int,
    covered: bool,
    last_covered_date: date,
    monthly_rent: Decimal,
    cycle_days: int,
    daily_rate: Decimal,
    pro_rata_amount: Decimal,
    advance_credit: Decimal,
    final_amount: Decimal,
    already_settled: Decimal = Decimal("0"),
    currency: str = "GBP",
) -> str:
    """Reproduce the settlement arithmetic with every operand visible.

    The daily rate is shown to 6 dp so ``rate x days`` reproduces the
    pro-rata figure to the penny.
    """
    rate = daily_rate.quantize(Decimal("0.000001"))
    rate_text = (
        f"{CURRENCY_SYMBOLS.get(currency, currency + ' ')}{rate}/day "
        f"({format_money(monthly_rent, currency)} / {cycle_days} days)"
    )
    if covered:
        body = (
            f"Final settlement: {days} day(s) already paid beyond termination up to "
            f"{format_date(last_covered_date)} at {rate_text} = "
            f"{format_money(pro_rata_amount, currency)}, plus "
            f"{format_money(advance_credit, currency)} advance credit"
        )
    else:
        body = (
            f"Final settlement: {days} day(s) beyond {format_date(last_covered_date)} "
            f"at {rate_text} = {format_money(pro_rata_amount, currency)} pro-rata, minus "
            f"{format_money(advance_credit, currency)} advance credit"
        )
    if already_settled < 0:
        body += f", less {format_money(-already_settled, currency)} already refunded"
    elif already_settled > 0:
        body += f", less {format_money(already_settled, currency)} already charged"
    if final_amount > 0:
        return f"{body}. AMOUNT DUE FROM TENANT: {format_money(final_amount, currency)}."
    return f"{body}. REFUND DUE TO TENANT: {format_money(-final_amount, currency)}."
