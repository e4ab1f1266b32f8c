"""
Tests for cycle lengths, due dates and schedule generation.

Validates:
- cycle_days: frequency lookup with fallback
- add_months: month-end clamping
- generate_schedule: advance-rent first line, end-date cut-off
- extend_schedule: missing tail only, idempotent
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from lodger_modules.tenancy.calculations import (
    add_months,
    amount_for,
    cycle_days,
    due_date_for,
    extend_schedule,
    generate_schedule,
)
from lodger_modules.tenancy.models import PaymentFrequency, PaymentType, TenancyTerms

RENT = Decimal("850.00")
START = date(2025, 10, 15)


def _terms(**overrides) -> TenancyTerms:
    kwargs = {"start_date": START, "monthly_rent": RENT}
    kwargs.update(overrides)
    return TenancyTerms(**kwargs)


class TestCycleDays:

    @pytest.mark.parametrize(
        "frequency,expected",
        [
            (PaymentFrequency.WEEKLY, 7),
            (PaymentFrequency.BI_WEEKLY, 14),
            (PaymentFrequency.MONTHLY, 30),
            (PaymentFrequency.FOUR_WEEKLY, 28),
            ("4-weekly", 28),
        ],
    )
    def test_known_frequencies(self, frequency, expected):
        assert cycle_days(frequency) == expected

    def test_unknown_frequency_falls_back_to_default(self):
        assert cycle_days("fortnightly-ish") == 28
        assert cycle_days(None, default=21) == 21


class TestAddMonths:

    def test_plain_month(self):
        assert add_months(date(2025, 10, 15), 1) == date(2025, 11, 15)

    def test_year_rollover(self):
        assert add_months(date(2025, 11, 30), 3) == date(2026, 2, 28)

    def test_clamps_to_month_end(self):
        assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_explicit_day(self):
        assert add_months(date(2025, 2, 28), 1, day=31) == date(2025, 3, 31)


class TestDueDates:

    def test_first_obligation_falls_on_start_date(self):
        assert due_date_for(_terms(), 1, 28) == START

    def test_cycle_mode_steps_by_cycle(self):
        assert due_date_for(_terms(), 2, 28) == date(2025, 11, 12)
        assert due_date_for(_terms(), 3, 28) == date(2025, 12, 10)

    def test_calendar_mode_uses_payment_day(self):
        terms = _terms(
            start_date=date(2025, 1, 31),
            payment_type=PaymentType.CALENDAR,
            payment_day_of_month=31,
            payment_frequency=PaymentFrequency.MONTHLY,
        )
        assert due_date_for(terms, 2, 30) == date(2025, 2, 28)
        assert due_date_for(terms, 3, 30) == date(2025, 3, 31)

    def test_payment_number_below_one_rejected(self):
        with pytest.raises(ValueError):
            due_date_for(_terms(), 0, 28)

    def test_amount_for_first_carries_advance(self):
        assert amount_for(1, RENT) == Decimal("1700.00")
        assert amount_for(2, RENT) == RENT
        assert amount_for(1, RENT, advance_periods=0) == RENT


class TestGenerateSchedule:

    def test_four_weekly_scenario(self):
        lines = generate_schedule(_terms())

        assert lines[0].payment_number == 1
        assert lines[0].due_date == date(2025, 10, 15)
        assert lines[0].amount_due == Decimal("1700.00")
        assert lines[1].payment_number == 2
        assert lines[1].due_date == date(2025, 11, 12)
        assert lines[1].amount_due == Decimal("850.00")

    def test_open_ended_capped_at_max_periods(self):
        assert len(generate_schedule(_terms(), max_periods=24)) == 24

    def test_end_date_excludes_due_dates_on_or_after_it(self):
        lines = generate_schedule(_terms(end_date=date(2026, 1, 7)))
        assert [l.due_date for l in lines] == [
            date(2025, 10, 15),
            date(2025, 11, 12),
            date(2025, 12, 10),
        ]

    @pytest.mark.parametrize("end", [START, START - timedelta(days=1)])
    def test_end_on_or_before_start_yields_nothing(self, end):
        assert generate_schedule(_terms(end_date=end)) == []

    def test_weekly_schedule(self):
        lines = generate_schedule(
            _terms(payment_frequency=PaymentFrequency.WEEKLY), max_periods=3,
        )
        assert [l.due_date for l in lines] == [
            START, START + timedelta(days=7), START + timedelta(days=14),
        ]

    @settings(max_examples=150, deadline=None)
    @given(
        start=st.dates(min_value=date(2000, 1, 1), max_value=date(2040, 12, 31)),
        rent=st.decimals(min_value=Decimal("1"), max_value=Decimal("10000"), places=2),
        frequency=st.sampled_from(list(PaymentFrequency)),
        payment_type=st.sampled_from(list(PaymentType)),
        day=st.integers(min_value=1, max_value=31),
    )
    def test_due_dates_increase_and_only_first_carries_advance(
        self, start, rent, frequency, payment_type, day,
    ):
        terms = TenancyTerms(
            start_date=start,
            monthly_rent=rent,
            payment_frequency=frequency,
            payment_type=payment_type,
            payment_day_of_month=day,
        )
        lines = generate_schedule(terms, max_periods=15)

        assert [l.payment_number for l in lines] == list(range(1, len(lines) + 1))
        assert all(a.due_date < b.due_date for a, b in zip(lines, lines[1:]))
        assert lines[0].amount_due == rent * 2
        assert all(l.amount_due == rent for l in lines[1:])


class TestExtendSchedule:

    def test_appends_missing_tail_within_horizon(self):
        lines = extend_schedule(_terms(), last_payment_number=3, today=START)

        assert [l.payment_number for l in lines] == list(range(4, 14))
        assert lines[0].due_date == date(2026, 1, 7)
        assert all(l.amount_due == RENT for l in lines)

    def test_second_call_appends_nothing(self):
        first = extend_schedule(_terms(), last_payment_number=3, today=START)
        again = extend_schedule(
            _terms(), last_payment_number=first[-1].payment_number, today=START,
        )
        assert again == []

    def test_stops_at_end_date(self):
        terms = _terms(end_date=date(2026, 2, 1))
        lines = extend_schedule(terms, last_payment_number=3, today=START)
        assert [l.due_date for l in lines] == [date(2026, 1, 7)]

    def test_empty_schedule_starts_at_one_with_advance(self):
        lines = extend_schedule(_terms(), last_payment_number=0, today=START, horizon_periods=1)
        assert [l.payment_number for l in lines] == [1, 2]
        assert lines[0].amount_due == Decimal("1700.00")

    def test_calendar_horizon_counts_months(self):
        terms = _terms(
            payment_type=PaymentType.CALENDAR,
            payment_day_of_month=15,
            payment_frequency=PaymentFrequency.MONTHLY,
        )
        lines = extend_schedule(terms, last_payment_number=1, today=START, horizon_periods=2)
        assert [l.due_date for l in lines] == [date(2025, 11, 15), date(2025, 12, 15)]

    @settings(max_examples=100, deadline=None)
    @given(
        last=st.integers(min_value=0, max_value=40),
        offset=st.integers(min_value=0, max_value=900),
        frequency=st.sampled_from(list(PaymentFrequency)),
    )
    def test_idempotent_for_unchanged_end_date(self, last, offset, frequency):
        terms = _terms(payment_frequency=frequency, end_date=date(2027, 6, 1))
        today = START + timedelta(days=offset)
        tail = extend_schedule(terms, last, today)
        new_last = tail[-1].payment_number if tail else last

        assert extend_schedule(terms, new_last, today) == []
        assert all(l.payment_number > last for l in tail)
