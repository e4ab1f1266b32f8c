"""
Tests for the pro-rata final settlement.

The arithmetic must be reproducible from the obligation note alone:
daily rate x days, netted against the advance credit and any settlement
already kept on the ledger.
"""

from __future__ import annotations

import re
from datetime import date, timedelta
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from lodger_kernel.db.types import round_money
from lodger_modules.tenancy.calculations import compute_settlement
from lodger_modules.tenancy.models import ObligationKind

RENT = Decimal("850.00")
LAST_DUE = date(2025, 12, 10)

_RATE_IN_NOTE = re.compile(r"£([0-9]+\.[0-9]{6})/day")


class TestSettlementScenario:

    def test_notice_after_covered_period_refunds_unused_credit(self):
        settlement = compute_settlement(
            last_due_date=LAST_DUE,
            cycle=28,
            monthly_rent=RENT,
            advance_credit=RENT,
            termination_date=date(2026, 1, 12),
        )

        assert settlement.last_covered_date == date(2026, 1, 7)
        assert settlement.days == 5
        assert round_money(settlement.pro_rata_amount) == Decimal("151.79")
        assert round_money(settlement.final_amount) == Decimal("-698.21")
        assert settlement.amount == Decimal("698.21")
        assert settlement.kind is ObligationKind.SETTLEMENT_REFUND
        assert settlement.is_refund

    def test_note_shows_every_operand(self):
        settlement = compute_settlement(LAST_DUE, 28, RENT, RENT, date(2026, 1, 12))

        assert "5 day(s) beyond 07/01/2026" in settlement.note
        assert "£30.357143/day (£850.00 / 28 days)" in settlement.note
        assert "£151.79 pro-rata" in settlement.note
        assert "minus £850.00 advance credit" in settlement.note
        assert settlement.note.endswith("REFUND DUE TO TENANT: £698.21.")

    def test_long_gap_charges_lodger(self):
        settlement = compute_settlement(LAST_DUE, 28, RENT, RENT, date(2026, 3, 1))

        assert settlement.days == 53
        assert settlement.kind is ObligationKind.SETTLEMENT_CHARGE
        assert settlement.amount == Decimal("758.93")
        assert settlement.note.endswith("AMOUNT DUE FROM TENANT: £758.93.")

    def test_termination_inside_covered_period_refunds_days_and_credit(self):
        settlement = compute_settlement(LAST_DUE, 28, RENT, RENT, date(2025, 12, 20))

        assert settlement.days == 18
        assert settlement.kind is ObligationKind.SETTLEMENT_REFUND
        assert settlement.amount == Decimal("1396.43")
        assert "already paid beyond termination" in settlement.note

    def test_termination_on_last_covered_date_refunds_credit_only(self):
        settlement = compute_settlement(LAST_DUE, 28, RENT, RENT, date(2026, 1, 7))

        assert settlement.days == 0
        assert settlement.amount == Decimal("850.00")
        assert settlement.is_refund

    def test_zero_net_is_recorded_as_refund(self):
        # 14 days past cover at 10 a day uses up the 140 advance credit exactly
        settlement = compute_settlement(
            LAST_DUE, 28, Decimal("280"), Decimal("140"), date(2026, 1, 21),
        )

        assert settlement.final_amount == Decimal("0")
        assert settlement.amount == Decimal("0.00")
        assert settlement.kind is ObligationKind.SETTLEMENT_REFUND

    def test_only_emitted_amount_is_rounded(self):
        settlement = compute_settlement(LAST_DUE, 28, RENT, RENT, date(2026, 1, 12))
        assert settlement.daily_rate == RENT / Decimal(28)
        assert settlement.pro_rata_amount == RENT / Decimal(28) * 5

    @pytest.mark.parametrize("cycle,covered_through", [(7, date(2025, 12, 17)), (30, date(2026, 1, 9))])
    def test_cycle_length_sets_cover(self, cycle, covered_through):
        settlement = compute_settlement(LAST_DUE, cycle, RENT, RENT, date(2026, 2, 1))
        assert settlement.last_covered_date == covered_through
        assert settlement.cycle_days == cycle


class TestSettlementConservation:

    @settings(max_examples=200, deadline=None)
    @given(
        rent=st.decimals(min_value=Decimal("50"), max_value=Decimal("5000"), places=2),
        cycle=st.sampled_from([7, 14, 28, 30]),
        gap=st.integers(min_value=1, max_value=365),
    )
    def test_mid_gap_final_is_pro_rata_minus_credit(self, rent, cycle, gap):
        last_covered = LAST_DUE + timedelta(days=cycle)
        settlement = compute_settlement(
            LAST_DUE, cycle, rent, rent, last_covered + timedelta(days=gap),
        )

        assert settlement.days == gap
        assert settlement.final_amount == settlement.pro_rata_amount - settlement.advance_credit
        assert settlement.amount == round_money(abs(settlement.final_amount))

        rate_shown = Decimal(_RATE_IN_NOTE.search(settlement.note).group(1))
        reproduced = rate_shown * gap - rent
        assert abs(reproduced - settlement.final_amount) < Decimal("0.005")

    @settings(max_examples=100, deadline=None)
    @given(
        rent=st.decimals(min_value=Decimal("50"), max_value=Decimal("5000"), places=2),
        days_early=st.integers(min_value=0, max_value=27),
    )
    def test_covered_termination_always_refunds(self, rent, days_early):
        last_covered = LAST_DUE + timedelta(days=28)
        settlement = compute_settlement(
            LAST_DUE, 28, rent, rent, last_covered - timedelta(days=days_early),
        )

        assert settlement.is_refund
        assert settlement.final_amount == -(settlement.pro_rata_amount + rent)


class TestSettlementNetting:

    def test_refund_already_paid_is_taken_off(self):
        settlement = compute_settlement(
            LAST_DUE, 28, RENT, RENT, date(2025, 12, 29), already_settled=Decimal("-698.21"),
        )

        assert settlement.days == 9
        assert settlement.already_settled == Decimal("-698.21")
        assert settlement.amount == Decimal("425.00")
        assert settlement.is_refund
        assert "less £698.21 already refunded" in settlement.note
        assert settlement.note.endswith("REFUND DUE TO TENANT: £425.00.")

    def test_charge_already_taken_is_refunded(self):
        settlement = compute_settlement(
            LAST_DUE, 28, RENT, RENT, date(2026, 1, 12), already_settled=Decimal("758.93"),
        )

        assert settlement.amount == Decimal("1457.14")
        assert settlement.kind is ObligationKind.SETTLEMENT_REFUND
        assert "less £758.93 already charged" in settlement.note

    def test_nothing_kept_leaves_note_unchanged(self):
        plain = compute_settlement(LAST_DUE, 28, RENT, RENT, date(2026, 1, 12))
        assert plain.already_settled == Decimal("0")
        assert "already refunded" not in plain.note
        assert "already charged" not in plain.note

    @settings(max_examples=100, deadline=None)
    @given(
        gap=st.integers(min_value=-27, max_value=120),
        kept=st.decimals(min_value=Decimal("-2000"), max_value=Decimal("2000"), places=2),
    )
    def test_kept_plus_new_equals_fresh_settlement(self, gap, kept):
        termination = LAST_DUE + timedelta(days=28 + gap)
        fresh = compute_settlement(LAST_DUE, 28, RENT, RENT, termination)
        netted = compute_settlement(LAST_DUE, 28, RENT, RENT, termination, already_settled=kept)

        assert abs(netted.final_amount + kept - fresh.final_amount) < Decimal("0.000001")
