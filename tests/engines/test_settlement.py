"""Tests for settlement rules and derived order fields."""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cashbook_engines.settlement import (
    SettlementPolicy,
    amount_due,
    derived_changes,
    is_settled,
    recompute_side,
    side_adjustment,
    side_is_settled,
)
from cashbook_kernel.domain.records import Order, PaymentRecord, PaymentSide

WHEN = datetime(2024, 1, 1, tzinfo=timezone.utc)
EXPENSE = PaymentSide.EXPENSE
REVENUE = PaymentSide.REVENUE


def _order(total="1200", original_total="1000", supplier_paid=(), party_paid=()) -> Order:
    return Order(
        id="o1",
        date=WHEN,
        party_name="Bharat",
        supplier="Acme",
        total=Decimal(total),
        original_total=Decimal(original_total),
        partial_payments=tuple(
            PaymentRecord(f"s{n}", Decimal(a), WHEN) for n, a in enumerate(supplier_paid)
        ),
        customer_payments=tuple(
            PaymentRecord(f"c{n}", Decimal(a), WHEN) for n, a in enumerate(party_paid)
        ),
    )


class TestIsSettled:

    @pytest.mark.parametrize(
        "paid, settled",
        [("0", False), ("749.99", False), ("750", True), ("1000", True), ("1500", True)],
    )
    def test_default_tolerance(self, paid, settled):
        assert is_settled(Decimal("1000"), Decimal(paid)) is settled

    def test_small_obligation_settled_without_payment(self):
        assert is_settled(Decimal("200"), Decimal("0"))

    def test_zero_tolerance_requires_full_payment(self):
        assert not is_settled(Decimal("1000"), Decimal("999.99"), Decimal("0"))
        assert is_settled(Decimal("1000"), Decimal("1000"), Decimal("0"))


class TestSides:

    def test_expense_uses_original_total(self):
        order = _order(supplier_paid=("700",))

        assert amount_due(order, EXPENSE) == Decimal("300")
        assert side_is_settled(order, EXPENSE) is False

    def test_revenue_uses_total(self):
        order = _order(party_paid=("1000",))

        assert amount_due(order, REVENUE) == Decimal("200")
        assert side_is_settled(order, REVENUE) is True

    def test_amount_due_never_negative(self):
        assert amount_due(_order(supplier_paid=("1100",)), EXPENSE) == Decimal("0")

    def test_adjustment_only_once_settled(self):
        open_side = _order(party_paid=("900",))
        settled_side = _order(party_paid=("1000",))
        strict = SettlementPolicy(tolerance=Decimal("0"))

        assert side_adjustment(open_side, REVENUE) == Decimal("0")
        assert side_adjustment(settled_side, REVENUE) == Decimal("-200")
        assert side_adjustment(settled_side, REVENUE, strict) == Decimal("0")

    def test_policy_rejects_negative_values(self):
        with pytest.raises(ValueError):
            SettlementPolicy(tolerance=Decimal("-1"))
        with pytest.raises(ValueError):
            SettlementPolicy(noise_threshold=Decimal("-0.01"))


class TestRecompute:

    def test_sets_flag_and_adjustment(self):
        order = _order(supplier_paid=("600", "500"))

        after = recompute_side(order, EXPENSE)

        assert after.paid is True
        assert after.expense_adjustment == Decimal("-100")
        assert after.party_paid is False
        assert after.revenue_adjustment == Decimal("0")

    def test_clears_flag_when_payments_drop(self):
        settled = recompute_side(_order(supplier_paid=("1000",)), EXPENSE)
        emptied = settled.with_payments(EXPENSE, ())

        after = recompute_side(emptied, EXPENSE)

        assert after.paid is False
        assert after.expense_adjustment == Decimal("0")

    def test_derived_changes_lists_only_differences(self):
        before = _order()
        paid = _order(party_paid=("1250",)).customer_payments
        after = recompute_side(before.with_payments(REVENUE, paid), REVENUE)

        changes = derived_changes(before, after, REVENUE)

        assert set(changes) == {"customer_payments", "party_paid", "revenue_adjustment"}
        assert changes["party_paid"] is True
        assert changes["revenue_adjustment"] == "50.00"
        assert changes["customer_payments"][0]["amount"] == "1250"

    def test_derived_changes_empty_when_identical(self):
        order = recompute_side(_order(), EXPENSE)

        assert derived_changes(order, replace(order), EXPENSE) == {}
