"""Tests for OrderPaymentService: manual payments and ledger-linked rewrites."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cashbook_kernel.domain.records import PaymentRecord, PaymentSide
from cashbook_kernel.exceptions import (
    InvalidAmountError,
    OptimisticLockError,
    OrderNotFoundError,
    PaymentNotFoundError,
    ValidationError,
)

EXPENSE = PaymentSide.EXPENSE
REVENUE = PaymentSide.REVENUE


class TestAddPayment:

    def test_partial_supplier_payment(self, cashbook, make_order):
        order = make_order(cashbook, cost="1000")

        updated = cashbook.order_payments.add_payment(order.id, "400", note=" advance ")

        (payment,) = updated.partial_payments
        assert payment.amount == Decimal("400")
        assert payment.note == "advance"
        assert payment.ledger_entry_id is None
        assert updated.paid is False
        assert updated.expense_adjustment == Decimal("0")
        assert updated.version == order.version + 1

    def test_payment_within_tolerance_settles(self, cashbook, make_order):
        order = make_order(cashbook, cost="1000")

        updated = cashbook.order_payments.add_payment(order.id, "800")

        assert updated.paid is True
        assert updated.expense_adjustment == Decimal("200")

    def test_expense_capped_at_amount_due(self, cashbook, make_order):
        order = make_order(cashbook, cost="1000")
        cashbook.order_payments.add_payment(order.id, "600")

        with pytest.raises(ValidationError) as exc_info:
            cashbook.order_payments.add_payment(order.id, "400.01")

        assert "exceeds remaining amount" in str(exc_info.value)
        assert cashbook.orders.get_order_by_id(order.id).paid_on(EXPENSE) == Decimal("600")

    def test_revenue_overpayment_allowed(self, cashbook, make_order):
        order = make_order(cashbook, sale="1200")

        updated = cashbook.order_payments.add_payment(order.id, "1300", side=REVENUE)

        assert updated.party_paid is True
        assert updated.revenue_adjustment == Decimal("100")
        assert updated.partial_payments == ()

    @pytest.mark.parametrize("amount", ["0", "-5", "abc"])
    def test_rejects_non_positive_amounts(self, cashbook, make_order, amount):
        order = make_order(cashbook)

        with pytest.raises(InvalidAmountError):
            cashbook.order_payments.add_payment(order.id, amount)

    def test_unknown_order(self, cashbook):
        with pytest.raises(OrderNotFoundError):
            cashbook.order_payments.add_payment("nope", "10")

    def test_logs_with_order_context(self, cashbook, make_order, captured_logs):
        order = make_order(cashbook)

        cashbook.order_payments.add_payment(order.id, "10")

        (record,) = [r for r in captured_logs() if r["message"] == "order_payment_added"]
        assert record["order_id"] == order.id
        assert record["side"] == "expense"


class TestRemovePayment:

    def test_remove_reopens_side(self, cashbook, make_order):
        order = make_order(cashbook, cost="1000")
        paid = cashbook.order_payments.add_payment(order.id, "1000")

        updated = cashbook.order_payments.remove_payment(order.id, paid.partial_payments[0].id)

        assert updated.partial_payments == ()
        assert updated.paid is False

    def test_unknown_payment(self, cashbook, make_order):
        order = make_order(cashbook)

        with pytest.raises(PaymentNotFoundError):
            cashbook.order_payments.remove_payment(order.id, "nope", side=REVENUE)


class TestApplyPayments:

    def test_unchanged_payments_write_nothing(self, cashbook, make_order):
        order = make_order(cashbook)

        result = cashbook.order_payments.apply_payments(order, EXPENSE, ())

        assert result is order
        assert cashbook.orders.get_order_by_id(order.id).version == order.version

    def test_stale_order_rejected(self, cashbook, make_order, clock):
        order = make_order(cashbook)
        cashbook.order_payments.add_payment(order.id, "10")
        payment = PaymentRecord("x", Decimal("5"), clock.now())

        with pytest.raises(OptimisticLockError):
            cashbook.order_payments.apply_payments(order, EXPENSE, (payment,))


class TestUpdateByLedgerEntryId:

    def _link(self, cashbook, order, side, entry_id, amount, clock):
        payment = PaymentRecord(
            "p-" + order.id, Decimal(amount), clock.now(), ledger_entry_id=entry_id
        )
        return cashbook.order_payments.apply_payments(
            order, side, order.payments(side) + (payment,)
        )

    def test_rewrites_amount_and_date_on_both_sides(self, cashbook, make_order, clock):
        a = self._link(cashbook, make_order(cashbook), EXPENSE, "le-1", "300", clock)
        b = self._link(cashbook, make_order(cashbook), REVENUE, "le-1", "300", clock)
        untouched = self._link(cashbook, make_order(cashbook), EXPENSE, "le-2", "300", clock)
        new_date = datetime(2024, 2, 1, tzinfo=timezone.utc)

        changed = cashbook.order_payments.update_payment_by_ledger_entry_id(
            "le-1", amount="450", date=new_date
        )

        assert sorted(o.id for o in changed) == sorted([a.id, b.id])
        (pa,) = cashbook.orders.get_order_by_id(a.id).partial_payments
        (pb,) = cashbook.orders.get_order_by_id(b.id).customer_payments
        assert (pa.amount, pa.date) == (Decimal("450"), new_date)
        assert (pb.amount, pb.date) == (Decimal("450"), new_date)
        (kept,) = cashbook.orders.get_order_by_id(untouched.id).partial_payments
        assert kept.amount == Decimal("300")

    def test_recomputes_settlement(self, cashbook, make_order, clock):
        order = make_order(cashbook, cost="1000")
        order = self._link(cashbook, order, EXPENSE, "le-1", "300", clock)
        assert order.paid is False

        cashbook.order_payments.update_payment_by_ledger_entry_id("le-1", amount="1000")

        assert cashbook.orders.get_order_by_id(order.id).paid is True

    def test_nothing_to_change(self, cashbook, make_order):
        make_order(cashbook)

        assert cashbook.order_payments.update_payment_by_ledger_entry_id("le-1") == []
