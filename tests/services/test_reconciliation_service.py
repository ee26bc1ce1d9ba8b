"""Tests for ReconciliationService: orphaned payment removal."""

from decimal import Decimal

from cashbook_kernel.domain.records import PaymentSide

EXPENSE = PaymentSide.EXPENSE
REVENUE = PaymentSide.REVENUE


def _ids(payments):
    return sorted(p.ledger_entry_id or "manual" for p in payments)


class TestReconcile:

    def test_orphan_removed_sibling_kept(self, cashbook, make_order):
        order = make_order(cashbook, cost="1000")
        cashbook.distribution.distribute_to_supplier_orders("Acme Metals", "300", "le-live")
        cashbook.distribution.distribute_to_supplier_orders("Acme Metals", "500", "le-gone")

        result = cashbook.reconciliation.reconcile_supplier_orders("Acme Metals", {"le-live"})

        after = cashbook.orders.get_order_by_id(order.id)
        assert _ids(after.partial_payments) == ["le-live"]
        assert after.paid is False
        assert (result.orders_scanned, result.orders_changed, result.payments_removed) == (1, 1, 1)
        assert result.ok

    def test_settlement_recomputed_after_removal(self, cashbook, make_order):
        order = make_order(cashbook, cost="1000")
        cashbook.distribution.distribute_to_supplier_orders("Acme Metals", "900", "le-gone")
        assert cashbook.orders.get_order_by_id(order.id).paid is True

        cashbook.reconciliation.reconcile_supplier_orders("Acme Metals", set())

        after = cashbook.orders.get_order_by_id(order.id)
        assert after.paid is False
        assert after.expense_adjustment == Decimal("0")

    def test_manual_payments_untouched(self, cashbook, make_order):
        order = make_order(cashbook, cost="1000")
        cashbook.order_payments.add_payment(order.id, "100", note="cash")

        result = cashbook.reconciliation.reconcile_supplier_orders("Acme Metals", set())

        assert _ids(cashbook.orders.get_order_by_id(order.id).partial_payments) == ["manual"]
        assert result.orders_changed == 0

    def test_idempotent(self, cashbook, make_order):
        order = make_order(cashbook, cost="1000")
        cashbook.distribution.distribute_to_supplier_orders("Acme Metals", "300", "le-gone")

        cashbook.reconciliation.reconcile_supplier_orders("Acme Metals", [])
        version = cashbook.orders.get_order_by_id(order.id).version
        second = cashbook.reconciliation.reconcile_supplier_orders("Acme Metals", [])

        assert second.orders_changed == 0
        assert cashbook.orders.get_order_by_id(order.id).version == version

    def test_only_requested_side(self, cashbook, make_order):
        order = make_order(cashbook)
        cashbook.distribution.distribute_to_supplier_orders("Acme Metals", "300", "le-s")
        cashbook.distribution.distribute_to_party_orders("Bharat Builders", "300", "le-p")

        cashbook.reconciliation.reconcile_party_orders("Bharat Builders", set())

        after = cashbook.orders.get_order_by_id(order.id)
        assert after.customer_payments == ()
        assert _ids(after.partial_payments) == ["le-s"]

    def test_failure_isolated(self, flaky_cashbook, flaky_store, make_order, captured_logs):
        broken = make_order(flaky_cashbook, cost="1000", day=0)
        healthy = make_order(flaky_cashbook, cost="1000", day=1)
        flaky_cashbook.distribution.distribute_to_supplier_orders("Acme Metals", "1500", "le-gone")
        flaky_store.fail_updates.add(broken.id)

        result = flaky_cashbook.reconciliation.reconcile_supplier_orders("Acme Metals", set())

        assert [f.order_id for f in result.failures] == [broken.id]
        assert result.orders_changed == 1
        assert flaky_cashbook.orders.get_order_by_id(healthy.id).partial_payments == ()
        assert any(r["message"] == "order_write_failed" for r in captured_logs())


class TestDetachAndSweep:

    def test_detach_only_named_entry(self, cashbook, make_order):
        order = make_order(cashbook, cost="1000")
        cashbook.distribution.distribute_to_supplier_orders("Acme Metals", "200", "le-1")
        cashbook.distribution.distribute_to_supplier_orders("Acme Metals", "200", "le-2")

        result = cashbook.reconciliation.detach_ledger_entry(EXPENSE, "Acme Metals", "le-1")

        assert _ids(cashbook.orders.get_order_by_id(order.id).partial_payments) == ["le-2"]
        assert result.payments_removed == 1

    def test_global_sweep_crosses_counterparties_and_sides(self, cashbook, make_order):
        a = make_order(cashbook, supplier="Acme Metals")
        b = make_order(cashbook, supplier="Zinc Co", party_name="Other Party")
        cashbook.distribution.distribute_to_supplier_orders("Acme Metals", "100", "le-x")
        cashbook.distribution.distribute_to_supplier_orders("Zinc Co", "100", "le-x")
        cashbook.distribution.distribute_to_party_orders("Other Party", "100", "le-x")
        cashbook.distribution.distribute_to_party_orders("Bharat Builders", "100", "le-keep")

        result = cashbook.reconciliation.remove_payments_by_ledger_entry_id("le-x")

        a, b = (cashbook.orders.get_order_by_id(o.id) for o in (a, b))
        assert a.partial_payments == ()
        assert _ids(a.customer_payments) == ["le-keep"]
        assert b.partial_payments == ()
        assert b.customer_payments == ()
        assert result.orders_scanned == 2
        assert result.payments_removed == 3
        assert result.orders_changed == 3

    def test_sweep_with_no_matches(self, cashbook, make_order, captured_logs):
        make_order(cashbook)

        result = cashbook.reconciliation.remove_payments_by_ledger_entry_id("le-none")

        assert result.payments_removed == 0
        (done,) = [r for r in captured_logs() if r["message"] == "ledger_payments_removed"]
        assert done["ledger_entry_id"] == "le-none"
