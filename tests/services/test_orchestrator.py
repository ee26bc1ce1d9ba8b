"""Tests for service wiring and an end-to-end run over the SQL store."""

from decimal import Decimal

from cashbook_config import CashbookSettings, DatabaseSettings, SettlementSettings
from cashbook_kernel.domain.field_update import Set
from cashbook_kernel.domain.records import PaymentSide
from cashbook_kernel.services.ledger_store import LedgerEntryChanges
from cashbook_kernel.store.sql import SqlDocumentStore
from cashbook_services.orchestrator import CashbookOrchestrator, build_orchestrator

EXPENSE = PaymentSide.EXPENSE


class TestWiring:

    def test_services_share_one_store_and_policy(self, cashbook, memory_store):
        assert cashbook.store is memory_store
        assert cashbook.ledger.store is memory_store
        assert cashbook.orders.store is memory_store
        assert cashbook.order_payments.orders is cashbook.orders
        assert cashbook.distribution.payments is cashbook.order_payments
        assert cashbook.reconciliation.payments is cashbook.order_payments
        assert cashbook.distribution.locks is cashbook.reconciliation.locks
        assert cashbook.ledger_sync.locks is cashbook.locks
        assert cashbook.balances.policy is cashbook.policy

    def test_tolerance_comes_from_settings(self, make_cashbook, make_order):
        services = make_cashbook(
            CashbookSettings(settlement=SettlementSettings(tolerance=Decimal("0")))
        )
        order = make_order(services, cost="1000")

        services.distribution.distribute_to_supplier_orders("Acme Metals", "999", "le-1")

        assert services.orders.get_order_by_id(order.id).paid is False
        assert services.policy.tolerance == Decimal("0")

    def test_build_orchestrator_opens_configured_store(self, clock):
        settings = CashbookSettings(database=DatabaseSettings(url="sqlite+pysqlite:///:memory:"))

        services = build_orchestrator(settings=settings, clock=clock)
        try:
            assert isinstance(services.store, SqlDocumentStore)
            entry_id = services.ledger.add_entry("credit", "10")
            assert services.ledger.get(entry_id).amount == Decimal("10")
        finally:
            services.close()

    def test_close_flushes_audit(self, memory_store, clock):
        services = CashbookOrchestrator(memory_store, clock=clock)
        entry_id = services.ledger.add_entry("credit", "10")

        services.close()

        assert [a.ledger_entry_id for a in services.audit.get_activities()] == [entry_id]


class TestSqlScenario:
    """The full supplier flow against the SQL document store."""

    def test_record_edit_delete_round(self, sql_cashbook, make_order, clock):
        first = make_order(sql_cashbook, cost="800", day=0)
        second = make_order(sql_cashbook, cost="750", day=1)

        entry_id = sql_cashbook.ledger_sync.record_entry("debit", "1200", supplier="Acme Metals")

        first_after = sql_cashbook.orders.get_order_by_id(first.id)
        second_after = sql_cashbook.orders.get_order_by_id(second.id)
        assert first_after.paid is True
        assert second_after.paid_on(EXPENSE) == Decimal("400")
        assert second_after.version > second.version
        clock.tick()

        sql_cashbook.ledger_sync.edit_entry(entry_id, LedgerEntryChanges(amount=Set("900")))
        second_after = sql_cashbook.orders.get_order_by_id(second.id)
        assert second_after.paid_on(EXPENSE) == Decimal("100")
        clock.tick()

        sql_cashbook.ledger_sync.delete_entry(entry_id)
        for order in (first, second):
            assert sql_cashbook.orders.get_order_by_id(order.id).partial_payments == ()

        sql_cashbook.audit.flush()
        activities = sql_cashbook.audit.get_activities_for_entry(entry_id)
        kinds = [a.activity_type.value for a in activities]
        assert kinds == ["deleted", "updated", "created"]
