"""
cashbook_services.orchestrator -- central wiring for the cashbook services.

Responsibility:
    Creates every store and service exactly once and wires them together.
    No service constructs another; everything a service needs arrives
    through its constructor from here.

Architecture position:
    Services -- top of the service layer, and the only place that reads
    CashbookSettings and turns them into constructor arguments.

Usage:
    from cashbook_services.orchestrator import build_orchestrator

    cashbook = build_orchestrator()           # settings from get_settings()
    entry_id = cashbook.ledger_sync.record_entry(
        "debit", "1200", supplier="Acme Metals"
    )
    cashbook.balances.supplier_balances()
    cashbook.close()
"""

from __future__ import annotations

from sqlalchemy.orm import sessionmaker

from cashbook_config import CashbookSettings, get_settings
from cashbook_engines.settlement import SettlementPolicy
from cashbook_kernel.db.engine import build_engine, create_tables
from cashbook_kernel.domain.clock import Clock, SystemClock
from cashbook_kernel.logging_config import get_logger
from cashbook_kernel.services.audit_trail import AuditTrail
from cashbook_kernel.services.investment_store import InvestmentStore
from cashbook_kernel.services.invoice_store import InvoiceStore
from cashbook_kernel.services.ledger_store import LedgerStore
from cashbook_kernel.services.order_store import OrderStore
from cashbook_kernel.store.base import DocumentStore
from cashbook_kernel.store.sql import SqlDocumentStore
from cashbook_services.balance_service import BalanceService
from cashbook_services.counterparty_lock import CounterpartyLockRegistry
from cashbook_services.distribution_service import DistributionService
from cashbook_services.ledger_sync import LedgerSyncCoordinator
from cashbook_services.order_payments import OrderPaymentService
from cashbook_services.reconciliation_service import ReconciliationService
from cashbook_services.timeline_service import TimelineService

logger = get_logger("services.orchestrator")


def open_store(settings: CashbookSettings) -> SqlDocumentStore:
    """SQL document store for ``settings.database``, tables created."""
    engine = build_engine(settings.database.url, echo=settings.database.echo)
    create_tables(engine)
    logger.info("store_opened", extra={"dialect": engine.dialect.name})
    return SqlDocumentStore(sessionmaker(bind=engine, expire_on_commit=False))


class CashbookOrchestrator:
    """
    Owns one instance of every cashbook service.

    Construction order below is the dependency graph: kernel stores first,
    then the order payment service, then the services composed on top of
    it.
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: CashbookSettings | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings or CashbookSettings()
        self.store = store
        self.clock = clock or SystemClock()
        self.policy = SettlementPolicy(
            tolerance=self.settings.settlement.tolerance,
            noise_threshold=self.settings.settlement.adjustment_noise_threshold,
        )

        # Kernel
        self.audit = AuditTrail(store, self.clock, max_workers=self.settings.audit_workers)
        self.ledger = LedgerStore(
            store,
            self.audit,
            self.clock,
            entry_time_of_day=self.settings.ledger.entry_time_of_day,
            local_timezone=self.settings.ledger.local_timezone,
        )
        self.orders = OrderStore(store, self.clock)
        self.invoices = InvoiceStore(store, self.clock)
        self.investments = InvestmentStore(store, self.clock)

        # Services
        self.locks = CounterpartyLockRegistry()
        self.order_payments = OrderPaymentService(self.orders, self.policy, self.clock)
        self.distribution = DistributionService(
            self.orders,
            self.order_payments,
            self.locks,
            self.clock,
            payment_note=self.settings.distribution.payment_note,
        )
        self.reconciliation = ReconciliationService(
            self.orders, self.order_payments, self.locks
        )
        self.ledger_sync = LedgerSyncCoordinator(
            self.ledger,
            self.distribution,
            self.reconciliation,
            self.order_payments,
            self.locks,
            auto_distribute_party_income=self.settings.distribution.auto_distribute_party_income,
        )
        self.timeline = TimelineService(
            self.ledger,
            self.investments,
            self.invoices,
            self.orders,
            tz_name=self.settings.ledger.local_timezone,
        )
        self.balances = BalanceService(self.ledger, self.orders, self.policy)

    def close(self) -> None:
        """Wait for outstanding audit writes and stop the audit worker."""
        self.audit.flush()
        self.audit.shutdown()


def build_orchestrator(
    settings: CashbookSettings | None = None,
    store: DocumentStore | None = None,
    clock: Clock | None = None,
) -> CashbookOrchestrator:
    """Build a CashbookOrchestrator from config (single entrypoint for production)."""
    settings = settings or get_settings()
    return CashbookOrchestrator(
        store if store is not None else open_store(settings),
        settings=settings,
        clock=clock,
    )
