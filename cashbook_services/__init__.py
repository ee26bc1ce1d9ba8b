"""
cashbook_services -- orchestration over the engines and the kernel.

Responsibility:
    Services that read and write through the kernel stores and delegate
    every calculation to ``cashbook_engines``: order payments,
    distribution of ledger money over orders, reconciliation of orphaned
    payments, the ledger sync coordinator, the cash timeline and
    counterparty balances.

Architecture position:
    Services -- the only layer that reads configuration.

    Dependency direction:
        cashbook_services/ -> cashbook_engines/  (allowed)
        cashbook_services/ -> cashbook_kernel/   (allowed)
        cashbook_services/ -> cashbook_config/   (allowed)
        cashbook_engines/  -> cashbook_services/ (FORBIDDEN)
        cashbook_kernel/   -> cashbook_services/ (FORBIDDEN)
"""

from cashbook_services.balance_service import BalanceService
from cashbook_services.counterparty_lock import CounterpartyLockRegistry
from cashbook_services.distribution_service import DistributionService
from cashbook_services.ledger_sync import LedgerSyncCoordinator
from cashbook_services.order_payments import OrderPaymentService
from cashbook_services.orchestrator import CashbookOrchestrator, build_orchestrator
from cashbook_services.reconciliation_service import ReconciliationService
from cashbook_services.results import DistributionResult, OrderFailure, ReconciliationResult
from cashbook_services.timeline_service import TimelineService

__all__ = [
    "BalanceService",
    "CashbookOrchestrator",
    "CounterpartyLockRegistry",
    "DistributionResult",
    "DistributionService",
    "LedgerSyncCoordinator",
    "OrderFailure",
    "OrderPaymentService",
    "ReconciliationResult",
    "ReconciliationService",
    "TimelineService",
    "build_orchestrator",
]
