"""
cashbook_services.reconciliation_service -- drop orphaned order payments.

Responsibility:
    Keep order payment records consistent with the ledger: a payment that
    was allocated from a ledger entry is only valid while that entry
    exists and still funds the same counterparty.  Orphaned payments are
    removed and the side's settlement flag and adjustment recomputed.

Architecture position:
    Services -- orchestration over OrderStore and OrderPaymentService.

Invariants enforced:
    - Manual payments (no ledger back-reference) are never touched.
    - Idempotent: a second run with the same valid ids changes nothing.
    - Only orders whose payments changed are written.
    - Runs hold the counterparty lock, so they never interleave with a
      distribution to the same supplier or party.

Failure modes:
    - Per-order failures are logged as ``order_write_failed`` and collected
      in ReconciliationResult.failures; the sweep continues.

Scalability:
    Every operation scans all orders of the counterparty (or all orders,
    for the global sweep).  An index from ledger entry id to order ids is
    the next step once order counts outgrow a few thousand.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable

from cashbook_kernel.domain.records import Order, PaymentRecord, PaymentSide
from cashbook_kernel.exceptions import CashbookError
from cashbook_kernel.logging_config import LogContext, get_logger
from cashbook_kernel.services.order_store import OrderStore
from cashbook_services.counterparty_lock import CounterpartyLockRegistry
from cashbook_services.order_payments import OrderPaymentService
from cashbook_services.results import OrderFailure, ReconciliationResult

logger = get_logger("services.reconciliation")

PaymentPredicate = Callable[[PaymentRecord], bool]


class ReconciliationService:
    """Removes order payments that no longer match a live ledger entry."""

    def __init__(
        self,
        orders: OrderStore,
        payments: OrderPaymentService,
        locks: CounterpartyLockRegistry,
    ):
        self.orders = orders
        self.payments = payments
        self.locks = locks

    def reconcile_supplier_orders(
        self,
        supplier: str,
        valid_ledger_ids: Collection[str],
    ) -> ReconciliationResult:
        return self.reconcile(PaymentSide.EXPENSE, supplier, valid_ledger_ids)

    def reconcile_party_orders(
        self,
        party_name: str,
        valid_ledger_ids: Collection[str],
    ) -> ReconciliationResult:
        return self.reconcile(PaymentSide.REVENUE, party_name, valid_ledger_ids)

    def reconcile(
        self,
        side: PaymentSide,
        counterparty: str,
        valid_ledger_ids: Collection[str],
    ) -> ReconciliationResult:
        """Drop ``side`` payments tagged with an id not in ``valid_ledger_ids``."""
        valid = frozenset(valid_ledger_ids)

        def orphaned(payment: PaymentRecord) -> bool:
            return payment.is_ledger_linked and payment.ledger_entry_id not in valid

        with LogContext.bind(counterparty=counterparty), self.locks.hold(side, counterparty):
            result = self._sweep(self.orders.orders_for(side, counterparty), side, orphaned)
        logger.info(
            "reconciliation_completed",
            extra={
                "side": side.value,
                "valid_ledger_ids": len(valid),
                "orders_scanned": result.orders_scanned,
                "orders_changed": result.orders_changed,
                "payments_removed": result.payments_removed,
                "failed_count": len(result.failures),
            },
        )
        return result

    def detach_ledger_entry(
        self,
        side: PaymentSide,
        counterparty: str,
        ledger_entry_id: str,
    ) -> ReconciliationResult:
        """Remove one entry's allocations from one counterparty's orders."""
        with LogContext.bind(ledger_entry_id=ledger_entry_id, counterparty=counterparty):
            with self.locks.hold(side, counterparty):
                result = self._sweep(
                    self.orders.orders_for(side, counterparty),
                    side,
                    lambda p: p.ledger_entry_id == ledger_entry_id,
                )
        logger.info(
            "ledger_entry_detached",
            extra={
                "side": side.value,
                "orders_changed": result.orders_changed,
                "payments_removed": result.payments_removed,
            },
        )
        return result

    def remove_payments_by_ledger_entry_id(self, ledger_entry_id: str) -> ReconciliationResult:
        """Remove every payment allocated from ``ledger_entry_id``, on any order."""
        result = ReconciliationResult()
        with LogContext.bind(ledger_entry_id=ledger_entry_id):
            orders = self.orders.get_all_orders()
            for side in PaymentSide:
                affected = [
                    o
                    for o in orders
                    if any(p.ledger_entry_id == ledger_entry_id for p in o.payments(side))
                ]
                for name in sorted({o.counterparty(side) for o in affected}):
                    with self.locks.hold(side, name):
                        # Re-read under the lock; the snapshot above may be stale.
                        result = result.merge(
                            self._sweep(
                                self.orders.orders_for(side, name),
                                side,
                                lambda p: p.ledger_entry_id == ledger_entry_id,
                            )
                        )
            result = ReconciliationResult(
                orders_scanned=len(orders),
                orders_changed=result.orders_changed,
                payments_removed=result.payments_removed,
                failures=result.failures,
            )
            logger.info(
                "ledger_payments_removed",
                extra={
                    "orders_scanned": result.orders_scanned,
                    "orders_changed": result.orders_changed,
                    "payments_removed": result.payments_removed,
                    "failed_count": len(result.failures),
                },
            )
        return result

    def _sweep(
        self,
        orders: Iterable[Order],
        side: PaymentSide,
        remove: PaymentPredicate,
    ) -> ReconciliationResult:
        scanned = changed = removed = 0
        failures: list[OrderFailure] = []
        for order in orders:
            scanned += 1
            current = order.payments(side)
            kept = tuple(p for p in current if not remove(p))
            if len(kept) == len(current):
                continue
            try:
                self.payments.apply_payments(order, side, kept)
            except CashbookError as exc:
                logger.warning(
                    "order_write_failed",
                    extra={
                        "order_id": order.id,
                        "side": side.value,
                        "error_code": exc.code,
                        "error": str(exc),
                    },
                )
                failures.append(OrderFailure.from_error(order.id, exc))
                continue
            changed += 1
            removed += len(current) - len(kept)
        return ReconciliationResult(
            orders_scanned=scanned,
            orders_changed=changed,
            payments_removed=removed,
            failures=tuple(failures),
        )
