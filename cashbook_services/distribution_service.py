"""
cashbook_services.distribution_service -- spread ledger money over orders.

Responsibility:
    Take one lump-sum ledger amount paid to a supplier (or received from a
    party) and allocate it across that counterparty's open orders, oldest
    first, as payment records tagged with the ledger entry id.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes the allocation engine (pure planning) with OrderStore and
    OrderPaymentService (kernel I/O).

Invariants enforced:
    - Re-running for the same ledger entry replaces that entry's earlier
      allocations instead of stacking new ones on top.
    - Conservation: total_allocated + unapplied == amount.  The unapplied
      remainder is reported, never stored on an order.
    - No order receives more than its exact amount due.
    - One run per counterparty at a time (CounterpartyLockRegistry); every
      order write is version checked.

Failure modes:
    - InvalidAmountError for a negative amount, ValidationError for a
      blank counterparty.  Both are raised before anything is written.
    - Per-order write failures (missing order, version conflict, store
      errors) are logged as ``order_write_failed``, collected in
      DistributionResult.failures, and the run continues.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from cashbook_engines.allocation import (
    PlannedAllocation,
    collect_obligations,
    plan_oldest_first,
)
from cashbook_engines.outstanding import ledger_counterparty
from cashbook_kernel.domain.amounts import ZERO, clean_text, parse_timestamp, to_amount
from cashbook_kernel.domain.clock import Clock
from cashbook_kernel.domain.records import LedgerEntry, Order, PaymentRecord, PaymentSide
from cashbook_kernel.exceptions import CashbookError, InvalidAmountError, ValidationError
from cashbook_kernel.logging_config import LogContext, get_logger
from cashbook_kernel.services.order_store import OrderStore
from cashbook_services.counterparty_lock import CounterpartyLockRegistry
from cashbook_services.order_payments import OrderPaymentService
from cashbook_services.results import DistributionResult, OrderFailure

logger = get_logger("services.distribution")

DEFAULT_PAYMENT_NOTE = "From ledger entry"


def _without_entry(order: Order, side: PaymentSide, ledger_entry_id: str) -> tuple[PaymentRecord, ...]:
    return tuple(p for p in order.payments(side) if p.ledger_entry_id != ledger_entry_id)


class DistributionService:
    """
    Allocates ledger amounts across a counterparty's outstanding orders.

    Contract:
        ``distribute`` always runs to completion.  The returned result says
        which allocations were written and which orders failed.

    Non-goals:
        - Does NOT remove allocations of deleted ledger entries; that is
          ReconciliationService's job.
        - Does NOT persist the unapplied remainder anywhere.
    """

    def __init__(
        self,
        orders: OrderStore,
        payments: OrderPaymentService,
        locks: CounterpartyLockRegistry,
        clock: Clock | None = None,
        payment_note: str = DEFAULT_PAYMENT_NOTE,
    ):
        self.orders = orders
        self.payments = payments
        self.locks = locks
        self.clock = clock or orders.clock
        self._payment_note = payment_note

    def distribute_to_supplier_orders(
        self,
        supplier: str,
        amount: Decimal | int | str,
        ledger_entry_id: str,
        note: str | None = None,
        date: datetime | str | None = None,
    ) -> DistributionResult:
        return self.distribute(
            PaymentSide.EXPENSE, supplier, amount, ledger_entry_id, note=note, date=date
        )

    def distribute_to_party_orders(
        self,
        party_name: str,
        amount: Decimal | int | str,
        ledger_entry_id: str,
        note: str | None = None,
        date: datetime | str | None = None,
    ) -> DistributionResult:
        return self.distribute(
            PaymentSide.REVENUE, party_name, amount, ledger_entry_id, note=note, date=date
        )

    def redistribute_ledger_entry(self, entry: LedgerEntry) -> list[DistributionResult]:
        """
        Replace an entry's allocations with a fresh distribution of its
        current amount.  A non-positive amount just clears them.
        """
        results = []
        for side in PaymentSide:
            name = ledger_counterparty(entry, side)
            if name:
                results.append(
                    self.distribute(
                        side, name, max(entry.amount, ZERO), entry.id, date=entry.date
                    )
                )
        return results

    def distribute(
        self,
        side: PaymentSide,
        counterparty: str,
        amount: Decimal | int | str,
        ledger_entry_id: str,
        note: str | None = None,
        date: datetime | str | None = None,
    ) -> DistributionResult:
        value = to_amount(amount)
        if value < ZERO:
            raise InvalidAmountError(amount, reason="distribution amount cannot be negative")
        name = clean_text(counterparty)
        if name is None:
            raise ValidationError(
                "Distribution needs a counterparty", field=side.counterparty_field
            )
        when = parse_timestamp(date) or self.clock.now()

        with LogContext.bind(ledger_entry_id=ledger_entry_id, counterparty=name):
            with self.locks.hold(side, name):
                return self._distribute_locked(
                    side, name, value, ledger_entry_id, clean_text(note), when
                )

    def _distribute_locked(
        self,
        side: PaymentSide,
        name: str,
        amount: Decimal,
        ledger_entry_id: str,
        note: str | None,
        when: datetime,
    ) -> DistributionResult:
        orders = self.orders.orders_for(side, name)
        kept = {o.id: _without_entry(o, side, ledger_entry_id) for o in orders}
        candidates = [o.with_payments(side, kept[o.id]) for o in orders]

        plan = plan_oldest_first(
            amount=amount,
            obligations=collect_obligations(candidates, side, self.payments.policy),
        )
        planned: dict[str, PlannedAllocation] = {a.order_id: a for a in plan.allocations}

        by_id = {o.id: o for o in orders}
        # Planned lines first, oldest first; then orders that only lose
        # this entry's earlier allocations.
        write_order = [a.order_id for a in plan.allocations] + [
            o.id
            for o in orders
            if o.id not in planned and len(kept[o.id]) != len(o.payments(side))
        ]

        written: list[PlannedAllocation] = []
        failures: list[OrderFailure] = []
        cleared = 0
        for order_id in write_order:
            order = by_id[order_id]
            line = planned.get(order_id)
            payments = kept[order_id]
            if line is not None:
                payments = payments + (
                    PaymentRecord(
                        id=str(uuid4()),
                        amount=line.amount,
                        date=when,
                        note=note or self._payment_note,
                        ledger_entry_id=ledger_entry_id,
                        created_at=self.clock.now(),
                    ),
                )
            try:
                self.payments.apply_payments(order, side, payments)
            except CashbookError as exc:
                logger.warning(
                    "order_write_failed",
                    extra={
                        "order_id": order_id,
                        "side": side.value,
                        "error_code": exc.code,
                        "error": str(exc),
                    },
                )
                failures.append(OrderFailure.from_error(order_id, exc))
                continue
            if line is not None:
                written.append(line)
            else:
                cleared += 1

        result = DistributionResult(
            ledger_entry_id=ledger_entry_id,
            side=side,
            counterparty=name,
            amount=amount,
            allocations=tuple(written),
            failures=tuple(failures),
            orders_cleared=cleared,
        )
        logger.info(
            "distribution_completed",
            extra={
                "side": side.value,
                "amount": str(amount),
                "orders_considered": len(orders),
                "succeeded_count": result.succeeded_count,
                "failed_count": result.failed_count,
                "total_allocated": str(result.total_allocated),
                "unapplied": str(result.unapplied),
            },
        )
        return result
