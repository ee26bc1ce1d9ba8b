"""
cashbook_services.ledger_sync -- keep order payments in step with the ledger.

Responsibility:
    The ledger entry points a front end calls.  Each one performs the
    ledger mutation and then the follow-up work that keeps order payment
    records consistent with it:

    record_entry
        Supplier debit: reconcile the supplier against the live ledger,
        then distribute the entry over its open orders.  Party credit: the
        same on the revenue side, but only when automatic income
        distribution is enabled or the entry is a party payment.
    edit_entry
        Detach the entry from a counterparty it no longer funds, then
        redistribute it under its current amount and counterparty.  An
        entry with no counterparty has its linked payments rewritten in
        place.
    delete_entry
        Delete the entry, then sweep its payments from every order and
        reconcile its counterparty.  A failed delete leaves the orders
        untouched.
    apply_party_payment
        Explicit income distribution: a party-payment credit followed by a
        distribution whose result is returned to the caller.

Architecture position:
    Services -- composes LedgerStore (kernel) with the distribution,
    reconciliation and order payment services.

Failure modes:
    - The ledger mutation itself propagates its errors.
    - Follow-up work runs after the ledger write has committed; its
      failures are logged as ``ledger_sync_failed`` and never raised, so a
      caller never sees a ledger write reported as failed when it stuck.
      A later reconciliation repairs whatever the follow-up missed.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from functools import partial
from typing import TypeVar

from cashbook_engines.outstanding import ledger_counterparty
from cashbook_kernel.domain.amounts import ZERO, clean_text, positive_amount
from cashbook_kernel.domain.records import (
    LedgerDirection,
    LedgerEntry,
    LedgerSource,
    PaymentSide,
)
from cashbook_kernel.exceptions import CashbookError, ValidationError
from cashbook_kernel.logging_config import LogContext, get_logger
from cashbook_kernel.services.ledger_store import LedgerEntryChanges, LedgerStore
from cashbook_services.counterparty_lock import CounterpartyLockRegistry
from cashbook_services.distribution_service import DistributionService
from cashbook_services.order_payments import OrderPaymentService
from cashbook_services.reconciliation_service import ReconciliationService
from cashbook_services.results import DistributionResult

logger = get_logger("services.ledger_sync")

T = TypeVar("T")


class LedgerSyncCoordinator:
    """Ledger mutations plus their order-side follow-up."""

    def __init__(
        self,
        ledger: LedgerStore,
        distribution: DistributionService,
        reconciliation: ReconciliationService,
        payments: OrderPaymentService,
        locks: CounterpartyLockRegistry,
        auto_distribute_party_income: bool = False,
    ):
        self.ledger = ledger
        self.distribution = distribution
        self.reconciliation = reconciliation
        self.payments = payments
        self.locks = locks
        self.auto_distribute_party_income = auto_distribute_party_income

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def record_entry(
        self,
        direction: LedgerDirection | str,
        amount: Decimal | int | str,
        note: str | None = None,
        source: LedgerSource = LedgerSource.MANUAL,
        date: object = None,
        supplier: str | None = None,
        party_name: str | None = None,
    ) -> str:
        entry_id = self.ledger.add_entry(
            direction,
            amount,
            note=note,
            source=source,
            date=date,
            supplier=supplier,
            party_name=party_name,
        )
        with LogContext.bind(ledger_entry_id=entry_id):
            entry = self.ledger.get(entry_id)
            for side in PaymentSide:
                name = ledger_counterparty(entry, side)
                if name and self._distributes(entry, side):
                    self._background(
                        "settle_counterparty",
                        partial(self._settle_counterparty, entry, side, name),
                    )
        return entry_id

    def edit_entry(self, entry_id: str, changes: LedgerEntryChanges) -> LedgerEntry:
        before = self.ledger.get(entry_id)
        after = self.ledger.update(entry_id, changes)
        if after == before:
            return after

        with LogContext.bind(ledger_entry_id=entry_id):
            funded = False
            for side in PaymentSide:
                old = ledger_counterparty(before, side)
                new = ledger_counterparty(after, side)
                if old and old != new:
                    self._background(
                        "detach_ledger_entry",
                        partial(self.reconciliation.detach_ledger_entry, side, old, entry_id),
                    )
                if not new:
                    continue
                funded = True
                moved = (before.amount, before.date, old) != (after.amount, after.date, new)
                if moved and self._distributes(after, side):
                    self._background(
                        "settle_counterparty",
                        partial(self._settle_counterparty, after, side, new),
                    )

            if not funded and (after.amount != before.amount or after.date != before.date):
                self._background(
                    "update_linked_payments",
                    lambda: self.payments.update_payment_by_ledger_entry_id(
                        entry_id,
                        amount=after.amount if after.amount != before.amount else None,
                        date=after.date if after.date != before.date else None,
                    ),
                )
        return after

    def delete_entry(self, entry_id: str) -> LedgerEntry:
        with LogContext.bind(ledger_entry_id=entry_id):
            entry = self.ledger.remove(entry_id)
            self._background(
                "remove_linked_payments",
                partial(self.reconciliation.remove_payments_by_ledger_entry_id, entry_id),
            )
            live_ids = None
            for side in PaymentSide:
                name = ledger_counterparty(entry, side)
                if not name:
                    continue
                if live_ids is None:
                    live_ids = self.ledger.entry_ids()
                self._background(
                    "reconcile_counterparty",
                    partial(self.reconciliation.reconcile, side, name, live_ids),
                )
        return entry

    def apply_party_payment(
        self,
        party_name: str,
        amount: Decimal | int | str,
        note: str | None = None,
        date: datetime | str | None = None,
    ) -> DistributionResult:
        """Record income from a party and distribute it over their orders."""
        name = clean_text(party_name)
        if name is None:
            raise ValidationError("Party payment needs a party name", field="party_name")
        value = positive_amount(amount)
        entry_id = self.ledger.add_entry(
            LedgerDirection.CREDIT,
            value,
            note=note,
            source=LedgerSource.PARTY_PAYMENT,
            date=date,
            party_name=name,
        )
        entry = self.ledger.get(entry_id)
        with LogContext.bind(ledger_entry_id=entry_id):
            return self._settle_counterparty(entry, PaymentSide.REVENUE, name)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _distributes(self, entry: LedgerEntry, side: PaymentSide) -> bool:
        if side is PaymentSide.EXPENSE:
            return True
        return self.auto_distribute_party_income or entry.source is LedgerSource.PARTY_PAYMENT

    def _settle_counterparty(
        self,
        entry: LedgerEntry,
        side: PaymentSide,
        name: str,
    ) -> DistributionResult:
        """Reconcile ``name`` against the live ledger, then distribute ``entry``."""
        with self.locks.hold(side, name):
            self.reconciliation.reconcile(side, name, self.ledger.entry_ids())
            return self.distribution.distribute(
                side, name, max(entry.amount, ZERO), entry.id, date=entry.date
            )

    def _background(self, step: str, action: Callable[[], T]) -> T | None:
        try:
            return action()
        except CashbookError as exc:
            logger.error(
                "ledger_sync_failed",
                extra={"step": step, "error_code": exc.code, "error": str(exc)},
            )
            return None
