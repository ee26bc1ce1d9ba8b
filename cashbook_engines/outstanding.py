"""
Module: cashbook_engines.outstanding
Responsibility:
    Per-counterparty balances: what each supplier is owed and each party
    owes, how many of their orders are settled, partially paid or unpaid,
    and how much tagged ledger money has not reached any order.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - outstanding is the sum of per-order residuals max(0, obligation -
      paid); an overpaid order never offsets another order's debt.
    - Order status uses the same settlement tolerance as distribution.
    - undistributed = tagged ledger total - payments allocated from those
      entries.  This is where distribution remainders show up, since they
      are never stored on an order.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from cashbook_engines.settlement import (
    DEFAULT_POLICY,
    SettlementPolicy,
    amount_due,
    side_is_settled,
)
from cashbook_engines.tracer import traced_engine
from cashbook_kernel.domain.amounts import ZERO
from cashbook_kernel.domain.records import LedgerEntry, Order, PaymentSide


@dataclass(frozen=True)
class CounterpartyBalance:
    name: str
    side: PaymentSide
    order_count: int = 0
    settled_count: int = 0
    partial_count: int = 0
    unpaid_count: int = 0
    obligation_total: Decimal = ZERO
    paid_total: Decimal = ZERO
    outstanding: Decimal = ZERO
    ledger_total: Decimal = ZERO
    ledger_allocated: Decimal = ZERO

    @property
    def undistributed(self) -> Decimal:
        return self.ledger_total - self.ledger_allocated


def ledger_counterparty(entry: LedgerEntry, side: PaymentSide) -> str | None:
    """The counterparty an entry funds on ``side``, if any."""
    if entry.direction is not side.ledger_direction:
        return None
    return entry.supplier if side is PaymentSide.EXPENSE else entry.party_name


@traced_engine("outstanding", "1.0", fingerprint_fields=("side",))
def summarize_counterparties(
    *,
    orders: Iterable[Order],
    entries: Iterable[LedgerEntry],
    side: PaymentSide,
    policy: SettlementPolicy = DEFAULT_POLICY,
) -> list[CounterpartyBalance]:
    totals: dict[str, dict[str, object]] = {}

    def bucket(name: str) -> dict[str, object]:
        return totals.setdefault(
            name,
            {
                "order_count": 0,
                "settled_count": 0,
                "partial_count": 0,
                "unpaid_count": 0,
                "obligation_total": ZERO,
                "paid_total": ZERO,
                "outstanding": ZERO,
                "ledger_total": ZERO,
                "ledger_allocated": ZERO,
            },
        )

    entry_owner: dict[str, str] = {}
    for entry in entries:
        name = ledger_counterparty(entry, side)
        if not name:
            continue
        entry_owner[entry.id] = name
        b = bucket(name)
        b["ledger_total"] += entry.amount

    for order in orders:
        name = order.counterparty(side)
        if not name:
            continue
        b = bucket(name)
        paid = order.paid_on(side)
        b["order_count"] += 1
        b["obligation_total"] += order.obligation(side)
        b["paid_total"] += paid
        b["outstanding"] += amount_due(order, side)
        if side_is_settled(order, side, policy):
            b["settled_count"] += 1
        elif paid > ZERO:
            b["partial_count"] += 1
        else:
            b["unpaid_count"] += 1
        for payment in order.payments(side):
            owner = entry_owner.get(payment.ledger_entry_id or "")
            if owner is not None:
                bucket(owner)["ledger_allocated"] += payment.amount

    return [
        CounterpartyBalance(name=name, side=side, **values)
        for name, values in sorted(totals.items())
    ]
