"""
Module: cashbook_engines.allocation
Responsibility:
    Plan how one lump-sum payment is spread across a counterparty's open
    order obligations, oldest first.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The distribution service
    loads orders, asks for a plan, then writes one payment per planned line.

Invariants enforced:
    - Conservation: total_allocated + unapplied == amount.
    - Oldest first: obligations are taken in ascending transaction date;
      equal dates keep the order the obligations were supplied in (stable
      sort), which is the store's insertion order.
    - No line exceeds its obligation's exact amount due.
    - Settled obligations and obligations with nothing due receive nothing.

Failure modes:
    - ValueError on a negative amount.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from cashbook_engines.settlement import (
    DEFAULT_POLICY,
    SettlementPolicy,
    amount_due,
    side_is_settled,
)
from cashbook_engines.tracer import traced_engine
from cashbook_kernel.domain.amounts import ZERO
from cashbook_kernel.domain.records import Order, PaymentSide
from cashbook_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


@dataclass(frozen=True)
class Obligation:
    """What one order still owes on the side being paid."""

    order_id: str
    due: Decimal
    date: datetime


@dataclass(frozen=True)
class PlannedAllocation:
    order_id: str
    amount: Decimal
    due_before: Decimal

    @property
    def clears_obligation(self) -> bool:
        return self.amount >= self.due_before


@dataclass(frozen=True)
class AllocationPlan:
    amount: Decimal
    allocations: tuple[PlannedAllocation, ...]

    @property
    def total_allocated(self) -> Decimal:
        return sum((a.amount for a in self.allocations), ZERO)

    @property
    def unapplied(self) -> Decimal:
        return self.amount - self.total_allocated

    @property
    def is_fully_applied(self) -> bool:
        return self.unapplied == ZERO


def collect_obligations(
    orders: Iterable[Order],
    side: PaymentSide,
    policy: SettlementPolicy = DEFAULT_POLICY,
) -> list[Obligation]:
    """Open obligations on ``side``, in the order the orders were given."""
    obligations: list[Obligation] = []
    for order in orders:
        if side_is_settled(order, side, policy):
            continue
        due = amount_due(order, side)
        if due > ZERO:
            obligations.append(Obligation(order.id, due, order.date))
    return obligations


@traced_engine("allocation", "1.0", fingerprint_fields=("amount", "obligations"))
def plan_oldest_first(
    *,
    amount: Decimal,
    obligations: Sequence[Obligation],
) -> AllocationPlan:
    """
    Walk obligations oldest first, giving each min(remaining, due).

    Stops when the amount is used up or obligations run out; whatever is
    left is reported as ``unapplied``.
    """
    if amount < ZERO:
        raise ValueError(f"Allocation amount must not be negative: {amount}")

    remaining = amount
    lines: list[PlannedAllocation] = []
    for obligation in sorted(obligations, key=lambda o: o.date):
        if remaining <= ZERO:
            break
        if obligation.due <= ZERO:
            continue
        share = min(remaining, obligation.due)
        lines.append(PlannedAllocation(obligation.order_id, share, obligation.due))
        remaining -= share

    plan = AllocationPlan(amount=amount, allocations=tuple(lines))
    logger.debug(
        "allocation_planned",
        extra={
            "amount": str(amount),
            "obligation_count": len(obligations),
            "allocation_count": len(lines),
            "unapplied": str(plan.unapplied),
        },
    )
    return plan
