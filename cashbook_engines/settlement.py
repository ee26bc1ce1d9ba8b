"""
Module: cashbook_engines.settlement
Responsibility:
    Decide whether one side of an order is settled, how much is still due,
    and recompute the derived order fields (settlement flag and automatic
    profit adjustment) after that side's payments change.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - A side is settled when paid >= obligation - tolerance.  The tolerance
      is a flat amount (250 by default) independent of order size, so an
      order whose obligation is at or below the tolerance is settled even
      with no payments.
    - Amount due is the exact residual max(0, obligation - paid); the
      tolerance never inflates or shrinks what an allocation may pay.
    - The automatic adjustment is only booked once a side is settled; an
      open side carries a zero adjustment so outstanding balances are not
      shown as lost profit.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal

from cashbook_engines.profit import NOISE_THRESHOLD, expense_adjustment, revenue_adjustment
from cashbook_kernel.domain.amounts import ZERO
from cashbook_kernel.domain.records import Order, PaymentSide

SETTLEMENT_TOLERANCE = Decimal("250")


@dataclass(frozen=True)
class SettlementPolicy:
    """Tolerance and noise threshold used for every settlement decision."""

    tolerance: Decimal = SETTLEMENT_TOLERANCE
    noise_threshold: Decimal = NOISE_THRESHOLD

    def __post_init__(self) -> None:
        if self.tolerance < ZERO:
            raise ValueError(f"tolerance must be >= 0, got {self.tolerance}")
        if self.noise_threshold < ZERO:
            raise ValueError(f"noise_threshold must be >= 0, got {self.noise_threshold}")


DEFAULT_POLICY = SettlementPolicy()


def is_settled(
    obligation: Decimal,
    paid: Decimal,
    tolerance: Decimal = SETTLEMENT_TOLERANCE,
) -> bool:
    return paid >= obligation - tolerance


def amount_due(order: Order, side: PaymentSide) -> Decimal:
    return max(ZERO, order.obligation(side) - order.paid_on(side))


def side_is_settled(
    order: Order,
    side: PaymentSide,
    policy: SettlementPolicy = DEFAULT_POLICY,
) -> bool:
    return is_settled(order.obligation(side), order.paid_on(side), policy.tolerance)


def side_adjustment(
    order: Order,
    side: PaymentSide,
    policy: SettlementPolicy = DEFAULT_POLICY,
) -> Decimal:
    if not side_is_settled(order, side, policy):
        return ZERO
    calculator = expense_adjustment if side is PaymentSide.EXPENSE else revenue_adjustment
    return calculator(order.obligation(side), order.payments(side), policy.noise_threshold)


def recompute_side(
    order: Order,
    side: PaymentSide,
    policy: SettlementPolicy = DEFAULT_POLICY,
) -> Order:
    """Return ``order`` with the side's flag and adjustment brought up to date."""
    return replace(
        order,
        **{
            side.settled_field: side_is_settled(order, side, policy),
            side.adjustment_field: side_adjustment(order, side, policy),
        },
    )


def derived_changes(
    before: Order,
    after: Order,
    side: PaymentSide,
) -> dict[str, object]:
    """Document fields that differ between two versions of one side."""
    changes: dict[str, object] = {}
    if before.payments(side) != after.payments(side):
        changes[side.payments_field] = [p.to_record() for p in after.payments(side)]
    if before.marked_settled(side) != after.marked_settled(side):
        changes[side.settled_field] = after.marked_settled(side)
    before_adj = getattr(before, side.adjustment_field)
    after_adj = getattr(after, side.adjustment_field)
    if before_adj != after_adj:
        changes[side.adjustment_field] = str(after_adj)
    return changes
