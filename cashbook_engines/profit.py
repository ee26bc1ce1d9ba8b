"""
Module: cashbook_engines.profit
Responsibility:
    Profit adjustment arithmetic for orders: the adjusted profit figure and
    the automatic expense/revenue adjustments that arise when a side is paid
    more or less than its obligation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - All results are rounded half-up to two decimal places.
    - A raw delta whose magnitude is below the noise threshold (0.01 by
      default) yields exactly 0.  The threshold is checked before rounding,
      so 999.995 paid against 1000 is 0, not -0.01.
    - No payments at all yields 0: an untouched side carries no adjustment.
    - The expense adjustment is sign-inverted: overpaying the supplier
      reduces profit.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from cashbook_kernel.domain.amounts import ZERO, round2
from cashbook_kernel.domain.records import Order, PaymentRecord, sum_payments

NOISE_THRESHOLD = Decimal("0.01")


def adjusted_profit(order: Order) -> Decimal:
    """Base profit plus expense, revenue and manual adjustments."""
    return round2(
        order.profit
        + order.expense_adjustment
        + order.revenue_adjustment
        + order.adjustment_amount
    )


def has_adjustments(order: Order) -> bool:
    return any(
        value != ZERO
        for value in (
            order.expense_adjustment,
            order.revenue_adjustment,
            order.adjustment_amount,
        )
    )


def _settle_delta(delta: Decimal, noise_threshold: Decimal) -> Decimal:
    if abs(delta) < noise_threshold:
        return ZERO
    return round2(delta)


def revenue_adjustment(
    expected_total: Decimal,
    payments: Iterable[PaymentRecord],
    noise_threshold: Decimal = NOISE_THRESHOLD,
) -> Decimal:
    """Received minus expected: a party overpaying raises profit."""
    payments = list(payments)
    if not payments:
        return ZERO
    return _settle_delta(sum_payments(payments) - expected_total, noise_threshold)


def expense_adjustment(
    expected_total: Decimal,
    payments: Iterable[PaymentRecord],
    noise_threshold: Decimal = NOISE_THRESHOLD,
) -> Decimal:
    """Expected minus paid: paying the supplier more lowers profit."""
    payments = list(payments)
    if not payments:
        return ZERO
    return _settle_delta(expected_total - sum_payments(payments), noise_threshold)
