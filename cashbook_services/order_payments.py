"""
cashbook_services.order_payments -- payment records on orders.

Responsibility:
    Add, remove and rewrite the payment lists on either side of an order,
    keeping the side's settlement flag and automatic profit adjustment in
    step with its payments.  Every other service that touches order
    payments (distribution, reconciliation) writes through
    ``apply_payments``.

Architecture position:
    Services -- orchestration over OrderStore (kernel I/O) and the
    settlement engine (pure).

Invariants enforced:
    - Every write carries the version the payments were computed from, so
      a concurrent writer surfaces as OptimisticLockError instead of a lost
      update.
    - Only fields that actually changed are written.
    - Manually added payments must be > 0.  On the expense side they may
      not exceed the amount still owed to the supplier; the revenue side is
      uncapped so a customer overpayment shows up as a positive revenue
      adjustment.

Failure modes:
    - InvalidAmountError / ValidationError for a rejected amount.
    - OrderNotFoundError, PaymentNotFoundError.
    - OptimisticLockError when the order moved underneath the caller.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from cashbook_engines.settlement import (
    DEFAULT_POLICY,
    SettlementPolicy,
    amount_due,
    derived_changes,
    recompute_side,
)
from cashbook_kernel.domain.amounts import clean_text, parse_timestamp, positive_amount, to_amount
from cashbook_kernel.domain.clock import Clock
from cashbook_kernel.domain.records import Order, PaymentRecord, PaymentSide
from cashbook_kernel.exceptions import PaymentNotFoundError, ValidationError
from cashbook_kernel.logging_config import LogContext, get_logger
from cashbook_kernel.services.order_store import OrderStore

logger = get_logger("services.order_payments")


class OrderPaymentService:
    """
    Payment-list mutations for both sides of an order.

    Contract:
        Every method returns the order as stored after the write.
    """

    def __init__(
        self,
        orders: OrderStore,
        policy: SettlementPolicy = DEFAULT_POLICY,
        clock: Clock | None = None,
    ):
        self.orders = orders
        self.policy = policy
        self.clock = clock or orders.clock

    def apply_payments(
        self,
        order: Order,
        side: PaymentSide,
        payments: Sequence[PaymentRecord],
    ) -> Order:
        """Replace the payments on ``side`` and recompute the derived fields."""
        after = recompute_side(order.with_payments(side, tuple(payments)), side, self.policy)
        changes = derived_changes(order, after, side)
        if not changes:
            return order
        return self.orders.update_order(order.id, changes, expected_version=order.version)

    def add_payment(
        self,
        order_id: str,
        amount: Decimal | int | str,
        note: str | None = None,
        side: PaymentSide = PaymentSide.EXPENSE,
        ledger_entry_id: str | None = None,
        date: datetime | str | None = None,
    ) -> Order:
        value = positive_amount(amount)
        order = self.orders.get_order_by_id(order_id)
        if side is PaymentSide.EXPENSE:
            due = amount_due(order, side)
            if value > due:
                raise ValidationError(
                    f"Payment amount ({value}) exceeds remaining amount ({due})",
                    field="amount",
                )
        now = self.clock.now()
        payment = PaymentRecord(
            id=str(uuid4()),
            amount=value,
            date=parse_timestamp(date) or now,
            note=clean_text(note),
            ledger_entry_id=ledger_entry_id,
            created_at=now,
        )
        with LogContext.bind(order_id=order_id):
            updated = self.apply_payments(order, side, order.payments(side) + (payment,))
            logger.info(
                "order_payment_added",
                extra={
                    "side": side.value,
                    "payment_id": payment.id,
                    "amount": str(value),
                    "settled": updated.marked_settled(side),
                },
            )
        return updated

    def remove_payment(
        self,
        order_id: str,
        payment_id: str,
        side: PaymentSide = PaymentSide.EXPENSE,
    ) -> Order:
        order = self.orders.get_order_by_id(order_id)
        remaining = tuple(p for p in order.payments(side) if p.id != payment_id)
        if len(remaining) == len(order.payments(side)):
            raise PaymentNotFoundError(order_id, payment_id)
        with LogContext.bind(order_id=order_id):
            updated = self.apply_payments(order, side, remaining)
            logger.info(
                "order_payment_removed",
                extra={"side": side.value, "payment_id": payment_id},
            )
        return updated

    def update_payment_by_ledger_entry_id(
        self,
        ledger_entry_id: str,
        amount: Decimal | int | str | None = None,
        date: datetime | str | None = None,
    ) -> list[Order]:
        """
        Rewrite amount and/or date of every payment allocated from one entry.

        Used when a ledger entry with no counterparty to redistribute to is
        edited; its linked payments follow the entry.  Returns the orders
        that changed.
        """
        new_amount = None if amount is None else to_amount(amount)
        new_date = parse_timestamp(date)
        if new_amount is None and new_date is None:
            return []

        changed: list[Order] = []
        for order in self.orders.get_all_orders():
            current = order
            for side in PaymentSide:
                payments = current.payments(side)
                rewritten = tuple(
                    _retarget(p, new_amount, new_date)
                    if p.ledger_entry_id == ledger_entry_id
                    else p
                    for p in payments
                )
                if rewritten != payments:
                    current = self.apply_payments(current, side, rewritten)
            if current is not order:
                changed.append(current)

        logger.info(
            "ledger_payments_updated",
            extra={"ledger_entry_id": ledger_entry_id, "orders_changed": len(changed)},
        )
        return changed


def _retarget(
    payment: PaymentRecord,
    amount: Decimal | None,
    date: datetime | None,
) -> PaymentRecord:
    return replace(
        payment,
        amount=payment.amount if amount is None else amount,
        date=payment.date if date is None else date,
    )
