"""
OrderStore -- persistence for orders.

Responsibility:
    Create, read, filter, update and delete orders.  Business rules about
    payments and settlement live in ``cashbook_services.order_payments``;
    this service only stores what it is given, stamping ``updated_at`` and
    honouring optimistic version checks.

Architecture position:
    Kernel > Services.

Failure modes:
    - OrderNotFoundError for a missing order.
    - OptimisticLockError when ``expected_version`` is stale.
    - ValidationError when a new order has no party or supplier.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from cashbook_kernel.domain.amounts import ZERO, clean_text, parse_timestamp, to_amount, to_iso
from cashbook_kernel.domain.records import Order, PaymentSide
from cashbook_kernel.exceptions import DocumentNotFoundError, OrderNotFoundError, ValidationError
from cashbook_kernel.logging_config import get_logger
from cashbook_kernel.services.base import BaseService
from cashbook_kernel.store.base import StoredDocument, where

logger = get_logger("services.order_store")

ORDERS_COLLECTION = "orders"


@dataclass(frozen=True)
class OrderFilters:
    party_name: str | None = None
    supplier: str | None = None
    start_date: date | None = None
    end_date: date | None = None

    def matches(self, order: Order) -> bool:
        day = order.date.date()
        if self.start_date is not None and day < self.start_date:
            return False
        if self.end_date is not None and day > self.end_date:
            return False
        return True


def order_totals(
    weight: Decimal,
    rate: Decimal,
    original_weight: Decimal,
    original_rate: Decimal,
    additional_cost: Decimal,
) -> dict[str, Decimal]:
    """Selling total, cost total and base profit for the given quantities."""
    total = weight * rate
    original_total = original_weight * original_rate
    return {
        "total": total,
        "original_total": original_total,
        "profit": total - (original_total + additional_cost),
    }


def _to_order(document: StoredDocument) -> Order:
    return Order.from_record(document.id, document.data, version=document.version)


class OrderStore(BaseService):
    """Document-store backed order repository."""

    def create_order(
        self,
        *,
        party_name: str,
        supplier: str,
        date: datetime | str | None = None,
        weight: Decimal | int | str = ZERO,
        rate: Decimal | int | str = ZERO,
        original_weight: Decimal | int | str = ZERO,
        original_rate: Decimal | int | str = ZERO,
        additional_cost: Decimal | int | str = ZERO,
        adjustment_amount: Decimal | int | str = ZERO,
        adjustment_note: str | None = None,
        site_name: str | None = None,
    ) -> Order:
        party = clean_text(party_name)
        source = clean_text(supplier)
        if party is None:
            raise ValidationError("Order needs a party name", field="party_name")
        if source is None:
            raise ValidationError("Order needs a supplier", field="supplier")

        quantities = {
            "weight": to_amount(weight),
            "rate": to_amount(rate),
            "original_weight": to_amount(original_weight),
            "original_rate": to_amount(original_rate),
            "additional_cost": to_amount(additional_cost),
        }
        now = self.clock.now()
        order = Order(
            id="",
            date=parse_timestamp(date) or now,
            party_name=party,
            supplier=source,
            adjustment_amount=to_amount(adjustment_amount),
            adjustment_note=clean_text(adjustment_note),
            site_name=clean_text(site_name),
            created_at=now,
            updated_at=now,
            **quantities,
            **order_totals(**quantities),
        )
        order_id = self.store.create(ORDERS_COLLECTION, order.to_record())
        logger.info(
            "order_created",
            extra={
                "order_id": order_id,
                "party_name": party,
                "supplier": source,
                "total": str(order.total),
                "original_total": str(order.original_total),
            },
        )
        return self.get_order_by_id(order_id)

    def find(self, order_id: str) -> Order | None:
        document = self.store.get(ORDERS_COLLECTION, order_id)
        return None if document is None else _to_order(document)

    def get_order_by_id(self, order_id: str) -> Order:
        order = self.find(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def get_all_orders(self, filters: OrderFilters | None = None) -> list[Order]:
        """Orders in the order they were created, optionally filtered."""
        filters = filters or OrderFilters()
        predicates = []
        if filters.party_name:
            predicates.append(where("party_name", "==", filters.party_name))
        if filters.supplier:
            predicates.append(where("supplier", "==", filters.supplier))
        documents = self.store.query(ORDERS_COLLECTION, predicates)
        return [o for o in map(_to_order, documents) if filters.matches(o)]

    def orders_for(self, side: PaymentSide, name: str) -> list[Order]:
        """All orders whose counterparty on ``side`` is ``name``."""
        return [
            _to_order(d)
            for d in self.store.query(
                ORDERS_COLLECTION, [where(side.counterparty_field, "==", name)]
            )
        ]

    def update_order(
        self,
        order_id: str,
        fields: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> Order:
        """Merge document ``fields`` into the order and return the result."""
        payload = dict(fields)
        payload["updated_at"] = to_iso(self.clock.now())
        try:
            document = self.store.update(
                ORDERS_COLLECTION, order_id, payload, expected_version=expected_version
            )
        except DocumentNotFoundError:
            raise OrderNotFoundError(order_id) from None
        logger.debug(
            "order_updated",
            extra={"order_id": order_id, "changed_fields": sorted(fields)},
        )
        return _to_order(document)

    def delete_order(self, order_id: str) -> None:
        if not self.store.delete(ORDERS_COLLECTION, order_id):
            raise OrderNotFoundError(order_id)
        logger.info("order_deleted", extra={"order_id": order_id})
