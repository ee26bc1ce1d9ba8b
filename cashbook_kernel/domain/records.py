"""
Module: cashbook_kernel.domain.records
Responsibility:
    Immutable domain records for ledger entries, orders, payment records,
    invoices, investment capital and their audit activities, plus their
    conversion to and from flat JSON-safe documents.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.  Stores convert documents with
    ``from_record`` on read and ``to_record`` on write; engines and services
    only ever see these dataclasses.

Invariants enforced:
    - Money is Decimal in memory and a decimal string in documents.
    - Timestamps are timezone-aware UTC in memory, ISO-8601 in documents.
    - Optional text fields are absent from documents rather than blank.

Failure modes:
    - ``from_record`` is lenient on legacy numeric fields (missing or
      malformed amounts read as 0) but raises ValidationError on an
      unparseable timestamp.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from cashbook_kernel.domain.amounts import (
    ZERO,
    amount_or_zero,
    parse_timestamp,
    to_iso,
)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class LedgerDirection(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class LedgerSource(str, Enum):
    """What created a ledger entry."""

    MANUAL = "manual"
    PARTY_PAYMENT = "party_payment"
    INVOICE_PAYMENT = "invoice_payment"
    ORDER_EXPENSE = "order_expense"
    ORDER_PROFIT = "order_profit"
    ORDER_PAYMENT_UPDATE = "order_payment_update"


class ActivityType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class PaymentSide(str, Enum):
    """
    Which side of an order a payment settles.

    EXPENSE is money paid to the supplier against ``original_total``;
    REVENUE is money received from the party against ``total``.
    """

    EXPENSE = "expense"
    REVENUE = "revenue"

    @property
    def payments_field(self) -> str:
        return "partial_payments" if self is PaymentSide.EXPENSE else "customer_payments"

    @property
    def settled_field(self) -> str:
        return "paid" if self is PaymentSide.EXPENSE else "party_paid"

    @property
    def adjustment_field(self) -> str:
        return "expense_adjustment" if self is PaymentSide.EXPENSE else "revenue_adjustment"

    @property
    def counterparty_field(self) -> str:
        return "supplier" if self is PaymentSide.EXPENSE else "party_name"

    @property
    def ledger_direction(self) -> LedgerDirection:
        """Direction of the ledger entries that fund this side."""
        return LedgerDirection.DEBIT if self is PaymentSide.EXPENSE else LedgerDirection.CREDIT


def _opt(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    return str(value)


def _put_optional(record: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        record[key] = value


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerEntry:
    """
    One credit or debit in the cash ledger.

    A debit tagged with ``supplier`` funds that supplier's orders; a credit
    tagged with ``party_name`` funds that party's orders.
    """

    id: str
    direction: LedgerDirection
    amount: Decimal
    date: datetime
    source: LedgerSource = LedgerSource.MANUAL
    created_at: datetime | None = None
    supplier: str | None = None
    party_name: str | None = None
    note: str | None = None

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.direction is LedgerDirection.CREDIT else -self.amount

    @property
    def sort_time(self) -> datetime:
        return self.created_at or self.date

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "direction": self.direction.value,
            "amount": str(self.amount),
            "date": to_iso(self.date),
            "source": self.source.value,
        }
        _put_optional(record, "created_at", to_iso(self.created_at))
        _put_optional(record, "supplier", self.supplier)
        _put_optional(record, "party_name", self.party_name)
        _put_optional(record, "note", self.note)
        return record

    @classmethod
    def from_record(cls, record_id: str, data: Mapping[str, Any]) -> LedgerEntry:
        created_at = parse_timestamp(data.get("created_at"))
        return cls(
            id=record_id,
            direction=LedgerDirection(data["direction"]),
            amount=amount_or_zero(data.get("amount")),
            date=parse_timestamp(data.get("date")) or created_at or EPOCH,
            source=LedgerSource(data.get("source") or LedgerSource.MANUAL.value),
            created_at=created_at,
            supplier=_opt(data, "supplier"),
            party_name=_opt(data, "party_name"),
            note=_opt(data, "note"),
        )


@dataclass(frozen=True)
class LedgerActivity:
    """Audit record of one ledger mutation, with the values it replaced."""

    id: str
    ledger_entry_id: str
    activity_type: ActivityType
    timestamp: datetime
    amount: Decimal | None = None
    previous_amount: Decimal | None = None
    direction: LedgerDirection | None = None
    previous_direction: LedgerDirection | None = None
    note: str | None = None
    previous_note: str | None = None
    date: datetime | None = None
    previous_date: datetime | None = None
    supplier: str | None = None
    previous_supplier: str | None = None
    party_name: str | None = None
    previous_party_name: str | None = None

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "ledger_entry_id": self.ledger_entry_id,
            "activity_type": self.activity_type.value,
            "timestamp": to_iso(self.timestamp),
        }
        for key in ("amount", "previous_amount"):
            value = getattr(self, key)
            _put_optional(record, key, None if value is None else str(value))
        for key in ("direction", "previous_direction"):
            value = getattr(self, key)
            _put_optional(record, key, None if value is None else value.value)
        for key in ("date", "previous_date"):
            _put_optional(record, key, to_iso(getattr(self, key)))
        for key in (
            "note",
            "previous_note",
            "supplier",
            "previous_supplier",
            "party_name",
            "previous_party_name",
        ):
            _put_optional(record, key, getattr(self, key))
        return record

    @classmethod
    def from_record(cls, record_id: str, data: Mapping[str, Any]) -> LedgerActivity:
        def _amount(key: str) -> Decimal | None:
            return None if data.get(key) is None else amount_or_zero(data[key])

        def _direction(key: str) -> LedgerDirection | None:
            return None if not data.get(key) else LedgerDirection(data[key])

        return cls(
            id=record_id,
            ledger_entry_id=str(data["ledger_entry_id"]),
            activity_type=ActivityType(data["activity_type"]),
            timestamp=parse_timestamp(data.get("timestamp")) or EPOCH,
            amount=_amount("amount"),
            previous_amount=_amount("previous_amount"),
            direction=_direction("direction"),
            previous_direction=_direction("previous_direction"),
            note=_opt(data, "note"),
            previous_note=_opt(data, "previous_note"),
            date=parse_timestamp(data.get("date")),
            previous_date=parse_timestamp(data.get("previous_date")),
            supplier=_opt(data, "supplier"),
            previous_supplier=_opt(data, "previous_supplier"),
            party_name=_opt(data, "party_name"),
            previous_party_name=_opt(data, "previous_party_name"),
        )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentRecord:
    """
    One payment against one side of one order.

    ``ledger_entry_id`` is set when the payment was allocated from a ledger
    entry; such a payment is only valid while that entry exists.
    """

    id: str
    amount: Decimal
    date: datetime
    note: str | None = None
    ledger_entry_id: str | None = None
    created_at: datetime | None = None

    @property
    def is_ledger_linked(self) -> bool:
        return self.ledger_entry_id is not None

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": self.id,
            "amount": str(self.amount),
            "date": to_iso(self.date),
        }
        _put_optional(record, "note", self.note)
        _put_optional(record, "ledger_entry_id", self.ledger_entry_id)
        _put_optional(record, "created_at", to_iso(self.created_at))
        return record

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> PaymentRecord:
        created_at = parse_timestamp(data.get("created_at"))
        return cls(
            id=str(data["id"]),
            amount=amount_or_zero(data.get("amount")),
            date=parse_timestamp(data.get("date")) or created_at or EPOCH,
            note=_opt(data, "note"),
            ledger_entry_id=_opt(data, "ledger_entry_id"),
            created_at=created_at,
        )


def sum_payments(payments: tuple[PaymentRecord, ...] | list[PaymentRecord]) -> Decimal:
    return sum((p.amount for p in payments), ZERO)


_ORDER_AMOUNT_FIELDS = (
    "weight",
    "rate",
    "total",
    "original_weight",
    "original_rate",
    "original_total",
    "additional_cost",
    "profit",
    "expense_adjustment",
    "revenue_adjustment",
    "adjustment_amount",
)


@dataclass(frozen=True)
class Order:
    """
    A sale to a party sourced from a supplier.

    The selling side (``total``) is owed by the party and settled by
    ``customer_payments``; the cost side (``original_total``) is owed to the
    supplier and settled by ``partial_payments``.
    """

    id: str
    date: datetime
    party_name: str
    supplier: str
    weight: Decimal = ZERO
    rate: Decimal = ZERO
    total: Decimal = ZERO
    original_weight: Decimal = ZERO
    original_rate: Decimal = ZERO
    original_total: Decimal = ZERO
    additional_cost: Decimal = ZERO
    profit: Decimal = ZERO
    expense_adjustment: Decimal = ZERO
    revenue_adjustment: Decimal = ZERO
    adjustment_amount: Decimal = ZERO
    adjustment_note: str | None = None
    partial_payments: tuple[PaymentRecord, ...] = ()
    customer_payments: tuple[PaymentRecord, ...] = ()
    paid: bool = False
    party_paid: bool = False
    site_name: str | None = None
    invoice_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    def payments(self, side: PaymentSide) -> tuple[PaymentRecord, ...]:
        return getattr(self, side.payments_field)

    def obligation(self, side: PaymentSide) -> Decimal:
        return self.original_total if side is PaymentSide.EXPENSE else self.total

    def counterparty(self, side: PaymentSide) -> str:
        return getattr(self, side.counterparty_field)

    def paid_on(self, side: PaymentSide) -> Decimal:
        return sum_payments(self.payments(side))

    def marked_settled(self, side: PaymentSide) -> bool:
        return getattr(self, side.settled_field)

    def with_payments(self, side: PaymentSide, payments: tuple[PaymentRecord, ...]) -> Order:
        return replace(self, **{side.payments_field: tuple(payments)})

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "date": to_iso(self.date),
            "party_name": self.party_name,
            "supplier": self.supplier,
            "partial_payments": [p.to_record() for p in self.partial_payments],
            "customer_payments": [p.to_record() for p in self.customer_payments],
            "paid": self.paid,
            "party_paid": self.party_paid,
        }
        for key in _ORDER_AMOUNT_FIELDS:
            record[key] = str(getattr(self, key))
        _put_optional(record, "adjustment_note", self.adjustment_note)
        _put_optional(record, "site_name", self.site_name)
        _put_optional(record, "invoice_id", self.invoice_id)
        _put_optional(record, "created_at", to_iso(self.created_at))
        _put_optional(record, "updated_at", to_iso(self.updated_at))
        return record

    @classmethod
    def from_record(
        cls,
        record_id: str,
        data: Mapping[str, Any],
        version: int = 0,
    ) -> Order:
        amounts = {key: amount_or_zero(data.get(key)) for key in _ORDER_AMOUNT_FIELDS}
        created_at = parse_timestamp(data.get("created_at"))
        return cls(
            id=record_id,
            date=parse_timestamp(data.get("date")) or created_at or EPOCH,
            party_name=str(data.get("party_name") or ""),
            supplier=str(data.get("supplier") or ""),
            adjustment_note=_opt(data, "adjustment_note"),
            partial_payments=tuple(
                PaymentRecord.from_record(p) for p in data.get("partial_payments") or ()
            ),
            customer_payments=tuple(
                PaymentRecord.from_record(p) for p in data.get("customer_payments") or ()
            ),
            paid=bool(data.get("paid", False)),
            party_paid=bool(data.get("party_paid", False)),
            site_name=_opt(data, "site_name"),
            invoice_id=_opt(data, "invoice_id"),
            created_at=created_at,
            updated_at=parse_timestamp(data.get("updated_at")),
            version=version,
            **amounts,
        )


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvoicePayment:
    id: str
    amount: Decimal
    date: datetime
    note: str | None = None
    created_at: datetime | None = None

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": self.id,
            "amount": str(self.amount),
            "date": to_iso(self.date),
        }
        _put_optional(record, "note", self.note)
        _put_optional(record, "created_at", to_iso(self.created_at))
        return record

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> InvoicePayment:
        created_at = parse_timestamp(data.get("created_at"))
        return cls(
            id=str(data["id"]),
            amount=amount_or_zero(data.get("amount")),
            date=parse_timestamp(data.get("date")) or created_at or EPOCH,
            note=_opt(data, "note"),
            created_at=created_at,
        )


@dataclass(frozen=True)
class Invoice:
    id: str
    invoice_number: str
    party_name: str
    total_amount: Decimal
    order_ids: tuple[str, ...] = ()
    paid_amount: Decimal = ZERO
    partial_payments: tuple[InvoicePayment, ...] = ()
    paid: bool = False
    due_date: datetime | None = None
    created_at: datetime | None = None

    @property
    def outstanding(self) -> Decimal:
        return max(ZERO, self.total_amount - self.paid_amount)

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "invoice_number": self.invoice_number,
            "party_name": self.party_name,
            "total_amount": str(self.total_amount),
            "order_ids": list(self.order_ids),
            "paid_amount": str(self.paid_amount),
            "partial_payments": [p.to_record() for p in self.partial_payments],
            "paid": self.paid,
        }
        _put_optional(record, "due_date", to_iso(self.due_date))
        _put_optional(record, "created_at", to_iso(self.created_at))
        return record

    @classmethod
    def from_record(cls, record_id: str, data: Mapping[str, Any]) -> Invoice:
        return cls(
            id=record_id,
            invoice_number=str(data.get("invoice_number") or ""),
            party_name=str(data.get("party_name") or ""),
            total_amount=amount_or_zero(data.get("total_amount")),
            order_ids=tuple(data.get("order_ids") or ()),
            paid_amount=amount_or_zero(data.get("paid_amount")),
            partial_payments=tuple(
                InvoicePayment.from_record(p) for p in data.get("partial_payments") or ()
            ),
            paid=bool(data.get("paid", False)),
            due_date=parse_timestamp(data.get("due_date")),
            created_at=parse_timestamp(data.get("created_at")),
        )


# ---------------------------------------------------------------------------
# Investment capital
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvestmentRecord:
    id: str
    amount: Decimal
    date: datetime
    note: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {"amount": str(self.amount), "date": to_iso(self.date)}
        _put_optional(record, "note", self.note)
        _put_optional(record, "created_at", to_iso(self.created_at))
        _put_optional(record, "updated_at", to_iso(self.updated_at))
        return record

    @classmethod
    def from_record(cls, record_id: str, data: Mapping[str, Any]) -> InvestmentRecord:
        created_at = parse_timestamp(data.get("created_at"))
        return cls(
            id=record_id,
            amount=amount_or_zero(data.get("amount")),
            date=parse_timestamp(data.get("date")) or created_at or EPOCH,
            note=_opt(data, "note"),
            created_at=created_at,
            updated_at=parse_timestamp(data.get("updated_at")),
        )


@dataclass(frozen=True)
class InvestmentActivity:
    id: str
    activity_type: ActivityType
    amount: Decimal
    date: datetime
    timestamp: datetime
    previous_amount: Decimal | None = None
    note: str | None = None
    previous_note: str | None = None

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "activity_type": self.activity_type.value,
            "amount": str(self.amount),
            "date": to_iso(self.date),
            "timestamp": to_iso(self.timestamp),
        }
        _put_optional(
            record,
            "previous_amount",
            None if self.previous_amount is None else str(self.previous_amount),
        )
        _put_optional(record, "note", self.note)
        _put_optional(record, "previous_note", self.previous_note)
        return record

    @classmethod
    def from_record(cls, record_id: str, data: Mapping[str, Any]) -> InvestmentActivity:
        timestamp = parse_timestamp(data.get("timestamp")) or EPOCH
        previous = data.get("previous_amount")
        return cls(
            id=record_id,
            activity_type=ActivityType(data["activity_type"]),
            amount=amount_or_zero(data.get("amount")),
            date=parse_timestamp(data.get("date")) or timestamp,
            timestamp=timestamp,
            previous_amount=None if previous is None else amount_or_zero(previous),
            note=_opt(data, "note"),
            previous_note=_opt(data, "previous_note"),
        )


__all__ = [
    "ActivityType",
    "EPOCH",
    "InvestmentActivity",
    "InvestmentRecord",
    "Invoice",
    "InvoicePayment",
    "LedgerActivity",
    "LedgerDirection",
    "LedgerEntry",
    "LedgerSource",
    "Order",
    "PaymentRecord",
    "PaymentSide",
    "sum_payments",
]
