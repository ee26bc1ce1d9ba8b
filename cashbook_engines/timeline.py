"""
Module: cashbook_engines.timeline
Responsibility:
    Merge every money movement the business knows about into one
    chronological cash timeline with a running balance, grouped by day.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The timeline service
    reads the stores and feeds the ``items_from_*`` builders.

Sources merged:
    - Ledger entries (as recorded).
    - Investment capital: each ``created`` activity adds its amount, each
      ``updated`` activity adds amount - previous_amount (zero deltas are
      dropped).  Without any activity history the single investment record
      stands in as the initial investment.
    - Invoice partial payments, as credits.
    - Order payments that were entered directly on an order (no ledger
      back-reference): customer payments as credits, supplier payments as
      debits.  Ledger-linked payments are already in the ledger.

Invariants enforced:
    - Running balance is the signed accumulation in ascending sort time
      (created_at when known, else transaction date).
    - Entries are grouped into days by the same sort time, so a backdated
      entry sits on the day it was entered.
    - Days are emitted newest first; within a day entries are newest
      first, except investment-capital entries which always go last.
    - closing_balance of the newest day is the final balance; each older
      day's closing balance is the next day's opening balance, and
      opening_balance = closing_balance - net_change.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from zoneinfo import ZoneInfo

from cashbook_engines.tracer import traced_engine
from cashbook_kernel.domain.amounts import ZERO
from cashbook_kernel.domain.records import (
    ActivityType,
    InvestmentActivity,
    InvestmentRecord,
    Invoice,
    LedgerDirection,
    LedgerEntry,
    Order,
)

INVESTMENT_LABEL = "Investment Capital"


class TimelineKind(str, Enum):
    LEDGER = "ledger"
    INVESTMENT = "investment"
    INVOICE_PAYMENT = "invoice_payment"
    ORDER_PAYMENT = "order_payment"
    ORDER_EXPENSE = "order_expense"


@dataclass(frozen=True)
class TimelineItem:
    id: str
    kind: TimelineKind
    direction: LedgerDirection
    amount: Decimal
    date: datetime
    created_at: datetime | None = None
    note: str | None = None
    label: str | None = None

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.direction is LedgerDirection.CREDIT else -self.amount

    @property
    def sort_time(self) -> datetime:
        return self.created_at or self.date


@dataclass(frozen=True)
class TimelineEntry:
    item: TimelineItem
    balance_after: Decimal


@dataclass(frozen=True)
class TimelineDay:
    day: date
    entries: tuple[TimelineEntry, ...]
    opening_balance: Decimal
    closing_balance: Decimal
    total_income: Decimal
    total_expense: Decimal

    @property
    def net_change(self) -> Decimal:
        return self.total_income - self.total_expense


@dataclass(frozen=True)
class Timeline:
    days: tuple[TimelineDay, ...]
    final_balance: Decimal

    @property
    def entry_count(self) -> int:
        return sum(len(d.entries) for d in self.days)


# ---------------------------------------------------------------------------
# Source adapters
# ---------------------------------------------------------------------------


def _with_note(prefix: str, note: str | None) -> str:
    return f"{prefix} - {note}" if note else prefix


def items_from_ledger(entries: Iterable[LedgerEntry]) -> list[TimelineItem]:
    return [
        TimelineItem(
            id=e.id,
            kind=TimelineKind.LEDGER,
            direction=e.direction,
            amount=e.amount,
            date=e.date,
            created_at=e.created_at,
            note=e.note,
            label=e.supplier or e.party_name,
        )
        for e in entries
    ]


def items_from_investment(
    activities: Sequence[InvestmentActivity],
    record: InvestmentRecord | None = None,
) -> list[TimelineItem]:
    if not activities:
        if record is None or record.amount == ZERO:
            return []
        return [
            TimelineItem(
                id=f"investment-{record.id}",
                kind=TimelineKind.INVESTMENT,
                direction=LedgerDirection.CREDIT,
                amount=record.amount,
                date=record.date,
                created_at=record.created_at,
                note="Initial Capital Investment",
                label=INVESTMENT_LABEL,
            )
        ]

    items: list[TimelineItem] = []
    for activity in sorted(activities, key=lambda a: a.timestamp):
        if activity.activity_type is ActivityType.CREATED:
            delta = activity.amount
            note = "Initial Capital Investment"
        elif activity.activity_type is ActivityType.UPDATED:
            delta = activity.amount - (activity.previous_amount or ZERO)
            note = "Capital Added" if delta > ZERO else "Capital Reduced"
        else:
            continue
        if delta == ZERO:
            continue
        items.append(
            TimelineItem(
                id=f"investment-{activity.id}",
                kind=TimelineKind.INVESTMENT,
                direction=LedgerDirection.CREDIT if delta > ZERO else LedgerDirection.DEBIT,
                amount=abs(delta),
                date=activity.date,
                created_at=activity.timestamp,
                note=note,
                label=INVESTMENT_LABEL,
            )
        )
    return items


def items_from_invoices(invoices: Iterable[Invoice]) -> list[TimelineItem]:
    items: list[TimelineItem] = []
    for invoice in invoices:
        for payment in invoice.partial_payments:
            items.append(
                TimelineItem(
                    id=f"invoice-{invoice.id}-{payment.id}",
                    kind=TimelineKind.INVOICE_PAYMENT,
                    direction=LedgerDirection.CREDIT,
                    amount=payment.amount,
                    date=payment.date,
                    created_at=payment.created_at,
                    note=_with_note(f"Invoice: {invoice.invoice_number}", payment.note),
                    label=invoice.party_name,
                )
            )
    return items


def items_from_orders(orders: Iterable[Order]) -> list[TimelineItem]:
    """Order payments with no ledger back-reference."""
    items: list[TimelineItem] = []
    for order in orders:
        for payment in order.customer_payments:
            if payment.is_ledger_linked:
                continue
            items.append(
                TimelineItem(
                    id=f"order-{order.id}-{payment.id}",
                    kind=TimelineKind.ORDER_PAYMENT,
                    direction=LedgerDirection.CREDIT,
                    amount=payment.amount,
                    date=payment.date,
                    created_at=payment.created_at,
                    note=_with_note("Order Payment", payment.note),
                    label=order.party_name,
                )
            )
        for payment in order.partial_payments:
            if payment.is_ledger_linked:
                continue
            items.append(
                TimelineItem(
                    id=f"order-{order.id}-{payment.id}",
                    kind=TimelineKind.ORDER_EXPENSE,
                    direction=LedgerDirection.DEBIT,
                    amount=payment.amount,
                    date=payment.date,
                    created_at=payment.created_at,
                    note=_with_note("Order Expense", payment.note),
                    label=order.supplier,
                )
            )
    return items


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def _within_day_key(entry: TimelineEntry) -> tuple[int, float]:
    # Investment last; otherwise newest first
    is_investment = entry.item.kind is TimelineKind.INVESTMENT
    return (1 if is_investment else 0, -entry.item.sort_time.timestamp())


@traced_engine("timeline", "1.0")
def build_timeline(
    *,
    items: Sequence[TimelineItem],
    tz_name: str = "UTC",
) -> Timeline:
    tz = ZoneInfo(tz_name)

    chronological = sorted(items, key=lambda i: i.sort_time)
    balance = ZERO
    entries: list[TimelineEntry] = []
    for item in chronological:
        balance += item.signed_amount
        entries.append(TimelineEntry(item=item, balance_after=balance))

    by_day: dict[date, list[TimelineEntry]] = {}
    for entry in entries:
        by_day.setdefault(entry.item.sort_time.astimezone(tz).date(), []).append(entry)

    grouped: OrderedDict[date, list[TimelineEntry]] = OrderedDict(
        sorted(by_day.items(), key=lambda kv: kv[0], reverse=True)
    )

    days: list[TimelineDay] = []
    closing = balance
    for day, day_entries in grouped.items():
        income = sum(
            (e.item.amount for e in day_entries if e.item.direction is LedgerDirection.CREDIT),
            ZERO,
        )
        expense = sum(
            (e.item.amount for e in day_entries if e.item.direction is LedgerDirection.DEBIT),
            ZERO,
        )
        opening = closing - (income - expense)
        days.append(
            TimelineDay(
                day=day,
                entries=tuple(sorted(day_entries, key=_within_day_key)),
                opening_balance=opening,
                closing_balance=closing,
                total_income=income,
                total_expense=expense,
            )
        )
        closing = opening

    return Timeline(days=tuple(days), final_balance=balance)
