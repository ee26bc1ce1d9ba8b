"""
TimelineService -- the cash timeline read from the stores.

Collects ledger entries, investment capital, invoice payments and
direct order payments, and hands them to the timeline engine.
"""

from __future__ import annotations

from cashbook_engines.timeline import (
    Timeline,
    TimelineItem,
    build_timeline,
    items_from_investment,
    items_from_invoices,
    items_from_ledger,
    items_from_orders,
)
from cashbook_kernel.logging_config import get_logger
from cashbook_kernel.services.investment_store import InvestmentStore
from cashbook_kernel.services.invoice_store import InvoiceStore
from cashbook_kernel.services.ledger_store import LedgerStore
from cashbook_kernel.services.order_store import OrderStore

logger = get_logger("services.timeline")


class TimelineService:

    def __init__(
        self,
        ledger: LedgerStore,
        investments: InvestmentStore,
        invoices: InvoiceStore,
        orders: OrderStore,
        tz_name: str = "UTC",
    ):
        self.ledger = ledger
        self.investments = investments
        self.invoices = invoices
        self.orders = orders
        self.tz_name = tz_name

    def collect_items(self) -> list[TimelineItem]:
        items = items_from_ledger(self.ledger.list())
        items += items_from_investment(
            self.investments.get_activity_log(), self.investments.get_investment()
        )
        items += items_from_invoices(self.invoices.get_all_invoices())
        items += items_from_orders(self.orders.get_all_orders())
        return items

    def build(self) -> Timeline:
        items = self.collect_items()
        timeline = build_timeline(items=items, tz_name=self.tz_name)
        logger.info(
            "timeline_built",
            extra={
                "item_count": len(items),
                "day_count": len(timeline.days),
                "final_balance": str(timeline.final_balance),
            },
        )
        return timeline
