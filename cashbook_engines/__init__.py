"""
Cashbook Engines - pure calculation functions.

Engines take domain records and return values; they never read or write a
store.  Each public engine entry point is wrapped by ``@traced_engine``.

Engines:
    - profit: adjusted profit and automatic expense/revenue adjustments
    - settlement: settled / amount-due rules and derived order fields
    - allocation: oldest-first spreading of a payment over obligations
    - timeline: day-grouped cash timeline with running balance
    - outstanding: per-counterparty obligation and ledger summaries
"""

from cashbook_engines.allocation import (
    AllocationPlan,
    Obligation,
    PlannedAllocation,
    collect_obligations,
    plan_oldest_first,
)
from cashbook_engines.outstanding import CounterpartyBalance, summarize_counterparties
from cashbook_engines.profit import (
    adjusted_profit,
    expense_adjustment,
    has_adjustments,
    revenue_adjustment,
)
from cashbook_engines.settlement import (
    SETTLEMENT_TOLERANCE,
    SettlementPolicy,
    amount_due,
    is_settled,
    recompute_side,
    side_is_settled,
)
from cashbook_engines.timeline import (
    Timeline,
    TimelineDay,
    TimelineEntry,
    TimelineItem,
    TimelineKind,
    build_timeline,
)
from cashbook_engines.tracer import traced_engine

__all__ = [
    "AllocationPlan",
    "CounterpartyBalance",
    "Obligation",
    "PlannedAllocation",
    "SETTLEMENT_TOLERANCE",
    "SettlementPolicy",
    "Timeline",
    "TimelineDay",
    "TimelineEntry",
    "TimelineItem",
    "TimelineKind",
    "adjusted_profit",
    "amount_due",
    "build_timeline",
    "collect_obligations",
    "expense_adjustment",
    "has_adjustments",
    "is_settled",
    "plan_oldest_first",
    "recompute_side",
    "revenue_adjustment",
    "side_is_settled",
    "summarize_counterparties",
    "traced_engine",
]
