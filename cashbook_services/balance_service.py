"""
BalanceService -- who owes what, per supplier and per party.

Reads orders and the ledger and summarizes them with the outstanding
engine.  Also reports adjusted order profit, which depends on the same
settlement state.
"""

from __future__ import annotations

from decimal import Decimal

from cashbook_engines.outstanding import CounterpartyBalance, summarize_counterparties
from cashbook_engines.profit import adjusted_profit
from cashbook_engines.settlement import DEFAULT_POLICY, SettlementPolicy
from cashbook_kernel.domain.amounts import ZERO
from cashbook_kernel.domain.records import PaymentSide
from cashbook_kernel.services.ledger_store import LedgerStore
from cashbook_kernel.services.order_store import OrderFilters, OrderStore


class BalanceService:

    def __init__(
        self,
        ledger: LedgerStore,
        orders: OrderStore,
        policy: SettlementPolicy = DEFAULT_POLICY,
    ):
        self.ledger = ledger
        self.orders = orders
        self.policy = policy

    def balances(self, side: PaymentSide) -> list[CounterpartyBalance]:
        """One balance per counterparty on ``side``, sorted by name."""
        return summarize_counterparties(
            orders=self.orders.get_all_orders(),
            entries=self.ledger.list(),
            side=side,
            policy=self.policy,
        )

    def supplier_balances(self) -> list[CounterpartyBalance]:
        return self.balances(PaymentSide.EXPENSE)

    def party_balances(self) -> list[CounterpartyBalance]:
        return self.balances(PaymentSide.REVENUE)

    def balance_for(self, side: PaymentSide, name: str) -> CounterpartyBalance | None:
        for balance in self.balances(side):
            if balance.name == name:
                return balance
        return None

    def order_profit(self, order_id: str) -> Decimal:
        return adjusted_profit(self.orders.get_order_by_id(order_id))

    def total_profit(self, filters: OrderFilters | None = None) -> Decimal:
        """Sum of adjusted profit over the matching orders."""
        return sum(
            (adjusted_profit(o) for o in self.orders.get_all_orders(filters)), ZERO
        )
