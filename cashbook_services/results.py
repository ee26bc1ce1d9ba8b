"""Result summaries returned by distribution and reconciliation runs."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from cashbook_engines.allocation import PlannedAllocation
from cashbook_kernel.domain.amounts import ZERO
from cashbook_kernel.domain.records import PaymentSide
from cashbook_kernel.exceptions import CashbookError


@dataclass(frozen=True)
class OrderFailure:
    """One order write that failed while the run carried on."""

    order_id: str
    code: str
    message: str

    @classmethod
    def from_error(cls, order_id: str, error: CashbookError) -> OrderFailure:
        return cls(order_id=order_id, code=error.code, message=str(error))


@dataclass(frozen=True)
class DistributionResult:
    """
    Outcome of spreading one ledger amount over a counterparty's orders.

    ``allocations`` holds only the lines that were written.  A line whose
    order write failed is listed in ``failures`` and its share counts
    towards ``unapplied``.
    """

    ledger_entry_id: str
    side: PaymentSide
    counterparty: str
    amount: Decimal
    allocations: tuple[PlannedAllocation, ...] = ()
    failures: tuple[OrderFailure, ...] = ()
    orders_cleared: int = 0

    @property
    def total_allocated(self) -> Decimal:
        return sum((a.amount for a in self.allocations), ZERO)

    @property
    def unapplied(self) -> Decimal:
        return self.amount - self.total_allocated

    @property
    def succeeded_count(self) -> int:
        return len(self.allocations)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class ReconciliationResult:
    orders_scanned: int = 0
    orders_changed: int = 0
    payments_removed: int = 0
    failures: tuple[OrderFailure, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures

    def merge(self, other: ReconciliationResult) -> ReconciliationResult:
        return ReconciliationResult(
            orders_scanned=self.orders_scanned + other.orders_scanned,
            orders_changed=self.orders_changed + other.orders_changed,
            payments_removed=self.payments_removed + other.payments_removed,
            failures=self.failures + other.failures,
        )
