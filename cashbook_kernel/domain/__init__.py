"""
Pure domain layer.

Immutable records, amount helpers, three-state field updates and the clock
interface.  No dependencies on the store, the database or I/O.
"""

from cashbook_kernel.domain.amounts import ZERO, round2, to_amount
from cashbook_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from cashbook_kernel.domain.field_update import CLEAR, UNCHANGED, FieldUpdate, Set
from cashbook_kernel.domain.records import (
    ActivityType,
    InvestmentActivity,
    InvestmentRecord,
    Invoice,
    InvoicePayment,
    LedgerActivity,
    LedgerDirection,
    LedgerEntry,
    LedgerSource,
    Order,
    PaymentRecord,
    PaymentSide,
)

__all__ = [
    "ActivityType",
    "CLEAR",
    "Clock",
    "DeterministicClock",
    "FieldUpdate",
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
    "Set",
    "SystemClock",
    "UNCHANGED",
    "ZERO",
    "round2",
    "to_amount",
]
