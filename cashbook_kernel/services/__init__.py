"""
Kernel services -- persistence over the document store.

- LedgerStore: the cash ledger
- AuditTrail: fire-and-forget ledger activity log
- OrderStore: orders
- InvoiceStore: invoices and their payments
- InvestmentStore: capital investment and its history
"""

from cashbook_kernel.services.audit_trail import AuditTrail
from cashbook_kernel.services.investment_store import InvestmentStore
from cashbook_kernel.services.invoice_store import InvoiceStore
from cashbook_kernel.services.ledger_store import LedgerEntryChanges, LedgerStore
from cashbook_kernel.services.order_store import OrderFilters, OrderStore

__all__ = [
    "AuditTrail",
    "InvestmentStore",
    "InvoiceStore",
    "LedgerEntryChanges",
    "LedgerStore",
    "OrderFilters",
    "OrderStore",
]
