"""
Cashbook Kernel

Ledger and order persistence for a trading business:
- Cash ledger of credits and debits tagged to suppliers and parties
- Orders with per-side payment records
- Fire-and-forget audit trail of ledger mutations
- Pluggable document store (in-memory or SQLAlchemy)
"""

__version__ = "0.1.0"
