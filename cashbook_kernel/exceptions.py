"""
Typed Exception Hierarchy for the Cashbook Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Ledger mutations, order writes and store failures must be told apart by type,
not by parsing message strings.  Every exception carries:
  1. A TYPED class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA as attributes (ledger_entry_id, order_id, ...)

Example:
    try:
        ledger.remove(entry_id)
    except LedgerEntryNotFoundError as e:
        api_response(code=e.code, entry=e.ledger_entry_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CashbookError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |
    +-- NotFoundError
    |   +-- DocumentNotFoundError
    |   +-- LedgerEntryNotFoundError
    |   +-- OrderNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- InvoiceNotFoundError
    |
    +-- StoreError
    |   +-- PermissionDeniedError
    |   +-- StorageUnavailableError
    |   +-- StoreTimeoutError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Malformed input (blank name, bad side)
                | INVALID_AMOUNT              | Non-numeric or out-of-range amount
----------------|-----------------------------|-----------------------------------------
Not found       | DOCUMENT_NOT_FOUND          | No document with that id in the collection
                | LEDGER_ENTRY_NOT_FOUND      | Ledger entry id doesn't exist
                | ORDER_NOT_FOUND             | Order id doesn't exist
                | PAYMENT_NOT_FOUND           | Payment id not on the order
                | INVOICE_NOT_FOUND           | Invoice id doesn't exist
----------------|-----------------------------|-----------------------------------------
Store           | PERMISSION_DENIED           | Backing store refused the operation
                | STORAGE_UNAVAILABLE         | Backing store unreachable
                | STORE_TIMEOUT               | Backing store did not answer in time
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Record changed since it was read
"""


class CashbookError(Exception):
    """
    Base exception for all cashbook errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CASHBOOK_ERROR"


# Validation exceptions


class ValidationError(CashbookError):
    """Input failed validation."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidAmountError(ValidationError):
    """Amount is not a usable decimal value."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: object, reason: str = "not a number"):
        self.amount = str(amount)
        self.reason = reason
        super().__init__(f"Invalid amount {amount!r}: {reason}", field="amount")


# Lookup exceptions


class NotFoundError(CashbookError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class DocumentNotFoundError(NotFoundError):
    """No document with given ID in the collection."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"Document not found: {collection}/{record_id}")


class LedgerEntryNotFoundError(NotFoundError):
    """Ledger entry with given ID was not found."""

    code: str = "LEDGER_ENTRY_NOT_FOUND"

    def __init__(self, ledger_entry_id: str):
        self.ledger_entry_id = ledger_entry_id
        super().__init__(f"Ledger entry not found: {ledger_entry_id}")


class OrderNotFoundError(NotFoundError):
    """Order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class PaymentNotFoundError(NotFoundError):
    """Payment is not recorded on the order."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, order_id: str, payment_id: str):
        self.order_id = order_id
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} not found on order {order_id}")


class InvoiceNotFoundError(NotFoundError):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


# Store exceptions


class StoreError(CashbookError):
    """Base exception for document store failures."""

    code: str = "STORE_ERROR"

    def __init__(self, message: str, collection: str | None = None):
        self.collection = collection
        super().__init__(message)


class PermissionDeniedError(StoreError):
    """The store rejected the operation for lack of permission."""

    code: str = "PERMISSION_DENIED"


class StorageUnavailableError(StoreError):
    """The store could not be reached."""

    code: str = "STORAGE_UNAVAILABLE"


class StoreTimeoutError(StoreError):
    """The store did not answer in time."""

    code: str = "STORE_TIMEOUT"


# Concurrency exceptions


class ConcurrencyError(CashbookError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Record was modified by another writer since it was read."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(
        self,
        collection: str,
        record_id: str,
        expected_version: int,
        actual_version: int,
    ):
        self.collection = collection
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on {collection}/{record_id}: "
            f"expected version {expected_version}, found {actual_version}"
        )
