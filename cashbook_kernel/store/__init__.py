"""Document-store contract and implementations."""

from cashbook_kernel.store.base import (
    DELETE_FIELD,
    DocumentStore,
    FieldFilter,
    OrderBy,
    StoredDocument,
    where,
)
from cashbook_kernel.store.memory import InMemoryDocumentStore
from cashbook_kernel.store.sql import SqlDocumentStore

__all__ = [
    "DELETE_FIELD",
    "DocumentStore",
    "FieldFilter",
    "InMemoryDocumentStore",
    "OrderBy",
    "SqlDocumentStore",
    "StoredDocument",
    "where",
]
