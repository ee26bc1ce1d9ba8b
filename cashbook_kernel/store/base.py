"""
Module: cashbook_kernel.store.base
Responsibility:
    The generic document-store contract every cashbook service persists
    through: create / get / update / delete / query / subscribe over named
    collections of JSON-safe documents.

Architecture position:
    Kernel > Store.  Imports only exceptions and logging.  Concrete stores
    live in store/memory.py and store/sql.py.

Invariants enforced:
    - Every document carries a monotonically increasing ``version``; an
      update with ``expected_version`` fails with OptimisticLockError when
      the stored version differs.
    - Returned documents are copies: mutating them never changes the store.
    - ``DELETE_FIELD`` as an update value removes the key from the document.

Failure modes:
    - DocumentNotFoundError on update of a missing document.
    - StoreError subclasses for backend failures (see store/sql.py).
    - Subscriber callbacks that raise are logged and skipped; they never
      fail the write that triggered them.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from cashbook_kernel.logging_config import get_logger

logger = get_logger("store")


class _DeleteField:
    _instance: _DeleteField | None = None

    def __new__(cls) -> _DeleteField:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


@dataclass(frozen=True)
class StoredDocument:
    """A document as read back from a store."""

    id: str
    data: dict[str, Any]
    version: int


@dataclass(frozen=True)
class FieldFilter:
    """``field op value`` predicate over top-level document fields."""

    field: str
    op: str
    value: Any

    _OPS = ("==", "!=", "<", "<=", ">", ">=", "in")

    def __post_init__(self) -> None:
        if self.op not in self._OPS:
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def matches(self, data: Mapping[str, Any]) -> bool:
        actual = data.get(self.field)
        if self.op == "==":
            return actual == self.value
        if self.op == "!=":
            return actual != self.value
        if self.op == "in":
            return actual in self.value
        if actual is None:
            return False
        if self.op == "<":
            return actual < self.value
        if self.op == "<=":
            return actual <= self.value
        if self.op == ">":
            return actual > self.value
        return actual >= self.value


def where(field: str, op: str, value: Any) -> FieldFilter:
    return FieldFilter(field, op, value)


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = False


def apply_filters(
    documents: Iterable[StoredDocument],
    filters: Sequence[FieldFilter],
) -> list[StoredDocument]:
    return [d for d in documents if all(f.matches(d.data) for f in filters)]


def sort_documents(
    documents: list[StoredDocument],
    order_by: OrderBy | None,
) -> list[StoredDocument]:
    """Stable sort; documents missing the field sort last either way."""
    if order_by is None:
        return documents
    present = [d for d in documents if d.data.get(order_by.field) is not None]
    missing = [d for d in documents if d.data.get(order_by.field) is None]
    present.sort(key=lambda d: d.data[order_by.field], reverse=order_by.descending)
    return present + missing


Subscriber = Callable[[list[StoredDocument]], None]


@dataclass(eq=False)
class _Subscription:
    collection: str
    callback: Subscriber
    filters: tuple[FieldFilter, ...]
    order_by: OrderBy | None


class DocumentStore(ABC):
    """
    Abstract document store.

    Contract:
        Collections are created implicitly.  Document ids are strings; the
        store assigns a uuid4 when ``create`` is called without one.

    Non-goals:
        No transactions across documents and no server-side aggregation.
        Callers that need multi-document consistency reconcile afterwards.
    """

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []
        self._subscription_lock = threading.Lock()

    @abstractmethod
    def create(
        self,
        collection: str,
        data: Mapping[str, Any],
        doc_id: str | None = None,
    ) -> str:
        """Insert a document and return its id."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> StoredDocument | None:
        """Fetch one document, or None."""

    @abstractmethod
    def update(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> StoredDocument:
        """Merge ``fields`` into the document and bump its version."""

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document.  Returns False when it did not exist."""

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: OrderBy | None = None,
    ) -> list[StoredDocument]:
        """Return all matching documents."""

    def subscribe(
        self,
        collection: str,
        callback: Subscriber,
        filters: Sequence[FieldFilter] = (),
        order_by: OrderBy | None = None,
    ) -> Callable[[], None]:
        """
        Register a live query.

        ``callback`` receives the current result immediately and again after
        every write to ``collection`` made through this store instance.
        Returns an unsubscribe callable.
        """
        subscription = _Subscription(collection, callback, tuple(filters), order_by)
        with self._subscription_lock:
            self._subscriptions.append(subscription)
        self._deliver(subscription)

        def unsubscribe() -> None:
            with self._subscription_lock:
                if subscription in self._subscriptions:
                    self._subscriptions.remove(subscription)

        return unsubscribe

    def _notify(self, collection: str) -> None:
        with self._subscription_lock:
            targets = [s for s in self._subscriptions if s.collection == collection]
        for subscription in targets:
            self._deliver(subscription)

    def _deliver(self, subscription: _Subscription) -> None:
        try:
            documents = self.query(
                subscription.collection, subscription.filters, subscription.order_by
            )
            subscription.callback(documents)
        except Exception:
            logger.exception(
                "subscriber_failed",
                extra={"collection": subscription.collection},
            )


def merge_fields(data: Mapping[str, Any], fields: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(data)
    for key, value in fields.items():
        if value is DELETE_FIELD:
            merged.pop(key, None)
        else:
            merged[key] = value
    return merged
