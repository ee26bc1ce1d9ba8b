"""
In-process document store.

Keeps deep copies of every document in a dict per collection.  Used by the
test suite and by tooling that does not need durability.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Mapping, Sequence
from typing import Any
from uuid import uuid4

from cashbook_kernel.exceptions import DocumentNotFoundError, OptimisticLockError
from cashbook_kernel.store.base import (
    DocumentStore,
    FieldFilter,
    OrderBy,
    StoredDocument,
    apply_filters,
    merge_fields,
    sort_documents,
)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed DocumentStore.  Thread-safe; insertion order is preserved."""

    def __init__(self) -> None:
        super().__init__()
        self._collections: dict[str, dict[str, tuple[dict[str, Any], int]]] = {}
        self._lock = threading.RLock()

    def create(
        self,
        collection: str,
        data: Mapping[str, Any],
        doc_id: str | None = None,
    ) -> str:
        doc_id = doc_id or str(uuid4())
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = (
                copy.deepcopy(dict(data)),
                1,
            )
        self._notify(collection)
        return doc_id

    def get(self, collection: str, doc_id: str) -> StoredDocument | None:
        with self._lock:
            entry = self._collections.get(collection, {}).get(doc_id)
            if entry is None:
                return None
            data, version = entry
            return StoredDocument(doc_id, copy.deepcopy(data), version)

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> StoredDocument:
        with self._lock:
            docs = self._collections.get(collection, {})
            if doc_id not in docs:
                raise DocumentNotFoundError(collection, doc_id)
            data, version = docs[doc_id]
            if expected_version is not None and expected_version != version:
                raise OptimisticLockError(collection, doc_id, expected_version, version)
            merged = merge_fields(data, copy.deepcopy(dict(fields)))
            docs[doc_id] = (merged, version + 1)
            result = StoredDocument(doc_id, copy.deepcopy(merged), version + 1)
        self._notify(collection)
        return result

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            existed = self._collections.get(collection, {}).pop(doc_id, None) is not None
        if existed:
            self._notify(collection)
        return existed

    def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: OrderBy | None = None,
    ) -> list[StoredDocument]:
        with self._lock:
            documents = [
                StoredDocument(doc_id, copy.deepcopy(data), version)
                for doc_id, (data, version) in self._collections.get(collection, {}).items()
            ]
        return sort_documents(apply_filters(documents, filters), order_by)
