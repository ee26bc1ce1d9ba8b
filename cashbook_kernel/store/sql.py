"""
Module: cashbook_kernel.store.sql
Responsibility:
    DocumentStore backed by the SQLAlchemy ``documents`` table.  Works on any
    SQLAlchemy backend with JSON support (SQLite for tests and single-user
    installs, PostgreSQL via psycopg2 for shared deployments).

Architecture position:
    Kernel > Store.  Imports db/ and store/base.py.

Invariants enforced:
    - Each call runs in its own session_scope(): committed on success,
      rolled back on failure.
    - Version check and write happen inside the same transaction, with
      ``SELECT ... FOR UPDATE`` on backends that support it.
    - String equality filters run in SQL; other operators are applied in
      Python after loading the collection.

Failure modes:
    - sqlalchemy TimeoutError (pool exhausted)   -> StoreTimeoutError
    - "permission denied" / read-only database   -> PermissionDeniedError
    - OperationalError / InterfaceError          -> StorageUnavailableError
    - any other DBAPIError                       -> StoreError
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Generator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from cashbook_kernel.db.base import DocumentRow
from cashbook_kernel.db.engine import session_scope
from cashbook_kernel.exceptions import (
    DocumentNotFoundError,
    OptimisticLockError,
    PermissionDeniedError,
    StorageUnavailableError,
    StoreError,
    StoreTimeoutError,
)
from cashbook_kernel.logging_config import get_logger
from cashbook_kernel.store.base import (
    DocumentStore,
    FieldFilter,
    OrderBy,
    StoredDocument,
    apply_filters,
    merge_fields,
    sort_documents,
)

logger = get_logger("store.sql")

_PERMISSION_MARKERS = ("permission denied", "readonly database", "read-only")


@contextmanager
def _translate_errors(collection: str, operation: str) -> Generator[None, None, None]:
    try:
        yield
    except PoolTimeoutError as exc:
        logger.error(
            "store_timeout",
            extra={"collection": collection, "operation": operation},
        )
        raise StoreTimeoutError(str(exc), collection=collection) from exc
    except DBAPIError as exc:
        message = str(exc.orig) if exc.orig is not None else str(exc)
        if any(marker in message.lower() for marker in _PERMISSION_MARKERS):
            error: StoreError = PermissionDeniedError(message, collection=collection)
        elif isinstance(exc, (OperationalError, InterfaceError)):
            error = StorageUnavailableError(message, collection=collection)
        else:
            error = StoreError(message, collection=collection)
        logger.error(
            "store_operation_failed",
            extra={
                "collection": collection,
                "operation": operation,
                "error_code": error.code,
            },
        )
        raise error from exc


def _to_document(row: DocumentRow) -> StoredDocument:
    return StoredDocument(row.doc_id, copy.deepcopy(dict(row.payload)), row.version)


class SqlDocumentStore(DocumentStore):
    """
    DocumentStore over a SQLAlchemy session factory.

    Subscriptions are in-process: they fire for writes made through this
    store instance, not for writes made by other processes.  Calls on one
    instance are serialized, since an in-memory SQLite database is a single
    shared connection.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        super().__init__()
        self._session_factory = session_factory
        self._lock = threading.RLock()

    def create(
        self,
        collection: str,
        data: Mapping[str, Any],
        doc_id: str | None = None,
    ) -> str:
        doc_id = doc_id or str(uuid4())
        with self._lock, _translate_errors(collection, "create"):
            with session_scope(self._session_factory) as session:
                session.add(
                    DocumentRow(
                        collection=collection,
                        doc_id=doc_id,
                        payload=copy.deepcopy(dict(data)),
                        version=1,
                    )
                )
        self._notify(collection)
        return doc_id

    def get(self, collection: str, doc_id: str) -> StoredDocument | None:
        with self._lock, _translate_errors(collection, "get"):
            with session_scope(self._session_factory) as session:
                row = session.execute(
                    select(DocumentRow).where(
                        DocumentRow.collection == collection,
                        DocumentRow.doc_id == doc_id,
                    )
                ).scalar_one_or_none()
                return None if row is None else _to_document(row)

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> StoredDocument:
        with self._lock, _translate_errors(collection, "update"):
            with session_scope(self._session_factory) as session:
                row = session.execute(
                    select(DocumentRow)
                    .where(DocumentRow.collection == collection, DocumentRow.doc_id == doc_id)
                    .with_for_update()
                ).scalar_one_or_none()
                if row is None:
                    raise DocumentNotFoundError(collection, doc_id)
                if expected_version is not None and row.version != expected_version:
                    raise OptimisticLockError(
                        collection, doc_id, expected_version, row.version
                    )
                # Reassign so the JSON column is marked dirty
                row.payload = merge_fields(row.payload, copy.deepcopy(dict(fields)))
                row.version = row.version + 1
                session.flush()
                result = _to_document(row)
        self._notify(collection)
        return result

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock, _translate_errors(collection, "delete"):
            with session_scope(self._session_factory) as session:
                outcome = session.execute(
                    delete(DocumentRow).where(
                        DocumentRow.collection == collection,
                        DocumentRow.doc_id == doc_id,
                    )
                )
                existed = outcome.rowcount > 0
        if existed:
            self._notify(collection)
        return existed

    def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: OrderBy | None = None,
    ) -> list[StoredDocument]:
        stmt = (
            select(DocumentRow)
            .where(DocumentRow.collection == collection)
            .order_by(DocumentRow.seq)
        )
        remaining: list[FieldFilter] = []
        for f in filters:
            if f.op == "==" and isinstance(f.value, str):
                stmt = stmt.where(DocumentRow.payload[f.field].as_string() == f.value)
            else:
                remaining.append(f)
        with self._lock, _translate_errors(collection, "query"):
            with session_scope(self._session_factory) as session:
                documents = [_to_document(row) for row in session.scalars(stmt)]
        return sort_documents(apply_filters(documents, remaining), order_by)
