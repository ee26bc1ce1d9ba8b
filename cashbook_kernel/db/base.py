"""
Module: cashbook_kernel.db.base
Responsibility: Declarative base and the single ``documents`` table that
    backs the SQL document store.
Architecture position: Kernel > DB.  Lowest-level import target for
    persistence.  MUST NOT import from store/, services/ or outer layers.

Invariants enforced:
    - (collection, doc_id) is unique; ids are uuid4 strings unless the
      caller supplies one.
    - ``seq`` is the insertion order and the default read order, so ties
      in any later sort keep the order documents were written in.
    - ``version`` starts at 1 and increments on every update; the store
      compares it for optimistic concurrency.
    - ``payload`` holds the JSON-safe record produced by a domain
      ``to_record()``; money is stored as decimal strings inside it.
"""

from datetime import datetime
from typing import Any, ClassVar

from sqlalchemy import JSON, BigInteger, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Declarative base for cashbook tables.

    Guarantees:
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }


class DocumentRow(Base):
    """One stored document of one collection."""

    __tablename__ = "documents"

    # Integer (not BigInteger) so SQLite treats it as the rowid alias
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    doc_id: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc_id"),
    )

    def __repr__(self) -> str:
        return f"<DocumentRow {self.collection}/{self.doc_id} v{self.version}>"
