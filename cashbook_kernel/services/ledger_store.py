"""
LedgerStore -- the cash ledger.

Responsibility:
    Create, edit, delete, list and total ledger entries.  Every mutation is
    followed by a fire-and-forget audit record carrying the values it
    replaced.

Architecture position:
    Kernel > Services.  Knows nothing about orders; keeping order payments
    consistent with the ledger is the job of the distribution and
    reconciliation services, triggered by the ledger sync coordinator.

Invariants enforced:
    - Entry identity is immutable; amount, date, note, supplier and party
      are mutable.
    - Mutations are atomic at the store and propagate their failures; audit
      failures never do.
    - A bare calendar date is pinned to the configured local time of day so
      it cannot drift across a day boundary.
    - ``list()`` is newest first by created_at, falling back to the
      transaction date for entries without one.

Failure modes:
    - InvalidAmountError for a non-numeric amount.  The sign and size of a
      ledger amount are deliberately not checked here.
    - ValidationError for an unknown direction or a malformed date.
    - LedgerEntryNotFoundError from get/update/remove of a missing id.
    - StoreError subclasses from the backing store.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, time
from decimal import Decimal
from typing import Any

from cashbook_kernel.domain.amounts import ZERO, clean_text, normalize_entry_date, to_amount
from cashbook_kernel.domain.clock import Clock
from cashbook_kernel.domain.field_update import CLEAR, UNCHANGED, FieldUpdate, Set
from cashbook_kernel.domain.records import LedgerDirection, LedgerEntry, LedgerSource
from cashbook_kernel.exceptions import (
    DocumentNotFoundError,
    LedgerEntryNotFoundError,
    ValidationError,
)
from cashbook_kernel.logging_config import get_logger
from cashbook_kernel.services.audit_trail import AuditTrail
from cashbook_kernel.services.base import BaseService
from cashbook_kernel.store.base import DELETE_FIELD, DocumentStore, StoredDocument

logger = get_logger("services.ledger_store")

LEDGER_COLLECTION = "ledger_entries"


@dataclass(frozen=True)
class LedgerEntryChanges:
    """
    An edit to a ledger entry.

    Each field is UNCHANGED, CLEAR or Set(value).  Amount and date cannot
    be cleared.  Setting an optional text field to a blank string clears it.
    """

    amount: FieldUpdate = UNCHANGED
    date: FieldUpdate = UNCHANGED
    note: FieldUpdate = UNCHANGED
    supplier: FieldUpdate = UNCHANGED
    party_name: FieldUpdate = UNCHANGED

    @property
    def is_empty(self) -> bool:
        return all(
            getattr(self, name) is UNCHANGED
            for name in ("amount", "date", "note", "supplier", "party_name")
        )


def parse_direction(direction: LedgerDirection | str) -> LedgerDirection:
    try:
        return LedgerDirection(direction)
    except ValueError:
        raise ValidationError(
            f"Unknown ledger direction: {direction!r}", field="direction"
        ) from None


def _sort_newest_first(entries: list[LedgerEntry]) -> list[LedgerEntry]:
    return sorted(entries, key=lambda e: e.sort_time, reverse=True)


class LedgerStore(BaseService):
    """Persistence and audit for the cash ledger."""

    def __init__(
        self,
        store: DocumentStore,
        audit: AuditTrail,
        clock: Clock | None = None,
        entry_time_of_day: time = time(12, 0),
        local_timezone: str = "UTC",
    ):
        super().__init__(store, clock)
        self.audit = audit
        self._entry_time_of_day = entry_time_of_day
        self._local_timezone = local_timezone

    def _resolve_date(self, value: object) -> datetime:
        resolved = normalize_entry_date(
            value, self._entry_time_of_day, self._local_timezone
        )
        return resolved if resolved is not None else self.clock.now()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_entry(
        self,
        direction: LedgerDirection | str,
        amount: Decimal | int | str,
        note: str | None = None,
        source: LedgerSource = LedgerSource.MANUAL,
        date: object = None,
        supplier: str | None = None,
        party_name: str | None = None,
    ) -> str:
        """Record one credit or debit and return its id."""
        entry = LedgerEntry(
            id="",
            direction=parse_direction(direction),
            amount=to_amount(amount),
            date=self._resolve_date(date),
            source=LedgerSource(source),
            created_at=self.clock.now(),
            supplier=clean_text(supplier),
            party_name=clean_text(party_name),
            note=clean_text(note),
        )
        entry_id = self.store.create(LEDGER_COLLECTION, entry.to_record())
        entry = replace(entry, id=entry_id)

        logger.info(
            "ledger_entry_created",
            extra={
                "ledger_entry_id": entry_id,
                "direction": entry.direction.value,
                "amount": str(entry.amount),
                "source": entry.source.value,
                "supplier": entry.supplier,
                "party_name": entry.party_name,
            },
        )
        self.audit.log_created(entry)
        return entry_id

    def update(self, entry_id: str, changes: LedgerEntryChanges) -> LedgerEntry:
        """Apply ``changes`` and return the entry as stored afterwards."""
        before = self.get(entry_id)
        after = before
        fields: dict[str, Any] = {}

        if isinstance(changes.amount, Set):
            after = replace(after, amount=to_amount(changes.amount.value))
        elif changes.amount is CLEAR:
            raise ValidationError("Ledger amount cannot be cleared", field="amount")

        if isinstance(changes.date, Set):
            after = replace(after, date=self._resolve_date(changes.date.value))
        elif changes.date is CLEAR:
            raise ValidationError("Ledger date cannot be cleared", field="date")

        for name in ("note", "supplier", "party_name"):
            update = getattr(changes, name)
            if isinstance(update, Set):
                after = replace(after, **{name: clean_text(update.value)})
            elif update is CLEAR:
                after = replace(after, **{name: None})

        if after == before:
            logger.debug("ledger_entry_unchanged", extra={"ledger_entry_id": entry_id})
            return before

        before_record = before.to_record()
        for key, value in after.to_record().items():
            if before_record.get(key) != value:
                fields[key] = value
        for key in before_record:
            if key not in after.to_record():
                fields[key] = DELETE_FIELD

        try:
            self.store.update(LEDGER_COLLECTION, entry_id, fields)
        except DocumentNotFoundError:
            raise LedgerEntryNotFoundError(entry_id) from None

        logger.info(
            "ledger_entry_updated",
            extra={
                "ledger_entry_id": entry_id,
                "changed_fields": sorted(fields),
                "previous_amount": str(before.amount),
                "amount": str(after.amount),
            },
        )
        self.audit.log_updated(before, after)
        return after

    def remove(self, entry_id: str) -> LedgerEntry:
        """Delete an entry and return what was deleted."""
        entry = self.get(entry_id)
        if not self.store.delete(LEDGER_COLLECTION, entry_id):
            raise LedgerEntryNotFoundError(entry_id)
        logger.info(
            "ledger_entry_removed",
            extra={
                "ledger_entry_id": entry_id,
                "direction": entry.direction.value,
                "amount": str(entry.amount),
            },
        )
        self.audit.log_deleted(entry)
        return entry

    def remove_last_entry(self) -> LedgerEntry:
        """Delete the most recently entered entry."""
        entries = self.list()
        if not entries:
            raise LedgerEntryNotFoundError("<latest>")
        return self.remove(entries[0].id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find(self, entry_id: str) -> LedgerEntry | None:
        document = self.store.get(LEDGER_COLLECTION, entry_id)
        if document is None:
            return None
        return LedgerEntry.from_record(document.id, document.data)

    def get(self, entry_id: str) -> LedgerEntry:
        entry = self.find(entry_id)
        if entry is None:
            raise LedgerEntryNotFoundError(entry_id)
        return entry

    def list(self) -> list[LedgerEntry]:
        documents = self.store.query(LEDGER_COLLECTION)
        return _sort_newest_first(
            [LedgerEntry.from_record(d.id, d.data) for d in documents]
        )

    def subscribe(
        self,
        callback: Callable[[list[LedgerEntry]], None],
    ) -> Callable[[], None]:
        """Live ``list()``: called now and after every ledger write."""

        def _deliver(documents: list[StoredDocument]) -> None:
            callback(
                _sort_newest_first(
                    [LedgerEntry.from_record(d.id, d.data) for d in documents]
                )
            )

        return self.store.subscribe(LEDGER_COLLECTION, _deliver)

    def get_balance(self) -> Decimal:
        """Sum of credits minus sum of debits."""
        return sum((e.signed_amount for e in self.list()), ZERO)

    def entry_ids(self) -> set[str]:
        return {d.id for d in self.store.query(LEDGER_COLLECTION)}
