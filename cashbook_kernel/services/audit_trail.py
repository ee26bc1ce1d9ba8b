"""
AuditTrail -- fire-and-forget activity log for ledger mutations.

Responsibility:
    Record a ``created`` / ``updated`` / ``deleted`` LedgerActivity for every
    ledger mutation, carrying the values that were replaced, and answer
    activity queries by date range.

Architecture position:
    Kernel > Services.  Called by LedgerStore after the ledger write has
    succeeded.

Invariants enforced:
    - The caller never waits for or sees the outcome of an audit write.
      Writes run on a small ThreadPoolExecutor; failures are logged at
      ERROR with the activity attached and otherwise dropped.
    - The submitting thread's LogContext travels with the write.

Failure modes:
    - None propagate.  ``flush()`` waits for outstanding writes (tests and
      shutdown); ``shutdown()`` stops accepting new ones, after which
      ``record`` logs ``audit_rejected`` and returns None.
"""

from __future__ import annotations

import contextvars
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import date, datetime, time, timedelta, timezone
from uuid import uuid4

from cashbook_kernel.domain.clock import Clock
from cashbook_kernel.domain.records import ActivityType, LedgerActivity, LedgerEntry
from cashbook_kernel.logging_config import get_logger
from cashbook_kernel.services.base import BaseService
from cashbook_kernel.store.base import DocumentStore, OrderBy

logger = get_logger("services.audit_trail")

LEDGER_ACTIVITY_COLLECTION = "ledger_activities"


def _day_bounds(
    start: date | datetime | None,
    end: date | datetime | None,
) -> tuple[datetime | None, datetime | None]:
    def _start(value: date | datetime) -> datetime:
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return datetime.combine(value, time.min, tzinfo=timezone.utc)

    def _end(value: date | datetime) -> datetime:
        if isinstance(value, datetime):
            aware = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
            return aware + timedelta(microseconds=1)
        return datetime.combine(value + timedelta(days=1), time.min, tzinfo=timezone.utc)

    return (
        None if start is None else _start(start),
        None if end is None else _end(end),
    )


class AuditTrail(BaseService):
    """Asynchronous writer and reader of LedgerActivity records."""

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock | None = None,
        max_workers: int = 1,
    ):
        super().__init__(store, clock)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="cashbook-audit",
        )
        self._pending: set[Future] = set()
        self._pending_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def record(self, activity: LedgerActivity) -> Future | None:
        """Queue one activity write.  Never raises."""
        ctx = contextvars.copy_context()
        try:
            future = self._executor.submit(ctx.run, self._write, activity)
        except RuntimeError:
            logger.error(
                "audit_rejected",
                extra={
                    "ledger_entry_id": activity.ledger_entry_id,
                    "activity_type": activity.activity_type.value,
                },
            )
            return None
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._on_done)
        return future

    def _write(self, activity: LedgerActivity) -> bool:
        extra = {
            "ledger_entry_id": activity.ledger_entry_id,
            "activity_type": activity.activity_type.value,
        }
        try:
            self.store.create(
                LEDGER_ACTIVITY_COLLECTION, activity.to_record(), doc_id=activity.id
            )
        except Exception:
            logger.exception("audit_write_failed", extra=extra)
            return False
        logger.debug("audit_recorded", extra=extra)
        return True

    def _on_done(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def log_created(self, entry: LedgerEntry) -> Future | None:
        return self.record(
            LedgerActivity(
                id=str(uuid4()),
                ledger_entry_id=entry.id,
                activity_type=ActivityType.CREATED,
                timestamp=self.clock.now(),
                amount=entry.amount,
                direction=entry.direction,
                note=entry.note,
                date=entry.date,
                supplier=entry.supplier,
                party_name=entry.party_name,
            )
        )

    def log_updated(self, before: LedgerEntry, after: LedgerEntry) -> Future | None:
        return self.record(
            LedgerActivity(
                id=str(uuid4()),
                ledger_entry_id=after.id,
                activity_type=ActivityType.UPDATED,
                timestamp=self.clock.now(),
                amount=after.amount,
                previous_amount=before.amount,
                direction=after.direction,
                previous_direction=before.direction,
                note=after.note,
                previous_note=before.note,
                date=after.date,
                previous_date=before.date,
                supplier=after.supplier,
                previous_supplier=before.supplier,
                party_name=after.party_name,
                previous_party_name=before.party_name,
            )
        )

    def log_deleted(self, entry: LedgerEntry) -> Future | None:
        return self.record(
            LedgerActivity(
                id=str(uuid4()),
                ledger_entry_id=entry.id,
                activity_type=ActivityType.DELETED,
                timestamp=self.clock.now(),
                previous_amount=entry.amount,
                previous_direction=entry.direction,
                previous_note=entry.note,
                previous_date=entry.date,
                previous_supplier=entry.supplier,
                previous_party_name=entry.party_name,
            )
        )

    def flush(self, timeout: float | None = None) -> None:
        """Block until every queued write has finished."""
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pending)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def get_activities(
        self,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> list[LedgerActivity]:
        """Activities newest first; ``start``/``end`` dates are inclusive days."""
        lower, upper = _day_bounds(start, end)
        documents = self.store.query(
            LEDGER_ACTIVITY_COLLECTION,
            order_by=OrderBy("timestamp", descending=True),
        )
        activities = [LedgerActivity.from_record(d.id, d.data) for d in documents]
        return [
            a
            for a in activities
            if (lower is None or a.timestamp >= lower)
            and (upper is None or a.timestamp < upper)
        ]

    def get_activities_for_entry(self, ledger_entry_id: str) -> list[LedgerActivity]:
        return [
            a for a in self.get_activities() if a.ledger_entry_id == ledger_entry_id
        ]
