"""
Per-counterparty mutual exclusion for read-allocate-write sequences.

Distribution and reconciliation read a counterparty's orders, compute new
payment lists, then write them back.  Two such runs against the same
supplier (or the same party) must not interleave, so each run holds the
lock for ``(side, name)`` for its whole duration.  Locks are re-entrant:
the ledger sync coordinator reconciles and then distributes under one
hold.

Cross-process writers are guarded separately by the optimistic version
check on every order update.

Locks are never evicted: the registry holds one lock per counterparty name
ever seen, which stays small at the few hundred suppliers and parties a
cashbook tracks.  A name keeps the same lock object for the life of the
registry.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from cashbook_kernel.domain.records import PaymentSide
from cashbook_kernel.logging_config import get_logger

logger = get_logger("services.counterparty_lock")


class CounterpartyLockRegistry:
    """Hands out one re-entrant lock per (side, counterparty name)."""

    def __init__(self) -> None:
        self._locks: dict[tuple[PaymentSide, str], threading.RLock] = {}
        self._guard = threading.Lock()

    def lock_for(self, side: PaymentSide, name: str) -> threading.RLock:
        key = (side, name)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, side: PaymentSide, name: str) -> Iterator[None]:
        lock = self.lock_for(side, name)
        if not lock.acquire(blocking=False):
            logger.debug(
                "counterparty_lock_waiting",
                extra={"side": side.value, "counterparty": name},
            )
            lock.acquire()
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
