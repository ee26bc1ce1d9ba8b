"""
Pytest fixtures for the cashbook test suite.

Provides:
- Structured logging configured once per session, LogContext cleared per test
- A deterministic clock
- Document stores: in-memory, SQLite-backed, and a failure-injecting store
- Fully wired services (CashbookOrchestrator) over either store
- Order and ledger builders for scenario tests

Environment Variables:
- CASHBOOK_TEST_DATABASE_URL: SQL URL for the ``sql_store`` fixture.
  Defaults to in-memory SQLite.
"""

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy.orm import sessionmaker

from cashbook_config import CashbookSettings
from cashbook_kernel.db.engine import build_engine, create_tables, drop_tables
from cashbook_kernel.domain.clock import DeterministicClock
from cashbook_kernel.exceptions import StorageUnavailableError
from cashbook_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from cashbook_kernel.store.memory import InMemoryDocumentStore
from cashbook_kernel.store.sql import SqlDocumentStore
from cashbook_services.orchestrator import CashbookOrchestrator

DEFAULT_TEST_DB_URL = "sqlite+pysqlite:///:memory:"

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture cashbook logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, cashbook):
            cashbook.ledger.add_entry("credit", "10")
            logs = captured_logs()
            assert any(r["message"] == "ledger_entry_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("cashbook")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock and stores
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(T0)


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def sql_store():
    engine = build_engine(os.environ.get("CASHBOOK_TEST_DATABASE_URL", DEFAULT_TEST_DB_URL))
    create_tables(engine)
    yield SqlDocumentStore(sessionmaker(bind=engine, expire_on_commit=False))
    drop_tables(engine)
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def any_store(request):
    """Each test using this runs once per DocumentStore implementation."""
    return request.getfixturevalue(f"{request.param}_store")


class FlakyDocumentStore(InMemoryDocumentStore):
    """
    In-memory store that fails on demand.

    ``fail_updates`` holds document ids whose updates raise
    StorageUnavailableError; ``fail_deletes`` does the same for deletes;
    ``fail_collections`` holds collections where every create raises.
    """

    def __init__(self) -> None:
        super().__init__()
        self.fail_updates: set[str] = set()
        self.fail_deletes: set[str] = set()
        self.fail_collections: set[str] = set()

    def create(self, collection, data, doc_id=None):
        if collection in self.fail_collections:
            raise StorageUnavailableError("injected create failure", collection=collection)
        return super().create(collection, data, doc_id=doc_id)

    def update(self, collection, doc_id, fields, expected_version=None):
        if doc_id in self.fail_updates:
            raise StorageUnavailableError("injected update failure", collection=collection)
        return super().update(collection, doc_id, fields, expected_version=expected_version)

    def delete(self, collection, doc_id):
        if doc_id in self.fail_deletes:
            raise StorageUnavailableError("injected delete failure", collection=collection)
        return super().delete(collection, doc_id)


@pytest.fixture
def flaky_store() -> FlakyDocumentStore:
    return FlakyDocumentStore()


# =============================================================================
# Wired services
# =============================================================================


def _make_cashbook(store, clock, settings=None) -> CashbookOrchestrator:
    return CashbookOrchestrator(store, settings=settings or CashbookSettings(), clock=clock)


@pytest.fixture
def cashbook(memory_store, clock):
    """All services over the in-memory store."""
    services = _make_cashbook(memory_store, clock)
    yield services
    services.close()


@pytest.fixture
def sql_cashbook(sql_store, clock):
    """All services over the SQL store."""
    services = _make_cashbook(sql_store, clock)
    yield services
    services.close()


@pytest.fixture
def flaky_cashbook(flaky_store, clock):
    services = _make_cashbook(flaky_store, clock)
    yield services
    services.close()


@pytest.fixture
def make_cashbook(memory_store, clock):
    """Factory for services with custom settings over the in-memory store."""
    built: list[CashbookOrchestrator] = []

    def _make(settings: CashbookSettings) -> CashbookOrchestrator:
        services = _make_cashbook(memory_store, clock, settings)
        built.append(services)
        return services

    yield _make
    for services in built:
        services.close()


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def make_order(clock):
    """
    Create an order whose expense obligation is ``cost`` and whose revenue
    obligation is ``sale``.

    Each call advances the clock a second; ``day`` offsets the transaction
    date from T0 so callers control oldest-first ordering.
    """

    def _make(
        services: CashbookOrchestrator,
        *,
        supplier: str = "Acme Metals",
        party_name: str = "Bharat Builders",
        cost: Decimal | str = "1000",
        sale: Decimal | str = "1200",
        day: int = 0,
        additional_cost: Decimal | str = "0",
    ):
        clock.tick()
        return services.orders.create_order(
            party_name=party_name,
            supplier=supplier,
            date=T0 + timedelta(days=day),
            weight="1",
            rate=sale,
            original_weight="1",
            original_rate=cost,
            additional_cost=additional_cost,
        )

    return _make
