"""
Tests for LedgerStore.

Covers:
- Entry creation, date normalization and text cleanup
- Three-state field updates
- Removal, ordering, balance and live subscriptions
- Audit records for every mutation
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest

from cashbook_kernel.domain.field_update import CLEAR, Set
from cashbook_kernel.domain.records import ActivityType, LedgerDirection, LedgerSource
from cashbook_kernel.exceptions import (
    InvalidAmountError,
    LedgerEntryNotFoundError,
    ValidationError,
)
from cashbook_kernel.services.audit_trail import AuditTrail
from cashbook_kernel.services.ledger_store import LedgerEntryChanges, LedgerStore


@pytest.fixture
def audit(memory_store, clock):
    trail = AuditTrail(memory_store, clock)
    yield trail
    trail.shutdown()


@pytest.fixture
def ledger(memory_store, audit, clock):
    return LedgerStore(memory_store, audit, clock)


class TestAddEntry:

    def test_returns_id_and_stores_entry(self, ledger, clock):
        entry_id = ledger.add_entry("debit", "1200", note="  steel  ", supplier="Acme")

        entry = ledger.get(entry_id)
        assert entry.direction is LedgerDirection.DEBIT
        assert entry.amount == Decimal("1200")
        assert entry.note == "steel"
        assert entry.supplier == "Acme"
        assert entry.party_name is None
        assert entry.source is LedgerSource.MANUAL
        assert entry.created_at == clock.now()
        assert entry.date == clock.now()

    def test_blank_optional_text_dropped(self, ledger, memory_store):
        entry_id = ledger.add_entry("credit", "10", note="   ", party_name="")

        data = memory_store.get("ledger_entries", entry_id).data
        assert "note" not in data
        assert "party_name" not in data

    def test_bare_date_pinned_to_noon(self, ledger):
        entry_id = ledger.add_entry("credit", "10", date="2024-03-05")

        assert ledger.get(entry_id).date == datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)

    def test_bare_date_uses_local_timezone(self, memory_store, audit, clock):
        ledger = LedgerStore(
            memory_store,
            audit,
            clock,
            entry_time_of_day=time(12, 0),
            local_timezone="Asia/Kolkata",
        )

        entry_id = ledger.add_entry("credit", "10", date=date(2024, 3, 5))

        # 12:00 IST is 06:30 UTC, still the same calendar day
        assert ledger.get(entry_id).date == datetime(2024, 3, 5, 6, 30, tzinfo=timezone.utc)

    def test_full_timestamp_kept(self, ledger):
        entry_id = ledger.add_entry("credit", "10", date="2024-03-05T23:15:00+00:00")

        assert ledger.get(entry_id).date == datetime(2024, 3, 5, 23, 15, tzinfo=timezone.utc)

    def test_unknown_direction_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.add_entry("sideways", "10")

    def test_non_numeric_amount_rejected(self, ledger):
        with pytest.raises(InvalidAmountError):
            ledger.add_entry("credit", "ten")

    def test_negative_and_zero_amounts_accepted(self, ledger):
        negative = ledger.add_entry("credit", "-5")
        zero = ledger.add_entry("debit", "0")

        assert ledger.get(negative).amount == Decimal("-5")
        assert ledger.get(zero).amount == Decimal("0")

    def test_malformed_date_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.add_entry("credit", "10", date="2024-13-45")

    def test_created_event_logged(self, ledger, captured_logs):
        entry_id = ledger.add_entry("credit", "10", party_name="Bharat")

        created = [r for r in captured_logs() if r["message"] == "ledger_entry_created"]
        assert created[0]["ledger_entry_id"] == entry_id
        assert created[0]["amount"] == "10"


class TestUpdate:

    def test_set_changes_only_named_fields(self, ledger):
        entry_id = ledger.add_entry("debit", "100", note="old", supplier="Acme")

        after = ledger.update(entry_id, LedgerEntryChanges(amount=Set("150")))

        assert after.amount == Decimal("150")
        assert after.note == "old"
        assert after.supplier == "Acme"
        assert ledger.get(entry_id) == after

    def test_clear_removes_optional_field(self, ledger, memory_store):
        entry_id = ledger.add_entry("debit", "100", supplier="Acme")

        ledger.update(entry_id, LedgerEntryChanges(supplier=CLEAR))

        assert ledger.get(entry_id).supplier is None
        assert "supplier" not in memory_store.get("ledger_entries", entry_id).data

    def test_blank_set_clears(self, ledger):
        entry_id = ledger.add_entry("debit", "100", note="rent")

        ledger.update(entry_id, LedgerEntryChanges(note=Set("  ")))

        assert ledger.get(entry_id).note is None

    def test_amount_cannot_be_cleared(self, ledger):
        entry_id = ledger.add_entry("debit", "100")

        with pytest.raises(ValidationError):
            ledger.update(entry_id, LedgerEntryChanges(amount=CLEAR))

    def test_date_cannot_be_cleared(self, ledger):
        entry_id = ledger.add_entry("debit", "100")

        with pytest.raises(ValidationError):
            ledger.update(entry_id, LedgerEntryChanges(date=CLEAR))

    def test_missing_entry_raises(self, ledger):
        with pytest.raises(LedgerEntryNotFoundError):
            ledger.update("nope", LedgerEntryChanges(amount=Set("1")))

    def test_no_op_update_writes_nothing(self, ledger, memory_store, audit):
        entry_id = ledger.add_entry("debit", "100", note="rent")
        version = memory_store.get("ledger_entries", entry_id).version

        ledger.update(entry_id, LedgerEntryChanges(note=Set("rent")))
        audit.flush()

        assert memory_store.get("ledger_entries", entry_id).version == version
        assert [a.activity_type for a in audit.get_activities_for_entry(entry_id)] == [
            ActivityType.CREATED
        ]

    def test_creation_timestamp_preserved(self, ledger, clock):
        entry_id = ledger.add_entry("debit", "100")
        created = ledger.get(entry_id).created_at
        clock.advance(60)

        ledger.update(entry_id, LedgerEntryChanges(amount=Set("5")))

        assert ledger.get(entry_id).created_at == created


class TestRemove:

    def test_remove_returns_entry(self, ledger):
        entry_id = ledger.add_entry("credit", "10")

        removed = ledger.remove(entry_id)

        assert removed.id == entry_id
        assert ledger.find(entry_id) is None

    def test_remove_missing_raises(self, ledger):
        with pytest.raises(LedgerEntryNotFoundError):
            ledger.remove("nope")

    def test_remove_last_entry(self, ledger, clock):
        first = ledger.add_entry("credit", "10")
        clock.tick()
        second = ledger.add_entry("credit", "20")

        assert ledger.remove_last_entry().id == second
        assert [e.id for e in ledger.list()] == [first]

    def test_remove_last_entry_on_empty_ledger(self, ledger):
        with pytest.raises(LedgerEntryNotFoundError):
            ledger.remove_last_entry()


class TestQueries:

    def test_list_newest_first(self, ledger, clock):
        ids = []
        for amount in ("1", "2", "3"):
            ids.append(ledger.add_entry("credit", amount))
            clock.tick()

        assert [e.id for e in ledger.list()] == list(reversed(ids))

    def test_list_falls_back_to_date_without_created_at(self, ledger, memory_store):
        memory_store.create(
            "ledger_entries",
            {"direction": "credit", "amount": "5", "date": "2030-01-01T00:00:00+00:00"},
            doc_id="legacy",
        )
        ledger.add_entry("credit", "1")

        assert ledger.list()[0].id == "legacy"

    def test_balance_is_credits_minus_debits(self, ledger):
        ledger.add_entry("credit", "1000")
        ledger.add_entry("debit", "250.50")
        ledger.add_entry("credit", "10.25")

        assert ledger.get_balance() == Decimal("759.75")

    def test_empty_balance(self, ledger):
        assert ledger.get_balance() == Decimal("0")

    def test_subscribe_delivers_sorted_snapshots(self, ledger, clock):
        snapshots = []
        unsubscribe = ledger.subscribe(lambda entries: snapshots.append([e.amount for e in entries]))

        ledger.add_entry("credit", "1")
        clock.tick()
        ledger.add_entry("credit", "2")
        unsubscribe()
        ledger.add_entry("credit", "3")

        assert snapshots == [[], [Decimal("1")], [Decimal("2"), Decimal("1")]]


class TestAuditRecords:

    def test_every_mutation_recorded_with_prior_values(self, ledger, audit, clock):
        entry_id = ledger.add_entry("debit", "100", note="a", supplier="Acme")
        clock.tick()
        ledger.update(entry_id, LedgerEntryChanges(amount=Set("120"), note=Set("b")))
        clock.tick()
        ledger.remove(entry_id)
        audit.flush()

        deleted, updated, created = audit.get_activities_for_entry(entry_id)

        assert created.activity_type is ActivityType.CREATED
        assert created.amount == Decimal("100")
        assert updated.activity_type is ActivityType.UPDATED
        assert updated.previous_amount == Decimal("100")
        assert updated.amount == Decimal("120")
        assert updated.previous_note == "a"
        assert updated.note == "b"
        assert deleted.activity_type is ActivityType.DELETED
        assert deleted.previous_amount == Decimal("120")
        assert deleted.previous_supplier == "Acme"
