"""
Unit tests for storage layer.

Tests schema creation, point reads, overwrites and atomic increments.
"""

import os
import tempfile
from datetime import date, datetime, timedelta, timezone

import pytest

from ai_message_gateway.core.periods import Month
from ai_message_gateway.storage.db import get_connection
from ai_message_gateway.storage.models import CacheEntry, Subject
from ai_message_gateway.storage.repository import (
    CorruptRecordError,
    SQLiteStore,
    initialize_schema,
)

NOW = datetime(2024, 3, 10, 8, 30, tzinfo=timezone.utc)


class TestStorageSchema:
    """Test database schema creation and structure."""

    def test_schema_creation(self):
        """Verify all tables are created."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            conn = get_connection(db_path)
            try:
                cursor = conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
                )
                tables = [row[0] for row in cursor.fetchall()]
                assert tables == ["budget_ledger", "cache_entry", "quota_counter", "subject"]
            finally:
                conn.close()

    def test_schema_has_no_foreign_keys(self):
        """Verify tables are independent, keyed only by their own columns."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            conn = get_connection(db_path)
            try:
                for table in ("budget_ledger", "cache_entry", "quota_counter", "subject"):
                    assert conn.execute(f"PRAGMA foreign_key_list({table})").fetchall() == []
            finally:
                conn.close()

    def test_schema_creation_is_idempotent(self):
        """Verify initializing twice keeps existing data."""
        with tempfile.TemporaryDirectory() as temp_dir:
            store = SQLiteStore(os.path.join(temp_dir, "test.db"))
            store.initialize()
            store.increment_quota("u1", NOW.date(), NOW)
            store.initialize()
            assert store.get_quota_counter("u1", NOW.date()).count == 1


class TestSQLiteStore:
    """Test store operations."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.store = SQLiteStore(os.path.join(self.temp_dir, "test.db"))
        self.store.initialize()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_subject_roundtrip(self):
        """Verify subjects are stored with their focus tags."""
        subject = Subject("u1", "token-1", 8, 30, ("focus", "calm"))
        self.store.upsert_subject(subject)

        assert self.store.has_subject("u1")
        assert not self.store.has_subject("u2")
        assert self.store.get_subject("u1") == subject
        assert self.store.get_subject("u2") is None

    def test_subject_upsert_updates_preference(self):
        """Verify a second upsert replaces the stored preference."""
        self.store.upsert_subject(Subject("u1", "token-1", 8, 30))
        self.store.upsert_subject(Subject("u1", None, 9, 0))

        subject = self.store.get_subject("u1")
        assert subject.push_token is None
        assert (subject.notification_hour, subject.notification_minute) == (9, 0)

    def test_find_subjects_by_exact_time(self):
        """Verify only exact hour and minute matches are returned."""
        self.store.upsert_subject(Subject("a", "t", 8, 30))
        self.store.upsert_subject(Subject("b", "t", 8, 30))
        self.store.upsert_subject(Subject("c", "t", 8, 31))
        self.store.upsert_subject(Subject("d", "t", 9, 30))

        matched = self.store.find_subjects_by_notification_time(8, 30)
        assert [s.subject_id for s in matched] == ["a", "b"]
        assert self.store.find_subjects_by_notification_time(0, 0) == []

    def _execute(self, sql, params=()):
        conn = get_connection(self.store.db_path)
        try:
            conn.execute(sql, params)
            conn.commit()
        finally:
            conn.close()

    def test_corrupt_subject_row(self):
        """Verify undecodable tags raise on point reads and are skipped by time lookups."""
        self.store.upsert_subject(Subject("a", "t", 8, 30))
        self.store.upsert_subject(Subject("b", "t", 8, 30))
        self._execute("UPDATE subject SET focus_tags = 'not json' WHERE subject_id = 'b'")

        with pytest.raises(CorruptRecordError, match="subject"):
            self.store.get_subject("b")
        matched = self.store.find_subjects_by_notification_time(8, 30)
        assert [s.subject_id for s in matched] == ["a"]

    def test_corrupt_cache_entry(self):
        """Verify an undecodable payload raises a store error."""
        self._execute(
            "INSERT INTO cache_entry VALUES (?, ?, ?, ?, ?)",
            ("u1", "key", "{broken", NOW.isoformat(), NOW.isoformat()),
        )
        with pytest.raises(CorruptRecordError, match="cache_entry"):
            self.store.get_cache_entry("u1", "key")

    def test_cache_entry_missing(self):
        """Verify a missing entry reads as None."""
        assert self.store.get_cache_entry("u1", "key") is None

    def test_cache_entry_overwrite(self):
        """Verify put overwrites the entry under the same key."""
        first = CacheEntry("u1", "key", {"text": "one"}, NOW, NOW + timedelta(hours=1))
        second = CacheEntry("u1", "key", {"text": "two"}, NOW, NOW + timedelta(hours=2))
        self.store.put_cache_entry(first)
        self.store.put_cache_entry(second)

        entry = self.store.get_cache_entry("u1", "key")
        assert entry.payload == {"text": "two"}
        assert entry.expires_at == NOW + timedelta(hours=2)

    def test_cache_entries_are_subject_scoped(self):
        """Verify the same key for two subjects holds two entries."""
        self.store.put_cache_entry(CacheEntry("u1", "key", {"text": "a"}, NOW, NOW))
        self.store.put_cache_entry(CacheEntry("u2", "key", {"text": "b"}, NOW, NOW))

        assert self.store.get_cache_entry("u1", "key").payload == {"text": "a"}
        assert self.store.get_cache_entry("u2", "key").payload == {"text": "b"}

    def test_quota_increment(self):
        """Verify increments create and then add to the day's counter."""
        day = date(2024, 3, 10)
        assert self.store.get_quota_counter("u1", day) is None
        assert self.store.increment_quota("u1", day, NOW) == 1
        assert self.store.increment_quota("u1", day, NOW) == 2

        counter = self.store.get_quota_counter("u1", day)
        assert counter.count == 2
        assert counter.updated_at == NOW

    def test_quota_counters_keyed_by_day(self):
        """Verify a new day starts a new counter."""
        self.store.increment_quota("u1", date(2024, 3, 10), NOW)
        assert self.store.get_quota_counter("u1", date(2024, 3, 11)) is None

    def test_budget_increment(self):
        """Verify requests and cost are added together."""
        month = Month(2024, 3)
        assert self.store.get_budget_ledger(month) is None

        self.store.increment_budget(month, 0.5, NOW)
        ledger = self.store.increment_budget(month, 0.25, NOW)

        assert ledger.requests == 2
        assert ledger.estimated_cost == pytest.approx(0.75)
        stored = self.store.get_budget_ledger(month)
        assert stored.requests == 2
        assert stored.estimated_cost == pytest.approx(0.75)

    def test_budget_ledgers_keyed_by_month(self):
        """Verify a new month starts a new ledger."""
        self.store.increment_budget(Month(2024, 3), 1.0, NOW)
        assert self.store.get_budget_ledger(Month(2024, 4)) is None


class TestModels:
    """Test model validation."""

    def test_subject_rejects_invalid_hour(self):
        """Verify hours outside 0..23 are rejected."""
        with pytest.raises(ValueError, match="notification_hour"):
            Subject("u1", "t", 24, 0)

    def test_subject_rejects_invalid_minute(self):
        """Verify minutes outside 0..59 are rejected."""
        with pytest.raises(ValueError, match="notification_minute"):
            Subject("u1", "t", 0, 60)

    def test_cache_entry_validity_boundary(self):
        """Verify an entry is invalid exactly at its expiry time."""
        entry = CacheEntry("u1", "k", {}, NOW, NOW + timedelta(minutes=1))
        assert entry.is_valid(NOW)
        assert not entry.is_valid(NOW + timedelta(minutes=1))
