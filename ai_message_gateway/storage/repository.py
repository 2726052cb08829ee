"""
Repository pattern for data access.

The durable store behind the gateway. Subject-scoped tables hold cache
entries and daily quota counters, one global table holds the monthly budget
ledger. Every read goes to the database; nothing is memoised in process.
"""

import json
from datetime import date, datetime
from typing import List, Optional

from .db import DEFAULT_DB_PATH, get_connection
from .models import BudgetLedger, CacheEntry, QuotaCounter, Subject
from ai_message_gateway.core.periods import Month
from ai_message_gateway.log import get_logger

logger = get_logger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS subject (
        subject_id TEXT PRIMARY KEY,
        push_token TEXT,
        notification_hour INTEGER NOT NULL,
        notification_minute INTEGER NOT NULL,
        focus_tags TEXT NOT NULL DEFAULT '[]'
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS subject_notification_time
        ON subject (notification_hour, notification_minute)
    """,
    """
    CREATE TABLE IF NOT EXISTS cache_entry (
        subject_id TEXT NOT NULL,
        cache_key TEXT NOT NULL,
        payload TEXT NOT NULL,
        created_at TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        PRIMARY KEY (subject_id, cache_key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS quota_counter (
        subject_id TEXT NOT NULL,
        day TEXT NOT NULL,
        count INTEGER NOT NULL DEFAULT 0,
        updated_at TEXT,
        PRIMARY KEY (subject_id, day)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS budget_ledger (
        month TEXT PRIMARY KEY,
        requests INTEGER NOT NULL DEFAULT 0,
        estimated_cost REAL NOT NULL DEFAULT 0,
        updated_at TEXT
    )
    """,
)


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create all tables if they don't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        for statement in SCHEMA:
            conn.execute(statement)
        conn.commit()
    finally:
        conn.close()


class CorruptRecordError(ValueError):
    """Raised when a stored row cannot be decoded."""


def _load_json(raw: str, table: str):
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptRecordError(f"Undecodable JSON in {table}: {e}") from e


def _load_time(raw: Optional[str], table: str) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except (TypeError, ValueError) as e:
        raise CorruptRecordError(f"Undecodable timestamp in {table}: {raw!r}") from e


def _subject_from_row(row) -> Subject:
    tags = _load_json(row[4] or "[]", "subject")
    if not isinstance(tags, list):
        raise CorruptRecordError(f"focus_tags of subject {row[0]} is not a list")
    try:
        return Subject(
            subject_id=row[0],
            push_token=row[1],
            notification_hour=row[2],
            notification_minute=row[3],
            focus_tags=tuple(tags),
        )
    except ValueError as e:
        raise CorruptRecordError(f"Invalid subject {row[0]}: {e}") from e


class SQLiteStore:
    """Durable key-value access for subjects, cache, quota and budget.

    Increments are single upsert statements, so concurrent writers never lose
    an update. Reads and increments are separate calls; callers that check
    before they record accept a small over-admission window.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the store with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def initialize(self) -> None:
        """Create tables used by the store."""
        initialize_schema(self.db_path)

    # Subjects

    def upsert_subject(self, subject: Subject) -> None:
        """Insert or replace a subject profile."""
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO subject
                    (subject_id, push_token, notification_hour,
                     notification_minute, focus_tags)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (subject_id) DO UPDATE SET
                    push_token = excluded.push_token,
                    notification_hour = excluded.notification_hour,
                    notification_minute = excluded.notification_minute,
                    focus_tags = excluded.focus_tags
                """,
                (
                    subject.subject_id,
                    subject.push_token,
                    subject.notification_hour,
                    subject.notification_minute,
                    json.dumps(list(subject.focus_tags)),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        """Point read of a subject profile."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                """
                SELECT subject_id, push_token, notification_hour,
                       notification_minute, focus_tags
                FROM subject WHERE subject_id = ?
                """,
                (subject_id,),
            ).fetchone()
            return _subject_from_row(row) if row else None
        finally:
            conn.close()

    def has_subject(self, subject_id: str) -> bool:
        """Existence check for a subject profile."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT 1 FROM subject WHERE subject_id = ?", (subject_id,)
            ).fetchone()
            return row is not None
        finally:
            conn.close()

    def find_subjects_by_notification_time(
        self, hour: int, minute: int
    ) -> List[Subject]:
        """All subjects whose preferred notification time equals hour:minute.

        Rows that cannot be decoded are logged and left out, so one corrupt
        profile never hides the others.
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                """
                SELECT subject_id, push_token, notification_hour,
                       notification_minute, focus_tags
                FROM subject
                WHERE notification_hour = ? AND notification_minute = ?
                ORDER BY subject_id
                """,
                (hour, minute),
            )
            subjects = []
            for row in cursor.fetchall():
                try:
                    subjects.append(_subject_from_row(row))
                except CorruptRecordError as e:
                    logger.error("Skipping subject %s: %s", row[0], e)
            return subjects
        finally:
            conn.close()

    # Cache

    def get_cache_entry(self, subject_id: str, cache_key: str) -> Optional[CacheEntry]:
        """Point read of a cache entry, expired or not."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                """
                SELECT payload, created_at, expires_at
                FROM cache_entry WHERE subject_id = ? AND cache_key = ?
                """,
                (subject_id, cache_key),
            ).fetchone()
            if row is None:
                return None
            return CacheEntry(
                subject_id=subject_id,
                cache_key=cache_key,
                payload=_load_json(row[0], "cache_entry"),
                created_at=_load_time(row[1], "cache_entry"),
                expires_at=_load_time(row[2], "cache_entry"),
            )
        finally:
            conn.close()

    def put_cache_entry(self, entry: CacheEntry) -> None:
        """Write a cache entry, overwriting whatever is stored under its key."""
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO cache_entry
                    (subject_id, cache_key, payload, created_at, expires_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    entry.subject_id,
                    entry.cache_key,
                    json.dumps(entry.payload),
                    entry.created_at.isoformat(),
                    entry.expires_at.isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    # Quota

    def get_quota_counter(self, subject_id: str, day: date) -> Optional[QuotaCounter]:
        """Point read of a subject's counter for one day."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                """
                SELECT count, updated_at FROM quota_counter
                WHERE subject_id = ? AND day = ?
                """,
                (subject_id, day.isoformat()),
            ).fetchone()
            if row is None:
                return None
            return QuotaCounter(
                subject_id=subject_id,
                day=day,
                count=row[0],
                updated_at=_load_time(row[1], "quota_counter"),
            )
        finally:
            conn.close()

    def increment_quota(self, subject_id: str, day: date, updated_at: datetime) -> int:
        """Add one to a subject's daily counter and return the new count."""
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO quota_counter (subject_id, day, count, updated_at)
                VALUES (?, ?, 1, ?)
                ON CONFLICT (subject_id, day) DO UPDATE SET
                    count = count + 1,
                    updated_at = excluded.updated_at
                """,
                (subject_id, day.isoformat(), updated_at.isoformat()),
            )
            row = conn.execute(
                "SELECT count FROM quota_counter WHERE subject_id = ? AND day = ?",
                (subject_id, day.isoformat()),
            ).fetchone()
            conn.commit()
            return row[0]
        finally:
            conn.close()

    # Budget

    def get_budget_ledger(self, month: Month) -> Optional[BudgetLedger]:
        """Point read of the global ledger for one month."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                """
                SELECT requests, estimated_cost, updated_at
                FROM budget_ledger WHERE month = ?
                """,
                (str(month),),
            ).fetchone()
            if row is None:
                return None
            return BudgetLedger(
                month=month,
                requests=row[0],
                estimated_cost=row[1],
                updated_at=_load_time(row[2], "budget_ledger"),
            )
        finally:
            conn.close()

    def increment_budget(
        self, month: Month, cost: float, updated_at: datetime
    ) -> BudgetLedger:
        """Add one request and its cost to a month's ledger in one statement."""
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO budget_ledger (month, requests, estimated_cost, updated_at)
                VALUES (?, 1, ?, ?)
                ON CONFLICT (month) DO UPDATE SET
                    requests = requests + 1,
                    estimated_cost = estimated_cost + excluded.estimated_cost,
                    updated_at = excluded.updated_at
                """,
                (str(month), cost, updated_at.isoformat()),
            )
            row = conn.execute(
                "SELECT requests, estimated_cost FROM budget_ledger WHERE month = ?",
                (str(month),),
            ).fetchone()
            conn.commit()
            return BudgetLedger(
                month=month,
                requests=row[0],
                estimated_cost=row[1],
                updated_at=updated_at,
            )
        finally:
            conn.close()
