"""
TTL cache backed by the durable store.

Entries expire passively: a stale entry reads as a miss but stays in the
store until the same key is written again. There is no capacity bound and
no eviction beyond TTL.
"""

import re
from datetime import date, timedelta
from typing import Any, Dict, Iterable, Optional

from ai_message_gateway.core.periods import Clock, utc_now
from ai_message_gateway.log import get_logger
from ai_message_gateway.storage.models import CacheEntry
from ai_message_gateway.storage.repository import SQLiteStore

logger = get_logger(__name__)

_NON_WORD = re.compile(r"[^a-z0-9]+")


def _slug(value: str) -> str:
    """Lower-case a value and collapse anything but letters/digits to '-'."""
    return _NON_WORD.sub("-", value.strip().lower()).strip("-")


def normalize_tags(tags: Iterable[str]) -> list:
    """Sorted, de-duplicated, slugged tags; empty tags are dropped."""
    return sorted({_slug(tag) for tag in tags if tag and _slug(tag)})


def message_cache_key(day: date, long_term_state: str, yesterday_mood: str) -> str:
    """Key for the one motivational message per day and mood context."""
    return f"message_{day.isoformat()}_{_slug(long_term_state)}_{_slug(yesterday_mood)}"


def quote_cache_key(mood: str, tags: Iterable[str]) -> str:
    """Key for a reusable quote; equivalent tag sets map to the same key."""
    normalized = normalize_tags(tags)
    suffix = "_".join(normalized) if normalized else "general"
    return f"quote_{_slug(mood)}_{suffix}"


class TTLCache:
    """Keyed lookup/store with expiry semantics."""

    def __init__(self, store: SQLiteStore, clock: Clock = utc_now):
        self.store = store
        self.clock = clock

    def get(self, subject_id: str, key: str) -> Optional[Dict[str, Any]]:
        """Return the cached payload, or None when absent or expired."""
        entry = self.store.get_cache_entry(subject_id, key)
        if entry is None:
            return None
        if not entry.is_valid(self.clock()):
            logger.debug("Cache entry %s for subject %s has expired", key, subject_id)
            return None
        return entry.payload

    def put(
        self, subject_id: str, key: str, payload: Dict[str, Any], ttl: timedelta
    ) -> CacheEntry:
        """Store a payload under a key with a fresh expiry of now + ttl."""
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        now = self.clock()
        entry = CacheEntry(
            subject_id=subject_id,
            cache_key=key,
            payload=payload,
            created_at=now,
            expires_at=now + ttl,
        )
        self.store.put_cache_entry(entry)
        logger.info(
            "Cached %s for subject %s until %s",
            key,
            subject_id,
            entry.expires_at.isoformat(),
        )
        return entry
