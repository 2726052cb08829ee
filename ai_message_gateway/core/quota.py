"""Per-subject, per-day generation quota."""

from dataclasses import dataclass

from ai_message_gateway.core.periods import Clock, day_of, utc_now
from ai_message_gateway.log import get_logger
from ai_message_gateway.storage.repository import SQLiteStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class QuotaStatus:
    """Outcome of a quota check."""
    allowed: bool
    used: int
    remaining: int
    limit: int


class QuotaTracker:
    """Fixed daily ceiling per subject.

    ``check`` never increments; ``record`` is called once per successful
    generation. Check and record are separate store calls, so concurrent
    requests from one subject may overshoot the ceiling slightly.
    """

    def __init__(self, store: SQLiteStore, daily_limit: int, clock: Clock = utc_now):
        if daily_limit <= 0:
            raise ValueError("daily_limit must be > 0")
        self.store = store
        self.daily_limit = daily_limit
        self.clock = clock

    def check(self, subject_id: str) -> QuotaStatus:
        """Compare today's counter (absent counts as zero) to the ceiling."""
        counter = self.store.get_quota_counter(subject_id, day_of(self.clock()))
        used = counter.count if counter else 0
        return QuotaStatus(
            allowed=used < self.daily_limit,
            used=used,
            remaining=max(0, self.daily_limit - used),
            limit=self.daily_limit,
        )

    def record(self, subject_id: str) -> int:
        """Increment today's counter by one and return the new count."""
        now = self.clock()
        count = self.store.increment_quota(subject_id, day_of(now), now)
        logger.info(
            "Quota for subject %s: %d/%d used today", subject_id, count, self.daily_limit
        )
        return count
