"""
Calendar period keys.

Quota counters are keyed by (subject, day) and the budget ledger by month.
A new period starts implicitly when the key changes; there is no reset
operation anywhere in the system.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def day_of(moment: datetime) -> date:
    """UTC calendar day that contains the given moment."""
    return _as_utc(moment).date()


@dataclass(frozen=True, order=True)
class Month:
    """A calendar month, e.g. Month(2024, 3) renders as ``2024-03``."""
    year: int
    month: int

    def __post_init__(self):
        """Validate month range."""
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be in 1..12, got {self.month}")

    @classmethod
    def of(cls, moment: datetime) -> "Month":
        """UTC calendar month that contains the given moment."""
        utc = _as_utc(moment)
        return cls(utc.year, utc.month)

    @classmethod
    def parse(cls, key: str) -> "Month":
        """Parse a ``YYYY-MM`` key."""
        try:
            year, month = key.split("-")
            return cls(int(year), int(month))
        except ValueError:
            raise ValueError(f"Invalid month key: {key!r}")

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
