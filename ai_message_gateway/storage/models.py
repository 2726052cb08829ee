"""
Data models for storage layer.

Defines stored entities and the messages that flow through the gateway.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ai_message_gateway.core.periods import Month


class Provenance(Enum):
    """Where a message's text came from."""
    GENERATED = "generated"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class Subject:
    """An end user that can be targeted by notifications.

    Owned by the external profile store; the core only reads it.
    """
    subject_id: str
    push_token: Optional[str]
    notification_hour: int
    notification_minute: int
    focus_tags: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate the notification time preference."""
        if not 0 <= self.notification_hour <= 23:
            raise ValueError("notification_hour must be in 0..23")
        if not 0 <= self.notification_minute <= 59:
            raise ValueError("notification_minute must be in 0..59")


@dataclass(frozen=True)
class GeneratedMessage:
    """Generator output plus provenance and a timestamp."""
    text: str
    provenance: Provenance
    generated_at: datetime
    author: Optional[str] = None
    categories: Tuple[str, ...] = ()

    def to_payload(self) -> Dict[str, Any]:
        """Serialise into the JSON-compatible form stored in the cache."""
        payload: Dict[str, Any] = {
            "text": self.text,
            "source": self.provenance.value,
            "generated_at": self.generated_at.isoformat(),
        }
        if self.author:
            payload["author"] = self.author
        if self.categories:
            payload["categories"] = list(self.categories)
        return payload


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload; valid only while ``now < expires_at``."""
    subject_id: str
    cache_key: str
    payload: Dict[str, Any] = field(hash=False)
    created_at: datetime
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        """Whether the entry has not yet expired."""
        return now < self.expires_at


@dataclass(frozen=True)
class QuotaCounter:
    """Per-subject generation count for one calendar day."""
    subject_id: str
    day: date
    count: int
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class BudgetLedger:
    """Global spend accumulator for one calendar month."""
    month: Month
    requests: int = 0
    estimated_cost: float = 0.0
    updated_at: Optional[datetime] = None
