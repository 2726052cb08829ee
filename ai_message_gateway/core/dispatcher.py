"""
Scheduled notification dispatcher.

Once per minute, finds every subject whose preferred notification time equals
the current hour and minute and sends each one a push notification. Subjects
are handled concurrently and independently: one failed delivery never
affects another, and the tick itself never fails.
"""

import asyncio
import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

from .budget import BudgetGuard
from .periods import Clock, utc_now
from .prompts import build_notification_prompt
from ai_message_gateway.log import get_logger
from ai_message_gateway.sdk.generator_client import TextGenerator
from ai_message_gateway.sdk.push import PushNotification, PushTransport
from ai_message_gateway.storage.models import Provenance, Subject
from ai_message_gateway.storage.repository import SQLiteStore

logger = get_logger(__name__)

NOTIFICATION_TYPE = "daily_reminder"


@dataclass
class DispatchReport:
    """Aggregate outcome of one tick."""
    hour: int
    minute: int
    matched: int = 0
    skipped: int = 0
    sent: int = 0
    failed: int = 0
    generated: int = 0
    fallback: int = 0

    @property
    def attempted(self) -> int:
        """Number of subjects a delivery was attempted for."""
        return self.sent + self.failed


def clean_notification_text(raw: str, max_words: int) -> Optional[str]:
    """Strip quotes from a generated notification; None if empty or too long."""
    text = raw.strip().replace('"', "").replace("'", "")
    if not text:
        return None
    if len(text.split()) > max_words:
        return None
    return text


class NotificationDispatcher:
    """Fans out daily reminders to the subjects due at the current minute."""

    def __init__(
        self,
        store: SQLiteStore,
        budget: BudgetGuard,
        generator: TextGenerator,
        transport: PushTransport,
        title: str,
        fallback_message: str,
        max_words: int = 12,
        use_utc: bool = False,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.budget = budget
        self.generator = generator
        self.transport = transport
        self.title = title
        self.fallback_message = fallback_message
        self.max_words = max_words
        self.use_utc = use_utc
        self.clock = clock

    def tick_time(self, now: datetime) -> Tuple[int, int]:
        """Hour and minute of a tick, on the server's wall clock unless UTC is configured."""
        wall = now.astimezone(timezone.utc) if self.use_utc else now.astimezone()
        return wall.hour, wall.minute

    def run_tick(self, now: Optional[datetime] = None) -> DispatchReport:
        """Run one tick to completion from synchronous code."""
        return asyncio.run(self.dispatch_tick(now))

    async def dispatch_tick(self, now: Optional[datetime] = None) -> DispatchReport:
        """Match subjects for the tick and deliver to all of them concurrently."""
        hour, minute = self.tick_time(now or self.clock())
        report = DispatchReport(hour=hour, minute=minute)
        logger.info("Checking notifications for %d:%02d", hour, minute)

        try:
            subjects = await asyncio.to_thread(
                self.store.find_subjects_by_notification_time, hour, minute
            )
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Could not query subjects for %d:%02d", hour, minute)
            return report

        report.matched = len(subjects)
        if not subjects:
            logger.info("No subjects to notify at this time")
            return report

        targets = [subject for subject in subjects if subject.push_token]
        report.skipped = report.matched - len(targets)

        outcomes = await asyncio.gather(
            *(asyncio.to_thread(self._notify, subject) for subject in targets),
            return_exceptions=True,
        )

        for subject, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                report.failed += 1
                logger.error(
                    "Failed to send notification to subject %s: %s",
                    subject.subject_id,
                    outcome,
                )
                continue
            report.sent += 1
            if outcome is Provenance.GENERATED:
                report.generated += 1
            else:
                report.fallback += 1

        logger.info(
            "Sent %d notifications (%d failed, %d skipped)",
            report.sent,
            report.failed,
            report.skipped,
        )
        return report

    def serve(
        self,
        max_ticks: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> int:
        """Run ticks on minute boundaries; a missed minute is not replayed.

        Returns the number of ticks run, which only matters when max_ticks is set.
        """
        ticks = 0
        logger.info("Notification dispatcher started")
        while max_ticks is None or ticks < max_ticks:
            sleep(self._seconds_to_next_minute(self.clock()))
            try:
                self.run_tick()
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Notification tick failed")
            ticks += 1
        return ticks

    @staticmethod
    def _seconds_to_next_minute(now: datetime) -> float:
        next_minute = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
        return (next_minute - now).total_seconds()

    def _notify(self, subject: Subject) -> Provenance:
        """Compose and deliver one notification; transport errors propagate."""
        body, provenance = self._compose(subject)
        self.transport.send(
            subject.push_token,
            PushNotification(
                title=self.title,
                body=body,
                data={"type": NOTIFICATION_TYPE, "subject_id": subject.subject_id},
            ),
        )
        logger.info("Sent notification to subject %s", subject.subject_id)
        return provenance

    def _compose(self, subject: Subject) -> Tuple[str, Provenance]:
        """Best-effort generated body, static fallback otherwise."""
        try:
            if not self.budget.is_open():
                return self.fallback_message, Provenance.FALLBACK
            raw = self.generator.complete(build_notification_prompt(subject.focus_tags))
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error(
                "Failed to generate notification for subject %s: %s", subject.subject_id, e
            )
            return self.fallback_message, Provenance.FALLBACK

        text = clean_notification_text(raw, self.max_words)
        if text is None:
            logger.warning(
                "Generated notification for subject %s rejected, using fallback",
                subject.subject_id,
            )
            return self.fallback_message, Provenance.FALLBACK

        try:
            self.budget.record()
        except sqlite3.Error as e:
            logger.error("Could not record notification cost: %s", e)
        return text, Provenance.GENERATED
