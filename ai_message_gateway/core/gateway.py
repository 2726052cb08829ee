"""
Generation gateway.

Mediates every paid generation for a single request: quota, then cache,
then budget, then the generator. On success the payload is cached before
quota and budget are charged, so an interrupted request can at worst
double-charge but never serve a payload that was never cached.
"""

import json
import re
import sqlite3
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .admission import (
    ADMISSION_ORDER,
    AdmissionCheck,
    FailureReason,
    GatewayResult,
    InvalidRequest,
    ResultSource,
)
from .budget import BudgetGuard
from .cache import TTLCache, message_cache_key, quote_cache_key
from .periods import Clock, day_of, utc_now
from .prompts import build_message_prompt, build_quote_prompt
from .quota import QuotaTracker
from ai_message_gateway.log import get_logger
from ai_message_gateway.sdk.generator_client import GenerationError, TextGenerator
from ai_message_gateway.storage.models import GeneratedMessage, Provenance
from ai_message_gateway.storage.repository import CorruptRecordError

logger = get_logger(__name__)

DEFAULT_NOTES = "nothing special"

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class UseCase(Enum):
    """What kind of content is requested."""
    MESSAGE = "message"  # daily motivational message, freeform text
    QUOTE = "quote"  # reusable quote, constrained JSON


@dataclass(frozen=True)
class MoodContext:
    """Request-shaping fields sent by the client."""
    use_case: UseCase
    long_term_state: Optional[str] = None
    yesterday_mood: Optional[str] = None
    yesterday_notes: Optional[str] = None
    mood: Optional[str] = None
    focus_tags: Tuple[str, ...] = ()

    def validate(self) -> None:
        """Raise InvalidRequest unless the fields required by the use-case are present."""
        if self.use_case is UseCase.MESSAGE:
            missing = [
                name for name in ("long_term_state", "yesterday_mood")
                if not _filled(getattr(self, name))
            ]
            if missing:
                raise InvalidRequest(f"Missing required fields: {', '.join(missing)}")
        elif not _filled(self.mood):
            raise InvalidRequest("Missing required field: mood")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MoodContext":
        """Build a context from untrusted callable input.

        Raises:
            InvalidRequest: If the input is not a mapping or has wrong types
        """
        if not isinstance(data, Mapping):
            raise InvalidRequest("Request data must be an object")

        kind = data.get("kind", UseCase.MESSAGE.value)
        try:
            use_case = UseCase(kind)
        except ValueError:
            valid = [u.value for u in UseCase]
            raise InvalidRequest(f"'kind' must be one of: {valid}")

        fields = {}
        for name in ("long_term_state", "yesterday_mood", "yesterday_notes", "mood"):
            value = data.get(name)
            if value is not None and not isinstance(value, str):
                raise InvalidRequest(f"'{name}' must be a string")
            fields[name] = value

        tags = data.get("focus_tags") or []
        if not isinstance(tags, (list, tuple)) or not all(isinstance(t, str) for t in tags):
            raise InvalidRequest("'focus_tags' must be a list of strings")

        context = cls(use_case=use_case, focus_tags=tuple(tags), **fields)
        context.validate()
        return context


def _filled(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(value.strip())


def parse_quote(raw: str) -> Tuple[str, Optional[str], Tuple[str, ...]]:
    """Defensively parse ``{text, author?, categories?}`` generator output.

    Raises:
        GenerationError: If the output is not a JSON object with a non-empty text
    """
    cleaned = _CODE_FENCE.sub("", raw.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise GenerationError(f"Quote is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise GenerationError("Quote JSON must be an object")

    text = data.get("text")
    if not isinstance(text, str) or not text.strip():
        raise GenerationError("Quote JSON has no text")

    author = data.get("author")
    if not isinstance(author, str) or not author.strip():
        author = None

    categories = data.get("categories") or []
    if not isinstance(categories, list):
        categories = []
    return (
        text.strip(),
        author.strip() if author else None,
        tuple(c for c in categories if isinstance(c, str) and c.strip()),
    )


class GenerationGateway:
    """Admission-controlled, cached access to the text generator."""

    def __init__(
        self,
        quota: QuotaTracker,
        cache: TTLCache,
        budget: BudgetGuard,
        generator: TextGenerator,
        message_ttl: timedelta = timedelta(hours=24),
        quote_ttl: timedelta = timedelta(days=7),
        clock: Clock = utc_now,
    ):
        self.quota = quota
        self.cache = cache
        self.budget = budget
        self.generator = generator
        self.message_ttl = message_ttl
        self.quote_ttl = quote_ttl
        self.clock = clock
        self._checks: Dict[AdmissionCheck, Callable[[str, MoodContext, str], Optional[GatewayResult]]] = {
            AdmissionCheck.QUOTA: self._check_quota,
            AdmissionCheck.CACHE: self._check_cache,
            AdmissionCheck.BUDGET: self._check_budget,
            AdmissionCheck.GENERATE: self._generate,
        }

    def cache_key(self, context: MoodContext) -> str:
        """Deterministic cache key for a request context."""
        if context.use_case is UseCase.MESSAGE:
            return message_cache_key(
                day_of(self.clock()), context.long_term_state, context.yesterday_mood
            )
        return quote_cache_key(context.mood, context.focus_tags)

    def ttl_for(self, context: MoodContext) -> timedelta:
        """Short-lived cache for daily messages, longer for reusable quotes."""
        if context.use_case is UseCase.MESSAGE:
            return self.message_ttl
        return self.quote_ttl

    def generate(self, subject_id: str, context: MoodContext) -> GatewayResult:
        """Run one request through the admission pipeline.

        Args:
            subject_id: Authenticated subject making the request
            context: Validated request context

        Returns:
            GatewayResult; soft failures are results, never exceptions

        Raises:
            InvalidRequest: If subject_id is missing or the context is malformed
        """
        if not subject_id or not str(subject_id).strip():
            raise InvalidRequest(
                "Subject must be authenticated to generate messages", code="unauthenticated"
            )
        if not isinstance(context, MoodContext):
            raise InvalidRequest("Request context is malformed")
        context.validate()

        logger.info("Generation request from subject %s (%s)", subject_id, context.use_case.value)
        key = self.cache_key(context)

        try:
            for check in ADMISSION_ORDER:
                result = self._checks[check](subject_id, context, key)
                if result is not None:
                    self._log_outcome(subject_id, result)
                    return result
        except (sqlite3.Error, CorruptRecordError) as e:
            logger.error("Store access failed for subject %s: %s", subject_id, e)
            return GatewayResult.rejected(FailureReason.GENERATION_FAILED, AdmissionCheck.GENERATE)

        raise RuntimeError("Admission pipeline ended without a result")

    def _check_quota(self, subject_id: str, context: MoodContext, key: str) -> Optional[GatewayResult]:
        status = self.quota.check(subject_id)
        if not status.allowed:
            return GatewayResult.rejected(FailureReason.QUOTA_EXCEEDED, AdmissionCheck.QUOTA)
        return None

    def _check_cache(self, subject_id: str, context: MoodContext, key: str) -> Optional[GatewayResult]:
        payload = self.cache.get(subject_id, key)
        if payload is not None:
            return GatewayResult.served(payload, ResultSource.CACHE, AdmissionCheck.CACHE)
        return None

    def _check_budget(self, subject_id: str, context: MoodContext, key: str) -> Optional[GatewayResult]:
        if not self.budget.is_open():
            return GatewayResult.rejected(FailureReason.BUDGET_EXCEEDED, AdmissionCheck.BUDGET)
        return None

    def _generate(self, subject_id: str, context: MoodContext, key: str) -> GatewayResult:
        try:
            message = self._call_generator(context)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Generation failed for subject %s: %s", subject_id, e)
            return GatewayResult.rejected(FailureReason.GENERATION_FAILED, AdmissionCheck.GENERATE)

        payload = message.to_payload()
        self.cache.put(subject_id, key, payload, self.ttl_for(context))
        self.quota.record(subject_id)
        self.budget.record()
        return GatewayResult.served(payload, ResultSource.GENERATED, AdmissionCheck.GENERATE)

    def _call_generator(self, context: MoodContext) -> GeneratedMessage:
        if context.use_case is UseCase.MESSAGE:
            prompt = build_message_prompt(
                context.long_term_state,
                context.yesterday_mood,
                context.yesterday_notes or DEFAULT_NOTES,
            )
            text = self.generator.complete(prompt).strip()
            if not text:
                raise GenerationError("Generator returned empty text")
            return GeneratedMessage(
                text=text, provenance=Provenance.GENERATED, generated_at=self.clock()
            )

        raw = self.generator.complete(build_quote_prompt(context.mood, context.focus_tags))
        text, author, categories = parse_quote(raw)
        return GeneratedMessage(
            text=text,
            provenance=Provenance.GENERATED,
            generated_at=self.clock(),
            author=author,
            categories=categories,
        )

    def _log_outcome(self, subject_id: str, result: GatewayResult) -> None:
        if result.success:
            logger.info(
                "Served %s payload to subject %s", result.provenance.value, subject_id
            )
        else:
            logger.warning(
                "Request from subject %s stopped at %s: %s",
                subject_id,
                result.decided_by.value,
                result.reason.value,
            )
