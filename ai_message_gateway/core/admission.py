"""
Admission checks and gateway results.

Implements the ordered decision tree of the generation gateway as data.

Admission Order:
1. Quota - the subject still has paid generations left today
2. Cache - a valid cached payload is served for free
3. Budget - the global monthly spend cap is not yet reached
4. Generate - the external generator produces a fresh payload

The first check that settles the request wins; later checks never run.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class AdmissionCheck(Enum):
    """Named steps of the gateway pipeline."""
    QUOTA = "quota"
    CACHE = "cache"
    BUDGET = "budget"
    GENERATE = "generate"


ADMISSION_ORDER = (
    AdmissionCheck.QUOTA,
    AdmissionCheck.CACHE,
    AdmissionCheck.BUDGET,
    AdmissionCheck.GENERATE,
)


class FailureReason(Enum):
    """Soft, recoverable outcomes; the caller falls back to static content."""
    QUOTA_EXCEEDED = "quota_exceeded"
    BUDGET_EXCEEDED = "budget_exceeded"
    GENERATION_FAILED = "generation_failed"


class ResultSource(Enum):
    """Whether a successful payload was served from cache or freshly generated."""
    CACHE = "cache"
    GENERATED = "generated"


class InvalidRequest(ValueError):
    """Raised for unauthenticated callers or malformed input.

    The only hard error of the gateway. ``code`` is ``unauthenticated`` or
    ``invalid-argument``.
    """
    def __init__(self, message: str, code: str = "invalid-argument"):
        super().__init__(message)
        self.code = code


FALLBACK_HINTS = {
    FailureReason.QUOTA_EXCEEDED: (
        "You've reached today's limit for personalized messages. "
        "Enjoy our curated quotes."
    ),
    FailureReason.BUDGET_EXCEEDED: (
        "AI service temporarily at capacity. Please use our curated quotes."
    ),
    FailureReason.GENERATION_FAILED: (
        "Unable to generate a personalized message. Please try our curated quotes."
    ),
}


@dataclass(frozen=True)
class GatewayResult:
    """Outcome of one gateway request."""
    success: bool
    decided_by: AdmissionCheck
    payload: Optional[Dict[str, Any]] = None
    reason: Optional[FailureReason] = None
    provenance: Optional[ResultSource] = None

    @classmethod
    def served(
        cls, payload: Dict[str, Any], provenance: ResultSource, decided_by: AdmissionCheck
    ) -> "GatewayResult":
        """A successful result carrying a payload."""
        return cls(success=True, decided_by=decided_by, payload=payload, provenance=provenance)

    @classmethod
    def rejected(cls, reason: FailureReason, decided_by: AdmissionCheck) -> "GatewayResult":
        """A soft failure the caller should answer with static content."""
        return cls(success=False, decided_by=decided_by, reason=reason)

    def to_response(self) -> Dict[str, Any]:
        """Wire form returned by the callable entrypoint."""
        if self.success:
            return {
                "success": True,
                "message": self.payload,
                "source": self.provenance.value,
            }
        return {
            "success": False,
            "error": self.reason.value,
            "message": FALLBACK_HINTS[self.reason],
        }
