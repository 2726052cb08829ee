"""
Token counting for the per-request cost model.

Budget accounting uses a representative token profile rather than metered
usage, so a single request shape is estimated once and reused.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation."""
    prompt_tokens: int
    completion_tokens: int

    def __post_init__(self):
        """Validate token counts are not negative."""
        if self.prompt_tokens < 0 or self.completion_tokens < 0:
            raise ValueError("token counts must be >= 0")

    @property
    def total_tokens(self) -> int:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens


# Typical motivational-message request: ~200 prompt tokens, ~50 completion tokens
REPRESENTATIVE_USAGE = TokenUsage(prompt_tokens=200, completion_tokens=50)
