"""
OpenAI-backed text generator.

A thin black-box completion client: prompt in, text out. Cost accounting
and admission control live in the gateway, not here.
"""

from typing import Optional, Protocol

from openai import OpenAI, OpenAIError


class GenerationError(Exception):
    """Raised when the generator fails or returns unusable output."""


class TextGenerator(Protocol):
    """Anything that can complete a prompt into text."""

    def complete(self, prompt: str) -> str:
        """Return the generated text for a prompt."""
        ...


class GeneratorClient:
    """OpenAI chat-completions client with a hard per-call timeout.

    Retries are disabled: a failed or slow call is reported immediately so the
    caller can fall back to static content.
    """

    def __init__(
        self,
        model: str,
        timeout_seconds: float = 8.0,
        base_url: Optional[str] = None,
        max_tokens: int = 300,
    ):
        """Initialize generator client.

        Args:
            model: Model name (required)
            timeout_seconds: Per-request timeout in seconds
            base_url: Optional OpenAI-compatible endpoint
            max_tokens: Maximum tokens to generate

        Raises:
            ValueError: If model is missing/empty or timeout is not positive
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self.client = OpenAI(base_url=base_url, timeout=timeout_seconds, max_retries=0)

    def complete(self, prompt: str) -> str:
        """Generate text for a single user prompt.

        Args:
            prompt: Freeform prompt text (required)

        Returns:
            Generated text, stripped of surrounding whitespace

        Raises:
            ValueError: If prompt is empty
            GenerationError: On API errors, timeouts or empty output
        """
        if not prompt or not prompt.strip():
            raise ValueError("prompt is required and cannot be empty")

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            raise GenerationError(f"Generator request failed: {e}") from e

        if not response.choices:
            raise GenerationError("Generator response has no choices")
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise GenerationError("Generator returned empty text")
        return content.strip()
