"""
Pricing calculations for the budget guard.

The budget guard charges a fixed, precomputed estimate per request. The
estimate is derived once from a representative token profile and a
per-million-token price, not metered from actual usage.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict

from .token_counter import REPRESENTATIVE_USAGE, TokenUsage


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    prompt_cost_per_1m: Decimal  # Cost per 1M prompt tokens
    completion_cost_per_1m: Decimal  # Cost per 1M completion tokens


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table for supported models."""
    prices: Dict[str, ModelPricing]

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a specific model.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model

        Raises:
            ValueError: If model is not supported
        """
        if model not in self.prices:
            raise ValueError(f"Unsupported model: {model}")
        return self.prices[model]


# Fixed pricing table - no dynamic fetching
PRICING_TABLE = PricingTable({
    "gemini-1.5-flash": ModelPricing(
        prompt_cost_per_1m=Decimal("0.075"),
        completion_cost_per_1m=Decimal("0.30")
    ),
    "gpt-4o-mini": ModelPricing(
        prompt_cost_per_1m=Decimal("0.15"),
        completion_cost_per_1m=Decimal("0.60")
    ),
    "gpt-3.5-turbo": ModelPricing(
        prompt_cost_per_1m=Decimal("0.50"),
        completion_cost_per_1m=Decimal("1.50")
    ),
})


def calculate_cost(model: str, usage: TokenUsage) -> Decimal:
    """Calculate the exact cost of a token usage for a model.

    Args:
        model: Model identifier
        usage: Token usage data

    Returns:
        Cost in dollars, unrounded

    Raises:
        ValueError: If model is not supported
    """
    pricing = PRICING_TABLE.get_pricing(model)
    million = Decimal("1000000")
    prompt_cost = Decimal(usage.prompt_tokens) / million * pricing.prompt_cost_per_1m
    completion_cost = Decimal(usage.completion_tokens) / million * pricing.completion_cost_per_1m
    return prompt_cost + completion_cost


def estimate_request_cost(model: str, usage: TokenUsage = REPRESENTATIVE_USAGE) -> float:
    """Per-request cost estimate charged to the budget ledger.

    Rounded to 8 decimal places so repeated additions stay readable.
    """
    return float(calculate_cost(model, usage).quantize(Decimal("0.00000001")))
