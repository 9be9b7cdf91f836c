"""
Pricing calculations and rate management.

Handles cost computations for various AI models, both as a pre-call
estimate and as the actual cost once the provider reports usage.
"""

from dataclasses import dataclass
from typing import Dict, List
from decimal import Decimal, ROUND_UP

from .token_counter import TokenEstimate, TokenUsage, estimate_tokens

# Costs are tracked to the micro-unit; per-call amounts are often sub-cent
COST_QUANTUM = Decimal("0.000001")
DEFAULT_FALLBACK_MODEL = "gpt-3.5-turbo"


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    prompt_cost_per_1k: Decimal  # Cost per 1K prompt tokens
    completion_cost_per_1k: Decimal  # Cost per 1K completion tokens


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

    def supports(self, model: str) -> bool:
        """Whether the table has a price for `model`."""
        return model in self.prices


# Fixed pricing table - no dynamic fetching
PRICING_TABLE = PricingTable({
    "gpt-4": ModelPricing(
        prompt_cost_per_1k=Decimal("0.03"),
        completion_cost_per_1k=Decimal("0.06")
    ),
    "gpt-4-turbo": ModelPricing(
        prompt_cost_per_1k=Decimal("0.01"),
        completion_cost_per_1k=Decimal("0.03")
    ),
    "gpt-3.5-turbo": ModelPricing(
        prompt_cost_per_1k=Decimal("0.0015"),
        completion_cost_per_1k=Decimal("0.002")
    ),
    "claude-3-opus": ModelPricing(
        prompt_cost_per_1k=Decimal("0.015"),
        completion_cost_per_1k=Decimal("0.075")
    )
})


def _round_up(amount: Decimal) -> float:
    return float(amount.quantize(COST_QUANTUM, rounding=ROUND_UP))


def calculate_cost(model: str, usage: TokenUsage, table: PricingTable = PRICING_TABLE) -> float:
    """Calculate total cost for model usage with conservative rounding.

    Args:
        model: Model identifier
        usage: Token usage data
        table: Pricing table to use

    Returns:
        Total cost rounded UP to the nearest micro-unit

    Raises:
        ValueError: If model is not supported
    """
    pricing = table.get_pricing(model)

    # Calculate prompt cost: (tokens / 1000) * cost_per_1k
    prompt_cost = (Decimal(usage.prompt_tokens) / Decimal("1000")) * pricing.prompt_cost_per_1k

    # Calculate completion cost: (tokens / 1000) * cost_per_1k
    completion_cost = (Decimal(usage.completion_tokens) / Decimal("1000")) * pricing.completion_cost_per_1k

    return _round_up(prompt_cost + completion_cost)


class TokenCostEstimator:
    """Pre-call estimator keyed by model name.

    Only the prompt side is known before the call, so the estimate prices
    the estimated prompt tokens at the model's prompt rate. Models missing
    from the table are priced as `fallback_model`.
    """

    def __init__(self, table: PricingTable = PRICING_TABLE, fallback_model: str = DEFAULT_FALLBACK_MODEL):
        self.table = table
        self.fallback_model = fallback_model

    def estimate(self, messages: List[Dict[str, str]], model: str) -> TokenEstimate:
        """Estimate tokens and prompt cost for a pending request.

        Args:
            messages: Chat messages to be sent
            model: Target model identifier

        Returns:
            TokenEstimate with token count and cost
        """
        tokens = estimate_tokens(messages)
        priced_model = model if self.table.supports(model) else self.fallback_model
        usage = TokenUsage(prompt_tokens=tokens, completion_tokens=0)
        return TokenEstimate(tokens=tokens, cost=calculate_cost(priced_model, usage, self.table))
