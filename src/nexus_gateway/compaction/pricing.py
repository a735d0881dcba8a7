"""
Per-model token pricing (USD per million tokens).
"""

from dataclasses import dataclass

from .models import normalize_bedrock_model


@dataclass(frozen=True)
class ModelPricing:
    input_per_1m: float
    output_per_1m: float


ZERO = ModelPricing(0, 0)

ANTHROPIC_PRICING: dict[str, ModelPricing] = {
    # Claude 4
    "claude-opus-4": ModelPricing(15, 75),
    "claude-sonnet-4": ModelPricing(3, 15),
    # Claude 3.5
    "claude-3-5-sonnet": ModelPricing(3, 15),
    "claude-3-5-haiku": ModelPricing(0.80, 4),
    # Claude 3
    "claude-3-opus": ModelPricing(15, 75),
    "claude-3-sonnet": ModelPricing(3, 15),
    "claude-3-haiku": ModelPricing(0.25, 1.25),
}

OPENAI_PRICING: dict[str, ModelPricing] = {
    "gpt-4o-mini": ModelPricing(0.15, 0.60),
    "gpt-4o": ModelPricing(2.50, 10),
    "gpt-4-turbo": ModelPricing(10, 30),
    "gpt-4": ModelPricing(30, 60),
    "gpt-3.5-turbo": ModelPricing(0.50, 1.50),
}


def _match_prefix(model: str, table: dict[str, ModelPricing]) -> ModelPricing | None:
    for prefix, pricing in table.items():
        if model.startswith(prefix):
            return pricing
    return None


def resolve_price(model: str) -> ModelPricing:
    """Look up pricing for a model; unknown models are free rather than guessed."""
    normalized = normalize_bedrock_model(model)

    anthropic = _match_prefix(normalized, ANTHROPIC_PRICING)
    if anthropic:
        return anthropic

    # Exact match first so "gpt-4o-mini" never falls through to "gpt-4o"
    if normalized in OPENAI_PRICING:
        return OPENAI_PRICING[normalized]
    openai = _match_prefix(normalized, OPENAI_PRICING)
    if openai:
        return openai

    return ZERO


def calculate_cost(input_tokens: int, output_tokens: int, pricing: ModelPricing) -> float:
    """Cost in USD for a single model call."""
    return (
        input_tokens / 1_000_000 * pricing.input_per_1m
        + output_tokens / 1_000_000 * pricing.output_per_1m
    )
