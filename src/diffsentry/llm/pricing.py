"""
Model pricing.

Prices are in cents per 1M tokens (input/output), approximate list prices.
Self-hosted and unknown models cost nothing.
"""

MODEL_PRICING: dict[str, dict[str, float]] = {
    # Groq
    "llama-3.3-70b-versatile": {"input": 59, "output": 79},
    "llama-3.1-8b-instant": {"input": 5, "output": 8},
    "gemma2-9b-it": {"input": 20, "output": 20},
    # OpenAI
    "gpt-4o": {"input": 250, "output": 1000},
    "gpt-4o-mini": {"input": 15, "output": 60},
    "gpt-4.1": {"input": 200, "output": 800},
    "gpt-4.1-mini": {"input": 40, "output": 160},
    "gpt-4-turbo": {"input": 1000, "output": 3000},
    "o1": {"input": 1500, "output": 6000},
    "o1-mini": {"input": 300, "output": 1200},
    # Anthropic, when reached through an OpenAI-compatible proxy
    "claude-3-5-haiku-latest": {"input": 80, "output": 400},
    "claude-sonnet-4-20250514": {"input": 300, "output": 1500},
}


def _pricing_for(model_id: str) -> dict[str, float] | None:
    model_key = model_id.lower()
    if model_key in MODEL_PRICING:
        return MODEL_PRICING[model_key]

    # Longest key first so "gpt-4o-mini-2024-07-18" is not priced as "gpt-4o"
    for key in sorted(MODEL_PRICING, key=len, reverse=True):
        if model_key.startswith(key):
            return MODEL_PRICING[key]
    return None


def estimate_cost_cents(model_id: str, input_tokens: int, output_tokens: int) -> float:
    """Estimate cost in cents for a model call."""
    pricing = _pricing_for(model_id)
    if pricing is None:
        return 0.0

    input_cost = (input_tokens / 1_000_000) * pricing["input"]
    output_cost = (output_tokens / 1_000_000) * pricing["output"]
    return input_cost + output_cost


def estimate_cost_usd(model_id: str, input_tokens: int, output_tokens: int) -> float:
    return estimate_cost_cents(model_id, input_tokens, output_tokens) / 100
