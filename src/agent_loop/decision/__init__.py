"""Decision engine adapters."""

from agent_loop.config.settings import Settings
from agent_loop.decision.anthropic import AnthropicDecisionEngine
from agent_loop.decision.base import (
    CancellationToken,
    DecisionEngine,
    DecisionOptions,
    DecisionResult,
    fallback_text,
)


def build_decision_engine(settings: Settings) -> DecisionEngine:
    provider = settings.decision_provider.lower().strip()
    if provider != "anthropic":
        raise ValueError(f"Unsupported decision provider: {settings.decision_provider}")
    return AnthropicDecisionEngine(
        api_key=settings.resolved_anthropic_api_key(),
        model=settings.decision_model,
        light_model=settings.decision_light_model,
        base_url=settings.decision_base_url,
        timeout_s=settings.decision_timeout_s,
        max_retries=settings.decision_max_retries,
        backoff_s=settings.decision_backoff_s,
        max_tokens=settings.decision_max_tokens,
    )


__all__ = [
    "AnthropicDecisionEngine",
    "CancellationToken",
    "DecisionEngine",
    "DecisionOptions",
    "DecisionResult",
    "build_decision_engine",
    "fallback_text",
]
