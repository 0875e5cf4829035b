"""Success/failure classification of task result text."""

from __future__ import annotations

FAILURE_TOKENS = ("failed", "error", "blocked", "skipped", "timed out", "not configured")


def is_failure(text: str) -> bool:
    lowered = text.lower()
    return any(token in lowered for token in FAILURE_TOKENS)
