"""Decision engine contract: prompt in, text decision out, always terminal."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol


class CancellationToken:
    """Best-effort cancel signal handed to one blocking call."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        return self._event.wait(timeout)


@dataclass(frozen=True)
class DecisionOptions:
    max_turns: int = 1
    timeout_s: float | None = None
    retries: int | None = None
    lightweight: bool = False
    continue_session: bool = False
    session_id: str | None = None


@dataclass(frozen=True)
class DecisionResult:
    text: str
    turns: int = 0
    session_id: str | None = None
    aborted: bool = False
    fallback: bool = False

    @classmethod
    def aborted_result(cls, *, turns: int = 0, session_id: str | None = None) -> "DecisionResult":
        return cls(text="", turns=turns, session_id=session_id, aborted=True)


class DecisionEngine(Protocol):
    def is_configured(self) -> bool: ...

    def complete(
        self,
        prompt: str,
        options: DecisionOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> DecisionResult: ...


def fallback_text(reason: str) -> str:
    return f"Decision engine unavailable. Fallback reason: {reason}"
