"""Storage interface for the durable run record."""

from __future__ import annotations

from typing import Protocol

from agent_loop.state.models import Run


class RunStore(Protocol):
    """Loads and saves the whole ``Run`` aggregate.

    ``load`` never fails on a missing or unreadable record; it hands back a
    fresh run with a new id instead.
    """

    kind: str

    def load(self) -> Run: ...

    def save(self, run: Run) -> None: ...
