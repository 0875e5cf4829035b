"""In-memory run store for tests only."""

from __future__ import annotations

import threading

from agent_loop.state.models import Run, new_id
from agent_loop.state.transitions import create_initial_run


class InMemoryRunStore:
    kind = "memory"

    def __init__(self, initial: Run | None = None) -> None:
        self._lock = threading.Lock()
        self._payload = initial.model_dump(mode="json") if initial is not None else None
        self.saves = 0

    def load(self) -> Run:
        with self._lock:
            if self._payload is None:
                return create_initial_run(new_id("run"))
            return Run.model_validate(self._payload)

    def save(self, run: Run) -> None:
        with self._lock:
            self._payload = run.model_dump(mode="json")
            self.saves += 1
