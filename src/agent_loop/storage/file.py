"""JSON-file run store."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

from pydantic import ValidationError

from agent_loop.state.models import Run, new_id
from agent_loop.state.transitions import create_initial_run
from agent_loop.workspace import atomic_write_text

logger = logging.getLogger(__name__)


class FileRunStore:
    """Persist the run as one JSON document, replaced atomically on every save."""

    kind = "file"

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def load(self) -> Run:
        with self._lock:
            if not self.path.is_file():
                return create_initial_run(new_id("run"))
            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
                return Run.model_validate(raw)
            except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
                logger.warning("run state unreadable, starting fresh path=%s reason=%s", self.path, exc)
                return create_initial_run(new_id("run"))

    def save(self, run: Run) -> None:
        payload = json.dumps(run.model_dump(mode="json"), indent=2)
        with self._lock:
            atomic_write_text(self.path, payload + "\n")
