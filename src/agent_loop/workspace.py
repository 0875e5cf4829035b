"""Workspace filesystem helpers: atomic writes and run artifacts."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """Write *content* to *path* via a same-directory temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, str(path))
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def atomic_write_text(path: Path, content: str) -> None:
    # Encoded as-is, so the caller's line endings survive byte-for-byte.
    atomic_write_bytes(path, content.encode("utf-8"))


class Workspace:
    """Directory the agent works in; holds the plan document and artifacts."""

    def __init__(self, root: Path, *, plan_file: str = "PLAN.md") -> None:
        self.root = root
        plan = Path(plan_file)
        self.plan_path = plan if plan.is_absolute() else root / plan
        self.artifacts_dir = root / "artifacts"

    def ensure(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def write_artifact(self, name: str, content: str) -> Path:
        path = self.artifacts_dir / name
        atomic_write_text(path, content)
        logger.info("artifact written name=%s bytes=%d", name, len(content.encode("utf-8")))
        return path
