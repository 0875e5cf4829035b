"""Plan document: the checklist file that is the source of truth for tasks.

The file is edited by the agent and by people. Two write shapes are allowed:

1) full replacement, only after the text has been reduced to valid task lines;
2) a single-line checkbox flip, leaving every other byte untouched.
"""

from __future__ import annotations

import logging
from pathlib import Path

from agent_loop.grammar import CHECKED, UNCHECKED, parse_plan_line
from agent_loop.state.models import DEFAULT_EXECUTION_PATH, EXECUTION_PATHS, Task
from agent_loop.workspace import atomic_write_bytes, atomic_write_text

logger = logging.getLogger(__name__)

MAX_PRIORITY = 100


class PlanSyncError(ValueError):
    """Raised when a plan rewrite would leave no valid task lines."""


def priority_for_index(index: int) -> int:
    return max(1, MAX_PRIORITY - index)


def parse_plan(text: str) -> list[Task]:
    """Turn document text into tasks, in document order.

    The k-th task line gets priority ``max(1, 100 - k)``; later duplicates of
    an id are ignored.
    """
    tasks: list[Task] = []
    seen: set[str] = set()
    for line in text.splitlines():
        parsed = parse_plan_line(line)
        if parsed is None or parsed.task_id in seen:
            continue
        seen.add(parsed.task_id)
        tasks.append(
            Task(
                id=parsed.task_id,
                title=parsed.title,
                description=parsed.description,
                execution_path=(
                    parsed.path if parsed.path in EXECUTION_PATHS else DEFAULT_EXECUTION_PATH
                ),
                priority=priority_for_index(len(tasks)),
                status="completed" if parsed.checked else "pending",
            )
        )
    return tasks


def reduce_plan_text(raw: str) -> str:
    """Keep only task lines and single blank separators.

    Headings, prose and code fences are dropped. Raises ``PlanSyncError`` when
    nothing valid remains.
    """
    kept: list[str] = []
    seen: set[str] = set()
    for line in raw.splitlines():
        candidate = line.strip()
        if not candidate:
            if kept and kept[-1] != "":
                kept.append("")
            continue
        parsed = parse_plan_line(candidate)
        if parsed is None or parsed.task_id in seen:
            continue
        seen.add(parsed.task_id)
        kept.append(parsed.render())
    while kept and kept[-1] == "":
        kept.pop()
    if not seen:
        raise PlanSyncError("plan text contained no valid task lines")
    return "\n".join(kept) + "\n"


class PlanDocument:
    """File-backed plan document at a fixed workspace path."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        return self.path.is_file()

    def _read_bytes(self) -> bytes | None:
        if not self.exists():
            return None
        return self.path.read_bytes()

    def read(self) -> str | None:
        """Document text with line endings untouched.

        Bytes that are not valid UTF-8 decode to U+FFFD so a damaged document
        still parses; those lines simply fail the plan line grammar.
        """
        data = self._read_bytes()
        if data is None:
            return None
        return data.decode("utf-8", errors="replace")

    def parse(self) -> list[Task] | None:
        text = self.read()
        if text is None:
            return None
        return parse_plan(text)

    def replace(self, raw: str) -> list[Task]:
        """Validate *raw* and replace the whole document with its reduction."""
        reduced = reduce_plan_text(raw)
        atomic_write_text(self.path, reduced)
        tasks = parse_plan(reduced)
        logger.info("plan document replaced path=%s tasks=%d", self.path, len(tasks))
        return tasks

    def mark_completed(self, task_id: str) -> bool:
        """Flip the checkbox of *task_id*'s line in place.

        Returns ``False`` when the line is missing or already checked.
        """
        data = self._read_bytes()
        if data is None:
            return False
        lines = data.splitlines(keepends=True)
        for index, line in enumerate(lines):
            parsed = parse_plan_line(line.decode("utf-8", errors="replace"))
            if parsed is None or parsed.task_id != task_id:
                continue
            if parsed.checked:
                return False
            lines[index] = CHECKED.encode("utf-8") + line[len(UNCHECKED.encode("utf-8")):]
            atomic_write_bytes(self.path, b"".join(lines))
            logger.info("plan line checked task_id=%s line=%d", task_id, index)
            return True
        logger.warning("plan line not found for completion task_id=%s", task_id)
        return False
