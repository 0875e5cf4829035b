"""Line grammars shared by every parser of free-text collaborator output.

Three grammars exist:

- plan lines: ``- [ ] <id> | <path> | <title> | <description>`` (or ``- [x]``)
- labeled lines: ``Label: value``
- selection replies: a labeled ``Task: <id>`` line

Anything that does not match is treated as absent, never as an error, so call
sites decide their own fallback.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

PLAN_LINE_RE = re.compile(
    r"^- \[(?P<mark>[ x])\] "
    r"(?P<id>[a-z0-9-]+) \| "
    r"(?P<path>[a-z0-9-]+) \| "
    r"(?P<title>[^|]*[^|\s][^|]*?) \| "
    r"(?P<description>.*\S)\s*$"
)
UNCHECKED = "- [ ]"
CHECKED = "- [x]"
FIELD_DELIMITER = " | "

LABELED_LINE_RE = re.compile(r"^\s*(?:[-*]\s*)?\**(?P<label>[A-Za-z][A-Za-z /_-]{0,40}?)\**\s*:\s*(?P<value>.*)$")


@dataclass(frozen=True)
class PlanLine:
    checked: bool
    task_id: str
    path: str
    title: str
    description: str

    def render(self) -> str:
        marker = CHECKED if self.checked else UNCHECKED
        return FIELD_DELIMITER.join(
            [f"{marker} {self.task_id}", self.path, self.title, self.description]
        )


def parse_plan_line(line: str) -> PlanLine | None:
    match = PLAN_LINE_RE.match(line.rstrip("\r\n"))
    if match is None:
        return None
    return PlanLine(
        checked=match.group("mark") == "x",
        task_id=match.group("id"),
        path=match.group("path"),
        title=match.group("title").strip(),
        description=match.group("description").strip(),
    )


def parse_labeled_lines(raw: str) -> dict[str, str]:
    """Collect ``Label: value`` pairs keyed by lower-cased label.

    The first occurrence of a label wins and empty values are skipped.
    """
    fields: dict[str, str] = {}
    for line in raw.splitlines():
        match = LABELED_LINE_RE.match(line)
        if match is None:
            continue
        label = " ".join(match.group("label").lower().split())
        value = match.group("value").strip().strip("*").strip()
        if not value or label in fields:
            continue
        fields[label] = value
    return fields


TASK_ID_RE = re.compile(r"[a-z0-9]+(?:-[a-z0-9]+)*")


def parse_selection_reply(raw: str) -> str | None:
    """Return the task id from a ``Task: <id>`` reply, or ``None``."""
    value = parse_labeled_lines(raw).get("task")
    if value is None:
        return None
    match = TASK_ID_RE.search(value.lower())
    return match.group(0) if match else None
