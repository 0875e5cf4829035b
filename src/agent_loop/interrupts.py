"""Operator message normalization and intent classification."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel

IntentKind = Literal["pause", "resume", "question", "directive"]

MENTION_RE = re.compile(r"<@[^>]+>")
LEADING_HANDLE_RE = re.compile(r"^\s*@\S+\s+")
LIST_NUMBER_RE = re.compile(r"^\s*\d+[.)]\s+", re.MULTILINE)
SLACK_LINK_RE = re.compile(r"<(https?://[^>|]+)(?:\|[^>]*)?>")
URL_RE = re.compile(r"https?://\S+")

PAUSE_RE = re.compile(
    r"^(?:please\s+)?(?:pause|stop|hold)(?:\s+(?:the\s+)?(?:loop|agent|work|everything|now|please|on))*[.!]*$",
    re.IGNORECASE,
)
RESUME_RE = re.compile(
    r"^(?:please\s+)?(?:resume|continue|unpause|carry on)(?P<rest>(?:[\s,.;:!-].*)?)$",
    re.IGNORECASE | re.DOTALL,
)
REMAINDER_LEAD_RE = re.compile(r"^[\s,.;:!-]*(?:(?:and|then)\b\s*)?", re.IGNORECASE)

QUESTION_OPENERS = (
    "what",
    "why",
    "how",
    "when",
    "where",
    "who",
    "which",
    "is",
    "are",
    "was",
    "were",
    "does",
    "did",
    "has",
    "do you",
    "do we",
    "do i",
    "have you",
    "have we",
    "status",
    "can you confirm",
    "could you confirm",
)

ATTACHMENTS_HEADER = "Operator-provided attachments:"


class Attachment(BaseModel):
    name: str = "attachment"
    mime_type: str = "unknown"
    url: str


@dataclass(frozen=True)
class Intent:
    kind: IntentKind
    text: str
    remainder: str = ""


def _extract_urls(text: str) -> list[str]:
    return [match.rstrip(").,>") for match in URL_RE.findall(text)]


def normalize_operator_text(text: str, attachments: list[Attachment] | None = None) -> str:
    """Clean a raw operator message into command text.

    Mentions, a leading ``@handle`` and list numbering are removed. Links and
    attached files are listed in an attachments block after the command.
    """
    unwrapped = SLACK_LINK_RE.sub(r"\1", text)
    command = MENTION_RE.sub("", unwrapped)
    command = LEADING_HANDLE_RE.sub("", command)
    command = LIST_NUMBER_RE.sub("", command).strip()

    references = [
        f"{attachment.name} ({attachment.mime_type}) {attachment.url}"
        for attachment in attachments or []
        if attachment.url
    ]
    for url in _extract_urls(command):
        if not any(url in reference for reference in references):
            references.append(url)

    if not references:
        return command
    block = "\n".join([ATTACHMENTS_HEADER, *(f"- {reference}" for reference in references)])
    return f"{command}\n\n{block}" if command else block


def command_text(normalized: str) -> str:
    """The message without its attachments block."""
    head, _, _ = normalized.partition(ATTACHMENTS_HEADER)
    return head.strip()


def classify(normalized: str) -> Intent:
    """Classify normalized operator text into one of four intents.

    Order matters: exact pause, then question, then resume (with an optional
    remainder after ``and``/``then`` or punctuation), else directive.
    """
    head = command_text(normalized)
    if PAUSE_RE.match(head):
        return Intent(kind="pause", text=head)

    if _is_question(head):
        return Intent(kind="question", text=head)

    resume = RESUME_RE.match(head)
    if resume:
        remainder = REMAINDER_LEAD_RE.sub("", resume.group("rest"), count=1).strip()
        return Intent(kind="resume", text=head, remainder=remainder)
    return Intent(kind="directive", text=normalized)


def _is_question(text: str) -> bool:
    if text.endswith("?"):
        return True
    lowered = " ".join(text.lower().split())
    return any(lowered == opener or lowered.startswith(opener + " ") for opener in QUESTION_OPENERS)
