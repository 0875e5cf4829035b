"""Choose the next task to execute."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from agent_loop.decision.base import DecisionOptions, DecisionResult
from agent_loop.grammar import parse_selection_reply
from agent_loop.prompts import selection_prompt
from agent_loop.state.models import Run, Task

logger = logging.getLogger(__name__)

Decide = Callable[[str, DecisionOptions], DecisionResult]

FALLBACK_SUFFIX = "defaulted to highest-priority pending task"


@dataclass(frozen=True)
class Selection:
    task: Task | None
    reason: str
    aborted: bool = False


def rank_candidates(run: Run) -> list[Task]:
    """Pending tasks, highest priority first, document order on ties."""
    return sorted(run.tasks_with_status("pending"), key=lambda task: -task.priority)


class TaskSelector:
    def __init__(self, decide: Decide) -> None:
        self.decide = decide

    def select(self, run: Run) -> Selection:
        approval = run.pending_approval
        if approval is not None and approval.status == "approved" and approval.task_id:
            pinned = run.task(approval.task_id)
            if pinned is not None and pinned.status in ("pending", "in_progress"):
                return self._chosen(pinned, "Approved by operator")

        candidates = rank_candidates(run)
        if not candidates:
            return Selection(task=None, reason="No pending tasks")
        if len(candidates) == 1:
            return self._chosen(candidates[0], "Only pending task")

        result = self.decide(selection_prompt(run, candidates), DecisionOptions(lightweight=True))
        if result.aborted:
            return self._fallback(
                candidates, f"Selection interrupted by operator; {FALLBACK_SUFFIX}", aborted=True
            )
        if result.fallback:
            return self._fallback(candidates, f"Decision engine unavailable; {FALLBACK_SUFFIX}")

        chosen_id = parse_selection_reply(result.text)
        for task in candidates:
            if task.id == chosen_id:
                return self._chosen(task, "Selected by decision engine")
        return self._fallback(candidates, f"Selection reply named no pending task; {FALLBACK_SUFFIX}")

    @staticmethod
    def _chosen(task: Task, reason: str) -> Selection:
        logger.info("task selected task_id=%s reason=%s", task.id, reason)
        return Selection(task=task, reason=reason)

    @staticmethod
    def _fallback(candidates: list[Task], reason: str, *, aborted: bool = False) -> Selection:
        task = candidates[0]
        logger.info("task selection fallback task_id=%s reason=%s", task.id, reason)
        return Selection(task=task, reason=reason, aborted=aborted)
