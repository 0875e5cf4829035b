"""Mode selection at the top of every cycle."""

from __future__ import annotations

from agent_loop.state.models import Run

# Modes a cycle body may hand over to the next cycle unchanged.
CARRIED_MODES = ("planning", "building", "operating")


def has_pending_approval(run: Run) -> bool:
    return run.pending_approval is not None and run.pending_approval.status == "pending"


def next_mode(run: Run) -> str:
    if run.thesis is None:
        return "discovery"
    if has_pending_approval(run):
        return "blocked"
    current = run.current_task
    if current is not None and current.status == "in_progress":
        return "building"
    if run.mode in CARRIED_MODES:
        return run.mode
    return "planning"


def mode_after_building(run: Run) -> str:
    if run.tasks_with_status("pending", "failed"):
        return "planning"
    return "operating"
