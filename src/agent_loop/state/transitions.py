"""Pure transitions over the ``Run`` aggregate.

Every function takes a run and returns a new run; nothing here mutates its
input or touches I/O. The orchestrator is the only caller that swaps the live
reference, and it persists after each swap.
"""

from __future__ import annotations

from typing import Any

from agent_loop.state.models import (
    MODES,
    Approval,
    EventKind,
    OperatorCommand,
    ProviderHealth,
    Run,
    RunEvent,
    Task,
    Thesis,
    utc_now,
)

EVENT_LOG_LIMIT = 50


def create_initial_run(run_id: str) -> Run:
    return Run(run_id=run_id)


def with_event(
    run: Run,
    kind: EventKind,
    message: str,
    metadata: dict[str, Any] | None = None,
    *,
    limit: int = EVENT_LOG_LIMIT,
) -> Run:
    event = RunEvent(kind=kind, message=message, metadata=dict(metadata or {}))
    events = [*run.recent_events, event][-limit:]
    return run.model_copy(update={"recent_events": events})


def transition_mode(run: Run, next_mode: str, *, limit: int = EVENT_LOG_LIMIT) -> Run:
    """Change ``mode`` and log the change; the only writer of ``Run.mode``."""
    if next_mode not in MODES:
        raise ValueError(f"Unknown mode: {next_mode}")
    previous = run.mode
    updated = run.model_copy(update={"mode": next_mode})
    return with_event(
        updated,
        "mode_changed",
        f"Mode changed from {previous} to {next_mode}",
        {"previous_mode": previous, "next_mode": next_mode},
        limit=limit,
    )


def set_running(run: Run, is_running: bool) -> Run:
    return run.model_copy(update={"is_running": is_running})


def set_summary(run: Run, summary: str) -> Run:
    return run.model_copy(update={"last_summary": summary})


def mark_iteration(run: Run) -> Run:
    return run.model_copy(update={"last_iteration_at": utc_now()})


def add_decision_turns(run: Run, turns: int) -> Run:
    if turns <= 0:
        return run
    return run.model_copy(update={"total_decision_turns": run.total_decision_turns + turns})


def set_thesis(run: Run, thesis: Thesis) -> Run:
    return run.model_copy(update={"thesis": thesis})


def set_mailbox(run: Run, address: str) -> Run:
    return run.model_copy(update={"mailbox_address": address})


def set_provider_health(run: Run, name: str, health: ProviderHealth) -> Run:
    provider_health = dict(run.provider_health)
    provider_health[name] = health
    return run.model_copy(update={"provider_health": provider_health})


def replace_tasks(run: Run, tasks: list[Task]) -> Run:
    """Swap the task list; a current task that no longer exists is dropped."""
    current = run.current_task_id
    if current is not None and all(task.id != current for task in tasks):
        current = None
    return run.model_copy(update={"tasks": list(tasks), "current_task_id": current})


def enqueue_command(run: Run, command: OperatorCommand) -> Run:
    return run.model_copy(update={"queued_commands": [*run.queued_commands, command]})


def take_commands(run: Run) -> tuple[Run, list[OperatorCommand]]:
    """Empty the FIFO command queue, returning the commands in arrival order."""
    commands = list(run.queued_commands)
    return run.model_copy(update={"queued_commands": []}), commands


def add_directive(run: Run, text: str) -> Run:
    return run.model_copy(update={"pending_directives": [*run.pending_directives, text]})


def consume_directives(run: Run, consumed: list[str]) -> Run:
    remaining = list(run.pending_directives)
    for text in consumed:
        if text in remaining:
            remaining.remove(text)
    return run.model_copy(update={"pending_directives": remaining})


def _update_task(run: Run, task_id: str, **changes: Any) -> Run:
    tasks: list[Task] = []
    found = False
    for task in run.tasks:
        if task.id == task_id:
            found = True
            task = task.model_copy(update={**changes, "updated_at": utc_now()})
        tasks.append(task)
    if not found:
        raise KeyError(f"Task {task_id} does not exist")
    return run.model_copy(update={"tasks": tasks})


def begin_task(run: Run, task_id: str, *, limit: int = EVENT_LOG_LIMIT) -> Run:
    updated = _update_task(run, task_id, status="in_progress")
    updated = updated.model_copy(update={"current_task_id": task_id})
    task = updated.task(task_id)
    return with_event(
        updated,
        "task_started",
        f"Started task: {task.title if task else task_id}",
        {"task_id": task_id, "priority": task.priority if task else 0},
        limit=limit,
    )


def complete_task(run: Run, task_id: str, output: str, *, limit: int = EVENT_LOG_LIMIT) -> Run:
    updated = _update_task(run, task_id, status="completed", output=output)
    updated = _clear_current(updated, task_id)
    return with_event(updated, "task_completed", output, {"task_id": task_id}, limit=limit)


def fail_task(run: Run, task_id: str, output: str, *, limit: int = EVENT_LOG_LIMIT) -> Run:
    updated = _update_task(run, task_id, status="failed", output=output)
    updated = _clear_current(updated, task_id)
    return with_event(updated, "task_failed", output, {"task_id": task_id}, limit=limit)


def release_task(run: Run, task_id: str, note: str, *, limit: int = EVENT_LOG_LIMIT) -> Run:
    """Put an interrupted task back to pending without recording a failure."""
    updated = _update_task(run, task_id, status="pending", output=note)
    updated = _clear_current(updated, task_id)
    return with_event(updated, "status_update", note, {"task_id": task_id}, limit=limit)


def _clear_current(run: Run, task_id: str) -> Run:
    if run.current_task_id != task_id:
        return run
    return run.model_copy(update={"current_task_id": None})


def request_approval(run: Run, approval: Approval, *, limit: int = EVENT_LOG_LIMIT) -> Run:
    if run.pending_approval is not None and run.pending_approval.status == "pending":
        raise ValueError("An approval is already pending")
    updated = run.model_copy(update={"pending_approval": approval})
    return with_event(
        updated,
        "approval_requested",
        approval.reason,
        {"approval_id": approval.id, "action": approval.action, "task_id": approval.task_id},
        limit=limit,
    )


def resolve_approval(run: Run, approved: bool, *, limit: int = EVENT_LOG_LIMIT) -> Run:
    approval = run.pending_approval
    if approval is None or approval.status != "pending":
        return run
    resolved = approval.model_copy(
        update={"status": "approved" if approved else "rejected", "resolved_at": utc_now()}
    )
    updated = run.model_copy(update={"pending_approval": resolved})
    verdict = "granted" if approved else "rejected"
    updated = with_event(
        updated,
        "approval_resolved",
        f"Approval {verdict} by operator: {approval.action}",
        {"approval_id": approval.id, "approved": approved},
        limit=limit,
    )
    if not approved and approval.task_id and updated.task(approval.task_id):
        updated = fail_task(
            updated,
            approval.task_id,
            f"Approval rejected by operator: {approval.action}",
            limit=limit,
        )
        updated = reject_task(updated, approval.task_id, approval.action)
    return updated


def reject_task(run: Run, task_id: str, action: str) -> Run:
    """Keep *task_id* failed across plan re-syncs and ask planning to replace it."""
    rejected = run.rejected_task_ids if task_id in run.rejected_task_ids else [*run.rejected_task_ids, task_id]
    directive = f"Operator rejected {action}; remove task {task_id} from the plan or replace it"
    return add_directive(run.model_copy(update={"rejected_task_ids": rejected}), directive)


def clear_approval(run: Run) -> Run:
    return run.model_copy(update={"pending_approval": None})
