"""Reconcile the in-memory task list against a fresh parse of the plan document."""

from __future__ import annotations

from agent_loop.state.models import Run, Task


def reconcile_tasks(run: Run, parsed: list[Task]) -> list[Task]:
    """Merge *parsed* document tasks with what the run already knows.

    - ids, titles, paths, priorities and statuses come from the document;
    - a known id keeps its ``output``;
    - the run's current task stays ``in_progress`` while the document still
      shows it unchecked;
    - a task the operator rejected stays ``failed`` while it is unchecked;
    - ``updated_at`` only moves when something actually changed;
    - ids missing from the document are dropped.
    """
    known = {task.id: task for task in run.tasks}
    merged: list[Task] = []
    for fresh in parsed:
        status = fresh.status
        if fresh.id == run.current_task_id and status == "pending":
            status = "in_progress"
        elif fresh.id in run.rejected_task_ids and status == "pending":
            status = "failed"
        existing = known.get(fresh.id)
        if existing is None:
            merged.append(fresh.model_copy(update={"status": status}))
            continue
        candidate = existing.model_copy(
            update={
                "title": fresh.title,
                "description": fresh.description,
                "execution_path": fresh.execution_path,
                "priority": fresh.priority,
                "status": status,
            }
        )
        if candidate != existing:
            candidate = candidate.model_copy(update={"updated_at": fresh.updated_at})
        merged.append(candidate)
    return merged


def sync_changes(before: list[Task], after: list[Task]) -> dict[str, int]:
    before_ids = {task.id for task in before}
    after_ids = {task.id for task in after}
    return {
        "added": len(after_ids - before_ids),
        "dropped": len(before_ids - after_ids),
        "total": len(after),
    }
