"""Building node: select one task, execute it, classify and record the result."""

from __future__ import annotations

import logging

from agent_loop.graph.context import CycleContext
from agent_loop.graph.state import CycleState
from agent_loop.routing.outcomes import is_failure
from agent_loop.routing.selector import Selection
from agent_loop.state.models import Approval, Run, Task
from agent_loop.state.modes import mode_after_building
from agent_loop.state.transitions import (
    begin_task,
    clear_approval,
    complete_task,
    fail_task,
    release_task,
    request_approval,
    set_mailbox,
    set_summary,
    transition_mode,
    with_event,
)

logger = logging.getLogger(__name__)

INTERRUPTED_NOTE = "Interrupted by operator; task returned to pending"


def run(state: CycleState, ctx: CycleContext) -> CycleState:
    current = ctx.run.get()
    selection = _select(current, ctx)
    task = selection.task
    if task is None:
        summary = "No pending tasks to build"
        ctx.run.commit(
            lambda run: transition_mode(set_summary(run, summary), mode_after_building(run))
        )
        return {"summary": summary, "selected_task_id": None}

    ctx.event(
        "status_update",
        f"Selected task {task.id}: {selection.reason}",
        {"task_id": task.id, "aborted": selection.aborted},
    )

    if _needs_approval(ctx.run.get(), task, ctx.settings.approval_required_paths):
        approval = Approval(
            action=f"{task.execution_path}:{task.id}",
            task_id=task.id,
            reason=f"Task {task.id} runs on the {task.execution_path} path and needs operator approval",
        )
        ctx.run.commit(lambda run: transition_mode(request_approval(run, approval), "blocked"))
        ctx.notify(f"Approval needed: {approval.reason}. Reply approve or reject.")
        return {"summary": approval.reason, "selected_task_id": task.id}

    with ctx.in_flight() as token:
        if ctx.run.get().current_task_id != task.id:
            ctx.run.commit(lambda run: begin_task(run, task.id))
        outcome = ctx.router.execute(ctx.run.get(), task, token)

    for call in outcome.capability_calls:
        ctx.record_call(call)

    if outcome.aborted:
        ctx.run.commit(
            lambda run: transition_mode(
                set_summary(release_task(run, task.id, INTERRUPTED_NOTE), INTERRUPTED_NOTE),
                "planning",
            )
        )
        return {"summary": INTERRUPTED_NOTE, "selected_task_id": task.id}

    if outcome.mailbox_address:
        address = outcome.mailbox_address
        ctx.run.commit(lambda run: set_mailbox(run, address))

    failed = is_failure(outcome.text)
    if failed:
        ctx.run.commit(lambda run: fail_task(run, task.id, outcome.text))
        ctx.notify(f"Task failed: {task.title}: {outcome.text}")
    else:
        ctx.plan.mark_completed(task.id)
        ctx.run.commit(lambda run: complete_task(run, task.id, outcome.text))
        ctx.notify(f"Task completed: {task.title}")

    ctx.run.commit(lambda run: _finish(run, task, outcome.text))
    logger.info("building pass finished task_id=%s failed=%s", task.id, failed)
    return {"summary": outcome.text, "selected_task_id": task.id}


def _select(run: Run, ctx: CycleContext) -> Selection:
    current = run.current_task
    if current is not None and current.status == "in_progress":
        return Selection(task=current, reason="Resuming in-progress task")
    return ctx.selector.select(run)


def _needs_approval(run: Run, task: Task, gated_paths: list[str]) -> bool:
    if task.execution_path not in gated_paths:
        return False
    approval = run.pending_approval
    return not (approval is not None and approval.status == "approved" and approval.task_id == task.id)


def _finish(run: Run, task: Task, text: str) -> Run:
    updated = set_summary(run, text)
    approval = updated.pending_approval
    if approval is not None and approval.status == "approved" and approval.task_id == task.id:
        updated = with_event(
            clear_approval(updated), "status_update", f"Approval for {approval.action} consumed"
        )
    return transition_mode(updated, mode_after_building(updated))
