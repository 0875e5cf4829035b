"""Reconcile node: re-sync the task list from the plan document."""

from __future__ import annotations

import logging

from agent_loop.graph.context import CycleContext
from agent_loop.graph.state import CycleState
from agent_loop.plan.sync import reconcile_tasks, sync_changes
from agent_loop.state.transitions import replace_tasks

logger = logging.getLogger(__name__)


def run(state: CycleState, ctx: CycleContext) -> CycleState:
    ctx.workspace.ensure()
    parsed = ctx.plan.parse()
    if parsed is None:
        return {"tasks_synced": len(ctx.run.get().tasks)}

    before = ctx.run.get().tasks
    updated = ctx.run.commit(lambda run: replace_tasks(run, reconcile_tasks(run, parsed)))
    changes = sync_changes(before, updated.tasks)
    if changes["added"] or changes["dropped"]:
        logger.info(
            "plan re-synced added=%d dropped=%d total=%d",
            changes["added"],
            changes["dropped"],
            changes["total"],
        )
    return {"tasks_synced": changes["total"]}
