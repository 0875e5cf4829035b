"""Planning node: keep the plan document current with the objective and directives."""

from __future__ import annotations

import logging

from agent_loop.decision.base import DecisionOptions
from agent_loop.graph.context import CycleContext
from agent_loop.graph.state import CycleState
from agent_loop.plan.document import PlanSyncError
from agent_loop.plan.sync import reconcile_tasks
from agent_loop.prompts import planning_prompt
from agent_loop.state.models import Run, Task
from agent_loop.state.transitions import (
    consume_directives,
    replace_tasks,
    set_summary,
    transition_mode,
    with_event,
)

logger = logging.getLogger(__name__)

PLANNING_MAX_TURNS = 2


def run(state: CycleState, ctx: CycleContext) -> CycleState:
    current = ctx.run.get()
    directives = list(current.pending_directives)
    open_tasks = current.tasks_with_status("pending")

    if open_tasks and not directives:
        summary = f"Plan has {len(open_tasks)} pending tasks"
        ctx.run.commit(lambda run: transition_mode(set_summary(run, summary), "building"))
        return {"summary": summary}

    prompt = planning_prompt(current, ctx.plan.read(), directives)
    result = ctx.decide(prompt, DecisionOptions(max_turns=PLANNING_MAX_TURNS))
    if result.aborted:
        ctx.event("status_update", "Planning interrupted by operator; retrying next cycle")
        return {"summary": "Planning interrupted"}
    if result.fallback:
        summary = "Planning skipped: decision engine unavailable"
        ctx.run.commit(lambda run: with_event(set_summary(run, summary), "status_update", summary))
        return {"summary": summary}

    try:
        parsed = ctx.plan.replace(result.text)
    except PlanSyncError as exc:
        summary = f"Plan sync failed: {exc}; retrying next cycle"
        logger.warning("plan rewrite rejected reason=%s", exc)
        ctx.run.commit(lambda run: with_event(set_summary(run, summary), "status_update", summary))
        return {"summary": summary}

    updated = ctx.run.commit(lambda run: _apply_plan(run, parsed, directives))
    return {"summary": updated.last_summary}


def _apply_plan(run: Run, parsed: list[Task], directives: list[str]) -> Run:
    updated = replace_tasks(run, reconcile_tasks(run, parsed))
    updated = consume_directives(updated, directives)
    pending = len(updated.tasks_with_status("pending"))
    summary = f"Planned {pending} pending tasks"
    if directives:
        summary += f" after folding in {len(directives)} operator directives"
    updated = with_event(set_summary(updated, summary), "status_update", summary)
    return transition_mode(updated, "building" if pending else "operating")
