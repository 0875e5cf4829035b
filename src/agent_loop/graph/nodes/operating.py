"""Operating node: periodic status check between planning passes."""

from __future__ import annotations

from agent_loop.graph.context import CycleContext
from agent_loop.graph.state import CycleState
from agent_loop.state.transitions import set_summary, transition_mode, with_event


def run(state: CycleState, ctx: CycleContext) -> CycleState:
    ctx.refresh_health()
    current = ctx.run.get()
    checks = " | ".join(
        [
            f"Objective: {current.thesis.headline if current.thesis else 'not selected'}",
            f"Pending tasks: {len(current.tasks_with_status('pending'))}",
            f"Completed tasks: {len(current.tasks_with_status('completed'))}",
            f"Mailbox: {current.mailbox_address or 'not provisioned'}",
        ]
    )
    summary = f"Operating check complete. {checks}"
    ctx.run.commit(lambda run: with_event(set_summary(run, summary), "status_update", summary))
    ctx.notify(summary)
    ctx.run.commit(lambda run: transition_mode(run, "planning"))
    return {"summary": summary}
