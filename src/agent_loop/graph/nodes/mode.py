"""Mode node: pick this cycle's mode from the run."""

from __future__ import annotations

from agent_loop.graph.context import CycleContext
from agent_loop.graph.state import CycleState
from agent_loop.state.modes import next_mode
from agent_loop.state.transitions import transition_mode, with_event


def run(state: CycleState, ctx: CycleContext) -> CycleState:
    current = ctx.run.get()
    mode = next_mode(current)
    trigger = state.get("trigger", "manual")

    def _enter(run):
        updated = transition_mode(run, mode) if run.mode != mode else run
        return with_event(
            updated,
            "status_update",
            f"Running {mode} iteration via {trigger}",
            {"trigger": trigger},
        )

    ctx.run.commit(_enter)
    return {"previous_mode": current.mode, "mode": mode}


def route(state: CycleState) -> str:
    return state["mode"]
