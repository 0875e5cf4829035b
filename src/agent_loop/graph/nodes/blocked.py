"""Blocked node: hold until the operator resolves the pending approval."""

from __future__ import annotations

from agent_loop.graph.context import CycleContext
from agent_loop.graph.state import CycleState
from agent_loop.state.transitions import set_summary

BLOCKED_SUMMARY = "Waiting for operator approval"


def run(state: CycleState, ctx: CycleContext) -> CycleState:
    current = ctx.run.get()
    reason = current.pending_approval.reason if current.pending_approval else "unknown action"
    ctx.run.commit(lambda run: set_summary(run, BLOCKED_SUMMARY))
    ctx.notify(f"Blocked awaiting approval: {reason}")
    return {"summary": BLOCKED_SUMMARY}
