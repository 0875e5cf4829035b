"""Persist node: stamp the iteration; every commit has already been saved."""

from __future__ import annotations

import logging

from agent_loop.graph.context import CycleContext
from agent_loop.graph.state import CycleState
from agent_loop.state.transitions import mark_iteration

logger = logging.getLogger(__name__)


def run(state: CycleState, ctx: CycleContext) -> CycleState:
    updated = ctx.run.commit(mark_iteration)
    logger.info(
        "cycle finished trigger=%s mode=%s next_mode=%s",
        state.get("trigger"),
        state.get("mode"),
        updated.mode,
    )
    return {"summary": state.get("summary") or updated.last_summary}
