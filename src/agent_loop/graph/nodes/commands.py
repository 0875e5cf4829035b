"""Drain node: fold queued operator commands into the run."""

from __future__ import annotations

import logging

from agent_loop.graph.context import CycleContext
from agent_loop.graph.state import CycleState
from agent_loop.state.models import OperatorCommand, Run
from agent_loop.state.modes import has_pending_approval
from agent_loop.state.transitions import (
    add_directive,
    clear_approval,
    resolve_approval,
    take_commands,
    transition_mode,
    with_event,
)

logger = logging.getLogger(__name__)

CONTROL_WORDS = ("pause", "resume")


def run(state: CycleState, ctx: CycleContext) -> CycleState:
    taken: list[OperatorCommand] = []

    def _take(current: Run) -> Run:
        updated, commands = take_commands(current)
        taken.extend(commands)
        return updated

    ctx.run.commit(_take)
    for command in taken:
        _apply(command, ctx)
    if taken:
        logger.info("operator commands drained count=%d", len(taken))
    return {"commands_drained": len(taken)}


def _apply(command: OperatorCommand, ctx: CycleContext) -> None:
    normalized = command.text.strip().lower()
    if normalized in ("approve", "reject"):
        approved = normalized == "approve"
        if not has_pending_approval(ctx.run.get()):
            ctx.event("status_update", f"Ignored {normalized}: no approval is pending")
            return
        ctx.run.commit(lambda run: _resolve(run, approved))
        return

    if normalized in CONTROL_WORDS:
        ctx.control(normalized)
        ctx.event("status_update", f"Loop {'paused' if normalized == 'pause' else 'resumed'} by operator")
        return

    ctx.run.commit(
        lambda run: with_event(
            add_directive(run, command.text),
            "operator_command",
            f"Operator directive queued for planning: {command.text}",
            {"command_id": command.id, "source": command.source},
        )
    )


def _resolve(run: Run, approved: bool) -> Run:
    updated = resolve_approval(run, approved)
    if approved:
        # The approved approval stays attached until its task has run.
        return transition_mode(updated, "building")
    return transition_mode(clear_approval(updated), "planning")
