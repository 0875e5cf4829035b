"""Collaborators handed to every cycle node."""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from agent_loop.config.settings import Settings
from agent_loop.decision.base import CancellationToken, DecisionOptions, DecisionResult
from agent_loop.plan.document import PlanDocument
from agent_loop.routing.router import TaskRouter
from agent_loop.routing.selector import TaskSelector
from agent_loop.state.models import Run
from agent_loop.state.transitions import with_event
from agent_loop.tools.gateway import CapabilityGateway
from agent_loop.workspace import Workspace


class RunHandle(Protocol):
    def get(self) -> Run: ...

    def commit(self, fn: Callable[[Run], Run]) -> Run: ...


@dataclass
class CycleContext:
    settings: Settings
    run: RunHandle
    plan: PlanDocument
    workspace: Workspace
    decide: Callable[[str, DecisionOptions], DecisionResult]
    selector: TaskSelector
    router: TaskRouter
    gateway: CapabilityGateway
    notify: Callable[[str], None]
    refresh_health: Callable[[], None]
    in_flight: Callable[[], AbstractContextManager[CancellationToken]]
    control: Callable[[str], None]

    def event(self, kind: str, message: str, metadata: dict[str, Any] | None = None) -> Run:
        return self.run.commit(lambda run: with_event(run, kind, message, metadata))

    def record_call(self, call: dict[str, Any]) -> Run:
        message = f"Capability {call['capability']} {call['status']}"
        if call.get("error"):
            message += f": {call['error']}"
        return self.event(
            "tool_called",
            message,
            {
                "capability": call["capability"],
                "status": call["status"],
                "attempts": call.get("attempts", 0),
                "duration_ms": call.get("duration_ms", 0.0),
            },
        )
