"""Run aggregate, transitions and mode selection."""

from agent_loop.state.models import (
    Approval,
    OperatorCommand,
    ProviderHealth,
    Run,
    RunEvent,
    RunSnapshot,
    Task,
    Thesis,
)
from agent_loop.state.modes import next_mode

__all__ = [
    "Approval",
    "OperatorCommand",
    "ProviderHealth",
    "Run",
    "RunEvent",
    "RunSnapshot",
    "Task",
    "Thesis",
    "next_mode",
]
