"""Typed state contract for one cycle of the LangGraph workflow."""

from typing import TypedDict


class CycleState(TypedDict, total=False):
    trigger: str
    previous_mode: str
    mode: str
    commands_drained: int
    tasks_synced: int
    selected_task_id: str | None
    summary: str | None


def initial_state(trigger: str) -> CycleState:
    return {
        "trigger": trigger,
        "commands_drained": 0,
        "tasks_synced": 0,
        "selected_task_id": None,
        "summary": None,
    }
