"""Cycle body as a LangGraph workflow."""

from agent_loop.graph.context import CycleContext, RunHandle
from agent_loop.graph.state import CycleState, initial_state
from agent_loop.graph.workflow import build_cycle_graph

__all__ = ["CycleContext", "CycleState", "RunHandle", "build_cycle_graph", "initial_state"]
