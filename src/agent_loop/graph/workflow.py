"""LangGraph workflow assembly for one run cycle."""

from langgraph.graph import END, StateGraph

from agent_loop.graph.context import CycleContext
from agent_loop.graph.nodes import (
    blocked,
    building,
    commands,
    discovery,
    mode,
    operating,
    persist,
    planning,
    reconcile,
)
from agent_loop.graph.state import CycleState
from agent_loop.state.models import MODES

MODE_NODES = {
    "discovery": discovery.run,
    "planning": planning.run,
    "building": building.run,
    "operating": operating.run,
    "blocked": blocked.run,
}


def _bind(node_fn, ctx: CycleContext):
    def _node(state: CycleState) -> CycleState:
        return node_fn(state, ctx)

    return _node


def build_cycle_graph(ctx: CycleContext):
    graph = StateGraph(CycleState)

    graph.add_node("reconcile", _bind(reconcile.run, ctx))
    graph.add_node("drain_commands", _bind(commands.run, ctx))
    graph.add_node("select_mode", _bind(mode.run, ctx))
    for name in MODES:
        graph.add_node(name, _bind(MODE_NODES[name], ctx))
    graph.add_node("persist", _bind(persist.run, ctx))

    graph.set_entry_point("reconcile")
    graph.add_edge("reconcile", "drain_commands")
    graph.add_edge("drain_commands", "select_mode")
    graph.add_conditional_edges("select_mode", mode.route, {name: name for name in MODES})
    for name in MODES:
        graph.add_edge(name, "persist")
    graph.add_edge("persist", END)

    return graph.compile()
