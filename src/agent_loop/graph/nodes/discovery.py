"""Discovery node: choose the run's objective."""

from __future__ import annotations

import json
import logging

from agent_loop.decision.base import DecisionOptions
from agent_loop.graph.context import CycleContext
from agent_loop.graph.state import CycleState
from agent_loop.grammar import parse_labeled_lines
from agent_loop.prompts import DISCOVERY_RESEARCH_TASK, discovery_prompt
from agent_loop.state.models import Thesis
from agent_loop.state.transitions import set_summary, set_thesis, transition_mode, with_event

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("objective", "customer", "problem", "product")
MEMORY_QUERY = "current objective and prior findings"


def run(state: CycleState, ctx: CycleContext) -> CycleState:
    ctx.refresh_health()
    research_note = _start_research(ctx)
    memories = _recall(ctx)

    result = ctx.decide(discovery_prompt(research_note, memories), DecisionOptions())
    if result.aborted:
        ctx.event("status_update", "Discovery interrupted by operator; retrying next cycle")
        return {"summary": "Discovery interrupted"}

    fields = parse_labeled_lines(result.text)
    missing = [name for name in REQUIRED_FIELDS if name not in fields]
    if missing:
        reason = "decision engine unavailable" if result.fallback else "malformed objective"
        summary = f"Discovery incomplete ({reason}); missing fields: {', '.join(missing)}"
        logger.warning("discovery output rejected missing=%s fallback=%s", missing, result.fallback)
        ctx.run.commit(
            lambda run: with_event(
                set_summary(run, summary), "status_update", summary, {"missing": ", ".join(missing)}
            )
        )
        return {"summary": summary}

    thesis = Thesis(
        headline=fields["objective"],
        target_customer=fields["customer"],
        problem=fields["problem"],
        product_shape=fields["product"],
        why_now=fields.get("why now", ""),
        moat_hypothesis=fields.get("moat", ""),
    )
    summary = f"Selected objective: {thesis.headline}"
    ctx.run.commit(
        lambda run: with_event(
            set_summary(set_thesis(run, thesis), summary), "status_update", summary, {"thesis_id": thesis.id}
        )
    )

    if ctx.gateway.is_ready("memory_add"):
        call = ctx.gateway.execute(
            "memory_add",
            {
                "content": json.dumps(thesis.model_dump(mode="json")),
                "container_tag": ctx.settings.memory_container_tag,
            },
        )
        ctx.record_call(call)

    ctx.workspace.write_artifact("objective.md", render_thesis(thesis, result.text))
    ctx.notify(summary)
    ctx.run.commit(lambda run: transition_mode(run, "planning"))
    return {"summary": summary}


def _start_research(ctx: CycleContext) -> str:
    if not ctx.gateway.is_ready("research"):
        return "Browser research unavailable for this pass."
    call = ctx.gateway.execute("research", {"task": DISCOVERY_RESEARCH_TASK})
    ctx.record_call(call)
    if call["status"] != "ok":
        return "Browser research unavailable for this pass."
    output = call["output"]
    if output.get("live_url"):
        return f"Browser live URL: {output['live_url']}"
    return f"Browser task created: {output['task_id']}"


def _recall(ctx: CycleContext) -> list[str]:
    if not ctx.gateway.is_ready("memory_search"):
        return []
    call = ctx.gateway.execute(
        "memory_search",
        {"query": MEMORY_QUERY, "container_tag": ctx.settings.memory_container_tag},
    )
    if call["status"] != "ok":
        ctx.record_call(call)
        return []
    return list(call["output"]["snippets"])


def render_thesis(thesis: Thesis, raw: str) -> str:
    return "\n".join(
        [
            f"# {thesis.headline}",
            "",
            f"- Customer: {thesis.target_customer}",
            f"- Problem: {thesis.problem}",
            f"- Product: {thesis.product_shape}",
            f"- Why now: {thesis.why_now or 'n/a'}",
            f"- Moat: {thesis.moat_hypothesis or 'n/a'}",
            f"- Selected at: {thesis.selected_at.isoformat()}",
            "",
            "## Raw decision",
            "",
            raw.strip(),
            "",
        ]
    )
