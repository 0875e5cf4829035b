"""Prompt builders for every decision-engine call the loop makes."""

from __future__ import annotations

from agent_loop.state.models import Run, Task, Thesis

OBJECTIVE_LABELS = ("Objective", "Customer", "Problem", "Product", "Why now", "Moat")

DISCOVERY_RESEARCH_TASK = (
    "Research venture-scale AI opportunities that can be built and operated autonomously. "
    "Focus on markets with painful recurring workflows and clear distribution."
)


def _objective_block(thesis: Thesis | None) -> str:
    if thesis is None:
        return "Objective: not selected"
    return "\n".join(
        [
            f"Objective: {thesis.headline}",
            f"Customer: {thesis.target_customer}",
            f"Problem: {thesis.problem}",
            f"Product: {thesis.product_shape}",
        ]
    )


def discovery_prompt(research_note: str, memories: list[str]) -> str:
    lines = [
        "You are an autonomous founder agent selecting one objective to pursue.",
        "Weigh market pain, execution feasibility, AI leverage and defensibility.",
        f"Reply in labeled lines: {', '.join(OBJECTIVE_LABELS)}.",
        research_note,
    ]
    if memories:
        lines.append("Relevant memories:")
        lines.extend(f"- {snippet}" for snippet in memories)
    return "\n".join(lines)


def planning_prompt(run: Run, current_document: str | None, directives: list[str]) -> str:
    completed = [task for task in run.tasks if task.status == "completed"]
    lines = [
        "You maintain the plan document for an autonomous agent.",
        "Return the complete replacement plan. Each task is one line:",
        "- [ ] <id> | <path> | <title> | <description>",
        "Use lowercase ids made of letters, digits and dashes. Keep ids of existing tasks stable.",
        "Allowed paths: agent, research, memory, mailbox, deploy, shell, notify.",
        "Mark finished tasks with - [x]. Return only task lines.",
        "",
        _objective_block(run.thesis),
        "",
        "Completed work:",
    ]
    lines.extend(f"- {task.id}: {task.output or task.title}" for task in completed)
    if not completed:
        lines.append("- none yet")
    if directives:
        lines.append("")
        lines.append("Operator directives to fold into the plan:")
        lines.extend(f"- {text}" for text in directives)
    lines.append("")
    lines.append("Current plan document:")
    lines.append(current_document.strip() if current_document and current_document.strip() else "(empty)")
    return "\n".join(lines)


def selection_prompt(run: Run, candidates: list[Task]) -> str:
    lines = [
        "Pick the single most valuable next task for the current objective.",
        _objective_block(run.thesis),
        "Pending tasks:",
    ]
    lines.extend(
        f"- {task.id} (priority {task.priority}, path {task.execution_path}): {task.title}"
        for task in candidates
    )
    lines.append("Reply with exactly one line: Task: <id>")
    return "\n".join(lines)


def task_prompt(run: Run, task: Task) -> str:
    return "\n".join(
        [
            "You are executing one task for an autonomous agent. Produce the finished work product.",
            _objective_block(run.thesis),
            f"Task: {task.id}",
            f"Title: {task.title}",
            f"Instructions: {task.description}",
        ]
    )


def question_prompt(run: Run, question: str) -> str:
    return "\n".join(
        [
            "Answer the operator's question about the agent's current state in at most three sentences.",
            status_text(run),
            f"Question: {question}",
        ]
    )


def status_text(run: Run) -> str:
    current = run.current_task
    pending = run.tasks_with_status("pending")
    parts = [
        f"Mode: {run.mode}",
        f"Running: {'yes' if run.is_running else 'no'}",
        f"Objective: {run.thesis.headline if run.thesis else 'not selected'}",
        f"Current task: {current.title if current else 'none'}",
        f"Pending tasks: {len(pending)}",
    ]
    if run.pending_approval is not None and run.pending_approval.status == "pending":
        parts.append(f"Awaiting approval: {run.pending_approval.action}")
    if run.last_summary:
        parts.append(f"Last summary: {run.last_summary}")
    return "\n".join(parts)
