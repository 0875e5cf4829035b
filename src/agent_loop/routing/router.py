"""Dispatch a selected task to its execution path and render a result line."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from agent_loop.decision.base import CancellationToken, DecisionOptions, DecisionResult
from agent_loop.prompts import task_prompt
from agent_loop.state.models import Run, Task
from agent_loop.tools.gateway import CapabilityGateway
from agent_loop.workspace import Workspace

logger = logging.getLogger(__name__)

Decide = Callable[[str, DecisionOptions], DecisionResult]

SUMMARY_CHARS = 160


@dataclass
class ExecutionOutcome:
    text: str
    aborted: bool = False
    turns: int = 0
    mailbox_address: str | None = None
    capability_calls: list[dict[str, Any]] = field(default_factory=list)


def _first_line(text: str, limit: int = SUMMARY_CHARS) -> str:
    for line in text.splitlines():
        stripped = line.strip()
        if stripped:
            return stripped if len(stripped) <= limit else stripped[: limit - 3] + "..."
    return ""


class TaskRouter:
    """Executes exactly one unit of work per call.

    ``agent`` tasks go back to the decision engine; every other path calls one
    named capability through the gateway.
    """

    def __init__(
        self,
        *,
        decide: Decide,
        gateway: CapabilityGateway,
        workspace: Workspace,
        memory_container_tag: str,
        task_max_turns: int = 4,
    ) -> None:
        self.decide = decide
        self.gateway = gateway
        self.workspace = workspace
        self.memory_container_tag = memory_container_tag
        self.task_max_turns = task_max_turns

    def execute(self, run: Run, task: Task, cancel: CancellationToken | None = None) -> ExecutionOutcome:
        handler = getattr(self, f"_run_{task.execution_path}", self._run_agent)
        outcome = handler(run, task, cancel)
        if cancel is not None and cancel.cancelled:
            outcome.aborted = True
        logger.info(
            "task executed task_id=%s path=%s aborted=%s",
            task.id,
            task.execution_path,
            outcome.aborted,
        )
        return outcome

    def _run_agent(self, run: Run, task: Task, cancel: CancellationToken | None) -> ExecutionOutcome:
        result = self.decide(task_prompt(run, task), DecisionOptions(max_turns=self.task_max_turns))
        if result.aborted:
            return ExecutionOutcome(text="", aborted=True, turns=result.turns)
        if result.fallback:
            return ExecutionOutcome(
                text="Agent task skipped: decision engine unavailable", turns=result.turns
            )
        self.workspace.write_artifact(f"tasks/{task.id}.md", result.text + "\n")
        return ExecutionOutcome(
            text=f"Agent output saved to artifacts/tasks/{task.id}.md: {_first_line(result.text)}",
            turns=result.turns,
        )

    def _run_research(self, run: Run, task: Task, cancel: CancellationToken | None) -> ExecutionOutcome:
        call = self.gateway.execute(
            "research", {"task": f"{task.title}. {task.description}"}, cancel
        )
        if call["status"] != "ok":
            return _failed("Browser task", call)
        output = call["output"]
        self.workspace.write_artifact(
            f"research-{task.id}.md",
            "\n".join(
                [
                    f"Status: {output['status']}",
                    f"Task ID: {output['task_id']}",
                    f"Session ID: {output.get('session_id') or 'n/a'}",
                    f"Live URL: {output.get('live_url') or 'n/a'}",
                ]
            )
            + "\n",
        )
        return ExecutionOutcome(
            text=f"Browser task started: {output['task_id']} ({output['status']})",
            capability_calls=[call],
        )

    def _run_memory(self, run: Run, task: Task, cancel: CancellationToken | None) -> ExecutionOutcome:
        call = self.gateway.execute(
            "memory_add",
            {"content": f"{task.title}\n{task.description}", "container_tag": self.memory_container_tag},
            cancel,
        )
        if call["status"] != "ok":
            return _failed("Memory sync", call)
        return ExecutionOutcome(
            text=f"Memory stored ({call['output']['status']})", capability_calls=[call]
        )

    def _run_mailbox(self, run: Run, task: Task, cancel: CancellationToken | None) -> ExecutionOutcome:
        if run.mailbox_address:
            return ExecutionOutcome(text=f"Mailbox already provisioned: {run.mailbox_address}")
        call = self.gateway.execute("mailbox", {}, cancel)
        if call["status"] != "ok":
            return _failed("Mailbox provisioning", call)
        output = call["output"]
        self.workspace.write_artifact(
            "mailbox.md",
            f"Inbox: {output['address']}\nCreated: {output.get('created_at') or 'unknown'}\n",
        )
        return ExecutionOutcome(
            text=f"Provisioned inbox {output['address']}",
            mailbox_address=output["address"],
            capability_calls=[call],
        )

    def _run_deploy(self, run: Run, task: Task, cancel: CancellationToken | None) -> ExecutionOutcome:
        call = self.gateway.execute("deploy", {"cwd": str(self.workspace.root)}, cancel)
        if call["status"] != "ok":
            return _failed("Deployment", call)
        output = call["output"]
        if not output["ok"]:
            return ExecutionOutcome(
                text=f"Deployment failed (exit {output['code']}): {_first_line(output['stderr'] or output['stdout'])}",
                capability_calls=[call],
            )
        return ExecutionOutcome(
            text=f"Deployment succeeded: {output.get('url') or 'no url reported'}",
            capability_calls=[call],
        )

    def _run_shell(self, run: Run, task: Task, cancel: CancellationToken | None) -> ExecutionOutcome:
        call = self.gateway.execute(
            "shell", {"command": task.description, "cwd": str(self.workspace.root)}, cancel
        )
        if call["status"] != "ok":
            return _failed("Shell command", call)
        output = call["output"]
        self.workspace.write_artifact(
            f"shell-{task.id}.txt",
            "\n\n".join(part for part in (output["stdout"], output["stderr"]) if part) or "No output\n",
        )
        if not output["ok"]:
            return ExecutionOutcome(
                text=f"Shell command failed (exit {output['code']}): {_first_line(output['stderr'] or output['stdout'])}",
                capability_calls=[call],
            )
        return ExecutionOutcome(
            text=f"Shell command succeeded: {_first_line(output['stdout']) or 'no output'}",
            capability_calls=[call],
        )

    def _run_notify(self, run: Run, task: Task, cancel: CancellationToken | None) -> ExecutionOutcome:
        call = self.gateway.execute("notify", {"text": task.description}, cancel)
        if call["status"] != "ok":
            return _failed("Operator notification", call)
        return ExecutionOutcome(text="Operator notified via Slack", capability_calls=[call])


def _failed(label: str, call: dict[str, Any]) -> ExecutionOutcome:
    verb = "skipped" if call["status"] == "skipped" else "failed"
    return ExecutionOutcome(
        text=f"{label} {verb}: {call.get('error') or 'unknown error'}",
        capability_calls=[call],
    )
