"""Pydantic records that make up one durable run.

Everything the orchestrator knows lives inside a single ``Run`` aggregate.
The aggregate is serialized whole on every save and rebuilt whole on load,
so every nested record here must round-trip through ``model_dump(mode="json")``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field

Mode = Literal["discovery", "planning", "building", "operating", "blocked"]
MODES: tuple[str, ...] = ("discovery", "planning", "building", "operating", "blocked")

TaskStatus = Literal["pending", "in_progress", "completed", "failed"]

# Named execution paths a plan line may ask for; "agent" re-delegates to the
# decision engine and is the default for unknown tokens.
ExecutionPath = Literal["agent", "research", "memory", "mailbox", "deploy", "shell", "notify"]
EXECUTION_PATHS: tuple[str, ...] = (
    "agent",
    "research",
    "memory",
    "mailbox",
    "deploy",
    "shell",
    "notify",
)
DEFAULT_EXECUTION_PATH = "agent"

Trigger = Literal["manual", "interval", "startup", "interrupt"]
TRIGGERS: tuple[str, ...] = ("manual", "interval", "startup", "interrupt")

CommandSource = Literal["slack", "ui", "api", "email"]

EventKind = Literal[
    "mode_changed",
    "task_started",
    "task_completed",
    "task_failed",
    "tool_called",
    "approval_requested",
    "approval_resolved",
    "operator_command",
    "status_update",
    "cycle_failed",
]


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:10]}"


class Task(BaseModel):
    """One unit of plan work, keyed by the stable id from the plan document."""

    id: str
    title: str
    description: str = ""
    execution_path: ExecutionPath = "agent"
    priority: int = 1
    status: TaskStatus = "pending"
    output: str | None = None
    updated_at: datetime = Field(default_factory=utc_now)


class Thesis(BaseModel):
    """The single current objective of the run."""

    id: str = Field(default_factory=lambda: new_id("thesis"))
    headline: str
    target_customer: str
    problem: str
    product_shape: str
    why_now: str = ""
    moat_hypothesis: str = ""
    selected_at: datetime = Field(default_factory=utc_now)


class Approval(BaseModel):
    """Gate in front of one risky action."""

    id: str = Field(default_factory=lambda: new_id("approval"))
    action: str
    task_id: str | None = None
    reason: str
    risk_level: Literal["critical"] = "critical"
    status: Literal["pending", "approved", "rejected"] = "pending"
    requested_at: datetime = Field(default_factory=utc_now)
    resolved_at: datetime | None = None


class OperatorCommand(BaseModel):
    id: str = Field(default_factory=lambda: new_id("cmd"))
    source: CommandSource = "api"
    text: str
    created_at: datetime = Field(default_factory=utc_now)


class RunEvent(BaseModel):
    id: str = Field(default_factory=lambda: new_id("evt"))
    kind: EventKind
    message: str
    timestamp: datetime = Field(default_factory=utc_now)
    metadata: dict[str, str | int | float | bool | None] = Field(default_factory=dict)


class ProviderHealth(BaseModel):
    ok: bool
    checked_at: datetime = Field(default_factory=utc_now)
    message: str


class Run(BaseModel):
    """Durable record of one long-lived execution identity."""

    run_id: str
    mode: Mode = "discovery"
    started_at: datetime = Field(default_factory=utc_now)
    total_decision_turns: int = 0
    is_running: bool = False
    last_summary: str | None = None
    last_iteration_at: datetime | None = None
    thesis: Thesis | None = None
    current_task_id: str | None = None
    pending_approval: Approval | None = None
    mailbox_address: str | None = None
    tasks: list[Task] = Field(default_factory=list)
    queued_commands: list[OperatorCommand] = Field(default_factory=list)
    pending_directives: list[str] = Field(default_factory=list)
    rejected_task_ids: list[str] = Field(default_factory=list)
    recent_events: list[RunEvent] = Field(default_factory=list)
    provider_health: dict[str, ProviderHealth] = Field(default_factory=dict)

    def task(self, task_id: str | None) -> Task | None:
        if task_id is None:
            return None
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    @property
    def current_task(self) -> Task | None:
        return self.task(self.current_task_id)

    def tasks_with_status(self, *statuses: str) -> list[Task]:
        return [task for task in self.tasks if task.status in statuses]


class RunSnapshot(BaseModel):
    """Read-only view served to operators and the control surface."""

    run_id: str
    mode: Mode
    is_running: bool
    thesis: Thesis | None = None
    mailbox_address: str | None = None
    current_task: Task | None = None
    pending_tasks: list[Task] = Field(default_factory=list)
    pending_approval: Approval | None = None
    provider_health: dict[str, ProviderHealth] = Field(default_factory=dict)
    queued_commands: list[OperatorCommand] = Field(default_factory=list)
    pending_directives: list[str] = Field(default_factory=list)
    last_summary: str | None = None
    recent_events: list[RunEvent] = Field(default_factory=list)
    last_iteration_at: datetime | None = None
    total_decision_turns: int = 0
    storage: str = "memory"
    active_trigger: Trigger | None = None
    pending_trigger: Trigger | None = None

    @classmethod
    def from_run(cls, run: Run, **extra: Any) -> "RunSnapshot":
        return cls(
            run_id=run.run_id,
            mode=run.mode,
            is_running=run.is_running,
            thesis=run.thesis,
            mailbox_address=run.mailbox_address,
            current_task=run.current_task,
            pending_tasks=run.tasks_with_status("pending"),
            pending_approval=run.pending_approval,
            provider_health=dict(run.provider_health),
            queued_commands=list(run.queued_commands),
            pending_directives=list(run.pending_directives),
            last_summary=run.last_summary,
            recent_events=list(run.recent_events),
            last_iteration_at=run.last_iteration_at,
            total_decision_turns=run.total_decision_turns,
            **extra,
        )
