"""Strict Pydantic schemas for capability inputs and outputs."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class StrictModel(BaseModel):
    """Base model for strict schema validation."""

    model_config = ConfigDict(extra="forbid")


class ResearchInput(StrictModel):
    task: str = Field(min_length=1)
    max_steps: int = Field(default=20, ge=1, le=100)


class ResearchOutput(StrictModel):
    task_id: str
    status: str = "queued"
    live_url: str | None = None
    session_id: str | None = None


class MemoryAddInput(StrictModel):
    content: str = Field(min_length=1)
    container_tag: str


class MemoryAddOutput(StrictModel):
    memory_id: str | None = None
    status: str


class MemorySearchInput(StrictModel):
    query: str = Field(min_length=1)
    container_tag: str
    limit: int = Field(default=3, ge=1, le=20)


class MemorySearchOutput(StrictModel):
    snippets: list[str] = Field(default_factory=list)


class MailboxInput(StrictModel):
    username: str | None = None


class MailboxOutput(StrictModel):
    address: str
    created_at: str | None = None


class ShellInput(StrictModel):
    command: str = Field(min_length=1)
    cwd: str | None = None


class ShellOutput(StrictModel):
    ok: bool
    code: int
    stdout: str = ""
    stderr: str = ""


class DeployInput(StrictModel):
    cwd: str
    production: bool = True


class DeployOutput(StrictModel):
    ok: bool
    code: int
    url: str | None = None
    stdout: str = ""
    stderr: str = ""


class NotifyInput(StrictModel):
    text: str = Field(min_length=1)


class NotifyOutput(StrictModel):
    ok: bool
    ts: str | None = None
