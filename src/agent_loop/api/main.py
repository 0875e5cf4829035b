"""FastAPI control surface for the agent loop."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from agent_loop.config.settings import Settings, get_settings
from agent_loop.interrupts import Attachment
from agent_loop.orchestrator import Orchestrator
from agent_loop.state.models import CommandSource, OperatorCommand, RunSnapshot
from agent_loop.tools import list_capabilities


class CommandRequest(BaseModel):
    text: str = Field(min_length=1)
    source: CommandSource = "api"


class MessageRequest(BaseModel):
    text: str = ""
    source: CommandSource = "api"
    attachments: list[Attachment] = Field(default_factory=list)


class MessageResponse(BaseModel):
    intent: str
    reply: str
    command_id: str | None = None


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    orchestrator_override: Orchestrator | None,
) -> Orchestrator:
    if not hasattr(app.state, "orchestrator"):
        orchestrator = orchestrator_override or Orchestrator.from_settings(settings)
        orchestrator.init()
        app.state.orchestrator = orchestrator
        app.state.settings = settings
    return app.state.orchestrator


def create_app(
    *,
    orchestrator: Orchestrator | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or (orchestrator.settings if orchestrator else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        loop = _ensure_runtime_state(app, settings=settings, orchestrator_override=orchestrator)
        if settings.auto_start:
            loop.start(trigger="startup")
        yield
        loop.stop()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    # Keep test paths reliable when lifespan is not executed by the client.
    if orchestrator is not None:
        _ensure_runtime_state(app, settings=settings, orchestrator_override=orchestrator)

    def _get_orchestrator(request: Request) -> Orchestrator:
        return _ensure_runtime_state(request.app, settings=settings, orchestrator_override=orchestrator)

    @app.get("/health")
    def health(request: Request) -> dict[str, Any]:
        snapshot = _get_orchestrator(request).snapshot()
        return {
            "status": "ok",
            "service": settings.app_name,
            "run_id": snapshot.run_id,
            "mode": snapshot.mode,
        }

    @app.get("/api/state", response_model=RunSnapshot)
    def state(request: Request) -> RunSnapshot:
        return _get_orchestrator(request).snapshot()

    @app.get("/api/capabilities")
    def capabilities(request: Request) -> dict[str, list[dict[str, Any]]]:
        return {"capabilities": list_capabilities(_get_orchestrator(request).gateway.registry)}

    @app.post("/api/run-once", response_model=RunSnapshot)
    def run_once(request: Request) -> RunSnapshot:
        return _get_orchestrator(request).run_once("manual")

    @app.post("/api/start", response_model=RunSnapshot)
    def start(request: Request) -> RunSnapshot:
        return _get_orchestrator(request).start(trigger="startup")

    @app.post("/api/stop", response_model=RunSnapshot)
    def stop(request: Request) -> RunSnapshot:
        return _get_orchestrator(request).stop()

    @app.post("/api/commands", response_model=OperatorCommand, status_code=202)
    def enqueue(payload: CommandRequest, request: Request) -> OperatorCommand:
        return _get_orchestrator(request).enqueue_command(payload.text.strip(), payload.source)

    @app.post("/api/messages", response_model=MessageResponse)
    def message(payload: MessageRequest, request: Request) -> MessageResponse:
        try:
            reply = _get_orchestrator(request).handle_operator_message(
                payload.text, payload.source, payload.attachments
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return MessageResponse(intent=reply.intent, reply=reply.reply, command_id=reply.command_id)

    @app.post("/agentmail/webhooks")
    async def agentmail_webhook(request: Request) -> dict[str, Any]:
        try:
            payload = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid JSON") from exc
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Webhook payload must be an object")
        reply = await run_in_threadpool(_get_orchestrator(request).ingest_inbound_email, payload)
        return {"ok": True, "intent": reply.intent if reply else None}

    return app


app = create_app()
