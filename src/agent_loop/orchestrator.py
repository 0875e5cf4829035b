"""The orchestrator: sole owner of the live run.

All run mutations go through ``commit``, which applies a pure transition under
the lock and persists the result before releasing it. Decision and capability
calls run outside the lock.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from agent_loop.config.settings import Settings
from agent_loop.decision import build_decision_engine
from agent_loop.decision.base import CancellationToken, DecisionEngine, DecisionOptions, DecisionResult
from agent_loop.graph import CycleContext, build_cycle_graph, initial_state
from agent_loop.interrupts import Attachment, IntentKind, classify, normalize_operator_text
from agent_loop.plan.document import PlanDocument
from agent_loop.prompts import question_prompt, status_text
from agent_loop.routing.router import TaskRouter
from agent_loop.routing.selector import TaskSelector
from agent_loop.scheduler import CycleScheduler, IntervalTimer
from agent_loop.state.models import (
    CommandSource,
    OperatorCommand,
    ProviderHealth,
    Run,
    RunSnapshot,
)
from agent_loop.state.transitions import (
    add_decision_turns,
    enqueue_command,
    set_provider_health,
    set_running,
    with_event,
)
from agent_loop.storage import RunStore, build_store
from agent_loop.tools.gateway import CapabilityGateway
from agent_loop.tools.registry import CapabilitySpec, Providers, build_providers, build_registry
from agent_loop.workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperatorReply:
    intent: IntentKind
    reply: str
    command_id: str | None = None


class Orchestrator:
    def __init__(
        self,
        *,
        settings: Settings,
        store: RunStore,
        engine: DecisionEngine,
        providers: Providers,
        registry: dict[str, CapabilitySpec] | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.engine = engine
        self.providers = providers
        self.workspace = Workspace(settings.workspace_path(), plan_file=settings.plan_file)
        self.plan = PlanDocument(self.workspace.plan_path)
        self.gateway = CapabilityGateway(
            registry=registry if registry is not None else build_registry(providers),
            timeout_s=settings.tool_timeout_s,
            max_retries=settings.tool_max_retries,
            backoff_s=settings.tool_retry_backoff_s,
        )
        self.selector = TaskSelector(self.decide)
        self.router = TaskRouter(
            decide=self.decide,
            gateway=self.gateway,
            workspace=self.workspace,
            memory_container_tag=settings.memory_container_tag,
            task_max_turns=settings.task_max_turns,
        )
        self.scheduler = CycleScheduler(self._run_cycle)
        self.timer = IntervalTimer(settings.loop_interval_s, lambda: self.request_cycle("interval"))

        self._lock = threading.RLock()
        self._run: Run | None = None
        self._token: CancellationToken | None = None
        self._graph = build_cycle_graph(
            CycleContext(
                settings=settings,
                run=self,
                plan=self.plan,
                workspace=self.workspace,
                decide=self.decide,
                selector=self.selector,
                router=self.router,
                gateway=self.gateway,
                notify=self.notify,
                refresh_health=self.refresh_provider_health,
                in_flight=self._in_flight,
                control=self._control,
            )
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Orchestrator":
        return cls(
            settings=settings,
            store=build_store(settings),
            engine=build_decision_engine(settings),
            providers=build_providers(settings),
        )

    # Run ownership

    def init(self) -> Run:
        with self._lock:
            if self._run is None:
                self._run = self.store.load()
                logger.info("run loaded run_id=%s mode=%s storage=%s", self._run.run_id, self._run.mode, self.store.kind)
            self.workspace.ensure()
            return self.commit(self._apply_health)

    def get(self) -> Run:
        with self._lock:
            if self._run is None:
                self._run = self.store.load()
            return self._run

    def commit(self, fn: Callable[[Run], Run]) -> Run:
        with self._lock:
            updated = fn(self.get())
            limit = self.settings.event_log_limit
            if len(updated.recent_events) > limit:
                updated = updated.model_copy(update={"recent_events": updated.recent_events[-limit:]})
            self._run = updated
            self.store.save(updated)
            return updated

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot.from_run(
            self.get(),
            storage=self.store.kind,
            active_trigger=self.scheduler.active_trigger,
            pending_trigger=self.scheduler.pending_trigger,
        )

    # Loop control

    def start(self, trigger: str | None = "startup") -> RunSnapshot:
        self.commit(lambda run: set_running(run, True))
        if self.timer.start():
            self.event("status_update", "Loop started", {"interval_s": self.timer.interval_s})
        if trigger is not None:
            self.request_cycle(trigger)
        return self.snapshot()

    def stop(self) -> RunSnapshot:
        self.timer.stop()
        if self.get().is_running:
            self.commit(lambda run: with_event(set_running(run, False), "status_update", "Loop stopped"))
        return self.snapshot()

    def run_once(self, trigger: str = "manual", timeout: float | None = None) -> RunSnapshot:
        self.scheduler.run_now(trigger, timeout)
        return self.snapshot()

    def request_cycle(self, trigger: str) -> bool:
        return self.scheduler.request(trigger)

    def smoke(self) -> RunSnapshot:
        self.init()
        self.refresh_provider_health()
        return self.snapshot()

    def _control(self, word: str) -> None:
        if word == "pause":
            self.stop()
        else:
            self.start(trigger=None)

    # Operator input

    def enqueue_command(self, text: str, source: CommandSource = "api") -> OperatorCommand:
        command = OperatorCommand(text=text, source=source)
        self.commit(lambda run: enqueue_command(run, command))
        logger.info("operator command queued command_id=%s source=%s", command.id, source)
        return command

    def handle_operator_message(
        self,
        text: str,
        source: CommandSource = "api",
        attachments: list[Attachment] | None = None,
    ) -> OperatorReply:
        normalized = normalize_operator_text(text, attachments)
        if not normalized:
            raise ValueError("Operator message is empty")
        intent = classify(normalized)
        logger.info("operator message classified intent=%s source=%s", intent.kind, source)

        if intent.kind == "pause":
            self.stop()
            return OperatorReply(intent="pause", reply="Paused. Send resume to continue.")

        if intent.kind == "resume":
            command_id = None
            reply = "Resumed."
            if intent.remainder:
                command_id = self.enqueue_command(intent.remainder, source).id
                reply = f"Resumed. Queued: {intent.remainder}"
            self.start(trigger="interrupt")
            return OperatorReply(intent="resume", reply=reply, command_id=command_id)

        if intent.kind == "question":
            return OperatorReply(intent="question", reply=self.compose_question_reply(intent.text))

        command = self.enqueue_command(intent.text, source)
        if self.get().is_running:
            self.interrupt_active_work()
            self.request_cycle("interrupt")
            return OperatorReply(
                intent="directive",
                reply="Queued directive; interrupting current work to pick it up.",
                command_id=command.id,
            )
        return OperatorReply(
            intent="directive",
            reply="Queued directive for the next cycle.",
            command_id=command.id,
        )

    def compose_question_reply(self, question: str) -> str:
        current = self.get()
        result = self.engine.complete(
            question_prompt(current, question),
            DecisionOptions(lightweight=True),
            CancellationToken(),
        )
        self.commit(lambda run: add_decision_turns(run, result.turns))
        if result.aborted or result.fallback or not result.text.strip():
            return status_text(current)
        return result.text.strip()

    def ingest_inbound_email(self, payload: dict[str, Any]) -> OperatorReply | None:
        """Turn an AgentMail ``message.received`` webhook into an operator message."""
        event_type = payload.get("event_type") or payload.get("type")
        if event_type not in (None, "message.received"):
            logger.info("agentmail webhook ignored event_type=%s", event_type)
            return None
        message = payload.get("message") if isinstance(payload.get("message"), dict) else payload
        body = str(message.get("text") or message.get("extracted_text") or message.get("preview") or "").strip()
        subject = str(message.get("subject") or "").strip()
        text = body or subject
        if not text:
            return None
        return self.handle_operator_message(text, source="email")

    def interrupt_active_work(self) -> bool:
        with self._lock:
            token = self._token
        if token is None or token.cancelled:
            return False
        token.cancel()
        logger.info("in-flight work cancelled by operator")
        return True

    # Collaborators used by the cycle

    @contextmanager
    def _in_flight(self) -> Iterator[CancellationToken]:
        with self._lock:
            outer = self._token
            token = outer if outer is not None else CancellationToken()
            self._token = token
        try:
            yield token
        finally:
            with self._lock:
                self._token = outer

    def decide(self, prompt: str, options: DecisionOptions) -> DecisionResult:
        with self._in_flight() as token:
            result = self.engine.complete(prompt, options, token)
        self.commit(lambda run: add_decision_turns(run, result.turns))
        return result

    def notify(self, message: str) -> None:
        reason = self.providers.notifier.notify(message)
        if reason is None:
            self.event("status_update", f"Operator notified: {message}")
        else:
            self.event("status_update", f"Notification not sent ({reason}): {message}")

    def event(self, kind: str, message: str, metadata: dict[str, Any] | None = None) -> Run:
        return self.commit(lambda run: with_event(run, kind, message, metadata))

    def refresh_provider_health(self) -> None:
        self.commit(self._apply_health)

    def _apply_health(self, run: Run) -> Run:
        health = dict(self.providers.health())
        configured = self.engine.is_configured()
        health["decision-engine"] = ProviderHealth(
            ok=configured,
            message="Ready" if configured else "Missing ANTHROPIC_API_KEY",
        )
        for name, status in health.items():
            run = set_provider_health(run, name, status)
        return run

    def _run_cycle(self, trigger: str) -> RunSnapshot:
        try:
            self._graph.invoke(initial_state(trigger))
        except Exception as exc:
            logger.exception("cycle failed trigger=%s", trigger)
            self.commit(
                lambda run: with_event(run, "cycle_failed", f"Cycle failed: {exc}", {"trigger": trigger})
            )
        return self.snapshot()
