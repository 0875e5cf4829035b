import threading

import pytest

from fakes import FakeDecisionEngine, make_capability, seeded_run

from agent_loop.decision.base import DecisionResult
from agent_loop.state.models import TRIGGERS
from agent_loop.tools.http import ProviderError
from agent_loop.tools.schemas import ResearchInput, ResearchOutput, ShellInput, ShellOutput

DISCOVERY_REPLY = "\n".join(
    [
        "Objective: Invoice chaser",
        "Customer: Agencies",
        "Problem: Late client payments",
        "Product: Email follow-up agent",
        "Why now: Cheap inference",
        "Moat: Payment history data",
    ]
)


def _events(orchestrator) -> list[str]:
    return [event.message for event in orchestrator.get().recent_events]


@pytest.mark.parametrize("trigger", TRIGGERS)
def test_every_trigger_runs_discovery_until_an_objective_exists(make_orchestrator, trigger) -> None:
    orchestrator = make_orchestrator()
    snapshot = orchestrator.run_once(trigger)

    assert snapshot.mode == "discovery"
    assert snapshot.thesis is None
    assert any(f"via {trigger}" in message for message in _events(orchestrator))


def test_discovery_rejects_reply_missing_required_fields(make_orchestrator) -> None:
    orchestrator = make_orchestrator(FakeDecisionEngine(["Objective: Something\nCustomer: Someone"]))
    snapshot = orchestrator.run_once()

    assert snapshot.mode == "discovery"
    assert snapshot.thesis is None
    assert "missing fields: problem, product" in (snapshot.last_summary or "")


def test_discovery_selects_objective_and_moves_to_planning(make_orchestrator) -> None:
    orchestrator = make_orchestrator(FakeDecisionEngine([DISCOVERY_REPLY]))
    snapshot = orchestrator.run_once()

    assert snapshot.mode == "planning"
    assert snapshot.thesis is not None
    assert snapshot.thesis.headline == "Invoice chaser"
    assert snapshot.thesis.why_now == "Cheap inference"
    objective = orchestrator.workspace.artifacts_dir / "objective.md"
    assert objective.read_text(encoding="utf-8").startswith("# Invoice chaser")
    assert any(message.startswith("Notification not sent (not configured)") for message in _events(orchestrator))


def test_planning_writes_plan_and_consumes_directives(make_orchestrator) -> None:
    plan_reply = "Plan:\n- [ ] draft-copy | agent | Draft copy | Write hero copy\n"
    engine = FakeDecisionEngine([plan_reply])
    orchestrator = make_orchestrator(engine, initial=seeded_run(pending_directives=["Target agencies first"]))

    snapshot = orchestrator.run_once()

    assert snapshot.mode == "building"
    assert snapshot.pending_directives == []
    assert [task.id for task in snapshot.pending_tasks] == ["draft-copy"]
    assert "Target agencies first" in engine.prompts[0]
    assert orchestrator.plan.read() == "- [ ] draft-copy | agent | Draft copy | Write hero copy\n"


def test_planning_keeps_directives_when_reply_has_no_tasks(make_orchestrator) -> None:
    engine = FakeDecisionEngine(["Sorry, no plan today."])
    orchestrator = make_orchestrator(engine, initial=seeded_run(pending_directives=["Ship it"]))

    snapshot = orchestrator.run_once()

    assert snapshot.mode == "planning"
    assert snapshot.pending_directives == ["Ship it"]
    assert (snapshot.last_summary or "").startswith("Plan sync failed")
    assert not orchestrator.plan.exists()


def test_successful_agent_task_checks_its_plan_line(make_orchestrator) -> None:
    engine = FakeDecisionEngine(["Hero: Get paid on time."])
    orchestrator = make_orchestrator(engine, initial=seeded_run(mode="building"))
    orchestrator.plan.path.write_text("- [ ] draft-copy | agent | Draft copy | Write hero copy\n", encoding="utf-8")

    snapshot = orchestrator.run_once()

    assert snapshot.mode == "operating"
    task = orchestrator.get().task("draft-copy")
    assert task is not None and task.status == "completed"
    assert orchestrator.plan.read() == "- [x] draft-copy | agent | Draft copy | Write hero copy\n"
    assert snapshot.total_decision_turns == 1


def test_failed_research_task_stays_unchecked(make_orchestrator) -> None:
    def broken(payload: ResearchInput) -> ResearchOutput:
        raise ProviderError("timeout")

    registry = {"research": make_capability(ResearchInput, ResearchOutput, broken)}
    orchestrator = make_orchestrator(registry=registry, initial=seeded_run(mode="building"))
    plan_text = "- [ ] scan-market | research | Scan market | Look at competitors\n"
    orchestrator.plan.path.write_text(plan_text, encoding="utf-8")

    snapshot = orchestrator.run_once()

    task = orchestrator.get().task("scan-market")
    assert task is not None
    assert task.status == "failed"
    assert task.output == "Browser task failed: timeout"
    assert orchestrator.plan.read() == plan_text
    assert snapshot.mode == "planning"
    assert any(event.kind == "tool_called" for event in orchestrator.get().recent_events)


def _shell_registry(calls: list[str]):
    def run(payload: ShellInput) -> ShellOutput:
        calls.append(payload.command)
        return ShellOutput(ok=True, code=0, stdout="disk ok\n")

    return {"shell": make_capability(ShellInput, ShellOutput, run)}


def test_gated_task_blocks_until_approved(make_orchestrator) -> None:
    calls: list[str] = []
    orchestrator = make_orchestrator(registry=_shell_registry(calls), initial=seeded_run(mode="building"))
    orchestrator.plan.path.write_text("- [ ] check-disk | shell | Check disk | df -h\n", encoding="utf-8")

    blocked = orchestrator.run_once()
    assert blocked.mode == "blocked"
    assert blocked.pending_approval is not None
    assert blocked.pending_approval.action == "shell:check-disk"
    assert calls == []

    still_blocked = orchestrator.run_once()
    assert still_blocked.mode == "blocked"
    assert calls == []

    orchestrator.enqueue_command("approve")
    done = orchestrator.run_once()

    assert calls == ["df -h"]
    assert done.pending_approval is None
    assert done.mode == "operating"
    assert orchestrator.get().task("check-disk").status == "completed"
    assert orchestrator.plan.read() == "- [x] check-disk | shell | Check disk | df -h\n"


def test_rejected_task_fails_and_returns_to_planning(make_orchestrator) -> None:
    calls: list[str] = []
    orchestrator = make_orchestrator(registry=_shell_registry(calls), initial=seeded_run(mode="building"))
    orchestrator.plan.path.write_text("- [ ] check-disk | shell | Check disk | df -h\n", encoding="utf-8")

    orchestrator.run_once()
    orchestrator.enqueue_command("reject")
    snapshot = orchestrator.run_once()

    assert calls == []
    assert snapshot.pending_approval is None
    assert snapshot.mode == "planning"
    assert orchestrator.get().task("check-disk").status == "failed"

    for _ in range(3):
        later = orchestrator.run_once()

    assert calls == []
    assert later.mode == "planning"
    assert later.pending_approval is None
    assert orchestrator.get().task("check-disk").status == "failed"
    requested = [event for event in orchestrator.get().recent_events if event.kind == "approval_requested"]
    assert len(requested) == 1
    assert any("remove task check-disk" in directive for directive in later.pending_directives)


def test_undecodable_plan_still_drains_commands(make_orchestrator) -> None:
    calls: list[str] = []
    orchestrator = make_orchestrator(registry=_shell_registry(calls), initial=seeded_run(mode="building"))
    orchestrator.plan.path.write_bytes(b"- [ ] check-disk | shell | Check disk | df -h caf\xe9\n")

    blocked = orchestrator.run_once()
    assert blocked.mode == "blocked"

    orchestrator.enqueue_command("reject")
    snapshot = orchestrator.run_once()

    assert snapshot.queued_commands == []
    assert snapshot.pending_approval is None
    assert not [event for event in orchestrator.get().recent_events if event.kind == "cycle_failed"]


def test_approve_without_pending_approval_is_ignored(make_orchestrator) -> None:
    orchestrator = make_orchestrator(initial=seeded_run())
    orchestrator.enqueue_command("approve")
    orchestrator.run_once()

    assert "Ignored approve: no approval is pending" in _events(orchestrator)


def test_pause_then_resume_queues_remainder_exactly_once(make_orchestrator) -> None:
    orchestrator = make_orchestrator()
    orchestrator.start(trigger=None)

    paused = orchestrator.handle_operator_message("pause")
    assert paused.intent == "pause"
    assert orchestrator.get().is_running is False

    resumed = orchestrator.handle_operator_message("resume and keep going with Q4 plan")
    assert resumed.intent == "resume"
    assert resumed.command_id is not None
    assert orchestrator.get().is_running is True

    assert orchestrator.scheduler.wait_idle(5)
    run = orchestrator.get()
    queued = [command.text for command in run.queued_commands]
    assert queued.count("keep going with Q4 plan") + run.pending_directives.count("keep going with Q4 plan") == 1


def test_question_is_answered_and_not_queued(make_orchestrator) -> None:
    orchestrator = make_orchestrator(initial=seeded_run())
    reply = orchestrator.handle_operator_message("what are you working on?")

    assert reply.intent == "question"
    assert reply.command_id is None
    assert "Mode: planning" in reply.reply
    assert orchestrator.get().queued_commands == []


def test_question_that_starts_with_continue_is_not_queued(make_orchestrator) -> None:
    orchestrator = make_orchestrator(initial=seeded_run())
    reply = orchestrator.handle_operator_message("Continue with the pricing page or the landing page?")

    assert reply.intent == "question"
    assert reply.command_id is None
    assert orchestrator.get().queued_commands == []
    assert orchestrator.get().is_running is False


def test_question_uses_engine_answer_when_available(make_orchestrator) -> None:
    engine = FakeDecisionEngine(["Working on the landing page."])
    orchestrator = make_orchestrator(engine, initial=seeded_run())

    reply = orchestrator.handle_operator_message("status")
    assert reply.reply == "Working on the landing page."
    assert engine.options[0].lightweight is True


def test_directive_while_idle_is_queued_for_next_cycle(make_orchestrator) -> None:
    orchestrator = make_orchestrator(initial=seeded_run())
    reply = orchestrator.handle_operator_message("Focus on enterprise buyers")

    assert reply.intent == "directive"
    assert [command.text for command in orchestrator.get().queued_commands] == ["Focus on enterprise buyers"]


def test_empty_operator_message_is_rejected(make_orchestrator) -> None:
    orchestrator = make_orchestrator()
    with pytest.raises(ValueError):
        orchestrator.handle_operator_message("  <@U123>  ")


def test_directive_while_running_interrupts_in_flight_task(make_orchestrator) -> None:
    started = threading.Event()

    def blocking(prompt, options, cancel):
        started.set()
        cancel.wait(5)
        if cancel.cancelled:
            return DecisionResult.aborted_result()
        return DecisionResult(text="finished anyway", turns=1)

    orchestrator = make_orchestrator(FakeDecisionEngine([blocking]), initial=seeded_run(mode="building"))
    orchestrator.plan.path.write_text("- [ ] draft-copy | agent | Draft copy | Write hero copy\n", encoding="utf-8")

    orchestrator.start(trigger="manual")
    assert started.wait(5)

    reply = orchestrator.handle_operator_message("Focus on enterprise buyers")
    assert reply.intent == "directive"
    assert orchestrator.scheduler.wait_idle(5)

    run = orchestrator.get()
    task = run.task("draft-copy")
    assert task is not None and task.status == "pending"
    assert run.current_task_id is None
    assert "Focus on enterprise buyers" in run.pending_directives
    messages = _events(orchestrator)
    assert "Interrupted by operator; task returned to pending" in messages
    assert any("via interrupt" in message for message in messages)
    assert orchestrator.plan.read() == "- [ ] draft-copy | agent | Draft copy | Write hero copy\n"


def test_inbound_email_becomes_operator_directive(make_orchestrator) -> None:
    orchestrator = make_orchestrator(initial=seeded_run())

    ignored = orchestrator.ingest_inbound_email({"event_type": "message.sent", "message": {"text": "hi"}})
    assert ignored is None

    reply = orchestrator.ingest_inbound_email(
        {"event_type": "message.received", "message": {"subject": "Pricing", "text": "Add a pricing page"}}
    )
    assert reply is not None and reply.intent == "directive"
    command = orchestrator.get().queued_commands[-1]
    assert command.text == "Add a pricing page"
    assert command.source == "email"


def test_cycle_error_is_recorded_not_raised(make_orchestrator, monkeypatch: pytest.MonkeyPatch) -> None:
    orchestrator = make_orchestrator(initial=seeded_run())

    def explode():
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(orchestrator.plan, "parse", explode)
    orchestrator.run_once()

    failures = [event for event in orchestrator.get().recent_events if event.kind == "cycle_failed"]
    assert failures and "disk on fire" in failures[-1].message


def test_event_log_respects_configured_limit(make_orchestrator, settings) -> None:
    limited = settings.model_copy(update={"event_log_limit": 5})
    orchestrator = make_orchestrator(settings_override=limited)
    for _ in range(4):
        orchestrator.run_once()

    assert len(orchestrator.get().recent_events) == 5


def test_snapshot_reports_provider_health(make_orchestrator) -> None:
    orchestrator = make_orchestrator()
    health = orchestrator.snapshot().provider_health

    assert health["decision-engine"].ok is True
    assert health["slack"].ok is False
    assert health["shell"].ok is True
