from fastapi.testclient import TestClient

from fakes import FakeDecisionEngine, make_capability, seeded_run

from agent_loop.api.main import create_app
from agent_loop.tools.schemas import NotifyInput, NotifyOutput


def _client(make_orchestrator, **kwargs) -> tuple[TestClient, object]:
    orchestrator = make_orchestrator(**kwargs)
    return TestClient(create_app(orchestrator=orchestrator)), orchestrator


def test_health_endpoint(make_orchestrator) -> None:
    client, orchestrator = _client(make_orchestrator)
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["run_id"] == orchestrator.get().run_id
    assert body["mode"] == "discovery"


def test_state_endpoint_returns_snapshot(make_orchestrator) -> None:
    client, _ = _client(make_orchestrator, initial=seeded_run())
    body = client.get("/api/state").json()

    assert body["run_id"] == "run_test"
    assert body["mode"] == "planning"
    assert body["thesis"]["headline"] == "Invoice chaser"
    assert body["storage"] == "memory"
    assert "slack" in body["provider_health"]


def test_capabilities_endpoint(make_orchestrator) -> None:
    registry = {"notify": make_capability(NotifyInput, NotifyOutput, lambda payload: NotifyOutput(ok=True))}
    client, _ = _client(make_orchestrator, registry=registry)

    assert client.get("/api/capabilities").json() == {
        "capabilities": [{"name": "notify", "implementation": "fake", "ready": True}]
    }


def test_commands_are_queued(make_orchestrator) -> None:
    client, orchestrator = _client(make_orchestrator)
    response = client.post("/api/commands", json={"text": "Ship the pricing page", "source": "ui"})

    assert response.status_code == 202
    assert response.json()["text"] == "Ship the pricing page"
    queued = orchestrator.get().queued_commands
    assert [(command.text, command.source) for command in queued] == [("Ship the pricing page", "ui")]


def test_blank_command_is_rejected(make_orchestrator) -> None:
    client, _ = _client(make_orchestrator)
    assert client.post("/api/commands", json={"text": ""}).status_code == 422


def test_question_message_is_answered(make_orchestrator) -> None:
    client, orchestrator = _client(make_orchestrator, engine=FakeDecisionEngine(["Still choosing an objective."]))
    response = client.post("/api/messages", json={"text": "what are you working on?"})

    assert response.status_code == 200
    assert response.json() == {
        "intent": "question",
        "reply": "Still choosing an objective.",
        "command_id": None,
    }
    assert orchestrator.get().queued_commands == []


def test_empty_message_is_a_bad_request(make_orchestrator) -> None:
    client, _ = _client(make_orchestrator)
    assert client.post("/api/messages", json={"text": "   "}).status_code == 400


def test_pause_and_resume_messages_toggle_the_loop(make_orchestrator) -> None:
    client, orchestrator = _client(make_orchestrator)
    client.post("/api/start")
    assert orchestrator.scheduler.wait_idle(5)

    assert client.post("/api/messages", json={"text": "pause"}).json()["intent"] == "pause"
    assert client.get("/api/state").json()["is_running"] is False

    resumed = client.post("/api/messages", json={"text": "resume"}).json()
    assert resumed["intent"] == "resume"
    assert client.get("/api/state").json()["is_running"] is True

    assert client.post("/api/stop").json()["is_running"] is False


def test_run_once_returns_snapshot(make_orchestrator) -> None:
    client, _ = _client(make_orchestrator)
    response = client.post("/api/run-once")

    assert response.status_code == 200
    body = response.json()
    assert body["mode"] == "discovery"
    assert body["last_iteration_at"] is not None


def test_agentmail_webhook_queues_directive(make_orchestrator) -> None:
    client, orchestrator = _client(make_orchestrator)
    response = client.post(
        "/agentmail/webhooks",
        json={"event_type": "message.received", "message": {"text": "Add annual pricing"}},
    )

    assert response.json() == {"ok": True, "intent": "directive"}
    assert orchestrator.get().queued_commands[-1].source == "email"


def test_agentmail_webhook_rejects_bad_payloads(make_orchestrator) -> None:
    client, _ = _client(make_orchestrator)

    invalid = client.post(
        "/agentmail/webhooks", content="not json", headers={"Content-Type": "application/json"}
    )
    assert invalid.status_code == 400
    assert client.post("/agentmail/webhooks", json=["a"]).status_code == 400
