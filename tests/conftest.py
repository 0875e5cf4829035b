import pytest

from fakes import FakeDecisionEngine

from agent_loop.config.settings import Settings
from agent_loop.orchestrator import Orchestrator
from agent_loop.state.models import Run
from agent_loop.storage.memory import InMemoryRunStore
from agent_loop.tools.registry import CapabilitySpec, build_providers

PROVIDER_ENV_VARS = (
    "ANTHROPIC_API_KEY",
    "BROWSER_USE_API_KEY",
    "SUPERMEMORY_API_KEY",
    "AGENTMAIL_API_KEY",
    "SLACK_BOT_TOKEN",
    "SLACK_DEFAULT_CHANNEL",
    "VERCEL_TOKEN",
    "DATABASE_URL",
    "AGENT_LOOP_DATABASE_URL",
    "AGENT_LOOP_AUTO_START",
)


@pytest.fixture(autouse=True)
def _isolate_provider_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        workspace_dir=str(tmp_path / "workspace"),
        state_file=str(tmp_path / "state.json"),
        loop_interval_s=3600.0,
        tool_timeout_s=2.0,
        tool_max_retries=0,
        tool_retry_backoff_s=0.0,
    )


@pytest.fixture
def make_orchestrator(settings: Settings):
    created: list[Orchestrator] = []

    def _make(
        engine: FakeDecisionEngine | None = None,
        *,
        registry: dict[str, CapabilitySpec] | None = None,
        initial: Run | None = None,
        settings_override: Settings | None = None,
    ) -> Orchestrator:
        active_settings = settings_override or settings
        orchestrator = Orchestrator(
            settings=active_settings,
            store=InMemoryRunStore(initial),
            engine=engine or FakeDecisionEngine(),
            providers=build_providers(active_settings),
            registry=registry if registry is not None else {},
        )
        orchestrator.init()
        created.append(orchestrator)
        return orchestrator

    yield _make

    for orchestrator in created:
        orchestrator.stop()
        orchestrator.scheduler.wait_idle(5)
