"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "agent-loop"
    app_env: str = "dev"
    log_level: str = "INFO"

    loop_interval_s: float = Field(default=90.0, gt=0.0)
    auto_start: bool = False
    state_file: str = ".agent-loop/state.json"
    workspace_dir: str = ".agent-loop/workspace"
    plan_file: str = "PLAN.md"
    database_url: str = ""
    event_log_limit: int = Field(default=50, ge=1)
    approval_required_paths: list[str] = Field(default_factory=lambda: ["deploy", "shell"])

    decision_provider: str = "anthropic"
    decision_model: str = "claude-sonnet-4-20250514"
    decision_light_model: str = "claude-3-5-haiku-20241022"
    decision_base_url: str = "https://api.anthropic.com/v1"
    decision_timeout_s: float = Field(default=120.0, ge=0.5)
    decision_max_retries: int = Field(default=2, ge=0)
    decision_backoff_s: float = Field(default=1.0, ge=0.0)
    decision_max_tokens: int = Field(default=1500, ge=64)
    task_max_turns: int = Field(default=4, ge=1)
    anthropic_api_key: str = ""

    tool_timeout_s: float = Field(default=30.0, ge=0.01)
    tool_max_retries: int = Field(default=1, ge=0)
    tool_retry_backoff_s: float = Field(default=0.5, ge=0.0)

    browser_use_api_key: str = ""
    supermemory_api_key: str = ""
    memory_container_tag: str = "agent_loop_objective"
    agentmail_api_key: str = ""
    slack_bot_token: str = ""
    slack_channel: str = ""
    vercel_token: str = ""

    model_config = SettingsConfigDict(
        env_prefix="AGENT_LOOP_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_anthropic_api_key(self) -> str:
        return self.anthropic_api_key or os.getenv("ANTHROPIC_API_KEY", "")

    def resolved_browser_use_api_key(self) -> str:
        return self.browser_use_api_key or os.getenv("BROWSER_USE_API_KEY", "")

    def resolved_supermemory_api_key(self) -> str:
        return self.supermemory_api_key or os.getenv("SUPERMEMORY_API_KEY", "")

    def resolved_agentmail_api_key(self) -> str:
        return self.agentmail_api_key or os.getenv("AGENTMAIL_API_KEY", "")

    def resolved_slack_bot_token(self) -> str:
        return self.slack_bot_token or os.getenv("SLACK_BOT_TOKEN", "")

    def resolved_slack_channel(self) -> str:
        return self.slack_channel or os.getenv("SLACK_DEFAULT_CHANNEL", "")

    def resolved_vercel_token(self) -> str:
        return self.vercel_token or os.getenv("VERCEL_TOKEN", "")

    def resolved_database_url(self) -> str:
        return self.database_url or os.getenv("DATABASE_URL", "")

    def workspace_path(self) -> Path:
        return Path(self.workspace_dir).expanduser().resolve()

    def state_path(self) -> Path:
        return Path(self.state_file).expanduser().resolve()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
