"""Browser Use client: hosted browser research tasks."""

from __future__ import annotations

from agent_loop.state.models import ProviderHealth
from agent_loop.tools.http import ProviderError, health, request_json
from agent_loop.tools.schemas import ResearchInput, ResearchOutput

BROWSER_USE_TASKS_URL = "https://api.browser-use.com/api/v2/tasks"


class BrowserUseClient:
    def __init__(self, api_key: str, *, timeout_s: float = 30.0) -> None:
        self.api_key = api_key
        self.timeout_s = timeout_s

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def health(self) -> ProviderHealth:
        if not self.api_key:
            return health(False, "Missing BROWSER_USE_API_KEY")
        return health(True, "Configured. Reachability is validated on the first real task.")

    def run_task(self, payload: ResearchInput) -> ResearchOutput:
        response = request_json(
            BROWSER_USE_TASKS_URL,
            method="POST",
            headers={"X-Browser-Use-API-Key": self.api_key},
            body={"task": payload.task, "maxSteps": payload.max_steps},
            timeout_s=self.timeout_s,
        )
        data = response.data if isinstance(response.data, dict) else {}
        if not response.ok:
            raise ProviderError(data.get("detail") or response.error or "Browser Use request failed")
        task_id = data.get("id") or data.get("task_id")
        if not task_id:
            raise ProviderError(data.get("detail") or "Browser Use did not return a task id")
        return ResearchOutput(
            task_id=str(task_id),
            status=str(data.get("status") or "queued"),
            live_url=data.get("liveUrl") or data.get("live_url"),
            session_id=data.get("sessionId"),
        )
