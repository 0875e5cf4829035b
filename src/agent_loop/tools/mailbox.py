"""AgentMail client: provisions the run's inbox."""

from __future__ import annotations

from agent_loop.state.models import ProviderHealth
from agent_loop.tools.http import ProviderError, health, request_json
from agent_loop.tools.schemas import MailboxInput, MailboxOutput

AGENTMAIL_BASE_URL = "https://api.agentmail.to/v0"


class AgentMailClient:
    def __init__(self, api_key: str, *, timeout_s: float = 30.0) -> None:
        self.api_key = api_key
        self.timeout_s = timeout_s

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def health(self) -> ProviderHealth:
        return health(self.is_configured(), "Ready" if self.is_configured() else "Missing AGENTMAIL_API_KEY")

    def create_inbox(self, payload: MailboxInput) -> MailboxOutput:
        body = {"username": payload.username} if payload.username else {}
        response = request_json(
            f"{AGENTMAIL_BASE_URL}/inboxes",
            method="POST",
            headers={"Authorization": f"Bearer {self.api_key}"},
            body=body,
            timeout_s=self.timeout_s,
        )
        if not response.ok:
            raise ProviderError(response.error or "Mailbox creation failed")
        data = response.data if isinstance(response.data, dict) else {}
        address = data.get("address") or data.get("inbox_id")
        if not address:
            raise ProviderError("AgentMail did not return an inbox address")
        return MailboxOutput(address=str(address), created_at=data.get("created_at"))
