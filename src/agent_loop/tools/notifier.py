"""Outbound operator notifications over Slack."""

from __future__ import annotations

import logging

from agent_loop.state.models import ProviderHealth
from agent_loop.tools.http import ProviderError, health, request_json
from agent_loop.tools.schemas import NotifyInput, NotifyOutput

logger = logging.getLogger(__name__)

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"


class SlackNotifier:
    def __init__(self, bot_token: str, channel: str, *, timeout_s: float = 30.0) -> None:
        self.bot_token = bot_token
        self.channel = channel
        self.timeout_s = timeout_s

    def is_configured(self) -> bool:
        return bool(self.bot_token and self.channel)

    def health(self) -> ProviderHealth:
        if self.is_configured():
            return health(True, "Ready")
        return health(False, "Missing SLACK_BOT_TOKEN or SLACK_DEFAULT_CHANNEL")

    def post(self, payload: NotifyInput) -> NotifyOutput:
        if not self.is_configured():
            raise ProviderError("Slack is not configured")
        response = request_json(
            SLACK_POST_MESSAGE_URL,
            method="POST",
            headers={"Authorization": f"Bearer {self.bot_token}"},
            body={
                "channel": self.channel,
                "text": payload.text,
                "unfurl_links": False,
                "unfurl_media": False,
            },
            timeout_s=self.timeout_s,
        )
        data = response.data if isinstance(response.data, dict) else {}
        # Slack reports API errors with HTTP 200 and ok=false.
        if not response.ok or not data.get("ok"):
            raise ProviderError(data.get("error") or response.error or "Slack post failed")
        return NotifyOutput(ok=True, ts=data.get("ts"))

    def notify(self, text: str) -> str | None:
        """Post *text*; return ``None`` on success or the reason it was not sent."""
        if not self.is_configured():
            return "not configured"
        try:
            self.post(NotifyInput(text=text))
        except ProviderError as exc:
            logger.warning("slack notification failed reason=%s", exc)
            return str(exc)
        return None
