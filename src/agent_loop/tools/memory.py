"""Supermemory client: long-term memory add and recall."""

from __future__ import annotations

from agent_loop.state.models import ProviderHealth
from agent_loop.tools.http import ProviderError, health, request_json
from agent_loop.tools.schemas import (
    MemoryAddInput,
    MemoryAddOutput,
    MemorySearchInput,
    MemorySearchOutput,
)

SUPERMEMORY_BASE_URL = "https://api.supermemory.ai/v3"


class SupermemoryClient:
    def __init__(self, api_key: str, *, timeout_s: float = 30.0) -> None:
        self.api_key = api_key
        self.timeout_s = timeout_s

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def health(self) -> ProviderHealth:
        return health(self.is_configured(), "Ready" if self.is_configured() else "Missing SUPERMEMORY_API_KEY")

    def add(self, payload: MemoryAddInput) -> MemoryAddOutput:
        response = request_json(
            f"{SUPERMEMORY_BASE_URL}/memories",
            method="POST",
            headers={"Authorization": f"Bearer {self.api_key}"},
            body={"content": payload.content, "containerTag": payload.container_tag},
            timeout_s=self.timeout_s,
        )
        if not response.ok:
            raise ProviderError(response.error or "Supermemory add failed")
        data = response.data if isinstance(response.data, dict) else {}
        return MemoryAddOutput(memory_id=data.get("id"), status=str(data.get("status") or "stored"))

    def recall(self, payload: MemorySearchInput) -> MemorySearchOutput:
        """Return up to ``limit`` non-empty chunk texts, best results first."""
        response = request_json(
            f"{SUPERMEMORY_BASE_URL}/search",
            method="POST",
            headers={"Authorization": f"Bearer {self.api_key}"},
            body={
                "q": payload.query,
                "containerTag": payload.container_tag,
                "searchMode": "hybrid",
                "limit": 5,
            },
            timeout_s=self.timeout_s,
        )
        if not response.ok:
            raise ProviderError(response.error or "Supermemory search failed")
        data = response.data if isinstance(response.data, dict) else {}
        snippets: list[str] = []
        for result in data.get("results") or []:
            for chunk in result.get("chunks") or []:
                content = (chunk.get("content") or "").strip()
                if not content:
                    continue
                snippets.append(content)
                if len(snippets) >= payload.limit:
                    return MemorySearchOutput(snippets=snippets)
        return MemorySearchOutput(snippets=snippets)
