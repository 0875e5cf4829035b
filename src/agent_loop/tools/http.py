"""Minimal JSON-over-HTTP helper shared by the provider clients."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib import error, request

from agent_loop.state.models import ProviderHealth

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class JsonResponse:
    ok: bool
    status: int
    data: Any = None
    error: str | None = None


def request_json(
    url: str,
    *,
    method: str = "GET",
    headers: dict[str, str] | None = None,
    body: Any = None,
    timeout_s: float = DEFAULT_TIMEOUT_S,
) -> JsonResponse:
    """Send one request and decode the JSON reply.

    Transport and HTTP failures come back as ``ok=False`` with an error string;
    this function does not raise for them.
    """
    req = request.Request(
        url=url,
        data=None if body is None else json.dumps(body).encode("utf-8"),
        method=method,
        headers={"Content-Type": "application/json", **(headers or {})},
    )
    try:
        with request.urlopen(req, timeout=timeout_s) as response:
            return JsonResponse(ok=True, status=response.status, data=_decode(response.read()))
    except error.HTTPError as exc:
        data = _decode(exc.read())
        message = None
        if isinstance(data, dict):
            message = data.get("error") or data.get("detail") or data.get("message")
        return JsonResponse(
            ok=False,
            status=exc.code,
            data=data,
            error=str(message) if message else f"Request failed with status {exc.code}",
        )
    except (error.URLError, TimeoutError, OSError, ValueError) as exc:
        logger.warning("http request failed method=%s url=%s reason=%s", method, url, exc)
        return JsonResponse(ok=False, status=0, error=str(getattr(exc, "reason", exc)))


def _decode(raw: bytes) -> Any:
    text = raw.decode("utf-8", errors="replace")
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return {"raw": text}


class ProviderError(RuntimeError):
    """A provider answered with a failure; the capability gateway records it."""


def health(ok: bool, message: str) -> ProviderHealth:
    return ProviderHealth(ok=ok, message=message)
