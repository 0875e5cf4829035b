from __future__ import annotations

import json
import logging
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from typing import Any
from urllib import error, request
from uuid import uuid4

from agent_loop.decision.base import (
    CancellationToken,
    DecisionOptions,
    DecisionResult,
    fallback_text,
)

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
CONTINUE_PROMPT = "Continue exactly where you stopped."
MAX_SESSIONS = 32
POLL_INTERVAL_S = 0.1


class DecisionRequestError(RuntimeError):
    """One provider call failed; retried until the budget runs out."""


class AnthropicDecisionEngine:
    """Decision engine backed by the Anthropic Messages REST API."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        light_model: str = "claude-3-5-haiku-20241022",
        base_url: str = "https://api.anthropic.com/v1",
        timeout_s: float = 120.0,
        max_retries: int = 2,
        backoff_s: float = 1.0,
        max_tokens: int = 1500,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.light_model = light_model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max(0, max_retries)
        self.backoff_s = max(0.0, backoff_s)
        self.max_tokens = max_tokens
        self._sessions: OrderedDict[str, list[dict[str, Any]]] = OrderedDict()

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def complete(
        self,
        prompt: str,
        options: DecisionOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> DecisionResult:
        options = options or DecisionOptions()
        cancel = cancel or CancellationToken()
        if not self.api_key:
            return DecisionResult(text=fallback_text("ANTHROPIC_API_KEY is not configured"), fallback=True)

        session_id = options.session_id if options.continue_session else None
        history = list(self._sessions.get(session_id, [])) if session_id else []
        session_id = session_id or f"session_{uuid4().hex[:12]}"
        messages = [*history, {"role": "user", "content": prompt}]
        model = self.light_model if options.lightweight else self.model
        timeout_s = options.timeout_s if options.timeout_s is not None else self.timeout_s
        retries = self.max_retries if options.retries is None else max(0, options.retries)

        turns = 0
        texts: list[str] = []
        while turns < max(1, options.max_turns):
            if cancel.cancelled:
                return DecisionResult.aborted_result(turns=turns, session_id=session_id)
            payload = {"model": model, "max_tokens": self.max_tokens, "messages": messages}
            try:
                response_json = self._request_with_retry(
                    payload, timeout_s=timeout_s, retries=retries, cancel=cancel
                )
            except _Aborted:
                return DecisionResult.aborted_result(turns=turns, session_id=session_id)
            except (TimeoutError, DecisionRequestError, OSError) as exc:
                logger.warning("decision engine exhausted retries model=%s reason=%s", model, exc)
                return DecisionResult(
                    text=fallback_text(str(exc)),
                    turns=turns,
                    session_id=session_id,
                    fallback=True,
                )
            turns += 1
            text = self._extract_text(response_json)
            texts.append(text)
            messages = [*messages, {"role": "assistant", "content": text}]
            if response_json.get("stop_reason") != "max_tokens":
                break
            messages = [*messages, {"role": "user", "content": CONTINUE_PROMPT}]

        self._remember(session_id, messages)
        return DecisionResult(text="\n".join(texts).strip(), turns=turns, session_id=session_id)

    def _remember(self, session_id: str, messages: list[dict[str, Any]]) -> None:
        self._sessions[session_id] = messages
        self._sessions.move_to_end(session_id)
        while len(self._sessions) > MAX_SESSIONS:
            self._sessions.popitem(last=False)

    def _request_with_retry(
        self,
        payload: dict[str, Any],
        *,
        timeout_s: float,
        retries: int,
        cancel: CancellationToken,
    ) -> dict[str, Any]:
        last_error: Exception | None = None
        for attempt in range(retries + 1):
            try:
                response_json = _call_cancellable(
                    lambda: self._request(payload, timeout_s=timeout_s),
                    timeout_s=timeout_s,
                    cancel=cancel,
                )
                if not self._extract_text(response_json):
                    raise DecisionRequestError("Anthropic returned no text")
                return response_json
            except _Aborted:
                raise
            except (TimeoutError, DecisionRequestError, OSError) as exc:
                last_error = exc
                logger.warning(
                    "Anthropic request failed attempt=%d/%d model=%s reason=%s",
                    attempt + 1,
                    retries + 1,
                    payload.get("model"),
                    exc,
                )
                if attempt < retries and self.backoff_s > 0 and cancel.wait(self.backoff_s):
                    raise _Aborted() from exc
        if last_error is None:
            raise RuntimeError("Decision request failed with unknown error")
        raise last_error

    def _request(self, payload: dict[str, Any], timeout_s: float) -> dict[str, Any]:
        req = request.Request(
            url=f"{self.base_url}/messages",
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
        )
        try:
            with request.urlopen(req, timeout=timeout_s) as response:
                body = response.read().decode("utf-8")
        except error.HTTPError as exc:
            raw = exc.read().decode("utf-8", errors="replace")
            raise DecisionRequestError(
                f"Anthropic request failed with status {exc.code}: {raw[:400]}"
            ) from exc
        except error.URLError as exc:
            raise DecisionRequestError(f"Anthropic request failed: {exc.reason}") from exc

        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise DecisionRequestError("Anthropic returned non-JSON response") from exc

    @staticmethod
    def _extract_text(response_json: dict[str, Any]) -> str:
        content = response_json.get("content")
        if not isinstance(content, list):
            return ""
        segments = [
            block["text"]
            for block in content
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
        ]
        return "\n".join(segments).strip()


class _Aborted(Exception):
    pass


def _call_cancellable(fn, *, timeout_s: float, cancel: CancellationToken) -> Any:
    """Run *fn* in a worker thread, giving up on timeout or cancellation.

    An abandoned worker finishes in the background; its result is discarded.
    """
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="decision-call")
    try:
        future = pool.submit(fn)
        deadline = time.monotonic() + timeout_s
        while True:
            if cancel.cancelled:
                future.cancel()
                raise _Aborted()
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                future.cancel()
                raise TimeoutError(f"Decision call timed out after {timeout_s:.2f}s")
            try:
                return future.result(timeout=min(POLL_INTERVAL_S, remaining))
            except TimeoutError:
                if future.done():
                    raise
                continue
    finally:
        pool.shutdown(wait=False)
