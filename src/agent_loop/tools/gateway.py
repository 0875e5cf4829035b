"""Schema-enforcing capability gateway with timeout/retry telemetry."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from typing import Any

from pydantic import ValidationError

from agent_loop.decision.base import CancellationToken
from agent_loop.tools.registry import CapabilitySpec

logger = logging.getLogger(__name__)


class CapabilityGateway:
    """Execute registered capabilities with strict validation and retry/timeout controls.

    Results are plain dicts with ``status`` one of ``ok``, ``failed`` or
    ``skipped``; nothing a capability raises escapes ``execute``.
    """

    def __init__(
        self,
        *,
        registry: dict[str, CapabilitySpec],
        timeout_s: float = 30.0,
        max_retries: int = 0,
        backoff_s: float = 0.0,
    ) -> None:
        self.registry = registry
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.backoff_s = backoff_s

    def is_ready(self, name: str) -> bool:
        spec = self.registry.get(name)
        return spec is not None and spec.ready()

    def execute(
        self,
        name: str,
        args: dict[str, Any],
        cancel: CancellationToken | None = None,
    ) -> dict[str, Any]:
        started_at = time.perf_counter()
        spec = self.registry.get(name)
        implementation = spec.implementation if spec is not None else "unknown"

        if spec is not None and not spec.ready():
            logger.info("capability skipped name=%s reason=not configured", name)
            return {
                "capability": name,
                "status": "skipped",
                "error": f"{implementation} is not configured",
                "implementation": implementation,
                "attempts": 0,
                "duration_ms": _duration_ms(started_at),
            }

        attempts = 0
        final_error = "unknown error"
        for attempt in range(self.max_retries + 1):
            attempts = attempt + 1
            try:
                output = self._execute_once(name, args)
                return {
                    "capability": name,
                    "status": "ok",
                    "output": output,
                    "implementation": implementation,
                    "attempts": attempts,
                    "duration_ms": _duration_ms(started_at),
                }
            except ValidationError as exc:
                final_error = f"invalid input: {exc.errors()[0].get('msg', 'validation error')}"
                break
            except Exception as exc:  # noqa: BLE001
                final_error = str(exc)
                logger.warning(
                    "capability failed name=%s attempt=%d/%d reason=%s",
                    name,
                    attempts,
                    self.max_retries + 1,
                    final_error,
                )
                if cancel is not None and cancel.cancelled:
                    break
                if attempt < self.max_retries and self.backoff_s > 0:
                    time.sleep(self.backoff_s)

        return {
            "capability": name,
            "status": "failed",
            "error": final_error,
            "implementation": implementation,
            "attempts": attempts,
            "duration_ms": _duration_ms(started_at),
        }

    def _execute_once(self, name: str, args: dict[str, Any]) -> dict[str, Any]:
        spec = self.registry.get(name)
        if spec is None:
            raise ValueError(f"Unknown capability: {name}")

        payload = spec.input_model.model_validate(args)
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"capability-{name}")
        try:
            future = pool.submit(spec.fn, payload)
            try:
                raw_output = future.result(timeout=self.timeout_s)
            except TimeoutError as exc:
                raise TimeoutError(f"timed out after {self.timeout_s:.2f}s") from exc
        finally:
            pool.shutdown(wait=False)

        if isinstance(raw_output, spec.output_model):
            return raw_output.model_dump(mode="json")
        return spec.output_model.model_validate(raw_output).model_dump(mode="json")


def _duration_ms(started_at: float) -> float:
    return round((time.perf_counter() - started_at) * 1000.0, 2)
