"""At-most-one-active-cycle scheduling with trigger coalescing."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

# Triggers an incoming ``interval`` may never overwrite.
STICKY_TRIGGERS = ("manual", "startup", "interrupt")


def coalesce(recorded: str | None, incoming: str) -> str:
    """Pick the trigger to keep in the single pending slot."""
    if incoming == "interval" and recorded in STICKY_TRIGGERS:
        return recorded
    return incoming


class CycleScheduler:
    """Runs ``cycle_fn(trigger)`` so that at most one cycle is active.

    Triggers arriving while a cycle runs collapse into one pending slot; when
    the active cycle ends the slot is cleared under the lock and exactly one
    follow-up cycle starts with the recorded trigger.
    """

    def __init__(self, cycle_fn: Callable[[str], Any], *, name: str = "agent-loop-cycle") -> None:
        self._cycle_fn = cycle_fn
        self._name = name
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._active: str | None = None
        self._pending: str | None = None
        self._last_result: Any = None

    @property
    def active_trigger(self) -> str | None:
        with self._lock:
            return self._active

    @property
    def pending_trigger(self) -> str | None:
        with self._lock:
            return self._pending

    def request(self, trigger: str) -> bool:
        """Start a background cycle, or record *trigger* if one is active.

        Returns ``True`` when a new cycle was started.
        """
        if not self._claim(trigger):
            logger.info("cycle request coalesced trigger=%s pending=%s", trigger, self.pending_trigger)
            return False
        thread = threading.Thread(target=self._drain, args=(trigger,), name=self._name, daemon=True)
        thread.start()
        return True

    def run_now(self, trigger: str, timeout: float | None = None) -> Any:
        """Run a cycle in the caller's thread and return its result.

        When a cycle is already active the trigger is recorded and the call
        waits for the drain (including the follow-up) to finish.
        """
        if self._claim(trigger):
            self._drain(trigger)
        else:
            self.wait_idle(timeout)
        return self._last_result

    def wait_idle(self, timeout: float | None = None) -> bool:
        with self._idle:
            return self._idle.wait_for(lambda: self._active is None, timeout)

    def _claim(self, trigger: str) -> bool:
        with self._lock:
            if self._active is not None:
                self._pending = coalesce(self._pending, trigger)
                return False
            self._active = trigger
            return True

    def _drain(self, trigger: str) -> None:
        current: str | None = trigger
        while current is not None:
            self._run_one(current)
            with self._lock:
                current, self._pending = self._pending, None
                self._active = current
                if current is None:
                    self._idle.notify_all()

    def _run_one(self, trigger: str) -> None:
        logger.info("cycle starting trigger=%s", trigger)
        try:
            self._last_result = self._cycle_fn(trigger)
        except Exception:
            logger.exception("cycle raised trigger=%s", trigger)


class IntervalTimer:
    """Daemon thread calling ``callback`` every ``interval_s`` until stopped."""

    def __init__(self, interval_s: float, callback: Callable[[], Any], *, name: str = "agent-loop-timer") -> None:
        self.interval_s = interval_s
        self._callback = callback
        self._name = name
        self._lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._stop_event is not None and not self._stop_event.is_set()

    def start(self) -> bool:
        with self._lock:
            if self._stop_event is not None and not self._stop_event.is_set():
                return False
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._thread = threading.Thread(
                target=self._run, args=(stop_event,), name=self._name, daemon=True
            )
            self._thread.start()
        logger.info("interval timer started interval_s=%.1f", self.interval_s)
        return True

    def stop(self) -> bool:
        with self._lock:
            if self._stop_event is None or self._stop_event.is_set():
                return False
            self._stop_event.set()
        logger.info("interval timer stopped")
        return True

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval_s):
            try:
                self._callback()
            except Exception:
                logger.exception("interval callback raised")
