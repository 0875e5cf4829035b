"""PostgreSQL-backed run store with automatic table migration."""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from agent_loop.state.models import Run, new_id
from agent_loop.state.transitions import create_initial_run

logger = logging.getLogger(__name__)

DEFAULT_SLOT = "default"


class PostgresRunStore:
    """Persist the run aggregate as a single JSONB row."""

    kind = "postgres"

    def __init__(self, database_url: str, *, slot: str = DEFAULT_SLOT) -> None:
        if not database_url:
            raise ValueError("AGENT_LOOP_DATABASE_URL is required")
        self.database_url = database_url
        self.slot = slot
        self._lock = threading.Lock()
        self._psycopg, self._dict_row, self._json_wrapper = self._load_psycopg()

    def migrate(self) -> None:
        with self._lock, self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS agent_runs (
                    slot TEXT PRIMARY KEY,
                    run_id TEXT NOT NULL,
                    state_json JSONB NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.commit()

    def load(self) -> Run:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT state_json FROM agent_runs WHERE slot = %s",
                (self.slot,),
            ).fetchone()
        if row is None:
            return create_initial_run(new_id("run"))
        try:
            return Run.model_validate(self._parse_json(row["state_json"]))
        except (ValueError, ValidationError) as exc:
            logger.warning("run row unreadable, starting fresh slot=%s reason=%s", self.slot, exc)
            return create_initial_run(new_id("run"))

    def save(self, run: Run) -> None:
        now = datetime.now(tz=UTC)
        payload = self._json_wrapper(run.model_dump(mode="json"))
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO agent_runs (slot, run_id, state_json, updated_at)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (slot) DO UPDATE
                SET run_id = EXCLUDED.run_id,
                    state_json = EXCLUDED.state_json,
                    updated_at = EXCLUDED.updated_at
                """,
                (self.slot, run.run_id, payload, now),
            )
            conn.commit()

    def _connect(self) -> Any:
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
            from psycopg.types.json import Json
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row, Json

    @staticmethod
    def _parse_json(raw: Any) -> dict[str, Any]:
        parsed = json.loads(raw) if isinstance(raw, str) else raw
        if not isinstance(parsed, dict):
            raise ValueError("state_json is not an object")
        return parsed
