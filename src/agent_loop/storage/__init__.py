"""Run store backends."""

from agent_loop.config.settings import Settings
from agent_loop.storage.base import RunStore
from agent_loop.storage.file import FileRunStore
from agent_loop.storage.memory import InMemoryRunStore
from agent_loop.storage.postgres import PostgresRunStore


def build_store(settings: Settings) -> RunStore:
    """Postgres when a database URL is configured, the JSON file otherwise."""
    database_url = settings.resolved_database_url()
    if database_url:
        store = PostgresRunStore(database_url)
        store.migrate()
        return store
    return FileRunStore(settings.state_path())


__all__ = [
    "FileRunStore",
    "InMemoryRunStore",
    "PostgresRunStore",
    "RunStore",
    "build_store",
]
