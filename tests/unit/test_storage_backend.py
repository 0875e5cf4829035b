import pytest

from agent_loop.config.settings import Settings
from agent_loop.state.models import Run, Task
from agent_loop.storage import FileRunStore, InMemoryRunStore, PostgresRunStore, build_store


def test_file_store_round_trip(tmp_path) -> None:
    store = FileRunStore(tmp_path / "state" / "run.json")
    run = Run(run_id="run_1", mode="planning", tasks=[Task(id="a", title="A")])

    store.save(run)
    loaded = store.load()

    assert loaded == run
    assert not list((tmp_path / "state").glob("*.tmp"))


def test_file_store_missing_file_starts_fresh(tmp_path) -> None:
    loaded = FileRunStore(tmp_path / "run.json").load()

    assert loaded.run_id.startswith("run_")
    assert loaded.mode == "discovery"
    assert loaded.tasks == []


def test_file_store_corrupt_file_starts_fresh(tmp_path) -> None:
    path = tmp_path / "run.json"
    path.write_text("{not json", encoding="utf-8")

    loaded = FileRunStore(path).load()
    assert loaded.mode == "discovery"


def test_file_store_undecodable_file_starts_fresh(tmp_path) -> None:
    path = tmp_path / "run.json"
    path.write_bytes(b"\xff\xfe{garbage")

    loaded = FileRunStore(path).load()
    assert loaded.mode == "discovery"
    assert loaded.tasks == []


def test_in_memory_store_returns_copies() -> None:
    store = InMemoryRunStore(Run(run_id="run_1"))
    first = store.load()
    store.save(first.model_copy(update={"mode": "planning"}))

    assert store.load().mode == "planning"
    assert store.saves == 1


def test_postgres_store_requires_url() -> None:
    with pytest.raises(ValueError):
        PostgresRunStore("")


def test_build_store_defaults_to_file(tmp_path) -> None:
    store = build_store(Settings(state_file=str(tmp_path / "run.json")))
    assert store.kind == "file"
