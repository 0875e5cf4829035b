from datetime import UTC, datetime

import pytest

from agent_loop.plan.document import PlanDocument, PlanSyncError, parse_plan, reduce_plan_text
from agent_loop.plan.sync import reconcile_tasks
from agent_loop.state.models import Run, Task

PLAN_TEXT = """# Launch plan

Some prose the agent wrote.

- [ ] write-copy | agent | Write landing copy | Draft hero and CTA
- [x] pick-name | agent | Pick a name | Shortlist three names
- [ ] scan-market | research | Scan competitors | Look at pricing pages
- [ ] write-copy | shell | Duplicate id | Should be ignored
- [ ] odd-path | teleport | Odd path | Unknown paths fall back
- [ ] Bad_Id | agent | Bad id | Not a task line
"""


def test_parse_plan_assigns_priority_by_position() -> None:
    tasks = parse_plan(PLAN_TEXT)

    assert [task.id for task in tasks] == ["write-copy", "pick-name", "scan-market", "odd-path"]
    assert [task.priority for task in tasks] == [100, 99, 98, 97]
    assert tasks[1].status == "completed"
    assert tasks[0].execution_path == "agent"
    assert tasks[2].execution_path == "research"


def test_parse_plan_first_duplicate_wins_and_unknown_path_is_agent() -> None:
    tasks = {task.id: task for task in parse_plan(PLAN_TEXT)}

    assert tasks["write-copy"].title == "Write landing copy"
    assert tasks["odd-path"].execution_path == "agent"


def test_parse_plan_priority_floor_is_one() -> None:
    text = "".join(f"- [ ] t{index} | agent | Task {index} | Do it\n" for index in range(120))
    tasks = parse_plan(text)
    assert tasks[0].priority == 100
    assert tasks[99].priority == 1
    assert tasks[119].priority == 1


def test_parse_is_idempotent(tmp_path) -> None:
    document = PlanDocument(tmp_path / "PLAN.md")
    document.path.write_text(PLAN_TEXT, encoding="utf-8")

    first = [task.model_dump(exclude={"updated_at"}) for task in document.parse() or []]
    second = [task.model_dump(exclude={"updated_at"}) for task in document.parse() or []]
    assert first == second


def test_missing_document_parses_to_none(tmp_path) -> None:
    assert PlanDocument(tmp_path / "PLAN.md").parse() is None


def test_mark_completed_flips_only_the_target_line(tmp_path) -> None:
    document = PlanDocument(tmp_path / "PLAN.md")
    original = PLAN_TEXT.encode("utf-8")
    document.path.write_bytes(original)

    assert document.mark_completed("scan-market") is True

    expected = original.replace(
        b"- [ ] scan-market | research", b"- [x] scan-market | research"
    )
    assert document.path.read_bytes() == expected


def test_mark_completed_preserves_crlf_line_endings(tmp_path) -> None:
    document = PlanDocument(tmp_path / "PLAN.md")
    original = b"# Plan\r\n- [ ] a-task | agent | A | First\r\n- [ ] b-task | agent | B | Second\r\n"
    document.path.write_bytes(original)

    assert document.mark_completed("b-task") is True
    assert document.path.read_bytes() == original.replace(b"- [ ] b-task", b"- [x] b-task")


def test_mark_completed_reports_missing_or_already_checked(tmp_path) -> None:
    document = PlanDocument(tmp_path / "PLAN.md")
    document.path.write_text(PLAN_TEXT, encoding="utf-8")

    assert document.mark_completed("pick-name") is False
    assert document.mark_completed("no-such-task") is False
    assert document.path.read_text(encoding="utf-8") == PLAN_TEXT


def test_reduce_plan_text_keeps_only_task_lines() -> None:
    raw = (
        "Here is the plan:\n"
        "```markdown\n"
        "## Now\n"
        "- [ ] alpha | agent | Alpha | First thing\n"
        "\n\n\n"
        "  - [x] beta | notify | Beta | Tell operator\n"
        "- [ ] alpha | agent | Alpha again | Dropped\n"
        "```\n"
    )
    assert reduce_plan_text(raw) == (
        "- [ ] alpha | agent | Alpha | First thing\n"
        "\n"
        "- [x] beta | notify | Beta | Tell operator\n"
    )


def test_replace_rejects_text_without_tasks_and_keeps_file(tmp_path) -> None:
    document = PlanDocument(tmp_path / "PLAN.md")
    document.path.write_text(PLAN_TEXT, encoding="utf-8")

    with pytest.raises(PlanSyncError):
        document.replace("I could not come up with a plan.")
    assert document.path.read_text(encoding="utf-8") == PLAN_TEXT


def test_replace_writes_reduced_document(tmp_path) -> None:
    document = PlanDocument(tmp_path / "PLAN.md")
    tasks = document.replace("# Plan\n- [ ] alpha | agent | Alpha | First thing\n")

    assert [task.id for task in tasks] == ["alpha"]
    assert document.path.read_text(encoding="utf-8") == "- [ ] alpha | agent | Alpha | First thing\n"


def test_reconcile_keeps_outputs_and_in_progress_current_task() -> None:
    stamp = datetime(2024, 1, 1, tzinfo=UTC)
    run = Run(
        run_id="run_1",
        current_task_id="write-copy",
        tasks=[
            Task(id="write-copy", title="Write landing copy", description="Draft hero and CTA",
                 priority=100, status="in_progress", output="partial", updated_at=stamp),
            Task(id="pick-name", title="Pick a name", description="Shortlist three names",
                 priority=99, status="completed", updated_at=stamp),
            Task(id="gone", title="Gone", updated_at=stamp),
        ],
    )
    merged = {task.id: task for task in reconcile_tasks(run, parse_plan(PLAN_TEXT))}

    assert "gone" not in merged
    assert merged["write-copy"].status == "in_progress"
    assert merged["write-copy"].output == "partial"
    assert merged["write-copy"].updated_at == stamp
    assert merged["pick-name"].updated_at == stamp
    assert merged["scan-market"].status == "pending"


def test_reconcile_takes_status_from_document() -> None:
    stamp = datetime(2024, 1, 1, tzinfo=UTC)
    run = Run(
        run_id="run_1",
        tasks=[Task(id="scan-market", title="Scan competitors", description="Look at pricing pages",
                    execution_path="research", priority=98, status="failed", updated_at=stamp)],
    )
    merged = {task.id: task for task in reconcile_tasks(run, parse_plan(PLAN_TEXT))}

    assert merged["scan-market"].status == "pending"
    assert merged["scan-market"].updated_at != stamp


def test_reconcile_keeps_rejected_task_failed() -> None:
    run = Run(run_id="run_1", rejected_task_ids=["scan-market"])
    merged = {task.id: task for task in reconcile_tasks(run, parse_plan(PLAN_TEXT))}

    assert merged["scan-market"].status == "failed"
    assert merged["write-copy"].status == "pending"


def test_invalid_utf8_lines_still_parse(tmp_path) -> None:
    document = PlanDocument(tmp_path / "PLAN.md")
    document.path.write_bytes(b"- [ ] a-task | agent | A | caf\xe9\n- [ ] b-task | agent | B | Second\n")

    tasks = document.parse()

    assert tasks is not None
    assert [task.id for task in tasks] == ["a-task", "b-task"]


def test_mark_completed_leaves_undecodable_bytes_alone(tmp_path) -> None:
    document = PlanDocument(tmp_path / "PLAN.md")
    original = b"# Caf\xe9 plan\r\n- [ ] a-task | agent | A | caf\xe9\r\n- [ ] b-task | agent | B | Second\r\n"
    document.path.write_bytes(original)

    assert document.mark_completed("a-task") is True
    assert document.path.read_bytes() == original.replace(b"- [ ] a-task", b"- [x] a-task")
