from agent_loop.grammar import parse_labeled_lines, parse_plan_line, parse_selection_reply


def test_plan_line_round_trips_through_render() -> None:
    line = "- [ ] write-copy | agent | Write landing copy | Draft hero and CTA"
    parsed = parse_plan_line(line)

    assert parsed is not None
    assert parsed.checked is False
    assert parsed.render() == line


def test_plan_line_requires_all_four_fields() -> None:
    assert parse_plan_line("- [ ] write-copy | agent | Write landing copy") is None
    assert parse_plan_line("- [ ] write-copy | agent |  | Draft") is None
    assert parse_plan_line("* [ ] write-copy | agent | Title | Draft") is None


def test_labeled_lines_tolerate_markdown_and_keep_first_value() -> None:
    raw = "\n".join(
        [
            "Here is my pick.",
            "**Objective:** Invoice chaser",
            "- Customer: Agencies",
            "Problem: Late payments",
            "Objective: Something else",
            "Why now:",
            "Why Now: Cheap inference",
        ]
    )
    fields = parse_labeled_lines(raw)

    assert fields["objective"] == "Invoice chaser"
    assert fields["customer"] == "Agencies"
    assert fields["problem"] == "Late payments"
    assert fields["why now"] == "Cheap inference"


def test_selection_reply_reads_task_label() -> None:
    assert parse_selection_reply("Task: write-copy") == "write-copy"
    assert parse_selection_reply("I think so.\n**Task:** `scan-market` because it unblocks pricing") == "scan-market"
    assert parse_selection_reply("write-copy") is None
    assert parse_selection_reply("") is None
