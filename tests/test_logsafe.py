from __future__ import annotations

from pyprovide._logsafe import summarize_for_log
from pyprovide.quests import Quest


def test_summarize_for_log_dumps_models() -> None:
    summary = summarize_for_log((Quest(id=1, text="Complete a Dungeon"),))

    assert summary == [{"id": 1, "text": "Complete a Dungeon", "done": False}]


def test_summarize_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    summary = summarize_for_log({"value": long_value}, max_string=10)
    assert summary["value"].startswith("x" * 10)
    assert "<truncated>" in summary["value"]


def test_summarize_for_log_bounds_collections() -> None:
    summary = summarize_for_log(list(range(30)), max_items=3)
    assert summary == [0, 1, 2, "<27 more>"]

    mapping = summarize_for_log({str(i): i for i in range(5)}, max_items=2)
    assert mapping == {"0": 0, "1": 1, "…": "<3 more>"}
