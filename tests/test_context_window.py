from __future__ import annotations

from datetime import UTC, datetime, timedelta

from tailwatch.suggest.context import EMPTY_CONTEXT, ContextWindow
from tailwatch.types import Snapshot, SnapshotSummary, Trigger


class _Now:
    def __init__(self) -> None:
        self.value = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.value


def _snapshot(trigger: Trigger, tail: str, exit_code: int | None = None) -> Snapshot:
    return Snapshot(id="cmd1", seq=1, trigger=trigger, summary=SnapshotSummary(exit_code=exit_code), tail=tail)


def test_empty_window_renders_placeholder() -> None:
    assert ContextWindow().render() == EMPTY_CONTEXT


def test_render_formats_entries_in_order() -> None:
    window = ContextWindow(now=_Now())
    window.record_command("c1", "Get-ChildItem", "file.txt", exit_code=0)
    window.record_snapshot(_snapshot(Trigger.ON_ERROR, "Access is denied."))

    rendered = window.render()

    assert rendered == (
        "--- Context Entry [user_executed] 2026-01-02 03:04:05 (exit: 0) ---\n"
        "Command: Get-ChildItem\n"
        "file.txt\n"
        "---\n"
        "--- Context Entry [onError] 2026-01-02 03:04:05 ---\n"
        "Access is denied."
    )


def test_render_truncates_long_tails() -> None:
    window = ContextWindow(now=_Now())
    window.record_snapshot(_snapshot(Trigger.ON_VOLUME, "x" * 500 + "END"))

    body = window.render().split("\n", 1)[1]

    assert len(body) == 200
    assert body.endswith("END")


def test_depth_bounds_entries() -> None:
    window = ContextWindow(depth=2)
    for index in range(3):
        window.record_command(f"c{index}", f"cmd{index}")

    assert len(window) == 2
    assert [entry.id for entry in window.entries] == ["c1", "c2"]


def test_recent_commands_and_errors() -> None:
    window = ContextWindow()
    window.record_command("c1", "ls")
    window.record_command("c2", "pwd", exit_code=1)
    window.record_command("c3", "whoami", exit_code=0)
    window.record_command("c4", "git status")

    assert window.recent_commands() == ["pwd", "whoami", "git status"]
    assert not window.has_recent_error(lookback=2)
    assert window.has_recent_error(lookback=3)
    last_error = window.last_error()
    assert last_error is not None
    assert last_error.id == "c2"


def test_summary_reports_age() -> None:
    now = _Now()
    window = ContextWindow(now=now)
    window.record_snapshot(_snapshot(Trigger.ON_EXIT, "done", exit_code=2))
    now.value += timedelta(seconds=30)

    summary = window.summary()

    assert summary.total_entries == 1
    assert summary.has_recent_errors
    assert summary.context_age_seconds == 30.0
    window.clear()
    assert window.summary().total_entries == 0
