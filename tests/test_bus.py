from __future__ import annotations

import pytest
from loguru import logger

from tailwatch.bus import CallbackSink, LoggingSessionLog, QueueSink
from tailwatch.suggest.models import Suggestion
from tailwatch.types import Snapshot, SnapshotSummary, Trigger


def _snapshot(seq: int = 1) -> Snapshot:
    return Snapshot(id="cmd1", seq=seq, trigger=Trigger.ON_EXIT, summary=SnapshotSummary(exit_code=0), tail="ok")


@pytest.mark.asyncio
async def test_queue_sink_delivers_in_order() -> None:
    sink = QueueSink()
    sink.on_snapshot(_snapshot(1))
    sink.on_snapshot(_snapshot(2))
    sink.on_suggestion(Suggestion(id="cmd1", snapshot_seq=1))

    first = await sink.next_snapshot(timeout_seconds=0.1)
    assert first is not None and first.seq == 1
    assert [s.seq for s in sink.drain_snapshots()] == [2]
    suggestion = await sink.next_suggestion(timeout_seconds=0.1)
    assert suggestion is not None and suggestion.snapshot_seq == 1
    assert await sink.next_snapshot(timeout_seconds=0.01) is None


def test_callback_sink_ignores_missing_callbacks() -> None:
    seen: list[Snapshot] = []
    sink = CallbackSink(on_snapshot=seen.append)

    sink.on_snapshot(_snapshot())
    sink.on_suggestion(Suggestion(id="cmd1"))

    assert len(seen) == 1


def test_session_log_writes_structured_line() -> None:
    records: list[dict] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="INFO")
    try:
        session_log = LoggingSessionLog()
        session_log.set_context("ssh:build-host", "/srv/app")
        session_log.append(_snapshot(3))
    finally:
        logger.remove(handler_id)

    record = next(r for r in records if r["message"].startswith("session.snapshot"))
    assert "seq=3" in record["message"]
    assert record["extra"] == {"component": "bus", "target": "ssh:build-host", "cwd": "/srv/app"}
