"""Snapshot and suggestion delivery to collaborators."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol

from tailwatch.logging_utils import component_logger
from tailwatch.suggest.models import Suggestion
from tailwatch.types import Snapshot

logger = component_logger("bus")


class SnapshotSink(Protocol):
    """Narrow observer the engine calls synchronously."""

    def on_snapshot(self, snapshot: Snapshot) -> None: ...

    def on_suggestion(self, suggestion: Suggestion) -> None: ...


class SessionLog(Protocol):
    """Receives every snapshot for the session record."""

    def append(self, snapshot: Snapshot) -> None: ...


class NullSink:
    def on_snapshot(self, snapshot: Snapshot) -> None:
        return None

    def on_suggestion(self, suggestion: Suggestion) -> None:
        return None


class CallbackSink:
    """Forward events to plain callables."""

    def __init__(
        self,
        on_snapshot: Callable[[Snapshot], None] | None = None,
        on_suggestion: Callable[[Suggestion], None] | None = None,
    ) -> None:
        self._on_snapshot = on_snapshot
        self._on_suggestion = on_suggestion

    def on_snapshot(self, snapshot: Snapshot) -> None:
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)

    def on_suggestion(self, suggestion: Suggestion) -> None:
        if self._on_suggestion is not None:
            self._on_suggestion(suggestion)


class QueueSink:
    """In-memory async queues for snapshot and suggestion events."""

    def __init__(self) -> None:
        self._snapshots: asyncio.Queue[Snapshot] = asyncio.Queue()
        self._suggestions: asyncio.Queue[Suggestion] = asyncio.Queue()

    def on_snapshot(self, snapshot: Snapshot) -> None:
        self._snapshots.put_nowait(snapshot)

    def on_suggestion(self, suggestion: Suggestion) -> None:
        self._suggestions.put_nowait(suggestion)

    async def next_snapshot(self, timeout_seconds: float | None = None) -> Snapshot | None:
        if timeout_seconds is None:
            return await self._snapshots.get()
        try:
            return await asyncio.wait_for(self._snapshots.get(), timeout=timeout_seconds)
        except TimeoutError:
            return None

    async def next_suggestion(self, timeout_seconds: float | None = None) -> Suggestion | None:
        if timeout_seconds is None:
            return await self._suggestions.get()
        try:
            return await asyncio.wait_for(self._suggestions.get(), timeout=timeout_seconds)
        except TimeoutError:
            return None

    def drain_snapshots(self) -> list[Snapshot]:
        drained: list[Snapshot] = []
        while not self._snapshots.empty():
            drained.append(self._snapshots.get_nowait())
        return drained


class LoggingSessionLog:
    """Session record kept in the process log."""

    def __init__(self, *, target: str = "local", cwd: str | None = None) -> None:
        self.target = target
        self.cwd = cwd

    def set_context(self, target: str, cwd: str | None) -> None:
        self.target = target
        self.cwd = cwd

    def append(self, snapshot: Snapshot) -> None:
        logger.bind(target=self.target, cwd=self.cwd).info(
            "session.snapshot id={} seq={} trigger={} exit_code={} elapsed_ms={} bytes={} redactions={}",
            snapshot.id,
            snapshot.seq,
            snapshot.trigger,
            snapshot.summary.exit_code,
            snapshot.summary.elapsed_ms,
            snapshot.summary.bytes,
            len(snapshot.redactions),
        )
