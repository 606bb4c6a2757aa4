"""Rolling context of recent commands and snapshots."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from tailwatch.types import USER_EXECUTED_TRIGGER, ContextEntry, Snapshot

DEFAULT_CONTEXT_DEPTH = 5
TAIL_RENDER_CHARS = 200
ENTRY_SEPARATOR = "\n---\n"
EMPTY_CONTEXT = "No previous context available."
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class ContextSummary:
    total_entries: int
    recent_commands: list[str] = field(default_factory=list)
    has_recent_errors: bool = False
    context_age_seconds: float = 0.0


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ContextWindow:
    """Bounded, chronologically ordered log rendered for the suggestion provider."""

    def __init__(self, depth: int = DEFAULT_CONTEXT_DEPTH, *, now: Callable[[], datetime] = _utc_now) -> None:
        self._entries: deque[ContextEntry] = deque(maxlen=depth)
        self._now = now

    @property
    def entries(self) -> list[ContextEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, entry: ContextEntry) -> None:
        self._entries.append(entry)

    def record_snapshot(self, snapshot: Snapshot) -> ContextEntry:
        entry = ContextEntry(
            id=snapshot.id,
            timestamp=self._now(),
            trigger=str(snapshot.trigger),
            tail=snapshot.tail,
            exit_code=snapshot.summary.exit_code,
        )
        self.record(entry)
        return entry

    def record_command(
        self, command_id: str, command: str, output: str = "", exit_code: int | None = None
    ) -> ContextEntry:
        entry = ContextEntry(
            id=command_id,
            timestamp=self._now(),
            trigger=USER_EXECUTED_TRIGGER,
            tail=output,
            command=command,
            exit_code=exit_code,
        )
        self.record(entry)
        return entry

    def render(self) -> str:
        if not self._entries:
            return EMPTY_CONTEXT
        return ENTRY_SEPARATOR.join(self._render_entry(entry) for entry in self._entries)

    @staticmethod
    def _render_entry(entry: ContextEntry) -> str:
        status = f" (exit: {entry.exit_code})" if entry.exit_code is not None else ""
        header = f"--- Context Entry [{entry.trigger}] {entry.timestamp.strftime(TIMESTAMP_FORMAT)}{status} ---"
        parts = [header]
        if entry.command:
            parts.append(f"Command: {entry.command}")
        tail = entry.tail[-TAIL_RENDER_CHARS:]
        if tail:
            parts.append(tail)
        return "\n".join(parts)

    def recent_commands(self, limit: int = 3) -> list[str]:
        commands = [entry.command for entry in self._entries if entry.command]
        return commands[-limit:] if limit > 0 else []

    def has_recent_error(self, lookback: int = 2) -> bool:
        if lookback <= 0:
            return False
        return any(entry.is_error for entry in list(self._entries)[-lookback:])

    def last_error(self) -> ContextEntry | None:
        for entry in reversed(self._entries):
            if entry.is_error:
                return entry
        return None

    def summary(self) -> ContextSummary:
        age = 0.0
        if self._entries:
            age = (self._now() - self._entries[0].timestamp).total_seconds()
        return ContextSummary(
            total_entries=len(self._entries),
            recent_commands=self.recent_commands(),
            has_recent_errors=self.has_recent_error(),
            context_age_seconds=age,
        )

    def clear(self) -> None:
        self._entries.clear()
