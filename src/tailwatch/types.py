"""Shared tailwatch dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal, TypeAlias

RedactionKind: TypeAlias = Literal["ansi", "secret"]
RiskLevel: TypeAlias = Literal["low", "medium", "high", "critical"]

SYSTEM_SNAPSHOT_ID = "system"
USER_EXECUTED_TRIGGER = "user_executed"


class Trigger(StrEnum):
    """Why a snapshot was produced."""

    ON_EXIT = "onExit"
    ON_ERROR = "onError"
    ON_PROMPT = "onPrompt"
    ON_TIMEOUT = "onTimeout"
    ON_VOLUME = "onVolume"


@dataclass(frozen=True)
class Redaction:
    """One span removed or masked by the sanitizer."""

    kind: RedactionKind
    original: str
    masked: str
    start: int
    end: int


@dataclass(frozen=True)
class ActiveCommand:
    """The single command currently executing in the shell."""

    id: str
    start_time: float
    request: Any = None


@dataclass(frozen=True)
class SnapshotSummary:
    exit_code: int | None = None
    elapsed_ms: int = 0
    bytes: int = 0


@dataclass(frozen=True)
class Snapshot:
    """Sanitized checkpoint of recent terminal output."""

    id: str
    seq: int
    trigger: Trigger
    summary: SnapshotSummary
    tail: str
    redactions: tuple[Redaction, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "seq": self.seq,
            "trigger": str(self.trigger),
            "summary": {
                "exitCode": self.summary.exit_code,
                "elapsedMs": self.summary.elapsed_ms,
                "bytes": self.summary.bytes,
            },
            "tail": self.tail,
            "redactions": [
                {"type": r.kind, "original": r.original, "masked": r.masked, "start": r.start, "end": r.end}
                for r in self.redactions
            ],
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ContextEntry:
    """One remembered snapshot or command execution."""

    id: str
    timestamp: datetime
    trigger: str
    tail: str
    command: str | None = None
    exit_code: int | None = None

    @property
    def is_error(self) -> bool:
        return self.trigger == Trigger.ON_ERROR or (self.exit_code is not None and self.exit_code != 0)


@dataclass(frozen=True)
class RiskAssessment:
    """Heuristic danger rating for one candidate command."""

    score: int
    level: RiskLevel
    reasons: list[str] = field(default_factory=list)
    blockers: list[str] = field(default_factory=list)
