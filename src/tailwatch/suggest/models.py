"""Suggestion payload models."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tailwatch.types import Snapshot, Trigger

DEFAULT_TITLE = "LLM Suggestion"
_INFO_COMMAND_RE = re.compile(
    r"^(?:ls|ll|dir|pwd|cat|type|less|more|head|tail|wc|which|where|whoami|id|echo|history|ps|top|jobs|env|"
    r"get-\w+|git\s+(?:status|log|diff|show|branch)|find|grep|select-string)\b",
    re.IGNORECASE,
)


class SuggestionGroups(BaseModel):
    """Commands grouped for display."""

    model_config = ConfigDict(frozen=True)

    next_steps: list[str] = Field(default_factory=list)
    error_resolution: list[str] = Field(default_factory=list)
    information_gathering: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.next_steps or self.error_resolution or self.information_gathering)


class Suggestion(BaseModel):
    """Suggested next commands for one snapshot."""

    model_config = ConfigDict(frozen=True)

    id: str
    snapshot_seq: int = 0
    title: str = DEFAULT_TITLE
    commands: list[str] = Field(default_factory=list)
    groups: SuggestionGroups = Field(default_factory=SuggestionGroups)
    source: str = "provider"

    def tagged(self, snapshot: Snapshot) -> Suggestion:
        return self.model_copy(update={"id": snapshot.id, "snapshot_seq": snapshot.seq})


class SuggestionPayload(BaseModel):
    """JSON body a provider is asked to return."""

    title: str = DEFAULT_TITLE
    commands: list[str] = Field(default_factory=list)
    suggestions: SuggestionGroups | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return DEFAULT_TITLE
        return value.strip()

    @field_validator("commands", mode="before")
    @classmethod
    def _commands(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [str(item).strip() for item in value if str(item).strip()]


@dataclass(frozen=True)
class SuggestionRequest:
    snapshot: Snapshot
    context: str


def group_commands(commands: list[str], snapshot: Snapshot) -> SuggestionGroups:
    """Split a flat command list into display categories."""

    failed = snapshot.trigger == Trigger.ON_ERROR or (snapshot.summary.exit_code not in (None, 0))
    groups: dict[str, list[str]] = {"next_steps": [], "error_resolution": [], "information_gathering": []}
    for command in commands:
        if _INFO_COMMAND_RE.match(command.strip()):
            groups["information_gathering"].append(command)
        elif failed:
            groups["error_resolution"].append(command)
        else:
            groups["next_steps"].append(command)
    return SuggestionGroups(**groups)


def suggestion_from_payload(payload: SuggestionPayload, snapshot: Snapshot, *, source: str) -> Suggestion:
    groups = payload.suggestions
    commands = list(payload.commands)
    if groups is not None and not groups.is_empty():
        if not commands:
            commands = groups.next_steps + groups.error_resolution + groups.information_gathering
    else:
        groups = group_commands(commands, snapshot)
    return Suggestion(
        id=snapshot.id,
        snapshot_seq=snapshot.seq,
        title=payload.title,
        commands=commands,
        groups=groups,
        source=source,
    )
