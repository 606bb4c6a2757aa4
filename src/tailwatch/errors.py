"""Application-level exception types for tailwatch."""

from __future__ import annotations


class TailwatchError(Exception):
    """Base exception for tailwatch."""


class ConfigurationError(TailwatchError):
    """Raised when settings fail validation at startup."""


class CommandAlreadyActiveError(TailwatchError):
    """Raised when a command is started while another one is still running."""

    def __init__(self, active_id: str, requested_id: str) -> None:
        super().__init__(f"Command {active_id!r} is still running; cannot start {requested_id!r}")
        self.active_id = active_id
        self.requested_id = requested_id


class SuggestionProviderError(TailwatchError):
    """Raised by a suggestion provider when a request or its response is unusable."""
