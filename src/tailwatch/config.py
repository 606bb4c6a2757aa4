"""Configuration management for tailwatch."""

from __future__ import annotations

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tailwatch.errors import ConfigurationError
from tailwatch.types import Trigger

DEFAULT_ERROR_PATTERNS = [
    r"error",
    r"failed",
    r"exception",
    r"traceback",
    r"fatal",
    r"cannot",
    r"permission denied",
    r"access is denied",
    r"command not found",
    r"is not recognized as",
    r"no such file",
]


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="TAILWATCH_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Snapshot configuration
    tail_lines: int = Field(default=80, description="Number of recent lines kept for a snapshot")
    quiet_timeout_seconds: float = Field(default=10.0, description="Silence before an active command times out")
    max_bytes_per_step: int = Field(default=65536, description="Output volume that forces a snapshot")
    max_line_chars: int = Field(default=4096, description="Longest line kept before it is cut into pieces")

    # Shell protocol
    marker_token: str = Field(default="__AI_EVT__", description="Completion marker prefix")
    marker_lookback_chars: int = Field(default=256, description="Characters kept across cut lines for markers")
    prompt_tokens: list[str] = Field(default_factory=lambda: ["PS>", "__AI_PROMPT_REMOTE__>"])
    error_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_ERROR_PATTERNS))
    auto_send_triggers: set[Trigger] = Field(default_factory=lambda: {Trigger.ON_EXIT, Trigger.ON_ERROR})
    extra_secret_patterns: list[str] = Field(default_factory=list)

    # Context and cache
    context_depth: int = Field(default=5, description="Entries kept in the rolling context window")
    cache_ttl_seconds: float = Field(default=300.0, description="Lifetime of a cached suggestion")
    cache_capacity: int = Field(default=100, description="Maximum cached suggestions")
    cache_sweep_seconds: float = Field(default=60.0, description="Interval of the expired-entry sweep")

    # Suggestion provider
    openai_api_key: str | None = Field(default=None, description="API key for the suggestion provider")
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    openai_model: str = Field(default="gpt-4o-mini")
    provider_timeout_seconds: float = Field(default=30.0)

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")

    @field_validator(
        "tail_lines",
        "max_bytes_per_step",
        "max_line_chars",
        "marker_lookback_chars",
        "context_depth",
        "cache_capacity",
    )
    @classmethod
    def _positive_int(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("quiet_timeout_seconds", "cache_ttl_seconds", "cache_sweep_seconds", "provider_timeout_seconds")
    @classmethod
    def _positive_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @model_validator(mode="after")
    def _lookback_holds_marker(self) -> Settings:
        if self.marker_lookback_chars < self.marker_max_length:
            raise ValueError(f"marker_lookback_chars must be at least {self.marker_max_length} to hold a full marker")
        return self

    @property
    def marker_max_length(self) -> int:
        # token + ":" + id + ":END:" + exit code; ids are assumed to stay under 64 chars
        return len(self.marker_token) + 1 + 64 + len(":END:") + 11


def get_settings(**overrides: object) -> Settings:
    """Get application settings.

    Args:
        overrides: Field values that take precedence over the environment

    Returns:
        Settings instance

    Raises:
        ConfigurationError: when the environment holds invalid values
    """
    try:
        settings = Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
    return settings
