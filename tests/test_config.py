from __future__ import annotations

import pytest
from pydantic import ValidationError

from tailwatch.config import Settings, get_settings
from tailwatch.errors import ConfigurationError
from tailwatch.types import Trigger


def test_defaults() -> None:
    settings = get_settings()

    assert settings.tail_lines == 80
    assert settings.quiet_timeout_seconds == 10.0
    assert settings.max_bytes_per_step == 65536
    assert settings.marker_token == "__AI_EVT__"
    assert settings.prompt_tokens == ["PS>", "__AI_PROMPT_REMOTE__>"]
    assert settings.auto_send_triggers == {Trigger.ON_EXIT, Trigger.ON_ERROR}
    assert settings.marker_max_length == 91


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TAILWATCH_TAIL_LINES", "5")
    monkeypatch.setenv("TAILWATCH_OPENAI_MODEL", "gpt-test")

    settings = get_settings()

    assert settings.tail_lines == 5
    assert settings.openai_model == "gpt-test"


def test_dotenv_file_is_read(tmp_path) -> None:
    (tmp_path / ".env").write_text("TAILWATCH_CONTEXT_DEPTH=9\n", encoding="utf-8")

    assert Settings().context_depth == 9


def test_non_positive_sizes_are_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TAILWATCH_TAIL_LINES", "0")

    with pytest.raises(ConfigurationError):
        get_settings()


def test_lookback_must_hold_a_marker() -> None:
    with pytest.raises(ConfigurationError, match="marker_lookback_chars"):
        get_settings(marker_lookback_chars=10)


def test_settings_reject_lookback_shorter_than_a_marker() -> None:
    with pytest.raises(ValidationError, match="marker_lookback_chars must be at least 91"):
        Settings(marker_lookback_chars=8)
