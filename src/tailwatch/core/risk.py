"""Heuristic risk scoring for candidate shell commands."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal, TypeAlias

from tailwatch.types import RiskAssessment, RiskLevel

Tier: TypeAlias = Literal["critical", "high", "medium"]

TIER_FLOORS: dict[Tier, int] = {"critical": 90, "high": 70, "medium": 40}
LEVEL_THRESHOLDS: tuple[tuple[int, RiskLevel], ...] = ((85, "critical"), (60, "high"), (30, "medium"))
LONG_COMMAND_CHARS = 200
CRITICAL_BLOCKER = "Command contains potentially destructive operations"


@dataclass(frozen=True)
class RiskRule:
    tier: Tier
    pattern: re.Pattern[str]
    description: str


@dataclass(frozen=True)
class RiskModifier:
    applies: Callable[[str], bool]
    delta: int
    reason: str


def _rule(tier: Tier, pattern: str, description: str) -> RiskRule:
    return RiskRule(tier, re.compile(pattern, re.IGNORECASE), description)


RISK_RULES: tuple[RiskRule, ...] = (
    # system destruction
    _rule("critical", r"\brm\s+-(?:rf|fr)\s+/(?:\*)?\s*$", "recursive delete of the filesystem root"),
    _rule("critical", r"\bdel\s+/[sq]\b.*\*", "wildcard delete"),
    _rule("critical", r"\bformat\s+[a-z]:", "drive format"),
    _rule("critical", r"\b(?:fdisk|mkfs(?:\.\w+)?)\b", "disk partitioning"),
    _rule("critical", r"\bdd\s+.*\bof=/dev/(?:sd|nvme|hd)", "raw disk overwrite"),
    _rule("critical", r":\(\)\s*\{\s*:\|:&\s*\};:", "fork bomb"),
    # network attacks
    _rule("critical", r"\b(?:ddos|flood|attack)\b", "network attack tooling"),
    _rule("critical", r"\bnmap\b.*-sS\b", "stealth port scan"),
    _rule("critical", r"\bmetasploit|\bmsfconsole\b", "exploit framework"),
    # backdoors and remote code
    _rule("critical", r"\b(?:nc|ncat|netcat)\b.*\s-l\b.*\s-e\b", "netcat listener with exec"),
    _rule("critical", r"\bpython[\d.]*\b.*\s-c\b.*\bexec\b", "inline python exec"),
    _rule("critical", r"\b(?:curl|wget)\b.*\|\s*(?:sudo\s+)?(?:ba|z|da|k)?sh\b", "download piped to shell"),
    # file system
    _rule("high", r"\brm\s+-(?:rf|fr)\b", "recursive force delete"),
    _rule("high", r"\bdel\s+/[sq]\b", "recursive delete"),
    _rule("high", r"\brmdir\s+/s\b", "recursive directory removal"),
    _rule("high", r"\bremove-item\b.*-recurse\b.*-force\b", "recursive force delete"),
    # users and permissions
    _rule("high", r"\bsudo\s+su\b", "switch to root shell"),
    _rule("high", r"\bchmod\s+(?:-R\s+)?777\b", "world-writable permissions"),
    _rule("high", r"\bchown\b.*\broot\b", "ownership change to root"),
    _rule("high", r"\bpasswd\b", "password change"),
    # network
    _rule("high", r"\bcurl\b.*-X\s*(?:POST|PUT|DELETE)\b", "mutating HTTP request"),
    _rule("high", r"\bwget\b.*--post", "HTTP post"),
    _rule("high", r"\bssh\b.*StrictHostKeyChecking=no", "host key checking disabled"),
    # processes
    _rule("high", r"\bkill\s+-9\b", "forced process kill"),
    _rule("high", r"\bpkill\b", "process kill by name"),
    _rule("high", r"\btaskkill\b.*/f\b", "forced process kill"),
    # registry and scheduled tasks
    _rule("high", r"\breg\s+(?:delete|add)\b.*\bHKLM\b", "machine registry change"),
    _rule("high", r"\bcrontab\s+-[er]\b", "crontab edit"),
    _rule("high", r"\bschtasks\b.*/create\b", "scheduled task creation"),
    # file operations
    _rule("medium", r"\bmv\b.*\s/dev/null\b", "move to /dev/null"),
    _rule("medium", r"\bcp\b.*\s-\w*f", "forced copy"),
    _rule("medium", r"\bmove\b.*\bnul\b", "move to NUL"),
    # environment
    _rule("medium", r"\bexport\s+PATH=", "PATH override"),
    _rule("medium", r"\bsetx\s+PATH\b", "persistent PATH change"),
    # network
    _rule("medium", r"\bcurl\s+", "network download"),
    _rule("medium", r"\bwget\s+", "network download"),
    _rule("medium", r"\b(?:nc|ncat|netcat)\s+", "raw network socket"),
    _rule("medium", r"\binvoke-webrequest\b|\biwr\s+", "network download"),
    # package managers with force
    _rule("medium", r"\bnpm\b.*--force\b", "forced npm operation"),
    _rule("medium", r"\bpip3?\b.*--force", "forced pip operation"),
    _rule("medium", r"\bapt(?:-get)?\b.*--force-yes\b", "forced apt operation"),
    # git
    _rule("medium", r"\bgit\s+reset\b.*--hard\b", "hard reset"),
    _rule("medium", r"\bgit\s+push\b.*(?:--force\b|\s-f\b)", "force push"),
    _rule("medium", r"\bgit\s+clean\b.*-\w*f", "untracked file removal"),
)

_ELEVATION_RE = re.compile(r"\b(?:sudo|runas|doas)\b", re.IGNORECASE)
_PIPE_TO_SHELL_RE = re.compile(
    r"\|\s*(?:sudo\s+)?(?:(?:ba|z|da|k|fi)?sh|pwsh|powershell|cmd|iex|invoke-expression)\b",
    re.IGNORECASE,
)
_REMOTE_RE = re.compile(r"\b(?:ssh|psexec|winrm|enter-pssession)\b", re.IGNORECASE)

RISK_MODIFIERS: tuple[RiskModifier, ...] = (
    RiskModifier(lambda c: "&&" in c or "||" in c or ";" in c, 10, "Command chaining detected"),
    RiskModifier(lambda c: _ELEVATION_RE.search(c) is not None, 15, "Elevated privileges requested"),
    RiskModifier(lambda c: _PIPE_TO_SHELL_RE.search(c) is not None, 20, "Potential code injection via pipe to shell"),
    RiskModifier(lambda c: _REMOTE_RE.search(c) is not None, 10, "Remote execution detected"),
    RiskModifier(lambda c: len(c) > LONG_COMMAND_CHARS, 5, "Unusually long command"),
    RiskModifier(lambda c: any(not ch.isprintable() for ch in c), 15, "Non-printable characters detected"),
)

_WARNINGS: dict[RiskLevel, str] = {
    "critical": "CRITICAL: This command may cause irreversible damage to your system!",
    "high": "HIGH RISK: This command performs potentially dangerous operations.",
    "medium": "MEDIUM RISK: Please review this command carefully before execution.",
    "low": "",
}


def level_for(score: int) -> RiskLevel:
    for threshold, level in LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return "low"


def assess(command: str) -> RiskAssessment:
    """Score one command string; empty input is low risk."""

    if not isinstance(command, str) or not command.strip():
        return RiskAssessment(score=0, level="low")

    reasons: list[str] = []
    blockers: list[str] = []
    score = 0
    for rule in RISK_RULES:
        if rule.pattern.search(command) is None:
            continue
        score = max(score, TIER_FLOORS[rule.tier])
        reasons.append(f"{rule.tier.capitalize()} risk pattern: {rule.description}")
        if rule.tier == "critical":
            blockers.append(CRITICAL_BLOCKER)

    for modifier in RISK_MODIFIERS:
        if modifier.applies(command):
            score += modifier.delta
            reasons.append(modifier.reason)

    score = min(max(score, 0), 100)
    return RiskAssessment(score=score, level=level_for(score), reasons=reasons, blockers=blockers)


def should_block(assessment: RiskAssessment) -> bool:
    return bool(assessment.blockers) or assessment.level == "critical"


def warning_message(assessment: RiskAssessment) -> str:
    return _WARNINGS[assessment.level]
