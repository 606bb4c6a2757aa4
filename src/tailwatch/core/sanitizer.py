"""Escape-sequence stripping and secret masking for captured output.

Two ordered passes run over the same text:

1. ANSI control sequences are deleted. Each removal is recorded with
   offsets into the text *after* earlier removals, so a redaction's
   ``start`` is where the sequence used to sit in the cleaned output.
2. Secret-shaped substrings are masked in the ANSI-stripped text. Masks
   keep the length of the match, so offsets stay valid for every later
   pattern and for :meth:`Sanitizer.apply_redactions`.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import NamedTuple

from tailwatch.logging_utils import component_logger
from tailwatch.types import Redaction

logger = component_logger("sanitizer")

ANSI_PATTERN = r"\x1b\[[0-9;]*[A-Za-z]"
MIN_MASK_INTERIOR = 3
FULL_MASK_MAX_LENGTH = 4


@dataclass(frozen=True)
class SecretPattern:
    """One row of the secret table."""

    name: str
    pattern: str
    flags: int = re.IGNORECASE
    multiple: bool = True  # False: at most one match per call


DEFAULT_SECRET_PATTERNS: tuple[SecretPattern, ...] = (
    SecretPattern("password", r"\b(?:password|pwd|pass)\s*[:=]\s*[\"']?\S+"),
    SecretPattern("token", r"\b[\w-]*?(?:token|key|secret)\s*[:=]\s*[\"']?\S+"),
    SecretPattern("api_key", r"\bapi[_-]?key\s*[:=]\s*[\"']?\S+"),
    SecretPattern("auth_token", r"\bauth[_-]?token\s*[:=]\s*[\"']?\S+"),
    SecretPattern(
        "private_key",
        r"-----BEGIN[^-]+PRIVATE KEY-----[\s\S]+?-----END[^-]+PRIVATE KEY-----",
    ),
    SecretPattern("opaque", r"[A-Za-z0-9]{32,}", flags=0),
)


class SanitizeResult(NamedTuple):
    clean: str
    redactions: list[Redaction]


def mask(value: str) -> str:
    """Mask a secret, keeping only its first and last character."""

    if len(value) <= FULL_MASK_MAX_LENGTH:
        return "*" * len(value)
    interior = "*" * max(MIN_MASK_INTERIOR, len(value) - 2)
    return f"{value[0]}{interior}{value[-1]}"


class Sanitizer:
    """Strip ANSI sequences and mask secrets; never raises."""

    def __init__(self, patterns: Iterable[SecretPattern] | None = None, *, extra: Iterable[str] = ()) -> None:
        table = list(DEFAULT_SECRET_PATTERNS if patterns is None else patterns)
        for index, raw in enumerate(extra):
            table.append(SecretPattern(f"custom_{index}", raw))
        self._patterns = tuple(table)

    @property
    def patterns(self) -> tuple[SecretPattern, ...]:
        return self._patterns

    def sanitize(self, text: str | bytes) -> SanitizeResult:
        if isinstance(text, bytes):
            text = text.decode("utf-8", errors="replace")
        try:
            stripped, ansi = self._remove_ansi(text)
            clean, secrets = self._mask_secrets(stripped)
        except Exception:
            logger.exception("sanitizer.failed length={}", len(text))
            return SanitizeResult(text, [])
        return SanitizeResult(clean, ansi + secrets)

    @staticmethod
    def _remove_ansi(text: str) -> tuple[str, list[Redaction]]:
        redactions: list[Redaction] = []
        removed = 0
        for match in re.finditer(ANSI_PATTERN, text):
            start = match.start() - removed
            redactions.append(
                Redaction(kind="ansi", original=match.group(0), masked="", start=start, end=start + len(match.group(0)))
            )
            removed += len(match.group(0))
        return re.sub(ANSI_PATTERN, "", text), redactions

    def _mask_secrets(self, text: str) -> tuple[str, list[Redaction]]:
        redactions: list[Redaction] = []
        clean = text
        for secret in self._patterns:
            compiled = re.compile(secret.pattern, secret.flags)
            matches = list(compiled.finditer(clean))
            if not secret.multiple:
                matches = matches[:1]
            if not matches:
                continue
            parts: list[str] = []
            cursor = 0
            for match in matches:
                original = match.group(0)
                if not original:
                    continue
                masked = mask(original)
                redactions.append(
                    Redaction(kind="secret", original=original, masked=masked, start=match.start(), end=match.end())
                )
                parts.append(clean[cursor : match.start()])
                parts.append(masked)
                cursor = match.end()
            parts.append(clean[cursor:])
            clean = "".join(parts)
        return clean, redactions

    def contains_sensitive_data(self, text: str) -> bool:
        try:
            return any(re.search(p.pattern, text, p.flags) for p in self._patterns)
        except re.error:
            return False

    @staticmethod
    def apply_redactions(clean: str, redactions: Iterable[Redaction]) -> str:
        """Put secret originals back; ANSI removals are not reversible.

        Redactions are undone last-applied first. A later pattern may have
        re-masked a span containing an earlier mask, and undoing in reverse
        restores the outer span before the inner one. For disjoint spans
        this is the same as descending-offset order.
        """

        result = clean
        secrets = [r for r in redactions if r.kind == "secret"]
        for redaction in reversed(secrets):
            result = result[: redaction.start] + redaction.original + result[redaction.end :]
        return result
