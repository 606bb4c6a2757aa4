"""Suggestion providers."""

from __future__ import annotations

import json
import re
from typing import Any, Protocol

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from tailwatch.config import Settings
from tailwatch.errors import SuggestionProviderError
from tailwatch.logging_utils import component_logger
from tailwatch.suggest.models import (
    Suggestion,
    SuggestionPayload,
    SuggestionRequest,
    suggestion_from_payload,
)
from tailwatch.types import Trigger

logger = component_logger("provider")

SYSTEM_PROMPT = (
    "You are an AI assistant helping with terminal operations. Analyze the terminal output "
    "and suggest helpful commands or explanations. Always respond with valid JSON only."
)
MAX_RESPONSE_TOKENS = 500
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class SuggestionProvider(Protocol):
    """Anything that turns a snapshot plus context into a suggestion."""

    name: str

    async def suggest(self, request: SuggestionRequest) -> Suggestion: ...


def build_prompt(request: SuggestionRequest) -> str:
    snapshot = request.snapshot
    exit_code = snapshot.summary.exit_code if snapshot.summary.exit_code is not None else "N/A"
    return "\n".join(
        [
            "Terminal Output Analysis:",
            "",
            f"Trigger: {snapshot.trigger}",
            f"Command ID: {snapshot.id}",
            f"Exit Code: {exit_code}",
            f"Duration: {snapshot.summary.elapsed_ms}ms",
            f"Bytes: {snapshot.summary.bytes}",
            "",
            "Recent Context:",
            request.context,
            "",
            "Terminal Output:",
            "```",
            snapshot.tail,
            "```",
            "",
            "Based on this terminal output, please provide:",
            "1. A brief title summarizing what happened",
            "2. Up to 3 helpful commands that might be useful next",
            "",
            "Respond with ONLY valid JSON in this exact format:",
            '{"title": "Brief description", "commands": ["command1", "command2", "command3"]}',
        ]
    )


def parse_payload(content: str | None) -> SuggestionPayload:
    """Pull the JSON object out of a model reply."""

    if not content or not content.strip():
        raise SuggestionProviderError("empty response content")
    match = _JSON_OBJECT_RE.search(content)
    raw = match.group(0) if match else content.strip()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SuggestionProviderError(f"response is not JSON: {raw[:180]}") from exc
    if not isinstance(data, dict):
        raise SuggestionProviderError("response JSON is not an object")
    try:
        return SuggestionPayload.model_validate(data)
    except ValidationError as exc:
        raise SuggestionProviderError(f"response does not match the suggestion schema: {exc}") from exc


class OpenAISuggestionProvider:
    """Chat-completions backed provider."""

    name = "openai"

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout_seconds: float = 30.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._model = model
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout_seconds)

    async def suggest(self, request: SuggestionRequest) -> Suggestion:
        logger.info("suggest.provider.request provider={} model={} id={}", self.name, self._model, request.snapshot.id)
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(request)},
                ],
                max_tokens=MAX_RESPONSE_TOKENS,
                temperature=0.1,
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            raise SuggestionProviderError(f"{self.name} request failed: {exc}") from exc

        choices: list[Any] = list(getattr(response, "choices", None) or [])
        if not choices:
            raise SuggestionProviderError("response has no choices")
        payload = parse_payload(choices[0].message.content)
        return suggestion_from_payload(payload, request.snapshot, source=self.name)


_ERROR_HINTS: tuple[tuple[str, str, list[str]], ...] = (
    ("permission denied", "Permission Denied Error", ["whoami", "ls -la", "chmod +x filename"]),
    ("access is denied", "Access Denied", ["whoami", "Get-Acl .", "Get-ChildItem -Force"]),
    ("command not found", "Command Not Found", ["which commandname", "type commandname", "echo $PATH"]),
    ("is not recognized as", "Command Not Found", ["Get-Command commandname", "$env:PATH", "Get-Module -ListAvailable"]),
    ("no such file", "File Not Found", ["ls -la", "pwd", 'find . -name "filename"']),
)

_TRIGGER_HINTS: dict[Trigger, tuple[str, list[str]]] = {
    Trigger.ON_PROMPT: ("Ready for Next Command", ["ls", "pwd", "history | tail -5"]),
    Trigger.ON_TIMEOUT: ("Command Running (Timeout)", ["ps aux | grep process", "top", "jobs"]),
    Trigger.ON_VOLUME: ("Large Output Detected", ["tail -20", "wc -l", "less filename"]),
}


class HeuristicSuggestionProvider:
    """Offline provider that pattern-matches common situations."""

    name = "heuristic"

    async def suggest(self, request: SuggestionRequest) -> Suggestion:
        snapshot = request.snapshot
        title, commands = self._pick(snapshot.trigger, snapshot.tail.lower(), snapshot.summary.exit_code)
        payload = SuggestionPayload(title=title, commands=commands)
        return suggestion_from_payload(payload, snapshot, source=self.name)

    @staticmethod
    def _pick(trigger: Trigger, tail: str, exit_code: int | None) -> tuple[str, list[str]]:
        if trigger == Trigger.ON_ERROR:
            for needle, title, commands in _ERROR_HINTS:
                if needle in tail:
                    return title, commands
            return "Error Occurred", ["echo $?", "history | tail -5", "pwd"]
        if trigger == Trigger.ON_EXIT:
            if exit_code in (None, 0):
                return "Command Completed Successfully", ["ls -la", "git status"]
            return f"Command Failed (Exit Code: {exit_code})", ["echo $?", "history | tail -3", "ls -la"]
        if trigger in _TRIGGER_HINTS:
            return _TRIGGER_HINTS[trigger]
        return "Terminal Activity", ["ls", "pwd", "whoami"]


def build_provider(settings: Settings) -> SuggestionProvider:
    """Use the OpenAI provider when a key is configured, the offline one otherwise."""

    if settings.openai_api_key:
        return OpenAISuggestionProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.provider_timeout_seconds,
        )
    logger.warning("suggest.provider.offline reason=no_api_key")
    return HeuristicSuggestionProvider()
