"""Snapshot engine: trigger detection over a live shell output stream.

The engine consumes raw output chunks from the shell driver, keeps a tail
of recent lines, and decides when a checkpoint is worth emitting:

* ``onExit``    the driver's completion marker for the active command
* ``onPrompt``  an idle prompt line while no command is running
* ``onError``   a line that looks like an error
* ``onVolume``  too many bytes since the last snapshot
* ``onTimeout`` an active command went quiet

Detection runs per completed line, so the snapshots emitted for a stream
are the same however the stream was cut into chunks.
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Final, TypeAlias

from tailwatch.bus import LoggingSessionLog, NullSink, SessionLog, SnapshotSink
from tailwatch.config import Settings
from tailwatch.core.lines import LinePiece, LineSplitter, TailBuffer
from tailwatch.core.sanitizer import Sanitizer
from tailwatch.errors import CommandAlreadyActiveError, ConfigurationError
from tailwatch.logging_utils import component_logger
from tailwatch.suggest.broker import SuggestionBroker
from tailwatch.suggest.cache import SuggestionCache
from tailwatch.suggest.context import ContextWindow
from tailwatch.suggest.models import Suggestion
from tailwatch.suggest.providers import SuggestionProvider, build_provider
from tailwatch.types import SYSTEM_SNAPSHOT_ID, ActiveCommand, Snapshot, SnapshotSummary, Trigger

logger = component_logger("engine")


class _Tracked:
    """Sentinel: use the command tracked by begin_command/end_command."""


TRACKED: Final = _Tracked()


@dataclass(frozen=True)
class _Detection:
    trigger: Trigger | None
    exit_code: int | None = None
    tail_text: str | None = None


_Rule: TypeAlias = Callable[[LinePiece, str, ActiveCommand | None], _Detection | None]


class SnapshotEngine:
    """Turn an unframed output stream into sanitized snapshots."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        sanitizer: Sanitizer | None = None,
        context: ContextWindow | None = None,
        broker: SuggestionBroker | None = None,
        sink: SnapshotSink | None = None,
        session_log: SessionLog | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or Settings()
        self.sanitizer = sanitizer or Sanitizer(extra=self.settings.extra_secret_patterns)
        self.context = context or ContextWindow(self.settings.context_depth)
        self.broker = broker
        self._sink: SnapshotSink = sink or NullSink()
        self._session_log: SessionLog = session_log or LoggingSessionLog()
        self._clock = clock

        self._splitter = LineSplitter(self.settings.max_line_chars)
        self._tail = TailBuffer(self.settings.tail_lines)
        self._marker_re = re.compile(re.escape(self.settings.marker_token) + r":(?P<id>[^\s:]+):END:(?P<code>-?\d*)")
        try:
            self._error_res = tuple(re.compile(p, re.IGNORECASE) for p in self.settings.error_patterns)
        except re.error as exc:
            raise ConfigurationError(f"invalid error pattern: {exc}") from exc
        self._prompt_tokens = frozenset(token.strip() for token in self.settings.prompt_tokens)
        self._rules: tuple[_Rule, ...] = (self._detect_exit, self._detect_prompt, self._detect_error)

        self._marker_carry = ""
        self._line_chars_in_tail = 0
        self._prompt_fragment_reported = False
        self._bytes = 0
        self._pending_counted = 0
        self._seq = 0
        self._active: ActiveCommand | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Command lifecycle
    # ------------------------------------------------------------------

    @property
    def active_command(self) -> ActiveCommand | None:
        return self._active

    def begin_command(self, command_id: str, request: Any = None) -> ActiveCommand:
        if self._active is not None:
            raise CommandAlreadyActiveError(self._active.id, command_id)
        self._active = ActiveCommand(id=command_id, start_time=self._clock(), request=request)
        logger.info("snapshot.command.begin id={}", command_id)
        return self._active

    def end_command(self) -> ActiveCommand | None:
        ended, self._active = self._active, None
        if ended is not None:
            logger.info("snapshot.command.end id={}", ended.id)
        return ended

    def marker_suffix(self, command_id: str) -> str:
        """PowerShell suffix the driver appends so the shell echoes the completion marker."""

        return f'; Write-Host "{self.settings.marker_token}:{command_id}:END:$LASTEXITCODE"'

    def record_command(self, command_id: str, command: str, output: str = "", exit_code: int | None = None) -> None:
        clean = self.sanitizer.sanitize(output).clean if output else ""
        self.context.record_command(command_id, command, clean, exit_code)

    # ------------------------------------------------------------------
    # Stream processing
    # ------------------------------------------------------------------

    @property
    def bytes_since_snapshot(self) -> int:
        return self._bytes

    @property
    def tail_length(self) -> int:
        return len(self._tail)

    def process_output(self, chunk: str | bytes, active_command: ActiveCommand | None | _Tracked = TRACKED) -> None:
        if isinstance(chunk, bytes):
            chunk = chunk.decode("utf-8", errors="replace")

        for piece in self._splitter.feed(chunk):
            self._bytes += piece.nbytes - self._pending_counted
            self._pending_counted = 0
            active = self._resolve(active_command)
            self._consume(piece, active)
            if self._bytes > self.settings.max_bytes_per_step:
                self.create_snapshot(Trigger.ON_VOLUME, active)

        pending_bytes = len(self._splitter.pending.encode("utf-8", errors="surrogatepass"))
        self._bytes += pending_bytes - self._pending_counted
        self._pending_counted = pending_bytes

        active = self._resolve(active_command)
        self._check_waiting_prompt(active)
        self._rearm_quiet_timer(active)

    def _resolve(self, active_command: ActiveCommand | None | _Tracked) -> ActiveCommand | None:
        if isinstance(active_command, _Tracked):
            return self._active
        return active_command

    def _check_waiting_prompt(self, active: ActiveCommand | None) -> None:
        # A shell waiting for input leaves its prompt without a newline.
        if active is not None or self._prompt_fragment_reported:
            return
        fragment = self._splitter.pending.strip()
        if fragment and fragment in self._prompt_tokens:
            self._prompt_fragment_reported = True
            self.create_snapshot(Trigger.ON_PROMPT)

    def _consume(self, piece: LinePiece, active: ActiveCommand | None) -> None:
        haystack = self._marker_carry + piece.text
        self._marker_carry = "" if piece.terminated else haystack[-self.settings.marker_lookback_chars :]

        detection: _Detection | None = None
        for rule in self._rules:
            detection = rule(piece, haystack, active)
            if detection is not None:
                break
        self._prompt_fragment_reported = False

        tail_text = piece.text
        if detection is not None and detection.tail_text is not None:
            tail_text = detection.tail_text
        if tail_text or detection is None or detection.tail_text is None:
            self._tail.append(tail_text)
            self._line_chars_in_tail += len(tail_text)
        if piece.terminated:
            self._line_chars_in_tail = 0

        if detection is None or detection.trigger is None:
            return
        command = None if detection.trigger == Trigger.ON_PROMPT else active
        self.create_snapshot(detection.trigger, command, exit_code=detection.exit_code)

    def _detect_exit(self, piece: LinePiece, haystack: str, active: ActiveCommand | None) -> _Detection | None:
        match = None
        for candidate in self._marker_re.finditer(haystack):
            if active is not None and candidate.group("id") == active.id:
                match = candidate
                break
            logger.debug("snapshot.marker.ignored id={} active={}", candidate.group("id"), active.id if active else None)
        if match is None:
            return None
        if not piece.terminated and match.end() == len(haystack):
            # the exit code may continue in the next piece
            return None

        self._marker_carry = ""
        code = match.group("code")
        exit_code = int(code) if code not in ("", "-") else 0
        line = piece.text
        offset = len(haystack) - len(line)
        if match.start() < offset <= match.end():
            self._tail.trim_end(min(offset - match.start(), self._line_chars_in_tail))
            self._line_chars_in_tail = max(0, self._line_chars_in_tail - (offset - match.start()))
        start, end = max(0, match.start() - offset), max(0, match.end() - offset)
        return _Detection(Trigger.ON_EXIT, exit_code=exit_code, tail_text=(line[:start] + line[end:]).rstrip())

    def _detect_prompt(self, piece: LinePiece, _haystack: str, active: ActiveCommand | None) -> _Detection | None:
        if piece.text.strip() not in self._prompt_tokens:
            return None
        if self._prompt_fragment_reported:
            # already reported while it was waiting for input
            return _Detection(None, tail_text="")
        if active is not None:
            return _Detection(None)
        return _Detection(Trigger.ON_PROMPT)

    def _detect_error(self, piece: LinePiece, _haystack: str, _active: ActiveCommand | None) -> _Detection | None:
        if any(pattern.search(piece.text) for pattern in self._error_res):
            return _Detection(Trigger.ON_ERROR)
        return None

    # ------------------------------------------------------------------
    # Snapshot emission
    # ------------------------------------------------------------------

    def create_snapshot(
        self,
        trigger: Trigger,
        active_command: ActiveCommand | None = None,
        *,
        exit_code: int | None = None,
    ) -> Snapshot:
        self._cancel_quiet_timer()
        trigger = Trigger(trigger)

        raw_tail = self._tail.render(self._splitter.pending)
        clean, redactions = self.sanitizer.sanitize(raw_tail)
        elapsed_ms = 0
        if active_command is not None:
            elapsed_ms = max(0, int((self._clock() - active_command.start_time) * 1000))

        self._seq += 1
        snapshot = Snapshot(
            id=active_command.id if active_command is not None else SYSTEM_SNAPSHOT_ID,
            seq=self._seq,
            trigger=trigger,
            summary=SnapshotSummary(exit_code=exit_code, elapsed_ms=elapsed_ms, bytes=self._bytes),
            tail=clean,
            redactions=tuple(redactions),
        )
        logger.info(
            "snapshot.created id={} seq={} trigger={} bytes={} redactions={}",
            snapshot.id,
            snapshot.seq,
            trigger,
            snapshot.summary.bytes,
            len(redactions),
        )

        self._call_collaborator("session_log", self._session_log.append, snapshot)
        self._call_collaborator("sink", self._sink.on_snapshot, snapshot)

        context = self.context.render()
        self.context.record_snapshot(snapshot)
        if trigger in self.settings.auto_send_triggers and self.broker is not None:
            self._schedule_suggestion(snapshot, context)

        if trigger == Trigger.ON_EXIT and self._active is not None and self._active.id == snapshot.id:
            self.end_command()

        self._bytes = 0
        self._tail.clear()
        self._line_chars_in_tail = 0
        return snapshot

    @staticmethod
    def _call_collaborator(name: str, func: Callable[[Any], None], value: Any) -> None:
        try:
            func(value)
        except Exception:
            logger.exception("snapshot.{}.error", name)

    def is_stale(self, suggestion: Suggestion) -> bool:
        """True when a newer snapshot was emitted after the one this suggestion answers."""

        return suggestion.snapshot_seq < self._seq

    @property
    def latest_seq(self) -> int:
        return self._seq

    # ------------------------------------------------------------------
    # Asynchronous work
    # ------------------------------------------------------------------

    def _schedule_suggestion(self, snapshot: Snapshot, context: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("snapshot.suggest.skipped id={} reason=no_event_loop", snapshot.id)
            return
        task = loop.create_task(self._deliver_suggestion(snapshot, context), name=f"tailwatch-suggest-{snapshot.seq}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver_suggestion(self, snapshot: Snapshot, context: str) -> None:
        if self.broker is None:
            return
        try:
            suggestion = await self.broker.fetch(snapshot, context)
        except Exception:
            logger.exception("snapshot.suggest.error id={}", snapshot.id)
            return
        if suggestion is None:
            return
        self._call_collaborator("sink", self._sink.on_suggestion, suggestion)

    async def wait_for_suggestions(self) -> None:
        """Wait until every in-flight suggestion fetch has finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _rearm_quiet_timer(self, active: ActiveCommand | None) -> None:
        self._cancel_quiet_timer()
        if active is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("snapshot.timer.skipped id={} reason=no_event_loop", active.id)
            return
        self._timer = loop.call_later(self.settings.quiet_timeout_seconds, self._on_quiet_timeout, active)

    def _cancel_quiet_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_quiet_timeout(self, active: ActiveCommand) -> None:
        self._timer = None
        try:
            self.create_snapshot(Trigger.ON_TIMEOUT, active)
        except Exception:
            logger.exception("snapshot.timeout.error id={}", active.id)

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start background work owned by the engine (the cache sweep)."""

        if self.broker is not None:
            self.broker.cache.start()

    def close(self) -> None:
        self._cancel_quiet_timer()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        if self.broker is not None:
            self.broker.cache.close()


def build_engine(
    settings: Settings | None = None,
    *,
    sink: SnapshotSink | None = None,
    provider: SuggestionProvider | None = None,
    session_log: SessionLog | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> SnapshotEngine:
    """Wire an engine with its sanitizer, context window, cache and provider."""

    settings = settings or Settings()
    cache = SuggestionCache(
        ttl_seconds=settings.cache_ttl_seconds,
        capacity=settings.cache_capacity,
        sweep_seconds=settings.cache_sweep_seconds,
        clock=clock,
    )
    broker = SuggestionBroker(provider or build_provider(settings), cache)
    return SnapshotEngine(settings, broker=broker, sink=sink, session_log=session_log, clock=clock)
