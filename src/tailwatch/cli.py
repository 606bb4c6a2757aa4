"""tailwatch command line."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from tailwatch.bus import CallbackSink
from tailwatch.config import Settings, get_settings
from tailwatch.core.engine import SnapshotEngine, build_engine
from tailwatch.core.risk import assess, should_block, warning_message
from tailwatch.core.sanitizer import Sanitizer
from tailwatch.errors import ConfigurationError
from tailwatch.logging_utils import configure_logging
from tailwatch.suggest.models import Suggestion
from tailwatch.types import Snapshot

BLOCKED_EXIT_CODE = 2
_LEVEL_STYLES = {"low": "green", "medium": "yellow", "high": "red", "critical": "bold red"}

app = typer.Typer(
    name="tailwatch",
    help="Watch shell output, snapshot it, and score commands.",
    add_completion=False,
    rich_markup_mode="rich",
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    rich_logs: bool = typer.Option(False, "--rich-logs", help="Render log records through rich"),
) -> None:
    configure_logging(sink="rich" if rich_logs else "plain", level="DEBUG" if verbose else None)


@app.command("assess")
def assess_command(command: str = typer.Argument(..., help="Command line to score")) -> None:
    """Score a command's risk before it runs."""

    console = Console()
    assessment = assess(command)
    style = _LEVEL_STYLES[assessment.level]
    console.print(f"[bold]Risk:[/bold] [{style}]{assessment.level}[/{style}] (score {assessment.score})")
    if assessment.reasons:
        table = Table("Reason", show_header=True)
        for reason in assessment.reasons:
            table.add_row(reason)
        console.print(table)
    message = warning_message(assessment)
    if message:
        console.print(message, markup=False)
    if should_block(assessment):
        console.print("[bold red]Blocked[/bold red]")
        raise typer.Exit(BLOCKED_EXIT_CODE)


@app.command()
def sanitize(
    file: Path | None = typer.Argument(None, help="File to read; stdin when omitted"),  # noqa: B008
    show_redactions: bool = typer.Option(False, "--show-redactions", help="List what was removed or masked"),
) -> None:
    """Strip escape sequences and mask secrets."""

    text = file.read_text(encoding="utf-8", errors="replace") if file is not None else sys.stdin.read()
    settings = _load_settings()
    result = Sanitizer(extra=settings.extra_secret_patterns).sanitize(text)
    console = Console()
    console.print(result.clean, markup=False, highlight=False, end="" if result.clean.endswith("\n") else "\n")
    if show_redactions:
        table = Table("Kind", "Start", "End", "Masked")
        for redaction in result.redactions:
            table.add_row(redaction.kind, str(redaction.start), str(redaction.end), redaction.masked or "-")
        console.print(table)


@app.command()
def replay(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Captured shell transcript"),  # noqa: B008
    command_id: str | None = typer.Option(None, "--command-id", help="Treat the transcript as this command's output"),
    chunk_size: int = typer.Option(256, "--chunk-size", min=1, help="Characters fed per chunk"),
    suggest: bool = typer.Option(False, "--suggest/--no-suggest", help="Fetch suggestions for eligible snapshots"),
) -> None:
    """Feed a transcript through the snapshot engine and print each snapshot."""

    console = Console()
    settings = _load_settings()
    snapshots: list[Snapshot] = []
    suggestions: list[Suggestion] = []
    sink = CallbackSink(on_snapshot=snapshots.append, on_suggestion=suggestions.append)
    engine = build_engine(settings, sink=sink) if suggest else SnapshotEngine(settings, sink=sink)
    text = file.read_text(encoding="utf-8", errors="replace")

    asyncio.run(_replay(engine, text, command_id, chunk_size))

    for snapshot in snapshots:
        _print_snapshot(console, snapshot)
    for suggestion in suggestions:
        console.print(f"[bold yellow]Suggestion[/bold yellow] #{suggestion.snapshot_seq}: {suggestion.title}")
        for command in suggestion.commands:
            console.print(f"  {command}", markup=False)
    console.print(f"[dim]{len(snapshots)} snapshot(s)[/dim]")


async def _replay(engine: SnapshotEngine, text: str, command_id: str | None, chunk_size: int) -> None:
    engine.start()
    try:
        if command_id:
            engine.begin_command(command_id, request=None)
        for start in range(0, len(text), chunk_size):
            engine.process_output(text[start : start + chunk_size])
        await engine.wait_for_suggestions()
    finally:
        engine.close()


def _print_snapshot(console: Console, snapshot: Snapshot) -> None:
    summary = snapshot.summary
    exit_code = "-" if summary.exit_code is None else str(summary.exit_code)
    console.rule(
        f"#{snapshot.seq} {snapshot.trigger} id={snapshot.id} exit={exit_code} "
        f"elapsed={summary.elapsed_ms}ms bytes={summary.bytes}"
    )
    console.print(snapshot.tail or "(empty)", markup=False, highlight=False)


def _load_settings() -> Settings:
    try:
        return get_settings()
    except ConfigurationError as exc:
        Console(stderr=True).print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc
