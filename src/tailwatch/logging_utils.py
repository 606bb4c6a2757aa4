"""Runtime logging helpers."""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, Literal

from loguru import logger
from rich import get_console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from loguru import Logger

LogSink = Literal["plain", "rich"]

DEFAULT_COMPONENT = "tailwatch"
_PLAIN_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {extra[component]:<9} | {message}"
_RICH_FORMAT = "[{extra[component]}] {message}"
_CONFIGURED: tuple[LogSink, str] | None = None


def component_logger(component: str) -> Logger:
    """Logger whose records carry ``component`` in their extras."""
    return logger.bind(component=component)


def configure_logging(*, sink: LogSink = "plain", level: str | None = None) -> None:
    """Route tailwatch logs to stderr.

    ``plain`` writes one formatted line per record; ``rich`` hands records to a
    ``RichHandler`` on the shared console so they interleave with CLI output.
    Calling again with the same sink and level is a no-op.
    """

    global _CONFIGURED
    resolved = (level or os.getenv("TAILWATCH_LOG_LEVEL", "INFO")).upper()
    if (sink, resolved) == _CONFIGURED:
        return

    logger.remove()
    logger.configure(extra={"component": DEFAULT_COMPONENT})
    if sink == "rich":
        handler = RichHandler(console=get_console(), show_time=False, show_path=False, markup=False)
        logger.add(handler, level=resolved, format=_RICH_FORMAT, backtrace=False, diagnose=False)
    else:
        logger.add(sys.stderr, level=resolved, format=_PLAIN_FORMAT, backtrace=False, diagnose=False)
    _CONFIGURED = (sink, resolved)
