"""Line assembly over unframed output chunks."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class LinePiece:
    """A completed line, or a fixed-size cut of an overlong one."""

    text: str
    terminated: bool
    nbytes: int


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8", errors="surrogatepass"))


class LineSplitter:
    """Join partial lines across chunks and yield them in stream order.

    Lines longer than ``max_line_chars`` are cut from their start into
    pieces of exactly that size, so the pieces produced for a stream do not
    depend on where the stream was cut into chunks.
    """

    def __init__(self, max_line_chars: int) -> None:
        self._max = max_line_chars
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, chunk: str) -> Iterator[LinePiece]:
        buffer = self._pending + chunk
        self._pending = ""
        start = 0
        while (newline := buffer.find("\n", start)) != -1:
            line = buffer[start:newline]
            start = newline + 1
            yield from self._cut(line, terminated=True)
        rest = buffer[start:]
        while len(rest) > self._max:
            yield self._piece(rest[: self._max], terminated=False)
            rest = rest[self._max :]
        self._pending = rest

    def clear(self) -> None:
        self._pending = ""

    def _cut(self, line: str, *, terminated: bool) -> Iterator[LinePiece]:
        while len(line) > self._max:
            yield self._piece(line[: self._max], terminated=False)
            line = line[self._max :]
        yield self._piece(line, terminated=terminated)

    @staticmethod
    def _piece(text: str, *, terminated: bool) -> LinePiece:
        nbytes = _byte_len(text) + (1 if terminated else 0)
        if terminated and text.endswith("\r"):
            text = text[:-1]
        return LinePiece(text=text, terminated=terminated, nbytes=nbytes)


class TailBuffer:
    """The most recent ``limit`` lines of output."""

    def __init__(self, limit: int) -> None:
        self._lines: deque[str] = deque(maxlen=limit)

    def append(self, line: str) -> None:
        self._lines.append(line)

    def render(self, pending: str = "") -> str:
        lines = list(self._lines)
        if pending:
            lines.append(pending)
            lines = lines[-self.limit :]
        return "\n".join(lines)

    def trim_end(self, count: int) -> None:
        """Drop the last ``count`` characters, removing entries the cut empties."""
        while count > 0 and self._lines:
            last = self._lines.pop()
            if len(last) > count:
                self._lines.append(last[:-count])
                return
            count -= len(last)

    def clear(self) -> None:
        self._lines.clear()

    @property
    def limit(self) -> int:
        return self._lines.maxlen or 0

    def __len__(self) -> int:
        return len(self._lines)
