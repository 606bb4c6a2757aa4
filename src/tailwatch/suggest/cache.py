"""TTL- and capacity-bounded suggestion cache."""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from hashlib import md5

from tailwatch.logging_utils import component_logger
from tailwatch.suggest.models import Suggestion

logger = component_logger("cache")

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_CAPACITY = 100
DEFAULT_SWEEP_SECONDS = 60.0
FINGERPRINT_LENGTH = 16
_WHITESPACE_RE = re.compile(r"\s+")


def _normalize(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text.lower()).strip()


def fingerprint(tail: str, context: str = "") -> str:
    """Short, order-sensitive token for a (tail, context) request."""

    material = f"{_normalize(tail)}\x1f{_normalize(context)}"
    return md5(material.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]  # noqa: S324


@dataclass
class CacheEntry:
    key: str
    suggestion: Suggestion
    created_at: float
    hits: int = 0


@dataclass(frozen=True)
class CacheStats:
    size: int
    capacity: int
    ttl_seconds: float
    hits: int
    misses: int
    evictions: int


class SuggestionCache:
    """Map request fingerprints to suggestions already obtained."""

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        capacity: int = DEFAULT_CAPACITY,
        sweep_seconds: float = DEFAULT_SWEEP_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._capacity = capacity
        self._sweep_seconds = sweep_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._sweeper: asyncio.Task[None] | None = None
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Suggestion | None:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._expired(entry):
            del self._entries[key]
            self._misses += 1
            return None
        entry.hits += 1
        self._hits += 1
        return entry.suggestion

    def set(self, key: str, suggestion: Suggestion) -> None:
        self._entries[key] = CacheEntry(key=key, suggestion=suggestion, created_at=self._clock())
        if len(self._entries) > self._capacity:
            self._evict_one(keep=key)

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if self._expired(entry):
            del self._entries[key]
            return False
        return True

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Drop every expired entry and return how many were removed."""

        expired = [key for key, entry in self._entries.items() if self._expired(entry)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info("suggest.cache.swept removed={}", len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._entries),
            capacity=self._capacity,
            ttl_seconds=self._ttl,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
        )

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    @property
    def sweeping(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""

        if self.sweeping:
            return
        loop = asyncio.get_running_loop()
        self._sweeper = loop.create_task(self._sweep_forever(), name="tailwatch-cache-sweep")

    def close(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_seconds)
            try:
                self.sweep()
            except Exception:
                logger.exception("suggest.cache.sweep.error")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.created_at > self._ttl

    def _evict_one(self, *, keep: str) -> None:
        now = self._clock()

        def eviction_score(entry: CacheEntry) -> tuple[bool, float]:
            # Unused entries go first, then stale and rarely hit ones.
            return entry.hits == 0, (now - entry.created_at) / (entry.hits + 1)

        victim = max((e for e in self._entries.values() if e.key != keep), key=eviction_score)
        del self._entries[victim.key]
        self._evictions += 1
        logger.debug("suggest.cache.evicted key={} hits={}", victim.key, victim.hits)
