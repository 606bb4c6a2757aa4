from __future__ import annotations

import asyncio

import pytest

from tailwatch.suggest.cache import SuggestionCache, fingerprint
from tailwatch.suggest.models import Suggestion


def _suggestion(title: str) -> Suggestion:
    return Suggestion(id="cmd1", title=title, commands=["ls"])


def test_set_then_get_returns_value(clock) -> None:
    cache = SuggestionCache(clock=clock)
    cache.set("k", _suggestion("a"))

    assert cache.get("k") == _suggestion("a")
    assert cache.has("k")
    assert cache.stats().hits == 1


def test_entries_expire_after_ttl(clock) -> None:
    cache = SuggestionCache(ttl_seconds=300, clock=clock)
    cache.set("k", _suggestion("a"))

    clock.advance(300)
    assert cache.get("k") is not None
    clock.advance(1)
    assert cache.get("k") is None
    assert len(cache) == 0
    assert cache.stats().misses == 1


def test_capacity_evicts_unused_entries_first(clock) -> None:
    cache = SuggestionCache(capacity=2, clock=clock)
    cache.set("a", _suggestion("a"))
    clock.advance(1)
    cache.set("b", _suggestion("b"))
    cache.get("a")

    cache.set("c", _suggestion("c"))

    assert cache.has("a")
    assert not cache.has("b")
    assert cache.has("c")
    assert cache.stats().evictions == 1


def test_newest_entry_survives_eviction(clock) -> None:
    cache = SuggestionCache(capacity=1, clock=clock)
    cache.set("a", _suggestion("a"))
    cache.get("a")

    cache.set("b", _suggestion("b"))

    assert cache.get("b") == _suggestion("b")
    assert len(cache) == 1


def test_sweep_removes_expired_entries(clock) -> None:
    cache = SuggestionCache(ttl_seconds=300, clock=clock)
    cache.set("old", _suggestion("old"))
    clock.advance(200)
    cache.set("new", _suggestion("new"))
    clock.advance(150)

    assert cache.sweep() == 1
    assert cache.has("new")


def test_fingerprint_normalizes_whitespace_and_case() -> None:
    assert fingerprint("Access  is\nDENIED", "ctx") == fingerprint("access is denied", " CTX ")
    assert fingerprint("a", "b") != fingerprint("b", "a")
    assert len(fingerprint("a")) == 16


@pytest.mark.asyncio
async def test_background_sweep_runs_until_closed(clock) -> None:
    cache = SuggestionCache(ttl_seconds=1, sweep_seconds=0.01, clock=clock)
    cache.set("k", _suggestion("a"))
    clock.advance(5)

    cache.start()
    assert cache.sweeping
    await asyncio.sleep(0.05)

    assert len(cache) == 0
    cache.close()
    assert not cache.sweeping
