from __future__ import annotations

import pytest

from tailwatch.suggest.broker import SuggestionBroker
from tailwatch.suggest.cache import SuggestionCache
from tailwatch.suggest.models import Suggestion, SuggestionRequest
from tailwatch.types import Snapshot, SnapshotSummary, Trigger


class CountingProvider:
    name = "counting"

    def __init__(self) -> None:
        self.calls = 0

    async def suggest(self, request: SuggestionRequest) -> Suggestion:
        self.calls += 1
        return Suggestion(id=request.snapshot.id, snapshot_seq=request.snapshot.seq, title="Try again")


class BrokenProvider:
    name = "broken"

    async def suggest(self, request: SuggestionRequest) -> Suggestion:
        raise TimeoutError("provider timed out")


def _snapshot(seq: int, command_id: str = "cmd1") -> Snapshot:
    return Snapshot(
        id=command_id,
        seq=seq,
        trigger=Trigger.ON_ERROR,
        summary=SnapshotSummary(),
        tail="fatal: repository not found",
    )


@pytest.mark.asyncio
async def test_repeated_request_is_served_from_cache() -> None:
    provider = CountingProvider()
    broker = SuggestionBroker(provider, SuggestionCache())

    first = await broker.fetch(_snapshot(1), "ctx")
    second = await broker.fetch(_snapshot(2, "cmd2"), "ctx")

    assert provider.calls == 1
    assert first is not None and second is not None
    assert (first.id, first.snapshot_seq) == ("cmd1", 1)
    assert (second.id, second.snapshot_seq) == ("cmd2", 2)
    assert second.title == "Try again"


@pytest.mark.asyncio
async def test_different_context_misses_cache() -> None:
    provider = CountingProvider()
    broker = SuggestionBroker(provider, SuggestionCache())

    await broker.fetch(_snapshot(1), "ctx one")
    await broker.fetch(_snapshot(2), "ctx two")

    assert provider.calls == 2


@pytest.mark.asyncio
async def test_provider_failure_returns_none() -> None:
    cache = SuggestionCache()
    broker = SuggestionBroker(BrokenProvider(), cache)

    assert await broker.fetch(_snapshot(1), "ctx") is None
    assert len(cache) == 0
