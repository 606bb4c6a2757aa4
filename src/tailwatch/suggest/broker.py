"""Cache-fronted access to a suggestion provider."""

from __future__ import annotations

from tailwatch.logging_utils import component_logger
from tailwatch.suggest.cache import SuggestionCache, fingerprint
from tailwatch.suggest.models import Suggestion, SuggestionRequest
from tailwatch.suggest.providers import SuggestionProvider
from tailwatch.types import Snapshot

logger = component_logger("broker")


class SuggestionBroker:
    """Look up or fetch the suggestion for a snapshot; never raises."""

    def __init__(self, provider: SuggestionProvider, cache: SuggestionCache) -> None:
        self.provider = provider
        self.cache = cache

    async def fetch(self, snapshot: Snapshot, context: str) -> Suggestion | None:
        key = fingerprint(snapshot.tail, context)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("suggest.cache.hit key={} id={}", key, snapshot.id)
            return cached.tagged(snapshot)

        try:
            suggestion = await self.provider.suggest(SuggestionRequest(snapshot=snapshot, context=context))
        except Exception as exc:
            logger.warning("suggest.fetch.failed provider={} id={} error={}", self.provider.name, snapshot.id, exc)
            return None

        self.cache.set(key, suggestion)
        logger.info("suggest.fetch.done provider={} id={} key={}", self.provider.name, snapshot.id, key)
        return suggestion.tagged(snapshot)
