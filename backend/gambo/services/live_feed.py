"""
backend/gambo/services/live_feed.py

Purpose:
    Canonical builder: fans out to every configured provider concurrently,
    merges their canonical matches in provider-priority order and memoizes
    the merged list under the "live-scores" cache key.

Dependencies:
    - gambo.providers.registry
    - gambo.services.live_cache
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable

from gambo.config import settings
from gambo.models.game import Sport
from gambo.models.live_match import CanonicalLiveMatch
from gambo.providers.base import LiveScoreProvider
from gambo.providers.registry import provider_plan
from gambo.services.live_cache import LIVE_SCORES_KEY, LiveCache

logger = logging.getLogger("gambo.live_feed")


@dataclass
class FeedSnapshot:
    matches: list[CanonicalLiveMatch]
    cached: bool = False
    provider_counts: dict[str, int] = field(default_factory=dict)


def _only(matches: list[CanonicalLiveMatch], sports: set[Sport] | None) -> list[CanonicalLiveMatch]:
    if sports is None:
        return matches
    return [match for match in matches if match.sport in sports]


class LiveFeed:
    def __init__(
        self,
        providers: list[LiveScoreProvider],
        cache: LiveCache,
        *,
        ttl_seconds: int | None = None,
    ) -> None:
        self._providers = providers
        self._cache = cache
        self._ttl = settings.LIVE_SCORES_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds

    async def _provider_task(
        self, provider: LiveScoreProvider, sports: list[Sport]
    ) -> dict[Sport, list[CanonicalLiveMatch]]:
        results = await asyncio.gather(*(provider.fetch(sport) for sport in sports))
        return dict(zip(sports, results))

    async def snapshot(self, sports: Iterable[Sport] | None = None) -> FeedSnapshot:
        """Merged list for ``sports`` (all when None), read from the cache when fresh.

        The cached entry always holds every planned sport; the filter is applied
        on the way out so passes asking for different sports share one entry.
        """
        wanted = set(sports) if sports is not None else None
        if wanted is not None and not wanted:
            return FeedSnapshot(matches=[])

        cached = await self._cache.get(LIVE_SCORES_KEY)
        if cached is not None:
            logger.debug("Live-score cache hit (%d matches)", len(cached))
            return FeedSnapshot(matches=_only(cached, wanted), cached=True)

        plan = provider_plan(self._providers)
        per_provider: dict[str, list[Sport]] = {}
        providers_by_name: dict[str, LiveScoreProvider] = {}
        for sport, provider in plan:
            per_provider.setdefault(provider.name, []).append(sport)
            providers_by_name[provider.name] = provider

        names = list(per_provider)
        outcomes = await asyncio.gather(
            *(self._provider_task(providers_by_name[name], per_provider[name]) for name in names),
            return_exceptions=True,
        )
        by_provider: dict[str, dict[Sport, list[CanonicalLiveMatch]]] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Provider %s failed unexpectedly: %s", name, outcome)
                by_provider[name] = {}
                continue
            by_provider[name] = outcome

        merged: list[CanonicalLiveMatch] = []
        counts: dict[str, int] = {name: 0 for name in names}
        for sport, provider in plan:
            batch = by_provider.get(provider.name, {}).get(sport, [])
            merged.extend(batch)
            counts[provider.name] += len(batch)

        await self._cache.set(LIVE_SCORES_KEY, merged, self._ttl)
        logger.info(
            "Live feed: %d canonical matches (%s)",
            len(merged),
            ", ".join(f"{name}={count}" for name, count in counts.items()) or "no providers",
        )
        return FeedSnapshot(matches=_only(merged, wanted), cached=False, provider_counts=counts)

    async def aclose(self) -> None:
        for provider in self._providers:
            await provider.aclose()
