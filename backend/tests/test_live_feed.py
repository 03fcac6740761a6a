"""
backend/tests/test_live_feed.py

Purpose:
    Canonical builder fan-out/fan-in, provider-priority merge order,
    failure isolation and live-score cache behaviour (memory + Mongo).
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from gambo.models.game import GameStatus, Sport
from gambo.models.live_match import CanonicalLiveMatch
from gambo.services.live_cache import LIVE_SCORES_KEY, MemoryLiveCache, MongoLiveCache
from gambo.services.live_feed import LiveFeed
from gambo.utils.clock import FrozenClock

NOW = datetime(2024, 3, 2, 18, 0, tzinfo=timezone.utc)


def _match(source, ext, sport=Sport.soccer):
    return CanonicalLiveMatch(
        source=source,
        external_id=ext,
        sport=sport,
        home_team="Home",
        away_team="Away",
        home_score=1,
        away_score=0,
        status=GameStatus.live,
        current_period="LIVE",
    )


class _FakeProvider:
    def __init__(self, name, by_sport, fail: bool = False) -> None:
        self.name = name
        self._by_sport = by_sport
        self._fail = fail
        self.calls: list[Sport] = []

    def serves(self, sport):
        return sport in self._by_sport

    async def fetch(self, sport):
        self.calls.append(sport)
        if self._fail:
            raise RuntimeError("provider exploded")
        return list(self._by_sport[sport])

    async def aclose(self):
        return None


def _providers():
    betsapi = _FakeProvider(
        "betsapi",
        {Sport.soccer: [_match("betsapi", "b1")], Sport.basketball: [_match("betsapi", "b2", Sport.basketball)]},
    )
    sportmonks = _FakeProvider("sportmonks", {Sport.soccer: [_match("sportmonks", "s1")]})
    sportapi7 = _FakeProvider(
        "sportapi7",
        {Sport.soccer: [_match("sportapi7", "r1")], Sport.basketball: [_match("sportapi7", "r2", Sport.basketball)]},
    )
    return [sportapi7, sportmonks, betsapi]


@pytest.mark.asyncio
async def test_merge_preserves_sport_then_provider_priority():
    clock = FrozenClock(NOW)
    feed = LiveFeed(_providers(), MemoryLiveCache(clock), ttl_seconds=45)

    snapshot = await feed.snapshot()

    assert [m.external_id for m in snapshot.matches] == ["b1", "s1", "r1", "b2", "r2"]
    assert snapshot.cached is False
    assert snapshot.provider_counts == {"betsapi": 2, "sportmonks": 1, "sportapi7": 2}


@pytest.mark.asyncio
async def test_one_failing_provider_does_not_block_the_others():
    providers = _providers()
    providers[1]._fail = True  # sportmonks
    feed = LiveFeed(providers, MemoryLiveCache(FrozenClock(NOW)), ttl_seconds=45)

    snapshot = await feed.snapshot()

    assert [m.external_id for m in snapshot.matches] == ["b1", "r1", "b2", "r2"]
    assert snapshot.provider_counts["sportmonks"] == 0


@pytest.mark.asyncio
async def test_sport_filter_applies_to_the_returned_matches_only():
    providers = _providers()
    feed = LiveFeed(providers, MemoryLiveCache(FrozenClock(NOW)), ttl_seconds=45)

    snapshot = await feed.snapshot({Sport.basketball})

    assert [m.external_id for m in snapshot.matches] == ["b2", "r2"]
    assert providers[1].calls == [Sport.soccer]
    assert snapshot.provider_counts == {"betsapi": 2, "sportmonks": 1, "sportapi7": 2}


@pytest.mark.asyncio
async def test_passes_with_different_sports_share_one_cache_entry():
    clock = FrozenClock(NOW)
    providers = _providers()
    feed = LiveFeed(providers, MemoryLiveCache(clock), ttl_seconds=45)

    first = await feed.snapshot({Sport.soccer})
    clock.advance(seconds=10)
    second = await feed.snapshot({Sport.basketball})

    assert [m.external_id for m in first.matches] == ["b1", "s1", "r1"]
    assert second.cached is True
    assert [m.external_id for m in second.matches] == ["b2", "r2"]
    assert providers[2].calls == [Sport.soccer, Sport.basketball]


@pytest.mark.asyncio
async def test_empty_sport_set_skips_fetch_and_cache():
    clock = FrozenClock(NOW)
    providers = _providers()
    cache = MemoryLiveCache(clock)
    feed = LiveFeed(providers, cache, ttl_seconds=45)

    snapshot = await feed.snapshot(set())

    assert snapshot.matches == []
    assert all(provider.calls == [] for provider in providers)
    assert await cache.get(LIVE_SCORES_KEY) is None


@pytest.mark.asyncio
async def test_cache_hit_short_circuits_providers_until_ttl_expires():
    clock = FrozenClock(NOW)
    providers = _providers()
    feed = LiveFeed(providers, MemoryLiveCache(clock), ttl_seconds=45)

    await feed.snapshot()
    clock.advance(seconds=44)
    cached = await feed.snapshot()

    assert cached.cached is True
    assert [m.external_id for m in cached.matches] == ["b1", "s1", "r1", "b2", "r2"]
    assert providers[2].calls == [Sport.soccer, Sport.basketball]

    clock.advance(seconds=1)
    fresh = await feed.snapshot()

    assert fresh.cached is False
    assert len(providers[2].calls) == 4


class _Collection:
    def __init__(self):
        self.docs: dict[str, dict] = {}

    async def find_one(self, query):
        doc = self.docs.get(query["_id"])
        return dict(doc) if doc else None

    async def update_one(self, query, update, upsert=False):
        doc = self.docs.get(query["_id"])
        if doc is None:
            if not upsert:
                return
            doc = {"_id": query["_id"], **update.get("$setOnInsert", {})}
        doc.update(update.get("$set", {}))
        self.docs[query["_id"]] = doc


@pytest.mark.asyncio
async def test_mongo_cache_respects_expiry():
    clock = FrozenClock(NOW)
    collection = _Collection()
    cache = MongoLiveCache(clock, collection=collection)

    await cache.set(LIVE_SCORES_KEY, [_match("betsapi", "b1")], 45)
    hit = await cache.get(LIVE_SCORES_KEY)
    clock.advance(seconds=45)
    miss = await cache.get(LIVE_SCORES_KEY)

    assert [m.external_id for m in hit] == ["b1"]
    assert miss is None
    assert collection.docs[LIVE_SCORES_KEY]["created_at"] == NOW


@pytest.mark.asyncio
async def test_unreadable_cache_payload_is_a_miss():
    clock = FrozenClock(NOW)
    collection = _Collection()
    collection.docs[LIVE_SCORES_KEY] = {
        "_id": LIVE_SCORES_KEY,
        "payload": [{"nonsense": True}],
        "expires_at": datetime(2030, 1, 1),
    }

    assert await MongoLiveCache(clock, collection=collection).get(LIVE_SCORES_KEY) is None
