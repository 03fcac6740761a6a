"""
backend/gambo/services/live_cache.py

Purpose:
    Short-lived cache for the merged canonical live-match list so that
    concurrent or back-to-back passes do not re-poll paid providers.
    In-memory for single-process deployments, MongoDB-backed for cron
    deployments with several workers.

Dependencies:
    - gambo.database (mongo variant)
    - gambo.utils.clock
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Protocol

from pydantic import ValidationError

import gambo.database as _db
from gambo.config import settings
from gambo.models.live_match import CanonicalLiveMatch
from gambo.utils import ensure_utc
from gambo.utils.clock import Clock, SystemClock

logger = logging.getLogger("gambo.live_cache")

LIVE_SCORES_KEY = "live-scores"
_COLLECTION = "live_cache"


def _dump(matches: list[CanonicalLiveMatch]) -> list[dict[str, Any]]:
    return [match.model_dump(mode="json") for match in matches]


def _load(payload: Any) -> list[CanonicalLiveMatch] | None:
    if not isinstance(payload, list):
        return None
    try:
        return [CanonicalLiveMatch.model_validate(item) for item in payload]
    except ValidationError as exc:
        logger.warning("Discarding unreadable live-score cache entry: %s", exc)
        return None


class LiveCache(Protocol):
    async def get(self, key: str) -> list[CanonicalLiveMatch] | None:
        ...

    async def set(self, key: str, matches: list[CanonicalLiveMatch], ttl_seconds: int) -> None:
        ...


class MemoryLiveCache:
    """Per-process TTL cache; an entry is fresh while now < stored_at + ttl."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._entries: dict[str, tuple[Any, list[dict[str, Any]]]] = {}

    async def get(self, key: str) -> list[CanonicalLiveMatch] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if self._clock.now() >= expires_at:
            self._entries.pop(key, None)
            return None
        return _load(payload)

    async def set(self, key: str, matches: list[CanonicalLiveMatch], ttl_seconds: int) -> None:
        expires_at = self._clock.now() + timedelta(seconds=max(0, int(ttl_seconds)))
        self._entries[key] = (expires_at, _dump(matches))

    def clear(self) -> None:
        self._entries.clear()


class MongoLiveCache:
    """``live_cache`` collection keyed by cache key, freshness via ``expires_at``."""

    def __init__(self, clock: Clock | None = None, collection: Any = None) -> None:
        self._clock = clock or SystemClock()
        self._collection = collection

    def _coll(self):
        if self._collection is not None:
            return self._collection
        return getattr(_db.db, _COLLECTION)

    async def get(self, key: str) -> list[CanonicalLiveMatch] | None:
        doc = await self._coll().find_one({"_id": str(key)})
        if not isinstance(doc, dict):
            return None
        expires_at = doc.get("expires_at")
        if expires_at is None or ensure_utc(expires_at) <= self._clock.now():
            return None
        return _load(doc.get("payload"))

    async def set(self, key: str, matches: list[CanonicalLiveMatch], ttl_seconds: int) -> None:
        now = self._clock.now()
        await self._coll().update_one(
            {"_id": str(key)},
            {
                "$set": {
                    "payload": _dump(matches),
                    "updated_at": now,
                    "expires_at": now + timedelta(seconds=max(0, int(ttl_seconds))),
                },
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
        )


def build_live_cache(clock: Clock | None = None) -> LiveCache:
    backend = str(settings.LIVE_SCORES_CACHE_BACKEND or "memory").strip().lower()
    if backend == "mongo":
        return MongoLiveCache(clock)
    if backend != "memory":
        logger.warning("Unknown LIVE_SCORES_CACHE_BACKEND %r, using in-memory cache", backend)
    return MemoryLiveCache(clock)
