"""
backend/gambo/services/settlement_store.py

Purpose:
    Persistent-store contract consumed by the settlement engine and the admin
    correction path, on top of the motor collections ``games``, ``bundles``
    and ``bundle_picks``. Every write is an idempotent ``$set`` keyed by id.

Notes:
    - pymongo ConnectionFailure is re-raised as StoreUnavailable: it is the
      one error that aborts a pass.

Dependencies:
    - gambo.database
    - bson / pymongo
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterable, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import ConnectionFailure

import gambo.database as _db
from gambo.errors import StoreUnavailable
from gambo.models.game import BundleResult, GameStatus, PickResult
from gambo.utils import utcnow

logger = logging.getLogger("gambo.settlement_store")

_MAX_DOCS = 10000


def to_object_id(value: Any) -> Any:
    """ObjectId for 24-hex strings, the value itself otherwise."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return value


def id_variants(value: Any) -> list[Any]:
    """Both stored forms of a reference: ObjectId and its hex string (older clients)."""
    oid = to_object_id(value)
    return [oid, str(oid)] if isinstance(oid, ObjectId) else [oid]


@contextmanager
def _store_errors(operation: str):
    try:
        yield
    except ConnectionFailure as exc:
        logger.error("Store unavailable during %s: %s", operation, exc)
        raise StoreUnavailable(f"{operation}: {exc}") from exc


class SettlementStore:
    def __init__(self, db: Any = None) -> None:
        self._db = db

    @property
    def db(self) -> Any:
        return self._db if self._db is not None else _db.db

    # ── reads ───────────────────────────────────────────────────────────────

    async def find_active_bundles(self) -> list[dict[str, Any]]:
        with _store_errors("find_active_bundles"):
            return await self.db.bundles.find({"is_active": True}).to_list(length=_MAX_DOCS)

    async def find_bundles(self, bundle_ids: Iterable[Any]) -> list[dict[str, Any]]:
        ids = [to_object_id(bundle_id) for bundle_id in bundle_ids]
        if not ids:
            return []
        with _store_errors("find_bundles"):
            return await self.db.bundles.find({"_id": {"$in": ids}}).to_list(length=_MAX_DOCS)

    async def find_picks_for_bundles(self, bundle_ids: Iterable[Any]) -> list[dict[str, Any]]:
        ids = [variant for bundle_id in bundle_ids for variant in id_variants(bundle_id)]
        if not ids:
            return []
        with _store_errors("find_picks_for_bundles"):
            return await self.db.bundle_picks.find({"bundle_id": {"$in": ids}}).to_list(length=_MAX_DOCS)

    async def find_games_by_active_bundles(
        self, statuses: Optional[Iterable[GameStatus]] = None
    ) -> list[dict[str, Any]]:
        """Games referenced by at least one pick of an active bundle."""
        bundles = await self.find_active_bundles()
        picks = await self.find_picks_for_bundles(bundle["_id"] for bundle in bundles)
        game_ids = list({to_object_id(pick["game_id"]) for pick in picks if pick.get("game_id") is not None})
        if not game_ids:
            return []
        query: dict[str, Any] = {"_id": {"$in": game_ids}}
        if statuses is not None:
            query["status"] = {"$in": [GameStatus(s).value for s in statuses]}
        with _store_errors("find_games_by_active_bundles"):
            return await self.db.games.find(query).to_list(length=_MAX_DOCS)

    async def get_game(self, game_id: Any) -> Optional[dict[str, Any]]:
        with _store_errors("get_game"):
            return await self.db.games.find_one({"_id": to_object_id(game_id)})

    async def find_picks_for_game(self, game_id: Any, active_only: bool = True) -> list[dict[str, Any]]:
        query: dict[str, Any] = {"game_id": {"$in": id_variants(game_id)}}
        if active_only:
            bundles = await self.find_active_bundles()
            query["bundle_id"] = {"$in": [v for bundle in bundles for v in id_variants(bundle["_id"])]}
        with _store_errors("find_picks_for_game"):
            return await self.db.bundle_picks.find(query).to_list(length=_MAX_DOCS)

    # ── writes ──────────────────────────────────────────────────────────────

    async def upsert_game(self, game_id: Any, fields: dict[str, Any], now: datetime | None = None) -> None:
        with _store_errors("upsert_game"):
            await self.db.games.update_one(
                {"_id": to_object_id(game_id)},
                {"$set": {**fields, "updated_at": now or utcnow()}},
                upsert=True,
            )

    async def update_pick_result(
        self, pick_id: Any, result: Optional[PickResult], now: datetime | None = None
    ) -> None:
        """Set (or clear, with None) a pick's result."""
        value = result.value if result is not None else None
        with _store_errors("update_pick_result"):
            await self.db.bundle_picks.update_one(
                {"_id": to_object_id(pick_id)},
                {"$set": {"result": value, "settled_at": (now or utcnow()) if value else None}},
            )

    async def upsert_bundle_performance(
        self,
        bundle_id: Any,
        *,
        wins: int,
        losses: int,
        pushes: int,
        total: int,
        actual_return: Optional[float],
        result: Optional[BundleResult] = None,
        pending: int = 0,
        now: datetime | None = None,
    ) -> None:
        performance = {
            "total_games": total,
            "wins": wins,
            "losses": losses,
            "pushes": pushes,
            "pending": pending,
            "result": result.value if result is not None else None,
            "actual_return": actual_return,
            "updated_at": now or utcnow(),
        }
        with _store_errors("upsert_bundle_performance"):
            await self.db.bundles.update_one(
                {"_id": to_object_id(bundle_id)},
                {"$set": {"performance": performance}},
                upsert=True,
            )
