"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import paths for backend and root-level tool
    modules, plus an in-memory settlement store used by the engine and admin
    path tests.
"""

from __future__ import annotations

import sys
from copy import deepcopy
from pathlib import Path

import pytest

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]
_REPO_ROOT = _THIS_FILE.parents[2]

for candidate in (str(_BACKEND_DIR), str(_REPO_ROOT)):
    if candidate not in sys.path:
        sys.path.insert(0, candidate)

from gambo.errors import StoreUnavailable  # noqa: E402


class FakeSettlementStore:
    """Dict-backed stand-in for SettlementStore; reads hand out copies like Mongo does."""

    def __init__(self) -> None:
        self.games: dict = {}
        self.bundles: dict = {}
        self.picks: dict = {}
        self.game_writes: list = []
        self.pick_writes: list = []
        self.bundle_writes: list = []
        self.unavailable = False

    # seeding helpers
    def add_bundle(self, bundle_id, active: bool = True, **fields):
        self.bundles[bundle_id] = {"_id": bundle_id, "is_active": active, **fields}

    def add_game(self, game_id, **fields):
        self.games[game_id] = {"_id": game_id, "home_score": None, "away_score": None, **fields}

    def add_pick(self, pick_id, bundle_id, game_id, text, odds=1.5, result=None, **fields):
        self.picks[pick_id] = {
            "_id": pick_id,
            "bundle_id": bundle_id,
            "game_id": game_id,
            "pick": text,
            "odds": odds,
            "result": result,
            **fields,
        }

    def _check(self):
        if self.unavailable:
            raise StoreUnavailable("fake store offline")

    # SettlementStore contract
    async def find_active_bundles(self):
        self._check()
        return [deepcopy(b) for b in self.bundles.values() if b.get("is_active")]

    async def find_bundles(self, bundle_ids):
        ids = set(bundle_ids)
        return [deepcopy(b) for b in self.bundles.values() if b["_id"] in ids]

    async def find_picks_for_bundles(self, bundle_ids):
        ids = set(bundle_ids)
        return [deepcopy(p) for p in self.picks.values() if p["bundle_id"] in ids]

    async def find_games_by_active_bundles(self, statuses=None):
        self._check()
        active = {b["_id"] for b in self.bundles.values() if b.get("is_active")}
        game_ids = {p["game_id"] for p in self.picks.values() if p["bundle_id"] in active}
        wanted = {getattr(s, "value", s) for s in statuses} if statuses is not None else None
        return [
            deepcopy(g)
            for g in self.games.values()
            if g["_id"] in game_ids and (wanted is None or g.get("status") in wanted)
        ]

    async def get_game(self, game_id):
        game = self.games.get(game_id)
        return deepcopy(game) if game else None

    async def find_picks_for_game(self, game_id, active_only=True):
        active = {b["_id"] for b in self.bundles.values() if b.get("is_active")}
        return [
            deepcopy(p)
            for p in self.picks.values()
            if p["game_id"] == game_id and (not active_only or p["bundle_id"] in active)
        ]

    async def upsert_game(self, game_id, fields, now=None):
        self._check()
        self.games.setdefault(game_id, {"_id": game_id}).update(deepcopy(fields))
        self.game_writes.append((game_id, dict(fields)))

    async def update_pick_result(self, pick_id, result, now=None):
        self._check()
        self.picks[pick_id]["result"] = result.value if result is not None else None
        self.pick_writes.append((pick_id, self.picks[pick_id]["result"]))

    async def upsert_bundle_performance(
        self, bundle_id, *, wins, losses, pushes, total, actual_return, result=None, pending=0, now=None
    ):
        self._check()
        self.bundles.setdefault(bundle_id, {"_id": bundle_id})["performance"] = {
            "total_games": total,
            "wins": wins,
            "losses": losses,
            "pushes": pushes,
            "pending": pending,
            "result": result.value if result is not None else None,
            "actual_return": actual_return,
            "updated_at": now,
        }
        self.bundle_writes.append(bundle_id)


@pytest.fixture
def fake_store() -> FakeSettlementStore:
    return FakeSettlementStore()
