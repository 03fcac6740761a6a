from datetime import datetime, timezone

import pytest
from bson import ObjectId
from pymongo.errors import ConnectionFailure

from gambo.errors import StoreUnavailable
from gambo.models.game import BundleResult, GameStatus, PickResult
from gambo.services.settlement_store import SettlementStore, to_object_id

NOW = datetime(2024, 3, 2, 18, 0, tzinfo=timezone.utc)


def _matches(doc, query):
    for key, expected in query.items():
        if isinstance(expected, dict) and "$in" in expected:
            if doc.get(key) not in expected["$in"]:
                return False
        elif doc.get(key) != expected:
            return False
    return True


class _Cursor:
    def __init__(self, docs):
        self._docs = docs

    async def to_list(self, length=None):
        return list(self._docs)


class _Collection:
    def __init__(self, docs=(), fail=False):
        self.docs = [dict(doc) for doc in docs]
        self.fail = fail
        self.queries = []

    def _check(self):
        if self.fail:
            raise ConnectionFailure("connection refused")

    def find(self, query):
        self._check()
        self.queries.append(query)
        return _Cursor([dict(doc) for doc in self.docs if _matches(doc, query)])

    async def find_one(self, query):
        self._check()
        for doc in self.docs:
            if _matches(doc, query):
                return dict(doc)
        return None

    async def update_one(self, query, update, upsert=False):
        self._check()
        for doc in self.docs:
            if _matches(doc, query):
                doc.update(update.get("$set", {}))
                return
        if upsert:
            self.docs.append({**query, **update.get("$set", {})})


class _Db:
    def __init__(self, games=(), bundles=(), bundle_picks=()):
        self.games = _Collection(games)
        self.bundles = _Collection(bundles)
        self.bundle_picks = _Collection(bundle_picks)


B_ACTIVE, B_OLD = ObjectId(), ObjectId()
G_LIVE, G_DONE, G_ORPHAN = ObjectId(), ObjectId(), ObjectId()


def _db():
    return _Db(
        games=[
            {"_id": G_LIVE, "status": "LIVE"},
            {"_id": G_DONE, "status": "FINISHED", "home_score": 1, "away_score": 0},
            {"_id": G_ORPHAN, "status": "LIVE"},
        ],
        bundles=[
            {"_id": B_ACTIVE, "is_active": True},
            {"_id": B_OLD, "is_active": False},
        ],
        bundle_picks=[
            {"_id": "p1", "bundle_id": B_ACTIVE, "game_id": G_LIVE, "pick": "Home"},
            # string ids as written by older clients
            {"_id": "p2", "bundle_id": B_ACTIVE, "game_id": str(G_DONE), "pick": "Away"},
            {"_id": "p3", "bundle_id": B_OLD, "game_id": G_ORPHAN, "pick": "Draw"},
            {"_id": "p4", "bundle_id": B_OLD, "game_id": G_DONE, "pick": "Draw"},
        ],
    )


def test_to_object_id_converts_hex_strings_only():
    oid = ObjectId()
    assert to_object_id(str(oid)) == oid
    assert to_object_id(oid) is oid
    assert to_object_id("game-7") == "game-7"
    assert to_object_id(None) is None


@pytest.mark.asyncio
async def test_games_are_scoped_to_active_bundles():
    store = SettlementStore(_db())

    games = await store.find_games_by_active_bundles()

    assert {game["_id"] for game in games} == {G_LIVE, G_DONE}


@pytest.mark.asyncio
async def test_games_can_be_filtered_by_status():
    store = SettlementStore(_db())

    games = await store.find_games_by_active_bundles([GameStatus.finished])

    assert [game["_id"] for game in games] == [G_DONE]


@pytest.mark.asyncio
async def test_picks_for_game_respect_active_flag():
    store = SettlementStore(_db())

    active = await store.find_picks_for_game(str(G_DONE))
    everything = await store.find_picks_for_game(G_DONE, active_only=False)

    assert [pick["_id"] for pick in active] == ["p2"]
    assert [pick["_id"] for pick in everything] == ["p2", "p4"]


@pytest.mark.asyncio
async def test_picks_with_string_bundle_id_are_found():
    db = _db()
    db.bundle_picks.docs.append({"_id": "p5", "bundle_id": str(B_ACTIVE), "game_id": G_ORPHAN, "pick": "Home"})
    store = SettlementStore(db)

    picks = await store.find_picks_for_bundles([B_ACTIVE])
    games = await store.find_games_by_active_bundles()
    for_game = await store.find_picks_for_game(G_ORPHAN)

    assert [pick["_id"] for pick in picks] == ["p1", "p2", "p5"]
    assert {game["_id"] for game in games} == {G_LIVE, G_DONE, G_ORPHAN}
    assert [pick["_id"] for pick in for_game] == ["p5"]


@pytest.mark.asyncio
async def test_empty_id_lists_skip_the_query():
    db = _db()
    store = SettlementStore(db)

    assert await store.find_bundles([]) == []
    assert await store.find_picks_for_bundles(iter(())) == []
    assert db.bundles.queries == []


@pytest.mark.asyncio
async def test_upsert_game_sets_fields_and_timestamp():
    db = _db()
    store = SettlementStore(db)

    await store.upsert_game(str(G_LIVE), {"status": "FINISHED", "home_score": 2, "away_score": 2}, NOW)

    game = await store.get_game(G_LIVE)
    assert game["status"] == "FINISHED"
    assert game["home_score"] == 2
    assert game["updated_at"] == NOW


@pytest.mark.asyncio
async def test_pick_result_set_and_cleared():
    db = _db()
    store = SettlementStore(db)

    await store.update_pick_result("p1", PickResult.win, NOW)
    assert db.bundle_picks.docs[0]["result"] == "WIN"
    assert db.bundle_picks.docs[0]["settled_at"] == NOW

    await store.update_pick_result("p1", None, NOW)
    assert db.bundle_picks.docs[0]["result"] is None
    assert db.bundle_picks.docs[0]["settled_at"] is None


@pytest.mark.asyncio
async def test_bundle_performance_is_written_as_one_subdocument():
    db = _db()
    store = SettlementStore(db)

    await store.upsert_bundle_performance(
        B_ACTIVE, wins=2, losses=0, pushes=0, total=2, actual_return=1.995,
        result=BundleResult.win, now=NOW,
    )

    bundle = db.bundles.docs[0]
    assert bundle["performance"] == {
        "total_games": 2,
        "wins": 2,
        "losses": 0,
        "pushes": 0,
        "pending": 0,
        "result": "WIN",
        "actual_return": 1.995,
        "updated_at": NOW,
    }


@pytest.mark.asyncio
async def test_connection_failure_becomes_store_unavailable():
    db = _db()
    db.bundles.fail = True
    store = SettlementStore(db)

    with pytest.raises(StoreUnavailable):
        await store.find_active_bundles()
    with pytest.raises(StoreUnavailable):
        await store.find_games_by_active_bundles()
