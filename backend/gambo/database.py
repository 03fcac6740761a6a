"""
backend/gambo/database.py

Purpose:
    MongoDB connection bootstrap and index management for the settlement
    collections (games, bundles, bundle_picks, live_cache).

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - gambo.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import OperationFailure

from gambo.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("gambo.database")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=10,
        minPoolSize=1,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()


async def close_db() -> None:
    global client
    if client:
        client.close()


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent, safe to run repeatedly."""

    # ---- Games ----
    await db.games.create_index([("sport", 1), ("status", 1)])
    await db.games.create_index("status")
    await db.games.create_index("coverage_gap", sparse=True)

    # ---- Bundles ----
    await db.bundles.create_index("is_active")

    # ---- Bundle picks ----
    await db.bundle_picks.create_index("bundle_id")
    await db.bundle_picks.create_index([("game_id", 1), ("result", 1)])

    # ---- Live-score cache (expired docs are pruned by Mongo) ----
    try:
        await db.live_cache.create_index("expires_at", expireAfterSeconds=0)
    except OperationFailure as exc:
        logger.warning("Skipped live_cache TTL index: %s", exc)

    logger.info("Database indexes ensured")
