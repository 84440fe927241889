"""
backend/los/database.py

Purpose:
    MongoDB connection bootstrap and index management for engine collections.
    The unique pick index is what keeps concurrent engine instances from
    writing two picks for the same participant and round.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - los.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, OperationFailure

from los.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("los.database")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=1,
        serverSelectionTimeoutMS=5000,
        retryWrites=True,
    )
    db = client[settings.MONGO_DB]
    if settings.MONGO_TRANSACTIONS_ENABLED:
        await _check_transaction_support()
    await _ensure_indexes()


async def close_db() -> None:
    global client, db
    if client:
        client.close()
    client = None
    db = None


async def _check_transaction_support() -> None:
    """Multi-document transactions need a replica set or sharded cluster."""
    hello = await client.admin.command("hello")
    if not hello.get("setName") and hello.get("msg") != "isdbgrid":
        logger.warning(
            "MONGO_TRANSACTIONS_ENABLED is set but %s is a standalone server; "
            "auto-pick and result batches will fail until it runs as a replica set "
            "or MONGO_TRANSACTIONS_ENABLED=false",
            settings.MONGO_DB,
        )


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent, safe to run repeatedly."""

    # ---- Editions ----
    await db.editions.create_index([("club_id", 1), ("edition_id", 1)], unique=True)

    # ---- Participants ----
    await db.participants.create_index(
        [("club_id", 1), ("edition_id", 1), ("participant_id", 1)], unique=True,
    )
    await db.participants.create_index([("club_id", 1), ("edition_id", 1), ("is_eliminated", 1)])

    # ---- Picks ----
    # Natural idempotency key: at most one pick per participant per round.
    pick_key = [("club_id", 1), ("edition_id", 1), ("participant_id", 1), ("round_number", 1)]
    try:
        await db.picks.create_index(pick_key, unique=True, name="pick_participant_round")
    except (DuplicateKeyError, OperationFailure) as exc:
        logger.warning("Skipped unique picks index due to duplicate data: %s", exc)
        await db.picks.create_index(pick_key, name="pick_participant_round_lookup")
    await db.picks.create_index(
        [("club_id", 1), ("edition_id", 1), ("round_number", 1), ("team_picked", 1)],
    )

    # ---- Fixtures ----
    await db.fixtures.create_index([("club_id", 1), ("edition_id", 1), ("round_number", 1)])
    await db.fixtures.create_index([("club_id", 1), ("edition_id", 1), ("status", 1)])

    # ---- Audit ----
    await db.audit_logs.create_index([("club_id", 1), ("edition_id", 1), ("timestamp", -1)])
    await db.audit_logs.create_index([("action", 1), ("timestamp", -1)])

    logger.info("Database indexes ensured")
