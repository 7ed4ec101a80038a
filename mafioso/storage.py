"""
MongoDB storage collaborator (motor).

The engine never touches the database; handlers load records through this
store, call the engine and hand the returned Change list to apply(). Several
changes are written in one multi-document transaction so trades and kills
are all-or-nothing.
"""
import logging
import os
import re
from pathlib import Path
from typing import List, Optional

import certifi
from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import DuplicateKeyError

from mafioso.models import BulletFactory, CarListing, Player
from mafioso.results import (
    BULLET_FACTORIES,
    CAR_LISTINGS,
    COOLDOWNS,
    CRIME_HISTORY,
    PLAYERS,
    Change,
)
from mafioso.timers import parse_utc

logger = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).parent


class WriteConflict(Exception):
    """A guarded write matched nothing: the record changed after it was read."""


def _username_pattern(username: str):
    """Case-insensitive exact match for username lookups."""
    if not username or not username.strip():
        return None
    return re.compile("^" + re.escape(username.strip()) + "$", re.IGNORECASE)


class MongoGameStore:
    def __init__(self, db, client=None, use_transactions: bool = True):
        self.db = db
        self.client = client
        self.use_transactions = use_transactions and client is not None

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    async def load_player(self, world_id: str) -> Optional[Player]:
        doc = await self.db[PLAYERS].find_one({"world_id": world_id}, {"_id": 0})
        return Player.model_validate(doc) if doc else None

    async def find_player_by_username(self, username: str) -> Optional[Player]:
        pattern = _username_pattern(username)
        if pattern is None:
            return None
        doc = await self.db[PLAYERS].find_one({"username": pattern}, {"_id": 0})
        return Player.model_validate(doc) if doc else None

    async def load_factory(self, city_id: int) -> Optional[BulletFactory]:
        doc = await self.db[BULLET_FACTORIES].find_one({"city_id": city_id}, {"_id": 0})
        return BulletFactory.model_validate(doc) if doc else None

    async def load_factories(self) -> List[BulletFactory]:
        docs = await self.db[BULLET_FACTORIES].find({}, {"_id": 0}).to_list(100)
        return [BulletFactory.model_validate(d) for d in docs]

    async def load_cooldown(self, player_id: str, action_id: str):
        doc = await self.db[COOLDOWNS].find_one({"player_id": player_id, "action_id": action_id}, {"_id": 0})
        return parse_utc(doc.get("expires_at")) if doc else None

    async def load_listing(self, listing_id: str) -> Optional[CarListing]:
        doc = await self.db[CAR_LISTINGS].find_one({"id": listing_id}, {"_id": 0})
        return CarListing.model_validate(doc) if doc else None

    async def load_active_listings(self, car_type: Optional[int] = None) -> List[CarListing]:
        query = {"active": True}
        if car_type is not None:
            query["car_type"] = car_type
        docs = await self.db[CAR_LISTINGS].find(query, {"_id": 0}).to_list(5000)
        return [CarListing.model_validate(d) for d in docs]

    async def has_active_listing_for_car(self, car_id: str, seller_id: str) -> bool:
        doc = await self.db[CAR_LISTINGS].find_one(
            {"car_id": car_id, "seller_id": seller_id, "active": True}, {"_id": 1}
        )
        return doc is not None

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------

    async def insert_player(self, player: Player) -> None:
        await self.db[PLAYERS].insert_one(player.model_dump(mode="json"))

    async def _write(self, change: Change, session=None) -> None:
        collection = self.db[change.table]
        try:
            if change.insert:
                # insert_one adds _id to the dict it is given
                await collection.insert_one(dict(change.fields), session=session)
                return
            update = {}
            if change.fields:
                update["$set"] = change.fields
            if change.inc:
                update["$inc"] = change.inc
            query = {**change.key, **change.guard}
            if change.many:
                await collection.update_many(query, update, session=session)
                return
            result = await collection.update_one(query, update, upsert=change.upsert, session=session)
        except DuplicateKeyError:
            # A guarded upsert that missed tries to insert over the existing record
            raise WriteConflict(f"{change.table} {change.key} was changed by another action")
        if result.matched_count == 0 and result.upserted_id is None:
            raise WriteConflict(f"{change.table} {change.key} was changed by another action")

    async def apply(self, changes: List[Change]) -> None:
        """
        Persist a resolution's changes. More than one change runs in a single
        transaction, so a WriteConflict from any guarded write rolls back the rest.
        Without transactions the writes before the conflicting one stay applied.
        """
        if not changes:
            return
        if len(changes) == 1 or not self.use_transactions:
            for change in changes:
                await self._write(change)
            return
        try:
            async with await self.client.start_session() as session:
                async with session.start_transaction():
                    for change in changes:
                        await self._write(change, session=session)
        except WriteConflict as e:
            logger.info("Transaction aborted, stale write: %s", e)
            raise
        except Exception:
            logger.exception("Transaction failed for %s", [c.table for c in changes])
            raise

    async def ensure_indexes(self) -> None:
        """Idempotent: safe to run on every startup."""
        try:
            await self.db[PLAYERS].create_index("world_id", unique=True)
            await self.db[PLAYERS].create_index("username", unique=True)
            await self.db[BULLET_FACTORIES].create_index("city_id", unique=True)
            await self.db[COOLDOWNS].create_index([("player_id", 1), ("action_id", 1)], unique=True)
            await self.db[CAR_LISTINGS].create_index("id", unique=True)
            await self.db[CAR_LISTINGS].create_index([("active", 1), ("car_type", 1), ("price", 1)])
            await self.db[CAR_LISTINGS].create_index([("car_id", 1), ("active", 1)])
            await self.db[CAR_LISTINGS].create_index(
                [("seller_id", 1), ("car_id", 1)],
                unique=True,
                partialFilterExpression={"active": True},
                name="one_active_listing_per_car",
            )
            await self.db[CRIME_HISTORY].create_index([("player_id", 1), ("attempted_at", -1)])
            logger.info("Game indexes ensured.")
        except Exception as e:
            logger.warning("ensure_indexes: %s", e)


def create_store_from_env() -> MongoGameStore:
    """Build the store from MONGO_URL / DB_NAME. certifi CA bundle only for Atlas URLs."""
    load_dotenv(ROOT_DIR / ".env")
    load_dotenv(ROOT_DIR.parent / ".env")
    mongo_url = os.environ["MONGO_URL"]
    if "mongodb+srv" in mongo_url or "mongodb.net" in mongo_url:
        client = AsyncIOMotorClient(mongo_url, tlsCAFile=certifi.where())
    else:
        client = AsyncIOMotorClient(mongo_url)
    use_transactions = os.environ.get("MONGO_TRANSACTIONS", "true").strip().lower() in ("1", "true", "yes")
    return MongoGameStore(client[os.environ["DB_NAME"]], client=client, use_transactions=use_transactions)
