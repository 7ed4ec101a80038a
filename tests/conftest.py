"""
Shared fixtures: game configs for both crime policies, a fixed clock,
a scripted rng and an in-memory stand-in for MongoGameStore.
"""
import copy
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from mafioso.config import POLICY_AUGMENTED, POLICY_FIXED_RATE, build_game_config
from mafioso.models import BulletFactory, CarListing, Player, PlayerCar
from mafioso.results import BULLET_FACTORIES, CAR_LISTINGS, COOLDOWNS, PLAYERS, Change
from mafioso.storage import WriteConflict
from mafioso.timers import parse_utc

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class ScriptedRng:
    """Stands in for the random module. random() values are consumed in order."""

    def __init__(self, randoms=(), randints=(), choice_index=0):
        self._randoms = list(randoms)
        self._randints = list(randints)
        self.choice_index = choice_index

    def random(self):
        if not self._randoms:
            raise AssertionError("rng.random() called more times than scripted")
        return self._randoms.pop(0)

    def randint(self, a, b):
        if self._randints:
            value = self._randints.pop(0)
            assert a <= value <= b, f"scripted randint {value} outside [{a}, {b}]"
            return value
        return a

    def uniform(self, a, b):
        return a + (b - a) * self.random()

    def choice(self, seq):
        return seq[min(self.choice_index, len(seq) - 1)]


class InMemoryStore:
    """Same read/write surface as MongoGameStore, backed by lists of dicts."""

    def __init__(self):
        self.tables: Dict[str, List[dict]] = {}
        self.applied: List[List[Change]] = []

    def _rows(self, table: str) -> List[dict]:
        return self.tables.setdefault(table, [])

    @staticmethod
    def _matches(row: dict, query: dict) -> bool:
        for field, expected in query.items():
            value = row.get(field)
            if isinstance(expected, dict) and "$lte" in expected:
                if value is None or not value <= expected["$lte"]:
                    return False
            elif value != expected:
                return False
        return True

    def _find(self, table: str, key: dict) -> Optional[dict]:
        for row in self._rows(table):
            if self._matches(row, key):
                return row
        return None

    def put_player(self, player: Player) -> None:
        self._rows(PLAYERS).append(player.model_dump(mode="json"))

    def put_factory(self, factory: BulletFactory) -> None:
        self._rows(BULLET_FACTORIES).append(factory.model_dump(mode="json"))

    def put_listing(self, listing: CarListing) -> None:
        self._rows(CAR_LISTINGS).append(listing.model_dump(mode="json"))

    def player(self, world_id: str) -> Optional[Player]:
        row = self._find(PLAYERS, {"world_id": world_id})
        return Player.model_validate(row) if row else None

    async def load_player(self, world_id):
        return self.player(world_id)

    async def find_player_by_username(self, username):
        if not username or not username.strip():
            return None
        pattern = re.compile("^" + re.escape(username.strip()) + "$", re.IGNORECASE)
        for row in self._rows(PLAYERS):
            if pattern.match(row["username"]):
                return Player.model_validate(row)
        return None

    async def load_factory(self, city_id):
        row = self._find(BULLET_FACTORIES, {"city_id": city_id})
        return BulletFactory.model_validate(row) if row else None

    async def load_factories(self):
        return [BulletFactory.model_validate(r) for r in self._rows(BULLET_FACTORIES)]

    async def load_cooldown(self, player_id, action_id):
        row = self._find(COOLDOWNS, {"player_id": player_id, "action_id": action_id})
        return parse_utc(row["expires_at"]) if row else None

    async def load_listing(self, listing_id):
        row = self._find(CAR_LISTINGS, {"id": listing_id})
        return CarListing.model_validate(row) if row else None

    async def load_active_listings(self, car_type=None):
        rows = [r for r in self._rows(CAR_LISTINGS) if r["active"]]
        if car_type is not None:
            rows = [r for r in rows if r["car_type"] == car_type]
        return [CarListing.model_validate(r) for r in rows]

    async def has_active_listing_for_car(self, car_id, seller_id):
        return self._find(CAR_LISTINGS, {"car_id": car_id, "seller_id": seller_id, "active": True}) is not None

    async def insert_player(self, player):
        self.put_player(player)

    def _write(self, change: Change) -> None:
        if change.insert:
            self._rows(change.table).append(dict(change.fields))
            return
        query = {**change.key, **change.guard}
        if change.many:
            rows = [r for r in self._rows(change.table) if self._matches(r, query)]
        else:
            row = self._find(change.table, query)
            if row is None:
                # A missed guard on an existing key collides like a unique index would
                if not change.upsert or self._find(change.table, change.key) is not None:
                    raise WriteConflict(f"{change.table} {change.key} was changed by another action")
                row = {k: v for k, v in query.items() if not isinstance(v, dict)}
                self._rows(change.table).append(row)
            rows = [row]
        for row in rows:
            row.update(change.fields)
            for field, delta in change.inc.items():
                row[field] = row.get(field, 0) + delta

    async def apply(self, changes):
        """All or nothing, like a transaction."""
        snapshot = copy.deepcopy(self.tables)
        try:
            for change in changes:
                self._write(change)
        except WriteConflict:
            self.tables = snapshot
            raise
        self.applied.append(list(changes))

    async def ensure_indexes(self):
        return None


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def cfg():
    """Fixed-rate policy, the default."""
    return build_game_config(POLICY_FIXED_RATE)


@pytest.fixture
def cfg_augmented():
    return build_game_config(POLICY_AUGMENTED)


@pytest.fixture
def make_player(cfg):
    def _make(world_id="p1", username=None, **fields):
        data = {
            "world_id": world_id,
            "username": username or f"user_{world_id}",
            "money": cfg.starting_money,
            "nerve": cfg.starting_nerve,
            "nerve_updated_at": NOW,
        }
        data.update(fields)
        return Player.model_validate(data)
    return _make


@pytest.fixture
def make_car():
    def _make(car_id="car-1", car_type=0, damage=0, source="bought"):
        return PlayerCar(id=car_id, car_type=car_type, damage=damage, source=source)
    return _make


@pytest.fixture
def memory_store():
    return InMemoryStore()
