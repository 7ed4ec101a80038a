"""
Tagged results returned by every engine action.

An action never raises for an expected outcome. It returns a Resolution that
either carries a GameError or the updated player, an outcome model and the
explicit list of record changes the caller must persist.
"""
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from mafioso.models import Player

# Collection names used in Change.table
PLAYERS = "players"
BULLET_FACTORIES = "bullet_factories"
COOLDOWNS = "cooldowns"
CAR_LISTINGS = "car_listings"
CRIME_HISTORY = "crime_history"

# Bumped on every player write; writes are conditional on the loaded value
VERSION_FIELD = "version"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    PRECONDITION_FAILED = "precondition_failed"
    CONFLICT = "conflict"


class GameError(BaseModel):
    kind: ErrorKind
    reason: str


class Change(BaseModel):
    """
    One record write. insert=True appends a new record; otherwise fields are $set
    and inc is $inc on the record matching key plus guard. guard holds the values
    the action read, so a write based on a stale read matches nothing and the
    whole batch is rejected. many=True updates every match and never conflicts.
    """

    table: str
    key: Dict[str, Any]
    fields: Dict[str, Any] = Field(default_factory=dict)
    inc: Dict[str, int] = Field(default_factory=dict)
    guard: Dict[str, Any] = Field(default_factory=dict)
    upsert: bool = False
    insert: bool = False
    many: bool = False


class Resolution(BaseModel):
    error: Optional[GameError] = None
    player: Optional[Player] = None
    outcome: Any = None
    changes: List[Change] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


def fail(kind: ErrorKind, reason: str) -> Resolution:
    return Resolution(error=GameError(kind=kind, reason=reason))


def validation_error(reason: str) -> Resolution:
    return fail(ErrorKind.VALIDATION, reason)


def not_found(reason: str) -> Resolution:
    return fail(ErrorKind.NOT_FOUND, reason)


def precondition_failed(reason: str) -> Resolution:
    return fail(ErrorKind.PRECONDITION_FAILED, reason)


def conflict(reason: str) -> Resolution:
    return fail(ErrorKind.CONFLICT, reason)


def succeed(player: Optional[Player], outcome: Any, changes: List[Change]) -> Resolution:
    return Resolution(player=player, outcome=outcome, changes=changes)


def player_change(player: Player, fields: Iterable[str], inc: Optional[Dict[str, int]] = None) -> Change:
    """
    Persist only the named fields of a player, guarded on the version it was loaded
    at. Fields named in inc are sent as deltas instead of values. Unknown names are
    a programming error.
    """
    inc = dict(inc or {})
    names = set(fields) - set(inc)
    unknown = (names | set(inc)) - set(Player.model_fields)
    if unknown:
        raise ValueError(f"Unknown player fields: {sorted(unknown)}")
    if VERSION_FIELD in names or VERSION_FIELD in inc:
        raise ValueError("version is managed by player_change")
    inc[VERSION_FIELD] = 1
    return Change(
        table=PLAYERS,
        key={"world_id": player.world_id},
        fields=player.model_dump(mode="json", include=names),
        inc=inc,
        guard={VERSION_FIELD: player.version},
    )


# ---------------------------------------------------------------------------
# Outcome models (also used as response bodies)
# ---------------------------------------------------------------------------

class CrimeOutcome(BaseModel):
    success: bool
    message: str
    outcome: str
    money_earned: int = 0
    respect_earned: int = 0
    car: Optional[Dict[str, Any]] = None
    jail_until: Optional[str] = None
    hospital_until: Optional[str] = None
    rank_up: bool = False
    new_rank: Optional[int] = None
    bullets_awarded: int = 0
    next_available: str


class SearchOutcome(BaseModel):
    message: str
    target_username: str
    ends_at: str


class ShootOutcome(BaseModel):
    message: str
    bullets_used: int
    cars_taken: int
    target_username: str


class PurchaseOutcome(BaseModel):
    message: str
    item_id: int
    item_name: str
    price: int
    money_left: int


class MeltOutcome(BaseModel):
    message: str
    bullets_gained: int
    next_melt_at: str


class RepairOutcome(BaseModel):
    message: str
    success: bool
    chance: float
    damage: int


class TravelOutcome(BaseModel):
    message: str
    city: int
    city_name: str
    cost: int
    travel_time: int
    car_damage: int


class FactoryOutcome(BaseModel):
    message: str
    city_id: int
    bullets_collected: int = 0
    stored_bullets: int = 0


class ListingOutcome(BaseModel):
    message: str
    listing_id: str
    price: int


class CarPurchaseOutcome(BaseModel):
    message: str
    listing_id: str
    car_id: str
    car_type: int
    price: int
    money_left: int


class MessageOutcome(BaseModel):
    message: str
