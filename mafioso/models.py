# Persisted records and static catalog entries
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

CarSource = Literal["bought", "crime_reward", "killed_player"]


# ---------------------------------------------------------------------------
# Static catalog entries (read-only, indexed by id)
# ---------------------------------------------------------------------------

class Rank(BaseModel):
    id: int
    name: str
    required_respect: int


class City(BaseModel):
    id: int
    name: str


class Crime(BaseModel):
    id: int
    name: str
    base_success: int
    payout_min: int
    payout_max: int
    base_respect: int
    required_rank: int
    cooldown: int  # seconds
    nerve: int = 0
    jail_time: Optional[int] = None  # fixed-rate policy only
    car_reward: bool = False


class Gun(BaseModel):
    id: int
    name: str
    price: int
    divisor: float


class Protection(BaseModel):
    id: int
    name: str
    price: int
    multiplier: float


class CarModel(BaseModel):
    id: int
    name: str
    price: int
    speed: int
    accel: int
    base_bullets: int
    rare: bool = False


class RarityTier(BaseModel):
    name: str
    weight: int
    car_ids: List[int]


# ---------------------------------------------------------------------------
# Player aggregate
# ---------------------------------------------------------------------------

class PlayerStats(BaseModel):
    crimes_attempted: int = 0
    crimes_succeeded: int = 0
    crimes_failed: int = 0
    times_jailed: int = 0
    times_hospitalized: int = 0
    total_money_earned: int = 0
    total_respect_earned: int = 0
    rank_ups: int = 0


class PlayerCar(BaseModel):
    id: str
    car_type: int
    damage: int = Field(default=0, ge=0, le=100)
    source: CarSource = "bought"
    acquired_at: Optional[datetime] = None


class SearchState(BaseModel):
    target_id: str
    target_username: str
    target_city: int
    started_at: datetime
    ends_at: datetime


class Player(BaseModel):
    world_id: str
    wallet_address: Optional[str] = None
    username: str
    money: int = 0
    swiss_bank: int = 0
    respect: int = 0
    bullets: int = 0
    rank: int = 0
    city: int = 0
    nerve: int = 0
    nerve_updated_at: Optional[datetime] = None
    gun_id: Optional[int] = None
    protection_id: Optional[int] = None
    cars: List[PlayerCar] = Field(default_factory=list)
    active_car: Optional[str] = None
    jail_until: Optional[datetime] = None
    hospital_until: Optional[datetime] = None
    last_melt_time: Optional[datetime] = None
    searching_for: Optional[SearchState] = None
    kills: int = 0
    deaths: int = 0
    stats: PlayerStats = Field(default_factory=PlayerStats)
    bullet_factory_id: Optional[int] = None
    created_at: Optional[datetime] = None
    version: int = 0

    def get_car(self, car_id: Optional[str]) -> Optional[PlayerCar]:
        if not car_id:
            return None
        for car in self.cars:
            if car.id == car_id:
                return car
        return None

    def active_car_record(self) -> Optional[PlayerCar]:
        return self.get_car(self.active_car)


# ---------------------------------------------------------------------------
# Other persisted records
# ---------------------------------------------------------------------------

class BulletFactory(BaseModel):
    city_id: int
    owner_id: Optional[str] = None
    last_collection_time: Optional[datetime] = None
    stored_bullets: int = 0


class CarListing(BaseModel):
    id: str
    seller_id: str
    seller_username: Optional[str] = None
    car_id: str
    car_type: int
    damage: int
    price: int
    active: bool = True
    created_at: Optional[datetime] = None
    sold_at: Optional[datetime] = None
    buyer_id: Optional[str] = None


class CrimeAttempt(BaseModel):
    """Append-only audit entry, one per committed crime."""

    id: str
    player_id: str
    crime_id: int
    crime_name: str
    policy: str
    success: bool
    outcome: Literal["success", "jail", "hospital", "failed"]
    money_earned: int = 0
    respect_earned: int = 0
    car_type: Optional[int] = None
    attempted_at: datetime


class PlayerCooldown(BaseModel):
    player_id: str
    action_id: str
    expires_at: datetime
