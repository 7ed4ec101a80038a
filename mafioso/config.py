"""
Static game-balance tables and tunables. No database or request dependencies.
Every engine function takes a GameConfig built from these; nothing reads the globals directly.
"""
import os
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from mafioso.models import CarModel, City, Crime, Gun, Protection, Rank, RarityTier

# Crime resolution policies
POLICY_AUGMENTED = "augmented"    # rank/nerve bonus, jail or hospital on failure
POLICY_FIXED_RATE = "fixed_rate"  # fixed success rate, jail-only failures, car-reward crimes
CRIME_POLICIES = (POLICY_AUGMENTED, POLICY_FIXED_RATE)

# Rank is derived from respect only. Mafioso is the top rank.
RANKS = [
    {"id": 0, "name": "Beggar", "required_respect": 0},
    {"id": 1, "name": "Bum", "required_respect": 100},
    {"id": 2, "name": "Thief", "required_respect": 500},
    {"id": 3, "name": "Dealer", "required_respect": 2500},
    {"id": 4, "name": "Bookie", "required_respect": 7500},
    {"id": 5, "name": "Thug", "required_respect": 25000},
    {"id": 6, "name": "Killer", "required_respect": 100000},
    {"id": 7, "name": "Bodyguard", "required_respect": 350000},
    {"id": 8, "name": "Smuggler", "required_respect": 750000},
    {"id": 9, "name": "Wheelman", "required_respect": 2000000},
    {"id": 10, "name": "Hitman", "required_respect": 6500000},
    {"id": 11, "name": "Associate", "required_respect": 25000000},
    {"id": 12, "name": "Soldier", "required_respect": 100000000},
    {"id": 13, "name": "Enforcer", "required_respect": 500000000},
    {"id": 14, "name": "Capo", "required_respect": 1500000000},
    {"id": 15, "name": "Underboss", "required_respect": 10000000000},
    {"id": 16, "name": "Consigliere", "required_respect": 35000000000},
    {"id": 17, "name": "Boss", "required_respect": 100000000000},
    {"id": 18, "name": "Godfather", "required_respect": 500000000000},
    {"id": 19, "name": "Mafioso", "required_respect": 1000000000000},
]

CITIES = [
    {"id": 0, "name": "London"},
    {"id": 1, "name": "Tokyo"},
    {"id": 2, "name": "New York"},
    {"id": 3, "name": "Moscow"},
    {"id": 4, "name": "Palermo"},
]

# Augmented policy: success gets a rank and nerve bonus, capped at 95%.
AUGMENTED_CRIMES = [
    {"id": 0, "name": "Pickpocket", "base_success": 95, "payout_min": 50, "payout_max": 200, "base_respect": 1, "required_rank": 0, "cooldown": 30, "nerve": 1},
    {"id": 1, "name": "Shoplift", "base_success": 90, "payout_min": 100, "payout_max": 500, "base_respect": 2, "required_rank": 0, "cooldown": 60, "nerve": 2},
    {"id": 2, "name": "Mug Someone", "base_success": 85, "payout_min": 500, "payout_max": 2000, "base_respect": 5, "required_rank": 2, "cooldown": 120, "nerve": 3},
    {"id": 3, "name": "Break & Enter", "base_success": 75, "payout_min": 2000, "payout_max": 10000, "base_respect": 15, "required_rank": 3, "cooldown": 300, "nerve": 5},
    {"id": 4, "name": "Car Theft", "base_success": 70, "payout_min": 10000, "payout_max": 50000, "base_respect": 35, "required_rank": 5, "cooldown": 600, "nerve": 8},
    {"id": 5, "name": "Drug Deal", "base_success": 65, "payout_min": 25000, "payout_max": 100000, "base_respect": 75, "required_rank": 7, "cooldown": 900, "nerve": 12},
    {"id": 6, "name": "Armed Robbery", "base_success": 60, "payout_min": 75000, "payout_max": 250000, "base_respect": 150, "required_rank": 9, "cooldown": 1200, "nerve": 15},
    {"id": 7, "name": "Kidnapping", "base_success": 50, "payout_min": 500000, "payout_max": 2000000, "base_respect": 500, "required_rank": 12, "cooldown": 1800, "nerve": 25},
    {"id": 8, "name": "Bank Heist", "base_success": 40, "payout_min": 2000000, "payout_max": 10000000, "base_respect": 1500, "required_rank": 15, "cooldown": 3600, "nerve": 40},
    {"id": 9, "name": "Casino Heist", "base_success": 30, "payout_min": 10000000, "payout_max": 50000000, "base_respect": 5000, "required_rank": 17, "cooldown": 7200, "nerve": 60},
    {"id": 10, "name": "Government Heist", "base_success": 20, "payout_min": 50000000, "payout_max": 500000000, "base_respect": 25000, "required_rank": 19, "cooldown": 14400, "nerve": 100},
]

# Fixed-rate policy: base_success is the exact chance; failure always means jail_time seconds in jail.
FIXED_RATE_CRIMES = [
    {"id": 0, "name": "Pickpocket", "base_success": 100, "payout_min": 50, "payout_max": 200, "base_respect": 1, "required_rank": 0, "cooldown": 30, "jail_time": 30},
    {"id": 1, "name": "Shoplift", "base_success": 85, "payout_min": 100, "payout_max": 500, "base_respect": 2, "required_rank": 0, "cooldown": 60, "jail_time": 45},
    {"id": 2, "name": "Mug Someone", "base_success": 75, "payout_min": 500, "payout_max": 2000, "base_respect": 5, "required_rank": 1, "cooldown": 120, "jail_time": 60},
    {"id": 3, "name": "Grand Theft Auto", "base_success": 60, "payout_min": 0, "payout_max": 0, "base_respect": 0, "required_rank": 2, "cooldown": 300, "jail_time": 120, "car_reward": True},
    {"id": 4, "name": "Break & Enter", "base_success": 65, "payout_min": 2000, "payout_max": 10000, "base_respect": 15, "required_rank": 3, "cooldown": 300, "jail_time": 120},
    {"id": 5, "name": "Drug Deal", "base_success": 55, "payout_min": 25000, "payout_max": 100000, "base_respect": 75, "required_rank": 5, "cooldown": 900, "jail_time": 300},
    {"id": 6, "name": "Armed Robbery", "base_success": 45, "payout_min": 75000, "payout_max": 250000, "base_respect": 150, "required_rank": 7, "cooldown": 1200, "jail_time": 600},
    {"id": 7, "name": "Kidnapping", "base_success": 35, "payout_min": 500000, "payout_max": 2000000, "base_respect": 500, "required_rank": 10, "cooldown": 1800, "jail_time": 900},
    {"id": 8, "name": "Bank Heist", "base_success": 25, "payout_min": 2000000, "payout_max": 10000000, "base_respect": 1500, "required_rank": 13, "cooldown": 3600, "jail_time": 1800},
    {"id": 9, "name": "Casino Heist", "base_success": 20, "payout_min": 10000000, "payout_max": 50000000, "base_respect": 5000, "required_rank": 16, "cooldown": 7200, "jail_time": 3600},
    {"id": 10, "name": "Government Heist", "base_success": 10, "payout_min": 50000000, "payout_max": 500000000, "base_respect": 25000, "required_rank": 18, "cooldown": 14400, "jail_time": 7200},
]

# Sequential catalog: gun n requires gun n-1. divisor lowers bullets needed to kill.
GUNS = [
    {"id": 0, "name": "Glock 17", "price": 5000, "divisor": 1.1},
    {"id": 1, "name": "Desert Eagle", "price": 15000, "divisor": 1.25},
    {"id": 2, "name": "Uzi", "price": 40000, "divisor": 1.5},
    {"id": 3, "name": "MP5", "price": 100000, "divisor": 1.75},
    {"id": 4, "name": "AK-47", "price": 250000, "divisor": 2.0},
    {"id": 5, "name": "M4A1", "price": 600000, "divisor": 2.5},
    {"id": 6, "name": "Barrett .50", "price": 1500000, "divisor": 3.0},
    {"id": 7, "name": "Minigun", "price": 5000000, "divisor": 4.0},
    {"id": 8, "name": "Golden Gun", "price": 20000000, "divisor": 5.0},
]

# Sequential catalog: protection n requires protection n-1. multiplier raises bullets needed to kill the wearer.
PROTECTION = [
    {"id": 0, "name": "Leather Jacket", "price": 5000, "multiplier": 1.1},
    {"id": 1, "name": "Kevlar Vest", "price": 15000, "multiplier": 1.25},
    {"id": 2, "name": "Bulletproof Vest", "price": 40000, "multiplier": 1.5},
    {"id": 3, "name": "Tactical Armor", "price": 100000, "multiplier": 1.75},
    {"id": 4, "name": "Riot Gear", "price": 250000, "multiplier": 2.0},
    {"id": 5, "name": "Military Armor", "price": 600000, "multiplier": 2.5},
    {"id": 6, "name": "Juggernaut Suit", "price": 1500000, "multiplier": 3.0},
    {"id": 7, "name": "Armored Escort", "price": 5000000, "multiplier": 4.0},
    {"id": 8, "name": "Secret Service Detail", "price": 20000000, "multiplier": 5.0},
]

# Rare cars (7-10) repair at half the odds.
CARS = [
    {"id": 0, "name": "Fiat 500", "price": 15000, "speed": 45, "accel": 30, "base_bullets": 100},
    {"id": 1, "name": "Ford Focus", "price": 25000, "speed": 55, "accel": 40, "base_bullets": 150},
    {"id": 2, "name": "Honda Civic", "price": 35000, "speed": 65, "accel": 50, "base_bullets": 200},
    {"id": 3, "name": "BMW 3 Series", "price": 55000, "speed": 75, "accel": 65, "base_bullets": 300},
    {"id": 4, "name": "Audi A4", "price": 65000, "speed": 80, "accel": 70, "base_bullets": 350},
    {"id": 5, "name": "Mercedes C-Class", "price": 75000, "speed": 85, "accel": 75, "base_bullets": 400},
    {"id": 6, "name": "Porsche 911", "price": 150000, "speed": 95, "accel": 90, "base_bullets": 750},
    {"id": 7, "name": "Ferrari 458", "price": 300000, "speed": 98, "accel": 95, "base_bullets": 1500, "rare": True},
    {"id": 8, "name": "Lamborghini Huracan", "price": 400000, "speed": 99, "accel": 97, "base_bullets": 2000, "rare": True},
    {"id": 9, "name": "Bugatti Veyron", "price": 2000000, "speed": 100, "accel": 98, "base_bullets": 5000, "rare": True},
    {"id": 10, "name": "Ferrari LaFerrari", "price": 5000000, "speed": 100, "accel": 100, "base_bullets": 10000, "rare": True},
]

# Car-reward crime: weights sum to 100
CAR_REWARD_TIERS = [
    {"name": "common", "weight": 50, "car_ids": [0, 1, 2]},
    {"name": "uncommon", "weight": 25, "car_ids": [3, 4, 5]},
    {"name": "rare", "weight": 15, "car_ids": [6]},
    {"name": "epic", "weight": 7, "car_ids": [7, 8]},
    {"name": "legendary", "weight": 3, "car_ids": [9, 10]},
]

# |attacker rank - target rank|, capped at 10 -> bullet multiplier
RANK_DIFFERENCE_MULTIPLIERS = {
    0: 1.0, 1: 1.5, 2: 2.0, 3: 2.5, 4: 3.0, 5: 4.0,
    6: 5.0, 7: 6.0, 8: 8.0, 9: 10.0, 10: 15.0,
}

GAME_CONFIG = {
    "STARTING_MONEY": 1000,
    "STARTING_RESPECT": 0,
    "STARTING_BULLETS": 0,
    "STARTING_NERVE": 100,
    "MAX_NERVE": 100,
    "NERVE_REGEN_RATE": 1,  # nerve per minute
    "JAIL_TIME_BASE": 300,
    "HOSPITAL_TIME_BASE": 180,
    "DEFAULT_CRIME_JAIL_TIME": 60,
    "TRAVEL_COST_BASE": 1000,
    "TRAVEL_TIME": 60,  # fallback when the active car has no catalog entry
    "TRAVEL_MIN_TIME": 60,  # fastest car
    "TRAVEL_MAX_TIME": 10800,  # slowest car
    "CAR_DAMAGE_PER_TRAVEL": 5,
    "SEARCH_TIME": 10800,
    "SEARCH_RESULT_VALID_TIME": 3600,
    "CAR_MELT_COOLDOWN": 300,
    "BULLETS_ON_RANKUP": 5000,
    "BULLET_FACTORY_PRODUCTION_PER_DAY": 3600,
    "BULLET_FACTORY_OWNER_PERCENTAGE": 60,
    "BULLET_FACTORY_MIN_RANK": 15,
    "MAX_FACTORIES_PER_PLAYER": 1,
    "BASE_BULLETS_TO_KILL": 1000,
    "RANK_DIFFERENCE_CAP": 10,
}


class GameConfig(BaseModel):
    """Immutable lookup tables plus tunables. Catalog lists are indexed by id."""

    crime_policy: str = POLICY_FIXED_RATE
    hospital_blocks_crimes: bool = True
    ranks: List[Rank]
    cities: List[City]
    crimes: List[Crime]
    guns: List[Gun]
    protection: List[Protection]
    cars: List[CarModel]
    car_reward_tiers: List[RarityTier]
    rank_difference_multipliers: Dict[int, float]

    starting_money: int = GAME_CONFIG["STARTING_MONEY"]
    starting_respect: int = GAME_CONFIG["STARTING_RESPECT"]
    starting_bullets: int = GAME_CONFIG["STARTING_BULLETS"]
    starting_nerve: int = GAME_CONFIG["STARTING_NERVE"]
    max_nerve: int = GAME_CONFIG["MAX_NERVE"]
    nerve_regen_rate: int = GAME_CONFIG["NERVE_REGEN_RATE"]
    jail_time_base: int = GAME_CONFIG["JAIL_TIME_BASE"]
    hospital_time_base: int = GAME_CONFIG["HOSPITAL_TIME_BASE"]
    default_crime_jail_time: int = GAME_CONFIG["DEFAULT_CRIME_JAIL_TIME"]
    travel_cost: int = GAME_CONFIG["TRAVEL_COST_BASE"]
    travel_time: int = GAME_CONFIG["TRAVEL_TIME"]
    travel_min_time: int = GAME_CONFIG["TRAVEL_MIN_TIME"]
    travel_max_time: int = GAME_CONFIG["TRAVEL_MAX_TIME"]
    car_damage_per_travel: int = GAME_CONFIG["CAR_DAMAGE_PER_TRAVEL"]
    search_time: int = GAME_CONFIG["SEARCH_TIME"]
    search_result_valid_time: int = GAME_CONFIG["SEARCH_RESULT_VALID_TIME"]
    car_melt_cooldown: int = GAME_CONFIG["CAR_MELT_COOLDOWN"]
    bullets_on_rankup: int = GAME_CONFIG["BULLETS_ON_RANKUP"]
    factory_production_per_day: int = GAME_CONFIG["BULLET_FACTORY_PRODUCTION_PER_DAY"]
    factory_owner_percentage: int = GAME_CONFIG["BULLET_FACTORY_OWNER_PERCENTAGE"]
    factory_min_rank: int = GAME_CONFIG["BULLET_FACTORY_MIN_RANK"]
    max_factories_per_player: int = GAME_CONFIG["MAX_FACTORIES_PER_PLAYER"]
    base_bullets_to_kill: int = GAME_CONFIG["BASE_BULLETS_TO_KILL"]
    rank_difference_cap: int = GAME_CONFIG["RANK_DIFFERENCE_CAP"]

    model_config = {"frozen": True}

    @property
    def max_rank(self) -> int:
        return len(self.ranks) - 1

    @property
    def uses_fixed_rate(self) -> bool:
        return self.crime_policy == POLICY_FIXED_RATE

    def crime(self, crime_id: int) -> Optional[Crime]:
        return _lookup(self.crimes, crime_id)

    def gun(self, gun_id: Optional[int]) -> Optional[Gun]:
        return _lookup(self.guns, gun_id)

    def protection_item(self, protection_id: Optional[int]) -> Optional[Protection]:
        return _lookup(self.protection, protection_id)

    def car(self, car_type: Optional[int]) -> Optional[CarModel]:
        return _lookup(self.cars, car_type)

    def city(self, city_id: Optional[int]) -> Optional[City]:
        return _lookup(self.cities, city_id)


def _lookup(items, item_id):
    if item_id is None or not isinstance(item_id, int) or item_id < 0 or item_id >= len(items):
        return None
    return items[item_id]


def build_game_config(crime_policy: str = POLICY_FIXED_RATE, **overrides) -> GameConfig:
    """Assemble a GameConfig from the module tables for the given crime policy."""
    if crime_policy not in CRIME_POLICIES:
        raise ValueError(f"Unknown crime policy: {crime_policy}")
    crimes = FIXED_RATE_CRIMES if crime_policy == POLICY_FIXED_RATE else AUGMENTED_CRIMES
    fields = {
        "crime_policy": crime_policy,
        # Fixed-rate crimes never hospitalise, so the hospital timer stops gating them
        "hospital_blocks_crimes": crime_policy == POLICY_AUGMENTED,
        "ranks": RANKS,
        "cities": CITIES,
        "crimes": crimes,
        "guns": GUNS,
        "protection": PROTECTION,
        "cars": CARS,
        "car_reward_tiers": CAR_REWARD_TIERS,
        "rank_difference_multipliers": RANK_DIFFERENCE_MULTIPLIERS,
    }
    fields.update(overrides)
    return GameConfig.model_validate(fields)


def load_game_config() -> GameConfig:
    """GameConfig for this process: .env / environment choose the crime policy."""
    load_dotenv()
    policy = os.environ.get("CRIME_POLICY", POLICY_FIXED_RATE).strip().lower()
    overrides = {}
    hospital_flag = os.environ.get("HOSPITAL_BLOCKS_CRIMES")
    if hospital_flag is not None:
        overrides["hospital_blocks_crimes"] = hospital_flag.strip().lower() in ("1", "true", "yes")
    return build_game_config(policy, **overrides)
