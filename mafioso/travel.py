# Travel between cities by car: fixed cost, speed-based time, wear on the active car
import logging
import math
from datetime import datetime
from typing import Optional

from mafioso import gate
from mafioso.config import GameConfig
from mafioso.models import CarModel, Player
from mafioso.results import (
    Resolution,
    TravelOutcome,
    player_change,
    precondition_failed,
    succeed,
    validation_error,
)

logger = logging.getLogger(__name__)

TRAVEL_FIELDS = {"city", "money", "cars"}


def travel_time(model: Optional[CarModel], cfg: GameConfig) -> int:
    """
    Linear between the catalog's fastest car (TRAVEL_MIN_TIME) and slowest car
    (TRAVEL_MAX_TIME), rounded up to whole seconds.
    """
    if model is None:
        return cfg.travel_time
    max_speed = max(c.speed for c in cfg.cars)
    min_speed = min(c.speed for c in cfg.cars)
    if max_speed == min_speed:
        return cfg.travel_min_time
    speed = min(max_speed, max(min_speed, model.speed))
    raw = (cfg.travel_max_time - cfg.travel_min_time) * (max_speed - speed) / (max_speed - min_speed)
    return int(math.ceil(raw + cfg.travel_min_time))


def travel(player: Player, cfg: GameConfig, city_id: int, now: datetime) -> Resolution:
    city = cfg.city(city_id)
    if city is None:
        return validation_error("Invalid city ID")
    verdict = gate.can_act(player, now)
    if not verdict.allowed:
        return precondition_failed(verdict.reason)
    if player.city == city_id:
        return precondition_failed("You are already in this city")
    if player.money < cfg.travel_cost:
        return precondition_failed(f"You need ${cfg.travel_cost:,} to travel")
    if player.active_car is None:
        return precondition_failed("You need a car to travel between cities")
    car = player.active_car_record()
    if car is None:
        return precondition_failed("Your active car was not found")
    if car.damage >= 100:
        return precondition_failed("Your car is too damaged to travel. Repair or get a new car.")

    seconds = travel_time(cfg.car(car.car_type), cfg)
    updated = player.model_copy(deep=True)
    updated.money -= cfg.travel_cost
    updated.city = city_id
    moved = updated.active_car_record()
    moved.damage = min(100, moved.damage + cfg.car_damage_per_travel)
    return succeed(
        updated,
        TravelOutcome(
            message=f"You travelled to {city.name}",
            city=city_id,
            city_name=city.name,
            cost=cfg.travel_cost,
            travel_time=seconds,
            car_damage=moved.damage,
        ),
        [player_change(updated, TRAVEL_FIELDS)],
    )
