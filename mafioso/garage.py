# Garage: melt cars into bullets, repair damage, choose the active car
import logging
import random
from datetime import datetime, timedelta
from typing import Optional

from mafioso import gate
from mafioso.config import GameConfig
from mafioso.models import Player, PlayerCar
from mafioso.results import (
    CAR_LISTINGS,
    Change,
    MeltOutcome,
    MessageOutcome,
    RepairOutcome,
    Resolution,
    conflict,
    player_change,
    precondition_failed,
    succeed,
    validation_error,
)
from mafioso.timers import iso, remaining_seconds

logger = logging.getLogger(__name__)

MELT_FIELDS = {"cars", "bullets", "last_melt_time"}
REPAIR_FIELDS = {"cars"}
SELECT_FIELDS = {"active_car"}


def melt_value(car: PlayerCar, cfg: GameConfig) -> int:
    """floor(base_bullets * (100 - damage) / 100): pristine gives everything, wrecked gives nothing."""
    model = cfg.car(car.car_type)
    if model is None:
        return 0
    damage = min(100, max(0, car.damage))
    return model.base_bullets * (100 - damage) // 100


def repair_chance(car: PlayerCar, cfg: GameConfig) -> float:
    model = cfg.car(car.car_type)
    if model is not None and model.rare:
        return max(0.0, 50 - car.damage * 0.5)
    return float(max(0, 100 - car.damage))


def melt_cooldown_until(player: Player, cfg: GameConfig) -> Optional[datetime]:
    if player.last_melt_time is None:
        return None
    return player.last_melt_time + timedelta(seconds=cfg.car_melt_cooldown)


def melt_car(player: Player, cfg: GameConfig, car_id: str, now: datetime) -> Resolution:
    if not car_id:
        return validation_error("Car id is required")
    verdict = gate.first_denial(
        gate.can_act(player, now),
        gate.check_cooldown(melt_cooldown_until(player, cfg), now, "Melting"),
        gate.owns_car(player, car_id),
    )
    if not verdict.allowed:
        return precondition_failed(verdict.reason)
    if player.active_car == car_id:
        return precondition_failed("You cannot melt your currently active car")

    updated = player.model_copy(deep=True)
    car = updated.get_car(car_id)
    bullets = melt_value(car, cfg)
    updated.cars = [c for c in updated.cars if c.id != car_id]
    updated.bullets += bullets
    updated.last_melt_time = now
    name = cfg.car(car.car_type).name if cfg.car(car.car_type) else "car"
    return succeed(
        updated,
        MeltOutcome(
            message=f"You melted your {name} into {bullets:,} bullets",
            bullets_gained=bullets,
            next_melt_at=iso(melt_cooldown_until(updated, cfg)),
        ),
        [
            player_change(updated, MELT_FIELDS),
            Change(
                table=CAR_LISTINGS,
                key={"seller_id": player.world_id, "car_id": car_id, "active": True},
                fields={"active": False},
                many=True,
            ),
        ],
    )


def repair_car(player: Player, cfg: GameConfig, car_id: str, now: datetime, rng=random) -> Resolution:
    """One draw decides it: success resets damage to 0, failure leaves it as it was. Repairs are free."""
    if not car_id:
        return validation_error("Car id is required")
    verdict = gate.first_denial(gate.can_act(player, now), gate.owns_car(player, car_id))
    if not verdict.allowed:
        return precondition_failed(verdict.reason)
    car = player.get_car(car_id)
    if car.damage == 0:
        return precondition_failed("This car is already in perfect condition")

    chance = repair_chance(car, cfg)
    success = rng.random() * 100 < chance
    updated = player.model_copy(deep=True)
    if success:
        updated.get_car(car_id).damage = 0
        message = "Repair successful! Your car is as good as new"
    else:
        message = "Repair failed. The damage is unchanged"
    return succeed(
        updated,
        RepairOutcome(message=message, success=success, chance=chance, damage=updated.get_car(car_id).damage),
        [player_change(updated, REPAIR_FIELDS)] if success else [],
    )


def select_active_car(player: Player, car_id: str) -> Resolution:
    if not car_id:
        return validation_error("Car id is required")
    verdict = gate.owns_car(player, car_id)
    if not verdict.allowed:
        return precondition_failed(verdict.reason)
    if player.active_car == car_id:
        return conflict("This car is already your active car")
    updated = player.model_copy(deep=True)
    updated.active_car = car_id
    return succeed(updated, MessageOutcome(message="Active car changed"), [player_change(updated, SELECT_FIELDS)])


def garage_view(player: Player, cfg: GameConfig, now: datetime) -> dict:
    """Cars grouped by catalog type with melt value, repair chance and the melt cooldown left."""
    cars = []
    for car in player.cars:
        model = cfg.car(car.car_type)
        cars.append({
            "id": car.id,
            "car_type": car.car_type,
            "name": model.name if model else "Unknown",
            "damage": car.damage,
            "source": car.source,
            "speed": model.speed if model else 0,
            "rare": bool(model and model.rare),
            "melt_value": melt_value(car, cfg),
            "repair_chance": repair_chance(car, cfg),
            "is_active": car.id == player.active_car,
        })
    groups = {}
    for item in cars:
        groups.setdefault(item["name"], []).append(item)
    return {
        "cars": cars,
        "grouped": groups,
        "active_car": player.active_car,
        "melt_cooldown_remaining": remaining_seconds(melt_cooldown_until(player, cfg), now),
        "total_cars": len(cars),
    }
