"""
Crime resolution.

Two policies share one entry point, commit_crime:
- augmented: chance gets a rank and nerve bonus (capped at 95), failures roll
  into jail, hospital or a plain failure.
- fixed_rate: chance is the crime's base_success exactly, every failure is jail
  for the crime's jail_time, and car-reward crimes hand out a car instead of cash.
"""
import logging
import random
import uuid
from datetime import datetime
from typing import Optional

from mafioso import gate
from mafioso.config import GameConfig
from mafioso.models import Crime, CrimeAttempt, Player, PlayerCar, PlayerCooldown
from mafioso.progression import award_respect, regenerate_nerve
from mafioso.results import (
    COOLDOWNS,
    CRIME_HISTORY,
    Change,
    CrimeOutcome,
    Resolution,
    player_change,
    precondition_failed,
    succeed,
    validation_error,
)
from mafioso.timers import crime_cooldown_id, expires_at, iso

logger = logging.getLogger(__name__)

AUGMENTED_MAX_CHANCE = 95
AUGMENTED_RANK_BONUS_CAP = 20
AUGMENTED_NERVE_BONUS_CAP = 10
JAIL_ROLL_BELOW = 30
HOSPITAL_ROLL_BELOW = 50

# Fields a crime commit is allowed to persist on the player
CRIME_FIELDS = {
    "money",
    "respect",
    "rank",
    "bullets",
    "nerve",
    "nerve_updated_at",
    "cars",
    "active_car",
    "jail_until",
    "hospital_until",
    "stats",
}


def success_chance(crime: Crime, player: Player, cfg: GameConfig) -> float:
    if cfg.uses_fixed_rate:
        return float(crime.base_success)
    rank_bonus = min(player.rank * 2, AUGMENTED_RANK_BONUS_CAP)
    nerve_bonus = min((player.nerve / 100) * 10, AUGMENTED_NERVE_BONUS_CAP)
    return min(float(AUGMENTED_MAX_CHANCE), crime.base_success + rank_bonus + nerve_bonus)


def pick_reward_car(cfg: GameConfig, rng=random) -> int:
    """Weighted tier draw, then a uniform pick inside the tier."""
    total = sum(t.weight for t in cfg.car_reward_tiers)
    remainder = rng.random() * total
    chosen = cfg.car_reward_tiers[-1]
    for tier in cfg.car_reward_tiers:
        remainder -= tier.weight
        if remainder <= 0:
            chosen = tier
            break
    return rng.choice(chosen.car_ids)


def _randomized_duration(base: int, rng) -> int:
    return base + rng.randint(0, base)


def commit_crime(
    player: Player,
    cfg: GameConfig,
    crime_id: int,
    now: datetime,
    cooldown_until: Optional[datetime] = None,
    rng=random,
) -> Resolution:
    crime = cfg.crime(crime_id)
    if crime is None:
        return validation_error("Invalid crime")

    updated = player.model_copy(deep=True)
    if not cfg.uses_fixed_rate:
        regenerate_nerve(updated, cfg, now)

    verdict = gate.first_denial(
        gate.can_act(updated, now, hospital_blocks=cfg.hospital_blocks_crimes),
        gate.has_rank(updated, crime.required_rank, cfg.ranks[crime.required_rank].name),
        gate.check_cooldown(cooldown_until, now, crime.name),
    )
    if verdict.allowed and not cfg.uses_fixed_rate:
        verdict = gate.has_nerve(updated, crime.nerve)
    if not verdict.allowed:
        return precondition_failed(verdict.reason)

    chance = success_chance(crime, updated, cfg)
    success = rng.random() * 100 <= chance

    if not cfg.uses_fixed_rate:
        updated.nerve = max(0, updated.nerve - crime.nerve)

    updated.stats.crimes_attempted += 1
    money_earned = 0
    respect_earned = 0
    ranked_up = False
    bullets_awarded = 0
    car_payload = None
    reward_car_type = None
    outcome = "success"

    if success:
        updated.stats.crimes_succeeded += 1
        if crime.car_reward:
            reward_car_type = pick_reward_car(cfg, rng)
            car = PlayerCar(
                id=str(uuid.uuid4()),
                car_type=reward_car_type,
                damage=0,
                source="crime_reward",
                acquired_at=now,
            )
            updated.cars.append(car)
            if updated.active_car is None:
                updated.active_car = car.id
            car_payload = {"id": car.id, "car_type": car.car_type, "name": cfg.cars[car.car_type].name}
            message = f"Success! You stole a {cfg.cars[car.car_type].name}"
        else:
            money_earned = rng.randint(crime.payout_min, crime.payout_max)
            updated.money += money_earned
            updated.stats.total_money_earned += money_earned
            # Fixed-rate crimes stop paying respect at the top rank
            if not (cfg.uses_fixed_rate and updated.rank >= cfg.max_rank):
                respect_earned = crime.base_respect
                ranked_up, bullets_awarded = award_respect(updated, respect_earned, cfg)
            message = f"Success! You earned ${money_earned:,} and {respect_earned} respect"
    else:
        updated.stats.crimes_failed += 1
        if cfg.uses_fixed_rate:
            jail_time = crime.jail_time if crime.jail_time is not None else cfg.default_crime_jail_time
            updated.jail_until = expires_at(now, jail_time)
            updated.stats.times_jailed += 1
            outcome = "jail"
            message = f"Busted! You are in jail for {jail_time}s"
        else:
            roll = rng.random() * 100
            if roll < JAIL_ROLL_BELOW:
                jail_time = _randomized_duration(cfg.jail_time_base, rng)
                updated.jail_until = expires_at(now, jail_time)
                updated.stats.times_jailed += 1
                outcome = "jail"
                message = f"Busted! You are in jail for {jail_time}s"
            elif roll < HOSPITAL_ROLL_BELOW:
                hospital_time = _randomized_duration(cfg.hospital_time_base, rng)
                updated.hospital_until = expires_at(now, hospital_time)
                updated.stats.times_hospitalized += 1
                outcome = "hospital"
                message = f"It went wrong. You are in hospital for {hospital_time}s"
            else:
                outcome = "failed"
                message = "Crime failed! Better luck next time."

    next_available = expires_at(now, crime.cooldown)
    cooldown = PlayerCooldown(
        player_id=updated.world_id,
        action_id=crime_cooldown_id(crime.id),
        expires_at=next_available,
    )
    attempt = CrimeAttempt(
        id=str(uuid.uuid4()),
        player_id=updated.world_id,
        crime_id=crime.id,
        crime_name=crime.name,
        policy=cfg.crime_policy,
        success=success,
        outcome=outcome,
        money_earned=money_earned,
        respect_earned=respect_earned,
        car_type=reward_car_type,
        attempted_at=now,
    )
    changes = [
        player_change(updated, CRIME_FIELDS),
        Change(
            table=COOLDOWNS,
            key={"player_id": cooldown.player_id, "action_id": cooldown.action_id},
            fields={"expires_at": iso(cooldown.expires_at)},
            # Both sides are iso() strings in UTC, so string order is time order
            guard={"expires_at": {"$lte": iso(now)}},
            upsert=True,
        ),
        Change(
            table=CRIME_HISTORY,
            key={"id": attempt.id},
            fields=attempt.model_dump(mode="json"),
            insert=True,
        ),
    ]
    return succeed(
        updated,
        CrimeOutcome(
            success=success,
            message=message,
            outcome=outcome,
            money_earned=money_earned,
            respect_earned=respect_earned,
            car=car_payload,
            jail_until=iso(updated.jail_until) if outcome == "jail" else None,
            hospital_until=iso(updated.hospital_until) if outcome == "hospital" else None,
            rank_up=ranked_up,
            new_rank=updated.rank if ranked_up else None,
            bullets_awarded=bullets_awarded,
            next_available=iso(next_available),
        ),
        changes,
    )
