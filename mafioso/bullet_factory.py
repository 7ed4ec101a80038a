"""
Bullet factories: one per city, owned by at most one player.

Production accrues linearly from last_collection_time. The owner's share is
paid out on collect and the city-pool share is banked into stored_bullets.
Both are floored at collection; fractions are dropped, never carried over.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from mafioso import gate
from mafioso.config import GameConfig
from mafioso.models import BulletFactory, Player
from mafioso.results import (
    BULLET_FACTORIES,
    Change,
    FactoryOutcome,
    Resolution,
    conflict,
    not_found,
    player_change,
    precondition_failed,
    succeed,
    validation_error,
)

logger = logging.getLogger(__name__)

MS_PER_DAY = 86_400_000


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def _elapsed_ms(factory: BulletFactory, now: datetime) -> int:
    if factory.last_collection_time is None:
        return 0
    return max(0, int((now - factory.last_collection_time).total_seconds() * 1000))


def owner_share(elapsed_ms: int, cfg: GameConfig) -> int:
    """Owner's bullets for elapsed_ms, floored. Integer arithmetic throughout."""
    return elapsed_ms * cfg.factory_production_per_day * cfg.factory_owner_percentage // (100 * MS_PER_DAY)


def city_share(elapsed_ms: int, cfg: GameConfig) -> int:
    return elapsed_ms * cfg.factory_production_per_day * (100 - cfg.factory_owner_percentage) // (100 * MS_PER_DAY)


def factory_status(factory: Optional[BulletFactory], city_id: int, cfg: GameConfig, now: datetime) -> Dict:
    city = cfg.city(city_id)
    if factory is None:
        factory = BulletFactory(city_id=city_id)
    elapsed = _elapsed_ms(factory, now)
    return {
        "city_id": city_id,
        "city_name": city.name if city else "Unknown City",
        "owner_id": factory.owner_id,
        "owned": factory.owner_id is not None,
        "pending_bullets": owner_share(elapsed, cfg) if factory.owner_id else 0,
        "city_store_bullets": factory.stored_bullets + (city_share(elapsed, cfg) if factory.owner_id else 0),
        "production_per_day": cfg.factory_production_per_day,
        "owner_percentage": cfg.factory_owner_percentage,
        "last_collection_time": factory.last_collection_time.isoformat() if factory.last_collection_time else None,
    }


def all_factory_status(factories: List[BulletFactory], cfg: GameConfig, now: datetime) -> List[Dict]:
    """Status for every city, including those whose factory was never taken over."""
    by_city = {f.city_id: f for f in factories}
    return [factory_status(by_city.get(city.id), city.id, cfg, now) for city in cfg.cities]


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

def takeover_factory(
    player: Player,
    factory: Optional[BulletFactory],
    cfg: GameConfig,
    city_id: int,
    now: datetime,
) -> Resolution:
    city = cfg.city(city_id)
    if city is None:
        return validation_error("Invalid city ID")
    verdict = gate.first_denial(
        gate.can_act(player, now),
        gate.has_rank(player, cfg.factory_min_rank, cfg.ranks[cfg.factory_min_rank].name),
        gate.below_factory_cap(player, cfg.max_factories_per_player),
    )
    if not verdict.allowed:
        return precondition_failed(verdict.reason)
    if factory is not None and factory.owner_id is not None:
        return conflict("This factory is already owned by another player")

    # The city pool a previous owner built up stays with the factory
    taken = BulletFactory(
        city_id=city_id,
        owner_id=player.world_id,
        last_collection_time=now,
        stored_bullets=factory.stored_bullets if factory else 0,
    )
    updated = player.model_copy(deep=True)
    updated.bullet_factory_id = city_id
    logger.info("Factory takeover: %s now owns the bullet factory in %s", player.username, city.name)
    return succeed(
        updated,
        FactoryOutcome(
            message=f"Successfully took over the bullet factory in {city.name}!",
            city_id=city_id,
            stored_bullets=taken.stored_bullets,
        ),
        [
            player_change(updated, {"bullet_factory_id"}),
            Change(
                table=BULLET_FACTORIES,
                key={"city_id": city_id},
                fields=taken.model_dump(mode="json"),
                # Matches only while unowned; an owned record makes the upsert collide on city_id
                guard={"owner_id": None},
                upsert=True,
            ),
        ],
    )


def collect_bullets(
    player: Player,
    factory: Optional[BulletFactory],
    cfg: GameConfig,
    now: datetime,
) -> Resolution:
    if player.bullet_factory_id is None:
        return precondition_failed("You do not own a bullet factory")
    verdict = gate.can_act(player, now)
    if not verdict.allowed:
        return precondition_failed(verdict.reason)
    if factory is None or factory.city_id != player.bullet_factory_id:
        return not_found("Factory not found")
    if factory.owner_id != player.world_id:
        return conflict("You no longer own this factory")

    elapsed = _elapsed_ms(factory, now)
    collected = owner_share(elapsed, cfg)
    banked = city_share(elapsed, cfg)
    updated = player.model_copy(deep=True)
    updated.bullets += collected
    stored = factory.stored_bullets + banked
    city = cfg.city(factory.city_id)
    return succeed(
        updated,
        FactoryOutcome(
            message=f"Collected {collected:,} bullets from your factory in {city.name if city else 'Unknown City'}!",
            city_id=factory.city_id,
            bullets_collected=collected,
            stored_bullets=stored,
        ),
        [
            player_change(updated, set(), inc={"bullets": collected}),
            Change(
                table=BULLET_FACTORIES,
                key={"city_id": factory.city_id},
                fields={"last_collection_time": now.isoformat(), "stored_bullets": stored},
                guard={"owner_id": player.world_id},
            ),
        ],
    )
