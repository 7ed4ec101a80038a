# Crime endpoints: list crimes, commit crime
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, HTTPException
from pydantic import BaseModel

from mafioso.config import GameConfig
from mafioso.crimes import commit_crime as resolve_crime
from mafioso.crimes import success_chance
from mafioso.deps import get_current_player, get_game_config, get_now, get_rng, get_store, persist
from mafioso.models import Player
from mafioso.results import CrimeOutcome
from mafioso.storage import MongoGameStore
from mafioso.timers import crime_cooldown_id, is_on_cooldown, iso

logger = logging.getLogger(__name__)


class CrimeResponse(BaseModel):
    id: int
    name: str
    required_rank: int
    required_rank_name: str
    payout_min: int
    payout_max: int
    cooldown_seconds: int
    success_chance: float
    car_reward: bool = False
    can_commit: bool
    next_available: Optional[str] = None


async def get_crimes(
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    result = []
    for crime in cfg.crimes:
        cooldown_until = await store.load_cooldown(player.world_id, crime_cooldown_id(crime.id))
        on_cooldown = is_on_cooldown(cooldown_until, now)
        result.append(
            CrimeResponse(
                id=crime.id,
                name=crime.name,
                required_rank=crime.required_rank,
                required_rank_name=cfg.ranks[crime.required_rank].name,
                payout_min=crime.payout_min,
                payout_max=crime.payout_max,
                cooldown_seconds=crime.cooldown,
                success_chance=success_chance(crime, player, cfg),
                car_reward=crime.car_reward,
                can_commit=player.rank >= crime.required_rank and not on_cooldown,
                next_available=iso(cooldown_until) if on_cooldown else None,
            )
        )
    return result


async def commit_crime(
    crime_id: int,
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
    rng=Depends(get_rng),
):
    try:
        cooldown_until = await store.load_cooldown(player.world_id, crime_cooldown_id(crime_id))
        resolution = resolve_crime(player, cfg, crime_id, now, cooldown_until=cooldown_until, rng=rng)
        return await persist(store, resolution)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("commit_crime failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Server error: {e!s}")


def register(router):
    router.add_api_route(
        "/crimes",
        get_crimes,
        methods=["GET"],
        response_model=List[CrimeResponse],
    )
    router.add_api_route(
        "/crimes/{crime_id}/commit",
        commit_crime,
        methods=["POST"],
        response_model=CrimeOutcome,
    )
