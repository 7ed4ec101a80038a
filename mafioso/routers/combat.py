# Combat endpoints: search, cancel search, bullets calc, shoot
import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, HTTPException
from pydantic import BaseModel, Field

from mafioso import combat
from mafioso.config import GameConfig
from mafioso.deps import get_current_player, get_game_config, get_now, get_store, persist
from mafioso.models import Player
from mafioso.results import MessageOutcome, SearchOutcome, ShootOutcome
from mafioso.storage import MongoGameStore

logger = logging.getLogger(__name__)


class SearchRequest(BaseModel):
    target_username: str = Field(..., min_length=1, max_length=50)


class ShootRequest(BaseModel):
    target_id: Optional[str] = None


class BulletCalcResponse(BaseModel):
    target_username: str
    bullets_required: int
    rank_gap: int
    rank_multiplier: float
    protection_multiplier: float
    gun_divisor: float


async def search_player(
    request: SearchRequest,
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    target = await store.find_player_by_username(request.target_username)
    resolution = combat.search_player(player, target, cfg, request.target_username, now)
    return await persist(store, resolution)


async def cancel_search(
    player: Player = Depends(get_current_player),
    store: MongoGameStore = Depends(get_store),
):
    return await persist(store, combat.cancel_search(player))


async def calc_bullets(
    target_username: str,
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
):
    target = await store.find_player_by_username(target_username)
    if target is None:
        raise HTTPException(status_code=404, detail="Target player not found")
    protection = cfg.protection_item(target.protection_id)
    gun = cfg.gun(player.gun_id)
    return BulletCalcResponse(
        target_username=target.username,
        bullets_required=combat.bullets_to_kill(player, target, cfg),
        rank_gap=min(abs(player.rank - target.rank), cfg.rank_difference_cap),
        rank_multiplier=combat.rank_multiplier(player.rank, target.rank, cfg),
        protection_multiplier=protection.multiplier if protection else 1.0,
        gun_divisor=gun.divisor if gun else 1.0,
    )


async def shoot_player(
    request: ShootRequest,
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    try:
        target = None
        if player.searching_for is not None:
            target = await store.load_player(player.searching_for.target_id)
        resolution = combat.shoot_player(player, target, cfg, now, target_id=request.target_id)
        return await persist(store, resolution)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("shoot_player failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Server error: {e!s}")


def register(router):
    router.add_api_route("/combat/search", search_player, methods=["POST"], response_model=SearchOutcome)
    router.add_api_route("/combat/search/cancel", cancel_search, methods=["POST"], response_model=MessageOutcome)
    router.add_api_route("/combat/bullets/{target_username}", calc_bullets, methods=["GET"], response_model=BulletCalcResponse)
    router.add_api_route("/combat/shoot", shoot_player, methods=["POST"], response_model=ShootOutcome)
