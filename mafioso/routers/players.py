# Player endpoints: create the player record for an authenticated principal, view own profile
import re
from datetime import datetime
from typing import Optional

from fastapi import Depends, HTTPException
from pydantic import BaseModel, Field, field_validator

from mafioso.config import GameConfig
from mafioso.deps import get_current_player, get_game_config, get_now, get_principal, get_store
from mafioso.models import Player
from mafioso.progression import new_player, next_rank_info, rank_name, regenerate_nerve
from mafioso.storage import MongoGameStore
from mafioso.timers import is_active, iso

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,20}$")


class CreatePlayerRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=20)
    wallet_address: Optional[str] = None

    @field_validator("username")
    @classmethod
    def username_chars(cls, v: str) -> str:
        v = v.strip()
        if not USERNAME_RE.match(v):
            raise ValueError("Username may only contain letters, numbers and underscores")
        return v


def _profile(player: Player, cfg: GameConfig, now: datetime) -> dict:
    next_name, needed = next_rank_info(player.respect, cfg)
    city = cfg.city(player.city)
    gun = cfg.gun(player.gun_id)
    protection = cfg.protection_item(player.protection_id)
    data = player.model_dump(mode="json")
    data.update({
        "rank_name": rank_name(player.rank, cfg),
        "next_rank": next_name,
        "respect_to_next_rank": needed,
        "city_name": city.name if city else None,
        "gun_name": gun.name if gun else None,
        "protection_name": protection.name if protection else None,
        "in_jail": is_active(player.jail_until, now),
        "in_hospital": is_active(player.hospital_until, now),
        "search_ends_at": iso(player.searching_for.ends_at) if player.searching_for else None,
    })
    return data


async def create_player(
    request: CreatePlayerRequest,
    world_id: str = Depends(get_principal),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    if await store.load_player(world_id) is not None:
        raise HTTPException(status_code=409, detail="Player already exists")
    if await store.find_player_by_username(request.username) is not None:
        raise HTTPException(status_code=409, detail="Username is already taken")
    player = new_player(cfg, world_id, request.username, now, wallet_address=request.wallet_address)
    await store.insert_player(player)
    return _profile(player, cfg, now)


async def get_me(
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    now: datetime = Depends(get_now),
):
    # Nerve shown as of now; it is persisted on the next crime
    view = player.model_copy(deep=True)
    if not cfg.uses_fixed_rate:
        regenerate_nerve(view, cfg, now)
    return _profile(view, cfg, now)


def register(router):
    router.add_api_route("/players", create_player, methods=["POST"])
    router.add_api_route("/players/me", get_me, methods=["GET"])
