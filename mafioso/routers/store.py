# Store endpoints: gun and protection catalogs, sequential purchases
from datetime import datetime
from typing import List, Optional

from fastapi import Depends
from pydantic import BaseModel

from mafioso import armoury
from mafioso.config import GameConfig
from mafioso.deps import get_current_player, get_game_config, get_now, get_store, persist
from mafioso.models import Player
from mafioso.results import PurchaseOutcome
from mafioso.storage import MongoGameStore


class StoreItemResponse(BaseModel):
    id: int
    name: str
    price: int
    stat: float
    owned: bool
    can_buy: bool
    requires: Optional[str] = None


def _catalog_view(catalog, owned_id: Optional[int], money: int, stat_field: str) -> List[StoreItemResponse]:
    items = []
    for item in catalog:
        next_in_chain = item.id == 0 or owned_id == item.id - 1
        items.append(
            StoreItemResponse(
                id=item.id,
                name=item.name,
                price=item.price,
                stat=getattr(item, stat_field),
                owned=owned_id == item.id,
                can_buy=next_in_chain and owned_id != item.id and money >= item.price,
                requires=catalog[item.id - 1].name if item.id > 0 else None,
            )
        )
    return items


async def get_guns(
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
):
    return _catalog_view(cfg.guns, player.gun_id, player.money, "divisor")


async def get_protection(
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
):
    return _catalog_view(cfg.protection, player.protection_id, player.money, "multiplier")


async def buy_gun(
    gun_id: int,
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    return await persist(store, armoury.buy_gun(player, cfg, gun_id, now))


async def buy_protection(
    protection_id: int,
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    return await persist(store, armoury.buy_protection(player, cfg, protection_id, now))


def register(router):
    router.add_api_route("/store/guns", get_guns, methods=["GET"], response_model=List[StoreItemResponse])
    router.add_api_route("/store/protection", get_protection, methods=["GET"], response_model=List[StoreItemResponse])
    router.add_api_route("/store/guns/{gun_id}/buy", buy_gun, methods=["POST"], response_model=PurchaseOutcome)
    router.add_api_route(
        "/store/protection/{protection_id}/buy",
        buy_protection,
        methods=["POST"],
        response_model=PurchaseOutcome,
    )
