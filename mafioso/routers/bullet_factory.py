# Bullet factory endpoints: status for every city, takeover, collect
from datetime import datetime

from fastapi import Depends

from mafioso import bullet_factory
from mafioso.config import GameConfig
from mafioso.deps import get_current_player, get_game_config, get_now, get_store, persist
from mafioso.models import Player
from mafioso.results import FactoryOutcome
from mafioso.storage import MongoGameStore


async def get_factories(
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    factories = await store.load_factories()
    status = bullet_factory.all_factory_status(factories, cfg, now)
    for row in status:
        row["is_mine"] = row["owner_id"] == player.world_id
    return {
        "factories": status,
        "my_factory": player.bullet_factory_id,
        "can_takeover": player.rank >= cfg.factory_min_rank and player.bullet_factory_id is None,
    }


async def takeover(
    city_id: int,
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    factory = await store.load_factory(city_id)
    return await persist(store, bullet_factory.takeover_factory(player, factory, cfg, city_id, now))


async def collect(
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    factory = None
    if player.bullet_factory_id is not None:
        factory = await store.load_factory(player.bullet_factory_id)
    return await persist(store, bullet_factory.collect_bullets(player, factory, cfg, now))


def register(router):
    router.add_api_route("/bullet-factory", get_factories, methods=["GET"])
    router.add_api_route("/bullet-factory/{city_id}/takeover", takeover, methods=["POST"], response_model=FactoryOutcome)
    router.add_api_route("/bullet-factory/collect", collect, methods=["POST"], response_model=FactoryOutcome)
