# Garage endpoints: list cars, melt, repair, select active car
from datetime import datetime

from fastapi import Depends

from mafioso import garage
from mafioso.config import GameConfig
from mafioso.deps import get_current_player, get_game_config, get_now, get_rng, get_store, persist
from mafioso.models import Player
from mafioso.results import MeltOutcome, MessageOutcome, RepairOutcome
from mafioso.storage import MongoGameStore


async def get_garage(
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    now: datetime = Depends(get_now),
):
    return garage.garage_view(player, cfg, now)


async def melt_car(
    car_id: str,
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    return await persist(store, garage.melt_car(player, cfg, car_id, now))


async def repair_car(
    car_id: str,
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
    rng=Depends(get_rng),
):
    return await persist(store, garage.repair_car(player, cfg, car_id, now, rng=rng))


async def select_car(
    car_id: str,
    player: Player = Depends(get_current_player),
    store: MongoGameStore = Depends(get_store),
):
    return await persist(store, garage.select_active_car(player, car_id))


def register(router):
    router.add_api_route("/garage", get_garage, methods=["GET"])
    router.add_api_route("/garage/{car_id}/melt", melt_car, methods=["POST"], response_model=MeltOutcome)
    router.add_api_route("/garage/{car_id}/repair", repair_car, methods=["POST"], response_model=RepairOutcome)
    router.add_api_route("/garage/{car_id}/select", select_car, methods=["POST"], response_model=MessageOutcome)
