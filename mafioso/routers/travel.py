# Travel endpoints: destinations with cost and time, travel
from datetime import datetime

from fastapi import Depends
from pydantic import BaseModel

from mafioso import travel as travel_engine
from mafioso.config import GameConfig
from mafioso.deps import get_current_player, get_game_config, get_now, get_store, persist
from mafioso.models import Player
from mafioso.results import TravelOutcome
from mafioso.storage import MongoGameStore


class TravelRequest(BaseModel):
    city_id: int


async def get_travel_info(
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
):
    car = player.active_car_record()
    seconds = travel_engine.travel_time(cfg.car(car.car_type), cfg) if car else None
    return {
        "current_city": player.city,
        "cost": cfg.travel_cost,
        "travel_time": seconds,
        "active_car_damage": car.damage if car else None,
        "cities": [
            {"id": c.id, "name": c.name, "is_current": c.id == player.city}
            for c in cfg.cities
        ],
    }


async def travel(
    request: TravelRequest,
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    return await persist(store, travel_engine.travel(player, cfg, request.city_id, now))


def register(router):
    router.add_api_route("/travel", get_travel_info, methods=["GET"])
    router.add_api_route("/travel", travel, methods=["POST"], response_model=TravelOutcome)
