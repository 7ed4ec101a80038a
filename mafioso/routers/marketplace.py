# Marketplace endpoints: browse listings, list a car, buy a listing
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, HTTPException, Query
from pydantic import BaseModel, Field

from mafioso import marketplace
from mafioso.config import GameConfig
from mafioso.deps import get_current_player, get_game_config, get_now, get_store, persist
from mafioso.models import Player
from mafioso.results import CarPurchaseOutcome, ListingOutcome
from mafioso.storage import MongoGameStore

logger = logging.getLogger(__name__)


class ListCarRequest(BaseModel):
    car_id: str = Field(..., min_length=1)
    price: int


class BuyCarRequest(BaseModel):
    listing_id: str = Field(..., min_length=1)
    expected_price: int


class ListingResponse(BaseModel):
    id: str
    seller_username: Optional[str] = None
    car_type: int
    car_name: str
    damage: int
    price: int
    is_mine: bool


async def search_listings(
    car_type: Optional[int] = Query(None),
    sort_by: str = Query(marketplace.DEFAULT_SORT),
    limit: int = Query(marketplace.DEFAULT_LIMIT),
    offset: int = Query(0),
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
):
    listings = await store.load_active_listings(car_type)
    page = marketplace.search_listings(listings, car_type=car_type, sort_by=sort_by, limit=limit, offset=offset)
    return [
        ListingResponse(
            id=l.id,
            seller_username=l.seller_username,
            car_type=l.car_type,
            car_name=cfg.car(l.car_type).name if cfg.car(l.car_type) else "Unknown",
            damage=l.damage,
            price=l.price,
            is_mine=l.seller_id == player.world_id,
        )
        for l in page
    ]


async def list_car(
    request: ListCarRequest,
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    already_listed = await store.has_active_listing_for_car(request.car_id, player.world_id)
    resolution = marketplace.list_car(player, cfg, request.car_id, request.price, now, already_listed=already_listed)
    return await persist(store, resolution)


async def buy_car(
    request: BuyCarRequest,
    player: Player = Depends(get_current_player),
    cfg: GameConfig = Depends(get_game_config),
    store: MongoGameStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    try:
        listing = await store.load_listing(request.listing_id)
        seller = await store.load_player(listing.seller_id) if listing else None
        resolution = marketplace.buy_car(player, listing, seller, cfg, request.expected_price, now)
        return await persist(store, resolution)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("buy_car failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Server error: {e!s}")


def register(router):
    router.add_api_route("/marketplace", search_listings, methods=["GET"], response_model=List[ListingResponse])
    router.add_api_route("/marketplace/list", list_car, methods=["POST"], response_model=ListingOutcome)
    router.add_api_route("/marketplace/buy", buy_car, methods=["POST"], response_model=CarPurchaseOutcome)
