# Car marketplace: list a car, buy a listing, browse active listings
import logging
import uuid
from datetime import datetime
from typing import List, Optional

from mafioso import gate
from mafioso.config import GameConfig
from mafioso.models import CarListing, Player, PlayerCar
from mafioso.results import (
    CAR_LISTINGS,
    CarPurchaseOutcome,
    Change,
    ListingOutcome,
    Resolution,
    conflict,
    not_found,
    player_change,
    precondition_failed,
    succeed,
    validation_error,
)

logger = logging.getLogger(__name__)

BUYER_FIELDS = {"cars", "active_car"}
SELLER_FIELDS = {"cars", "active_car"}

SORT_KEYS = {
    "price_asc": (lambda l: l.price, False),
    "price_desc": (lambda l: l.price, True),
    "damage_asc": (lambda l: l.damage, False),
    "damage_desc": (lambda l: l.damage, True),
}
DEFAULT_SORT = "price_asc"
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def list_car(
    player: Player,
    cfg: GameConfig,
    car_id: str,
    price: int,
    now: datetime,
    already_listed: bool = False,
) -> Resolution:
    """The car stays in the seller's garage until sold; the listing snapshots its damage."""
    if not car_id or not isinstance(price, int) or isinstance(price, bool) or price < 1:
        return validation_error("Valid car ID and price (minimum $1) are required")
    verdict = gate.first_denial(gate.can_act(player, now), gate.owns_car(player, car_id))
    if not verdict.allowed:
        return precondition_failed(verdict.reason)
    if player.active_car == car_id:
        return precondition_failed("You cannot sell your currently active car")
    if already_listed:
        return conflict("This car is already listed")

    car = player.get_car(car_id)
    listing = CarListing(
        id=str(uuid.uuid4()),
        seller_id=player.world_id,
        seller_username=player.username,
        car_id=car.id,
        car_type=car.car_type,
        damage=car.damage,
        price=price,
        active=True,
        created_at=now,
    )
    model = cfg.car(car.car_type)
    return succeed(
        player,
        ListingOutcome(
            message=f"Listed your {model.name if model else 'car'} for ${price:,}",
            listing_id=listing.id,
            price=price,
        ),
        [Change(table=CAR_LISTINGS, key={"id": listing.id}, fields=listing.model_dump(mode="json"), insert=True)],
    )


def buy_car(
    buyer: Player,
    listing: Optional[CarListing],
    seller: Optional[Player],
    cfg: GameConfig,
    expected_price: int,
    now: datetime,
) -> Resolution:
    """
    Buyer, seller and listing change together; the caller must persist the
    returned changes atomically. The buyer gets a copy with a new instance id.
    """
    if not isinstance(expected_price, int) or isinstance(expected_price, bool) or expected_price < 1:
        return validation_error("Valid listing ID and expected price are required")
    if listing is None:
        return not_found("Listing not found")
    if not listing.active:
        return conflict("This listing is no longer available")
    if listing.price != expected_price:
        return conflict("Price has changed. Please refresh and try again.")
    if buyer.money < listing.price:
        return precondition_failed(f"Insufficient funds. You need ${listing.price:,}")
    if listing.seller_id == buyer.world_id:
        return precondition_failed("You cannot buy your own car")
    verdict = gate.can_act(buyer, now)
    if not verdict.allowed:
        return precondition_failed(verdict.reason)
    if seller is None:
        return not_found("Seller not found")
    if seller.get_car(listing.car_id) is None:
        return conflict("The seller no longer owns this car")

    new_car = PlayerCar(
        id=str(uuid.uuid4()),
        car_type=listing.car_type,
        damage=listing.damage,
        source="bought",
        acquired_at=now,
    )
    new_buyer = buyer.model_copy(deep=True)
    new_buyer.money -= listing.price
    new_buyer.cars.append(new_car)
    if new_buyer.active_car is None:
        new_buyer.active_car = new_car.id

    new_seller = seller.model_copy(deep=True)
    new_seller.money += listing.price
    new_seller.cars = [c for c in new_seller.cars if c.id != listing.car_id]
    if new_seller.active_car == listing.car_id:
        new_seller.active_car = new_seller.cars[0].id if new_seller.cars else None

    logger.info("Car sale: %s bought listing %s from %s for %s", buyer.username, listing.id, seller.username, listing.price)
    return succeed(
        new_buyer,
        CarPurchaseOutcome(
            message=f"You bought a {cfg.cars[listing.car_type].name} for ${listing.price:,}",
            listing_id=listing.id,
            car_id=new_car.id,
            car_type=new_car.car_type,
            price=listing.price,
            money_left=new_buyer.money,
        ),
        [
            player_change(new_buyer, BUYER_FIELDS, inc={"money": -listing.price}),
            player_change(new_seller, SELLER_FIELDS, inc={"money": listing.price}),
            # Only one buyer can flip an active listing
            Change(
                table=CAR_LISTINGS,
                key={"id": listing.id},
                fields={"active": False, "sold_at": now.isoformat(), "buyer_id": buyer.world_id},
                guard={"active": True, "price": listing.price},
            ),
        ],
    )


def search_listings(
    listings: List[CarListing],
    car_type: Optional[int] = None,
    sort_by: str = DEFAULT_SORT,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> List[CarListing]:
    """Active listings, optionally one car type, sorted then paged. Unknown sort keys fall back to price_asc."""
    rows = [l for l in listings if l.active and (car_type is None or l.car_type == car_type)]
    key, reverse = SORT_KEYS.get(sort_by, SORT_KEYS[DEFAULT_SORT])
    rows.sort(key=key, reverse=reverse)
    offset = max(0, offset or 0)
    limit = min(MAX_LIMIT, max(1, limit or DEFAULT_LIMIT))
    return rows[offset:offset + limit]
