# Sequential gun and protection purchases. Item n needs item n-1; tiers can't be skipped.
import logging
from datetime import datetime
from typing import List, Optional, Union

from mafioso import gate
from mafioso.config import GameConfig
from mafioso.models import Gun, Player, Protection
from mafioso.results import (
    PurchaseOutcome,
    Resolution,
    player_change,
    precondition_failed,
    succeed,
    validation_error,
)

logger = logging.getLogger(__name__)


def _buy_sequential(
    player: Player,
    catalog: List[Union[Gun, Protection]],
    item_id: int,
    owned_field: str,
    label: str,
    now: datetime,
) -> Resolution:
    if not isinstance(item_id, int) or item_id < 0 or item_id >= len(catalog):
        return validation_error(f"Invalid {label} id")
    item = catalog[item_id]
    owned_id: Optional[int] = getattr(player, owned_field)

    verdict = gate.can_act(player, now)
    if not verdict.allowed:
        return precondition_failed(verdict.reason)
    verdict = gate.sequential_chain_ok(owned_id, item_id, label)
    if not verdict.allowed:
        if owned_id is None or owned_id < item_id - 1:
            return precondition_failed(f"You must own {catalog[item_id - 1].name} before buying this {label}")
        return precondition_failed(verdict.reason)
    verdict = gate.has_money(player, item.price)
    if not verdict.allowed:
        return precondition_failed(verdict.reason)

    updated = player.model_copy(deep=True)
    updated.money -= item.price
    setattr(updated, owned_field, item.id)
    return succeed(
        updated,
        PurchaseOutcome(
            message=f"Successfully purchased {item.name}",
            item_id=item.id,
            item_name=item.name,
            price=item.price,
            money_left=updated.money,
        ),
        [player_change(updated, {"money", owned_field})],
    )


def buy_gun(player: Player, cfg: GameConfig, gun_id: int, now: datetime) -> Resolution:
    return _buy_sequential(player, cfg.guns, gun_id, "gun_id", "gun", now)


def buy_protection(player: Player, cfg: GameConfig, protection_id: int, now: datetime) -> Resolution:
    return _buy_sequential(player, cfg.protection, protection_id, "protection_id", "protection", now)
