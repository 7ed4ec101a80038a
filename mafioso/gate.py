"""
Eligibility gate: pure predicates deciding whether an action is currently permitted.

Nothing here mutates a player. Every check returns a Verdict; the first failing
verdict's reason is shown to the player as-is.
"""
from datetime import datetime
from typing import NamedTuple, Optional

from mafioso.models import Player
from mafioso.timers import is_active, remaining_seconds


class Verdict(NamedTuple):
    allowed: bool
    reason: Optional[str] = None


ALLOWED = Verdict(True)


def deny(reason: str) -> Verdict:
    return Verdict(False, reason)


def can_act(player: Player, now: datetime, hospital_blocks: bool = True) -> Verdict:
    """Jail first, then hospital. Applied to every restricted action."""
    if is_active(player.jail_until, now):
        return deny(f"You are in jail for another {remaining_seconds(player.jail_until, now)}s")
    if hospital_blocks and is_active(player.hospital_until, now):
        return deny(f"You are in hospital for another {remaining_seconds(player.hospital_until, now)}s")
    return ALLOWED


def check_cooldown(expiry: Optional[datetime], now: datetime, label: str = "This action") -> Verdict:
    """Cooldowns are keyed per (player, action) so they are checked separately from can_act."""
    if is_active(expiry, now):
        return deny(f"{label} is on cooldown, try again in {remaining_seconds(expiry, now)}s")
    return ALLOWED


def has_rank(player: Player, required_rank: int, rank_name: Optional[str] = None) -> Verdict:
    if player.rank < required_rank:
        return deny(f"Requires rank {rank_name or required_rank}")
    return ALLOWED


def has_money(player: Player, amount: int) -> Verdict:
    if player.money < amount:
        return deny(f"Not enough money (need ${amount:,})")
    return ALLOWED


def has_nerve(player: Player, amount: int) -> Verdict:
    if player.nerve < amount:
        return deny(f"Not enough nerve (need {amount})")
    return ALLOWED


def sequential_chain_ok(owned_id: Optional[int], item_id: int, item_label: str = "item") -> Verdict:
    """Item 0 is always reachable; item n needs item n-1 owned right now."""
    if item_id == 0:
        return ALLOWED
    if owned_id is not None and owned_id == item_id - 1:
        return ALLOWED
    if owned_id is not None and owned_id >= item_id:
        return deny(f"You already own this {item_label} or a better one")
    return deny(f"You must own the previous {item_label} before buying this one")


def owns_car(player: Player, car_id: str) -> Verdict:
    if player.get_car(car_id) is None:
        return deny("You don't own this car")
    return ALLOWED


def below_factory_cap(player: Player, cap: int) -> Verdict:
    owned = 1 if player.bullet_factory_id is not None else 0
    if owned >= cap:
        return deny("You already own a bullet factory")
    return ALLOWED


def not_self(player: Player, target_id: str) -> Verdict:
    if player.world_id == target_id:
        return deny("You can't target yourself")
    return ALLOWED


def first_denial(*verdicts: Verdict) -> Verdict:
    for verdict in verdicts:
        if not verdict.allowed:
            return verdict
    return ALLOWED
