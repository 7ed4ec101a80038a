# Combat: search for a target, bullet cost, shoot
import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from mafioso import gate
from mafioso.config import GameConfig
from mafioso.models import Player, SearchState
from mafioso.progression import death_reset
from mafioso.results import (
    CAR_LISTINGS,
    Change,
    MessageOutcome,
    Resolution,
    SearchOutcome,
    ShootOutcome,
    conflict,
    not_found,
    player_change,
    precondition_failed,
    succeed,
    validation_error,
)
from mafioso.timers import expires_at, iso

logger = logging.getLogger(__name__)

SEARCH_FIELDS = {"searching_for"}
ATTACKER_FIELDS = {"bullets", "kills", "searching_for", "cars", "active_car"}
# Everything a death reset touches on the victim. swiss_bank is deliberately absent.
VICTIM_FIELDS = {
    "money",
    "respect",
    "rank",
    "bullets",
    "gun_id",
    "protection_id",
    "cars",
    "active_car",
    "searching_for",
    "deaths",
}


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def rank_multiplier(attacker_rank: int, target_rank: int, cfg: GameConfig) -> float:
    gap = min(abs(attacker_rank - target_rank), cfg.rank_difference_cap)
    return cfg.rank_difference_multipliers.get(gap, cfg.rank_difference_multipliers[cfg.rank_difference_cap])


def bullets_to_kill(attacker: Player, target: Player, cfg: GameConfig) -> int:
    """ceil(base * rank multiplier * target protection / attacker gun). No gun or protection counts as 1."""
    protection = cfg.protection_item(target.protection_id)
    gun = cfg.gun(attacker.gun_id)
    multiplier = protection.multiplier if protection else 1.0
    divisor = gun.divisor if gun else 1.0
    needed_raw = cfg.base_bullets_to_kill * rank_multiplier(attacker.rank, target.rank, cfg) * multiplier / divisor
    return max(0, int(math.ceil(needed_raw)))


def search_ready(search: Optional[SearchState], now: datetime, cfg: GameConfig) -> gate.Verdict:
    """A search can be used from its end time until SEARCH_RESULT_VALID_TIME after it."""
    if search is None:
        return gate.deny("You must search for a target first")
    if search.ends_at > now:
        return gate.deny("Your search is not complete yet")
    if now > search.ends_at + timedelta(seconds=cfg.search_result_valid_time):
        return gate.deny("Your search results have expired. Please search again.")
    return gate.ALLOWED


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

def search_player(
    player: Player,
    target: Optional[Player],
    cfg: GameConfig,
    target_username: str,
    now: datetime,
) -> Resolution:
    if not target_username or not target_username.strip():
        return validation_error("Target username is required")
    verdict = gate.can_act(player, now)
    if not verdict.allowed:
        return precondition_failed(verdict.reason)
    if player.searching_for is not None and player.searching_for.ends_at > now:
        return conflict("You are already searching for a target")
    if target_username.strip().lower() == player.username.lower():
        return precondition_failed("You can't search for yourself")
    if target is None:
        return not_found("Target player not found")
    verdict = gate.not_self(player, target.world_id)
    if not verdict.allowed:
        return precondition_failed(verdict.reason)

    updated = player.model_copy(deep=True)
    ends = expires_at(now, cfg.search_time)
    updated.searching_for = SearchState(
        target_id=target.world_id,
        target_username=target.username,
        target_city=target.city,
        started_at=now,
        ends_at=ends,
    )
    hours = cfg.search_time // 3600
    return succeed(
        updated,
        SearchOutcome(
            message=f"Started searching for {target.username}. Search will complete in {hours} hours.",
            target_username=target.username,
            ends_at=iso(ends),
        ),
        [player_change(updated, SEARCH_FIELDS)],
    )


def cancel_search(player: Player) -> Resolution:
    updated = player.model_copy(deep=True)
    if updated.searching_for is None:
        return succeed(updated, MessageOutcome(message="You are not searching for anyone"), [])
    updated.searching_for = None
    return succeed(updated, MessageOutcome(message="Search cancelled"), [player_change(updated, SEARCH_FIELDS)])


def shoot_player(
    attacker: Player,
    target: Optional[Player],
    cfg: GameConfig,
    now: datetime,
    target_id: Optional[str] = None,
) -> Resolution:
    """
    Kill the searched-for target. The caller loads target from attacker.searching_for.
    On success the Resolution's player is the attacker; the victim's reset is one of
    the changes and must be persisted atomically with the attacker's.
    """
    verdict = gate.can_act(attacker, now)
    if not verdict.allowed:
        return precondition_failed(verdict.reason)
    if attacker.gun_id is None:
        return precondition_failed("You need a gun to shoot someone")
    verdict = search_ready(attacker.searching_for, now, cfg)
    if not verdict.allowed:
        return precondition_failed(verdict.reason)
    searched_id = attacker.searching_for.target_id
    if target_id is not None and target_id != searched_id:
        return precondition_failed("You must search for this target first")
    if target is None or target.world_id != searched_id:
        return not_found("Target player not found")
    verdict = gate.not_self(attacker, target.world_id)
    if not verdict.allowed:
        return precondition_failed(verdict.reason)

    cost = bullets_to_kill(attacker, target, cfg)
    if attacker.bullets < cost:
        return precondition_failed(
            f"Not enough bullets. You need {cost:,} bullets but only have {attacker.bullets:,}"
        )

    winner = attacker.model_copy(deep=True)
    winner.bullets -= cost
    winner.kills += 1
    winner.searching_for = None
    looted = [car.model_copy(update={"source": "killed_player"}) for car in target.cars]
    winner.cars.extend(looted)
    if winner.active_car is None and looted:
        winner.active_car = looted[0].id

    victim = death_reset(target, cfg)
    logger.info(
        "Kill: %s shot %s using %s bullets, took %s cars",
        attacker.username,
        target.username,
        cost,
        len(looted),
    )
    return succeed(
        winner,
        ShootOutcome(
            message=f"You killed {target.username} using {cost:,} bullets",
            bullets_used=cost,
            cars_taken=len(looted),
            target_username=target.username,
        ),
        [
            player_change(winner, ATTACKER_FIELDS),
            player_change(victim, VICTIM_FIELDS),
            # The victim owns no cars any more, so none of their listings can be honoured
            Change(
                table=CAR_LISTINGS,
                key={"seller_id": target.world_id, "active": True},
                fields={"active": False},
                many=True,
            ),
        ],
    )
