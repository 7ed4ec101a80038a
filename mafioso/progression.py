# Rank from respect, rank-up rewards, nerve regeneration, new players and death resets
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from mafioso.config import GameConfig
from mafioso.models import Player, PlayerStats

logger = logging.getLogger(__name__)


def recalculate_rank(respect: int, cfg: GameConfig) -> int:
    """Highest rank whose threshold is <= respect. Rank 0 has threshold 0 so this always resolves."""
    for i in range(len(cfg.ranks) - 1, -1, -1):
        if respect >= cfg.ranks[i].required_respect:
            return cfg.ranks[i].id
    return cfg.ranks[0].id


def rank_name(rank: int, cfg: GameConfig) -> str:
    if 0 <= rank < len(cfg.ranks):
        return cfg.ranks[rank].name
    return cfg.ranks[0].name


def next_rank_info(respect: int, cfg: GameConfig) -> Tuple[Optional[str], int]:
    """(next rank name, respect still needed). (None, 0) at the top rank."""
    current = recalculate_rank(respect, cfg)
    if current >= cfg.max_rank:
        return None, 0
    nxt = cfg.ranks[current + 1]
    return nxt.name, max(0, nxt.required_respect - respect)


def award_respect(player: Player, amount: int, cfg: GameConfig) -> Tuple[bool, int]:
    """
    Add respect to player in place and re-derive rank.
    A rank increase pays BULLETS_ON_RANKUP once and counts one rank-up,
    however many thresholds were crossed.
    Returns (ranked_up, bullets_awarded).
    """
    if amount <= 0:
        return False, 0
    old_rank = player.rank
    player.respect += amount
    player.stats.total_respect_earned += amount
    new_rank = recalculate_rank(player.respect, cfg)
    if new_rank <= old_rank:
        return False, 0
    player.rank = new_rank
    player.bullets += cfg.bullets_on_rankup
    player.stats.rank_ups += 1
    logger.info("Rank up: %s %s -> %s", player.username, rank_name(old_rank, cfg), rank_name(new_rank, cfg))
    return True, cfg.bullets_on_rankup


def regenerate_nerve(player: Player, cfg: GameConfig, now: datetime) -> None:
    """Add NERVE_REGEN_RATE per whole elapsed minute, capped at MAX_NERVE. The partial minute carries over."""
    if player.nerve_updated_at is None:
        player.nerve_updated_at = now
        return
    if player.nerve >= cfg.max_nerve:
        player.nerve_updated_at = now
        return
    elapsed = (now - player.nerve_updated_at).total_seconds()
    minutes = int(elapsed // 60)
    if minutes <= 0:
        return
    player.nerve = min(cfg.max_nerve, player.nerve + minutes * cfg.nerve_regen_rate)
    if player.nerve >= cfg.max_nerve:
        player.nerve_updated_at = now
    else:
        player.nerve_updated_at = player.nerve_updated_at + timedelta(minutes=minutes)


def new_player(
    cfg: GameConfig,
    world_id: str,
    username: str,
    now: datetime,
    wallet_address: Optional[str] = None,
) -> Player:
    player = Player(
        world_id=world_id,
        wallet_address=wallet_address,
        username=username,
        money=cfg.starting_money,
        respect=cfg.starting_respect,
        bullets=cfg.starting_bullets,
        nerve=cfg.starting_nerve,
        nerve_updated_at=now,
        created_at=now,
    )
    player.rank = recalculate_rank(player.respect, cfg)
    return player


def death_reset(victim: Player, cfg: GameConfig) -> Player:
    """
    Victim after being killed: back to starting economy and rank with no gear or cars.
    swiss_bank, identity, location, combat record and lifetime stats survive.
    """
    return Player(
        world_id=victim.world_id,
        wallet_address=victim.wallet_address,
        username=victim.username,
        money=cfg.starting_money,
        swiss_bank=victim.swiss_bank,
        respect=cfg.starting_respect,
        bullets=cfg.starting_bullets,
        rank=recalculate_rank(cfg.starting_respect, cfg),
        city=victim.city,
        nerve=victim.nerve,
        nerve_updated_at=victim.nerve_updated_at,
        gun_id=None,
        protection_id=None,
        cars=[],
        active_car=None,
        jail_until=victim.jail_until,
        hospital_until=victim.hospital_until,
        last_melt_time=victim.last_melt_time,
        searching_for=None,
        kills=victim.kills,
        deaths=victim.deaths + 1,
        stats=PlayerStats.model_validate(victim.stats.model_dump()),
        bullet_factory_id=victim.bullet_factory_id,
        created_at=victim.created_at,
        version=victim.version,
    )
