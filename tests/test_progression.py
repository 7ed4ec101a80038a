"""
Rank derivation, rank-up rewards, nerve regeneration, new players and death resets
"""
from datetime import timedelta

from mafioso.models import PlayerCar
from mafioso.progression import (
    award_respect,
    death_reset,
    new_player,
    next_rank_info,
    recalculate_rank,
    regenerate_nerve,
)


class TestRecalculateRank:
    """Rank is the highest threshold <= respect"""

    def test_zero_below_first_threshold(self, cfg):
        for respect in (0, 1, cfg.ranks[1].required_respect - 1):
            assert recalculate_rank(respect, cfg) == 0

    def test_exact_thresholds(self, cfg):
        for rank in cfg.ranks:
            assert recalculate_rank(rank.required_respect, cfg) == rank.id

    def test_non_decreasing(self, cfg):
        samples = sorted({0, 1, 99, 100, 101, 499, 500, 7499, 7500, 10**6, 10**9, 10**12, 10**13})
        ranks = [recalculate_rank(r, cfg) for r in samples]
        assert ranks == sorted(ranks)
        assert ranks[-1] == cfg.max_rank

    def test_next_rank_info(self, cfg):
        assert next_rank_info(40, cfg) == ("Bum", 60)
        assert next_rank_info(cfg.ranks[-1].required_respect, cfg) == (None, 0)


class TestAwardRespect:
    """Rank-up bonus is paid once per increase"""

    def test_no_rank_up(self, cfg, make_player):
        player = make_player(respect=10)
        assert award_respect(player, 5, cfg) == (False, 0)
        assert player.respect == 15
        assert player.stats.total_respect_earned == 5

    def test_rank_up_pays_bonus_once(self, cfg, make_player):
        player = make_player(respect=0, bullets=0)
        ranked_up, bullets = award_respect(player, 600, cfg)  # crosses Bum and Thief
        assert ranked_up
        assert bullets == cfg.bullets_on_rankup
        assert player.rank == 2
        assert player.bullets == cfg.bullets_on_rankup
        assert player.stats.rank_ups == 1


class TestNerve:
    """Whole minutes regenerate; the partial minute carries"""

    def test_regenerates_whole_minutes(self, cfg_augmented, make_player, now):
        player = make_player(nerve=10, nerve_updated_at=now - timedelta(seconds=150))
        regenerate_nerve(player, cfg_augmented, now)
        assert player.nerve == 12
        assert player.nerve_updated_at == now - timedelta(seconds=30)

    def test_caps_at_max(self, cfg_augmented, make_player, now):
        player = make_player(nerve=99, nerve_updated_at=now - timedelta(hours=1))
        regenerate_nerve(player, cfg_augmented, now)
        assert player.nerve == cfg_augmented.max_nerve
        assert player.nerve_updated_at == now


class TestNewPlayerAndReset:
    """Starting values and the death reset"""

    def test_new_player(self, cfg, now):
        player = new_player(cfg, "w1", "Vito", now, wallet_address="0xabc")
        assert player.money == cfg.starting_money
        assert player.nerve == cfg.starting_nerve
        assert player.rank == 0
        assert player.cars == []
        assert player.wallet_address == "0xabc"

    def test_death_reset_keeps_swiss_bank(self, cfg, make_player):
        victim = make_player(
            money=123456,
            swiss_bank=999,
            respect=5000,
            rank=3,
            bullets=700,
            gun_id=2,
            protection_id=1,
            cars=[PlayerCar(id="c1", car_type=1)],
            active_car="c1",
            deaths=2,
            kills=4,
        )
        after = death_reset(victim, cfg)
        assert after.swiss_bank == 999
        assert after.money == cfg.starting_money
        assert after.respect == 0
        assert after.rank == 0
        assert after.bullets == cfg.starting_bullets
        assert after.gun_id is None and after.protection_id is None
        assert after.cars == [] and after.active_car is None
        assert after.deaths == 3
        assert after.kills == 4
        assert after.world_id == victim.world_id
