"""
Crime resolution under both policies
"""
import random
from datetime import timedelta

from mafioso.crimes import commit_crime, pick_reward_car, success_chance
from mafioso.results import COOLDOWNS, CRIME_HISTORY, PLAYERS, ErrorKind
from conftest import ScriptedRng


class TestFixedRate:
    """Fixed chance, jail-only failures, car-reward crimes"""

    def test_pickpocket_succeeds_at_the_boundary(self, cfg, make_player, now):
        player = make_player(money=0)
        res = commit_crime(player, cfg, 0, now, rng=ScriptedRng(randoms=[1.0], randints=[120]))
        assert res.ok, res.error
        assert res.outcome.success
        assert res.player.money == 120
        assert res.player.respect == 1
        assert res.player.stats.crimes_attempted == 1
        assert res.player.stats.crimes_succeeded == 1

    def test_pickpocket_always_succeeds(self, cfg, make_player, now):
        rng = random.Random(7)
        player = make_player()
        for _ in range(200):
            res = commit_crime(player, cfg, 0, now, rng=rng)
            assert res.outcome.success, "Pickpocket must never fail at 100% base success"

    def test_failure_is_jail_for_crime_jail_time(self, cfg, make_player, now):
        player = make_player()
        res = commit_crime(player, cfg, 1, now, rng=ScriptedRng(randoms=[0.9]))
        assert res.ok
        assert not res.outcome.success
        assert res.outcome.outcome == "jail"
        assert res.player.jail_until == now + timedelta(seconds=cfg.crime(1).jail_time)
        assert res.player.stats.times_jailed == 1
        assert res.player.hospital_until is None
        assert res.player.money == player.money

    def test_car_reward_crime_gives_car_not_cash(self, cfg, make_player, now):
        player = make_player(rank=2, respect=500, money=10)
        # 0.1 -> success; 0.95 -> epic tier; choice index 1 -> car 8
        res = commit_crime(player, cfg, 3, now, rng=ScriptedRng(randoms=[0.1, 0.95], choice_index=1))
        assert res.ok
        assert res.outcome.success
        assert res.player.money == 10
        assert res.player.respect == 500
        assert len(res.player.cars) == 1
        car = res.player.cars[0]
        assert car.car_type == 8
        assert car.damage == 0
        assert car.source == "crime_reward"
        assert res.player.active_car == car.id

    def test_car_reward_keeps_existing_active_car(self, cfg, make_player, make_car, now):
        player = make_player(rank=2, respect=500, cars=[make_car("mine")], active_car="mine")
        res = commit_crime(player, cfg, 3, now, rng=ScriptedRng(randoms=[0.0, 0.1]))
        assert len(res.player.cars) == 2
        assert res.player.active_car == "mine"

    def test_top_rank_earns_money_but_no_respect(self, cfg, make_player, now):
        top = cfg.ranks[-1].required_respect
        player = make_player(rank=cfg.max_rank, respect=top, money=0)
        res = commit_crime(player, cfg, 0, now, rng=ScriptedRng(randoms=[0.5], randints=[50]))
        assert res.player.money == 50
        assert res.player.respect == top
        assert res.outcome.respect_earned == 0

    def test_hospital_does_not_block_fixed_rate_crimes(self, cfg, make_player, now):
        player = make_player(hospital_until=now + timedelta(minutes=5))
        res = commit_crime(player, cfg, 0, now, rng=ScriptedRng(randoms=[0.5]))
        assert res.ok


class TestCommitGating:
    """Rejections leave the player untouched"""

    def test_invalid_crime(self, cfg, make_player, now):
        res = commit_crime(make_player(), cfg, 99, now)
        assert res.error.kind == ErrorKind.VALIDATION
        assert res.changes == []

    def test_rank_too_low(self, cfg, make_player, now):
        res = commit_crime(make_player(rank=0), cfg, 3, now)
        assert res.error.kind == ErrorKind.PRECONDITION_FAILED

    def test_in_jail(self, cfg, make_player, now):
        res = commit_crime(make_player(jail_until=now + timedelta(seconds=10)), cfg, 0, now)
        assert res.error.kind == ErrorKind.PRECONDITION_FAILED
        assert "jail" in res.error.reason

    def test_on_cooldown(self, cfg, make_player, now):
        res = commit_crime(make_player(), cfg, 0, now, cooldown_until=now + timedelta(seconds=20))
        assert res.error.kind == ErrorKind.PRECONDITION_FAILED
        assert "20s" in res.error.reason

    def test_expired_cooldown_allows(self, cfg, make_player, now):
        res = commit_crime(make_player(), cfg, 0, now, cooldown_until=now, rng=ScriptedRng(randoms=[0.5]))
        assert res.ok


class TestCommitChanges:
    """Cooldown upsert, audit entry and a bounded player update"""

    def test_changes(self, cfg, make_player, now):
        res = commit_crime(make_player(), cfg, 0, now, rng=ScriptedRng(randoms=[0.5]))
        tables = [c.table for c in res.changes]
        assert tables == [PLAYERS, COOLDOWNS, CRIME_HISTORY]
        player_fields = set(res.changes[0].fields)
        assert "swiss_bank" not in player_fields
        assert "username" not in player_fields
        cooldown = res.changes[1]
        assert cooldown.upsert
        assert cooldown.key == {"player_id": "p1", "action_id": "crime:0"}
        assert cooldown.fields["expires_at"] == (now + timedelta(seconds=cfg.crime(0).cooldown)).isoformat()
        assert cooldown.guard == {"expires_at": {"$lte": now.isoformat()}}
        assert res.changes[0].guard == {"version": 0}
        audit = res.changes[2]
        assert audit.insert
        assert audit.fields["crime_name"] == "Pickpocket"
        assert audit.fields["policy"] == "fixed_rate"


class TestAugmented:
    """Rank and nerve bonus, jail/hospital/plain failure"""

    def test_chance_clamped_to_95(self, cfg_augmented, make_player):
        strong = make_player(rank=19, nerve=100)
        for crime in cfg_augmented.crimes:
            assert success_chance(crime, strong, cfg_augmented) <= 95
        assert success_chance(cfg_augmented.crime(10), strong, cfg_augmented) == 50

    def test_chance_bonus(self, cfg_augmented, make_player):
        player = make_player(rank=3, nerve=50)
        # 75 + 6 + 5
        assert success_chance(cfg_augmented.crime(3), player, cfg_augmented) == 86

    def test_failure_to_jail(self, cfg_augmented, make_player, now):
        player = make_player(nerve=100, nerve_updated_at=now)
        res = commit_crime(player, cfg_augmented, 0, now, rng=ScriptedRng(randoms=[0.99, 0.1], randints=[100]))
        assert res.outcome.outcome == "jail"
        assert res.player.jail_until == now + timedelta(seconds=cfg_augmented.jail_time_base + 100)
        assert res.player.nerve == 99

    def test_failure_to_hospital(self, cfg_augmented, make_player, now):
        player = make_player(nerve=100, nerve_updated_at=now)
        res = commit_crime(player, cfg_augmented, 0, now, rng=ScriptedRng(randoms=[0.99, 0.4]))
        assert res.outcome.outcome == "hospital"
        assert res.player.hospital_until == now + timedelta(seconds=cfg_augmented.hospital_time_base)
        assert res.player.stats.times_hospitalized == 1

    def test_plain_failure(self, cfg_augmented, make_player, now):
        player = make_player(nerve=100, nerve_updated_at=now)
        res = commit_crime(player, cfg_augmented, 0, now, rng=ScriptedRng(randoms=[0.99, 0.7]))
        assert res.outcome.outcome == "failed"
        assert res.player.jail_until is None and res.player.hospital_until is None
        assert res.player.stats.crimes_failed == 1

    def test_hospital_blocks_augmented_crimes(self, cfg_augmented, make_player, now):
        player = make_player(hospital_until=now + timedelta(seconds=60))
        res = commit_crime(player, cfg_augmented, 0, now)
        assert res.error.kind == ErrorKind.PRECONDITION_FAILED
        assert "hospital" in res.error.reason

    def test_not_enough_nerve(self, cfg_augmented, make_player, now):
        player = make_player(rank=3, nerve=2, nerve_updated_at=now)
        res = commit_crime(player, cfg_augmented, 3, now)
        assert res.error.kind == ErrorKind.PRECONDITION_FAILED
        assert "nerve" in res.error.reason

    def test_rank_up_awards_bullets(self, cfg_augmented, make_player, now):
        player = make_player(respect=99, bullets=0, nerve=100, nerve_updated_at=now)
        res = commit_crime(player, cfg_augmented, 0, now, rng=ScriptedRng(randoms=[0.1], randints=[50]))
        assert res.outcome.rank_up
        assert res.player.rank == 1
        assert res.player.bullets == cfg_augmented.bullets_on_rankup
        assert res.player.stats.rank_ups == 1


class TestRewardCar:
    """Weighted tier draw"""

    def test_tier_boundaries(self, cfg):
        assert pick_reward_car(cfg, ScriptedRng(randoms=[0.0])) == 0
        assert pick_reward_car(cfg, ScriptedRng(randoms=[0.5])) == 0
        assert pick_reward_car(cfg, ScriptedRng(randoms=[0.51])) == 3
        assert pick_reward_car(cfg, ScriptedRng(randoms=[0.85])) == 6
        assert pick_reward_car(cfg, ScriptedRng(randoms=[0.99], choice_index=1)) == 10
