"""
Melt, repair, active car and the garage view
"""
from datetime import timedelta

from mafioso.garage import garage_view, melt_car, melt_value, repair_car, repair_chance, select_active_car
from mafioso.models import PlayerCar
from mafioso.results import CAR_LISTINGS, ErrorKind
from conftest import ScriptedRng


class TestMeltValue:
    """floor(base_bullets * (100 - damage) / 100)"""

    def test_pristine_and_wrecked(self, cfg):
        assert melt_value(PlayerCar(id="a", car_type=6, damage=0), cfg) == 750
        assert melt_value(PlayerCar(id="a", car_type=6, damage=100), cfg) == 0

    def test_floors(self, cfg):
        # 150 * 67 / 100 = 100.5
        assert melt_value(PlayerCar(id="a", car_type=1, damage=33), cfg) == 100

    def test_non_increasing_in_damage(self, cfg):
        for car_type in range(len(cfg.cars)):
            values = [melt_value(PlayerCar(id="a", car_type=car_type, damage=d), cfg) for d in range(101)]
            assert values == sorted(values, reverse=True)


class TestMelt:
    """Melting removes the car and starts a cooldown"""

    def test_melt(self, cfg, make_player, make_car, now):
        player = make_player(bullets=5, cars=[make_car("a", 0), make_car("b", 3, damage=50)], active_car="a")
        res = melt_car(player, cfg, "b", now)
        assert res.ok
        assert [c.id for c in res.player.cars] == ["a"]
        assert res.player.bullets == 5 + 150
        assert res.player.last_melt_time == now
        assert res.outcome.bullets_gained == 150
        withdrawn = res.changes[1]
        assert withdrawn.table == CAR_LISTINGS
        assert withdrawn.key == {"seller_id": "p1", "car_id": "b", "active": True}
        assert withdrawn.fields == {"active": False}
        assert withdrawn.many

    def test_cannot_melt_active_car(self, cfg, make_player, make_car, now):
        player = make_player(cars=[make_car("a")], active_car="a")
        res = melt_car(player, cfg, "a", now)
        assert res.error.kind == ErrorKind.PRECONDITION_FAILED
        assert "active" in res.error.reason

    def test_cooldown(self, cfg, make_player, make_car, now):
        player = make_player(cars=[make_car("a"), make_car("b")], active_car="a", last_melt_time=now - timedelta(seconds=60))
        res = melt_car(player, cfg, "b", now)
        assert res.error.kind == ErrorKind.PRECONDITION_FAILED
        later = now + timedelta(seconds=cfg.car_melt_cooldown)
        assert melt_car(player, cfg, "b", later).ok

    def test_not_owned(self, cfg, make_player, now):
        assert melt_car(make_player(), cfg, "nope", now).error.kind == ErrorKind.PRECONDITION_FAILED


class TestRepair:
    """One draw; rare cars repair at half odds"""

    def test_chance(self, cfg):
        assert repair_chance(PlayerCar(id="a", car_type=0, damage=30), cfg) == 70
        assert repair_chance(PlayerCar(id="a", car_type=8, damage=30), cfg) == 35
        assert repair_chance(PlayerCar(id="a", car_type=9, damage=100), cfg) == 0

    def test_success_resets_damage(self, cfg, make_player, make_car, now):
        player = make_player(cars=[make_car("a", 0, damage=30)])
        res = repair_car(player, cfg, "a", now, rng=ScriptedRng(randoms=[0.69]))
        assert res.outcome.success
        assert res.player.get_car("a").damage == 0

    def test_failure_keeps_damage(self, cfg, make_player, make_car, now):
        player = make_player(cars=[make_car("a", 0, damage=30)])
        res = repair_car(player, cfg, "a", now, rng=ScriptedRng(randoms=[0.75]))
        assert res.ok
        assert not res.outcome.success
        assert res.player.get_car("a").damage == 30
        assert res.changes == []

    def test_pristine_car(self, cfg, make_player, make_car, now):
        player = make_player(cars=[make_car("a")])
        assert repair_car(player, cfg, "a", now).error.kind == ErrorKind.PRECONDITION_FAILED


class TestActiveCar:
    """select_active_car and garage_view"""

    def test_select(self, make_player, make_car):
        player = make_player(cars=[make_car("a"), make_car("b")], active_car="a")
        res = select_active_car(player, "b")
        assert res.player.active_car == "b"
        assert select_active_car(res.player, "b").error.kind == ErrorKind.CONFLICT
        assert select_active_car(player, "zzz").error.kind == ErrorKind.PRECONDITION_FAILED

    def test_view(self, cfg, make_player, make_car, now):
        player = make_player(
            cars=[make_car("a", 0), make_car("b", 7, damage=10)],
            active_car="a",
            last_melt_time=now - timedelta(seconds=100),
        )
        view = garage_view(player, cfg, now)
        assert view["total_cars"] == 2
        assert view["melt_cooldown_remaining"] == cfg.car_melt_cooldown - 100
        ferrari = [c for c in view["cars"] if c["id"] == "b"][0]
        assert ferrari["rare"]
        assert ferrari["melt_value"] == 1350
        assert ferrari["repair_chance"] == 45
