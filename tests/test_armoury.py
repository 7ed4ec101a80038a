"""
Sequential gun and protection purchases
"""
from datetime import timedelta

import pytest

from mafioso.armoury import buy_gun, buy_protection
from mafioso.results import ErrorKind


class TestGunChain:
    """Tiers can't be skipped"""

    def test_chain_scenario(self, cfg, make_player, now):
        player = make_player(money=10_000_000)

        res = buy_gun(player, cfg, 0, now)
        assert res.ok
        player = res.player
        assert player.gun_id == 0

        res = buy_gun(player, cfg, 2, now)
        assert res.error.kind == ErrorKind.PRECONDITION_FAILED
        assert cfg.guns[1].name in res.error.reason

        res = buy_gun(player, cfg, 1, now)
        assert res.ok
        player = res.player

        res = buy_gun(player, cfg, 2, now)
        assert res.ok
        assert res.player.gun_id == 2
        assert res.player.money == 10_000_000 - sum(g.price for g in cfg.guns[:3])

    @pytest.mark.parametrize("item_id", range(1, 9))
    def test_skipping_fails_for_every_tier(self, cfg, make_player, now, item_id):
        player = make_player(money=10**9)
        assert buy_gun(player, cfg, item_id, now).error.kind == ErrorKind.PRECONDITION_FAILED
        assert buy_protection(player, cfg, item_id, now).error.kind == ErrorKind.PRECONDITION_FAILED

    def test_rebuying_owned_tier_fails(self, cfg, make_player, now):
        player = make_player(money=10**9, gun_id=3)
        assert buy_gun(player, cfg, 3, now).error.kind == ErrorKind.PRECONDITION_FAILED

    def test_first_tier_always_buyable(self, cfg, make_player, now):
        # Tier 0 is the entry point of the chain, so buying it replaces whatever is owned
        player = make_player(money=10**9, gun_id=5, protection_id=2)
        res = buy_gun(player, cfg, 0, now)
        assert res.ok, res.error
        assert res.player.gun_id == 0
        assert res.player.money == 10**9 - cfg.guns[0].price
        assert buy_protection(player, cfg, 0, now).ok

    def test_insufficient_money(self, cfg, make_player, now):
        player = make_player(money=cfg.guns[0].price - 1)
        res = buy_gun(player, cfg, 0, now)
        assert res.error.kind == ErrorKind.PRECONDITION_FAILED
        assert "money" in res.error.reason

    def test_invalid_id(self, cfg, make_player, now):
        assert buy_gun(make_player(), cfg, 42, now).error.kind == ErrorKind.VALIDATION
        assert buy_protection(make_player(), cfg, -1, now).error.kind == ErrorKind.VALIDATION

    def test_jailed_player_cannot_buy(self, cfg, make_player, now):
        player = make_player(money=10**6, jail_until=now + timedelta(seconds=5))
        assert buy_gun(player, cfg, 0, now).error.kind == ErrorKind.PRECONDITION_FAILED


class TestProtection:
    """Same rule, separate catalog"""

    def test_buy_first_protection(self, cfg, make_player, now):
        player = make_player(money=cfg.protection[0].price)
        res = buy_protection(player, cfg, 0, now)
        assert res.ok
        assert res.player.protection_id == 0
        assert res.player.money == 0
        assert res.changes[0].fields == {"money": 0, "protection_id": 0}
