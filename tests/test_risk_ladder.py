"""
Unit tests for the risk ladder lookups.
"""
from decimal import Decimal

import pytest

from core.risk_ladder import FLOOR_TIER, LadderError, LadderTier, RiskLadder

D = Decimal
DEFAULT = D("1.0")


def test_parse_builds_ascending_tiers(ladder):
    assert len(ladder) == 5
    assert ladder.first_threshold == D("150")
    assert ladder.tiers[1] == LadderTier(D("300"), D("100"))


@pytest.mark.parametrize("profit", ["-50", "0", "30", "46", "149.99"])
def test_below_first_threshold_uses_default(ladder, profit):
    assert ladder.lookup(D(profit), DEFAULT) == (FLOOR_TIER, DEFAULT)


@pytest.mark.parametrize(
    "profit,expected",
    [
        ("150", (0, D("0"))),
        ("299.99", (0, D("0"))),
        ("300", (1, D("100"))),
        ("499", (1, D("100"))),
        ("500", (2, D("250"))),
        ("1199", (3, D("500"))),
        ("5000", (4, D("800"))),
    ],
)
def test_highest_threshold_not_exceeded(ladder, profit, expected):
    assert ladder.lookup(D(profit), DEFAULT) == expected


@pytest.mark.parametrize(
    "text",
    [
        "",
        "300:100,150:0",
        "150:0,150:10",
        "150-0",
        "abc:1",
        "0:0",
        "150:-5",
        "150:100,300:50",
        "100:150",
        "150:150",
    ],
)
def test_parse_rejects_malformed_ladders(text):
    with pytest.raises(LadderError):
        RiskLadder.parse(text)


def test_parse_ignores_blank_chunks():
    ladder = RiskLadder.parse(" 150:0 , ,300:100,")
    assert len(ladder) == 2


def test_tier_for_stop_matches_within_tolerance(ladder):
    leverage = D("10")
    # Tier locks in raw %: 0, 10, 25, 50, 80
    assert ladder.tier_for_stop(D("0"), leverage) == 0
    assert ladder.tier_for_stop(D("10"), leverage) == 1
    assert ladder.tier_for_stop(D("10.04"), leverage) == 1
    assert ladder.tier_for_stop(D("24.97"), leverage) == 2


def test_tier_for_stop_unmatched_is_floor(ladder):
    leverage = D("10")
    assert ladder.tier_for_stop(D("-1"), leverage) == FLOOR_TIER
    assert ladder.tier_for_stop(D("10.2"), leverage) == FLOOR_TIER
    assert ladder.tier_for_stop(D("1"), leverage) == FLOOR_TIER


def test_tier_for_stop_picks_closest_tier():
    ladder = RiskLadder.parse("100:10,200:10.5")
    # With 100x leverage both tiers lock within 0.005% of each other
    assert ladder.tier_for_stop(D("0.105"), D("100")) == 1
    assert ladder.tier_for_stop(D("0.1"), D("100")) == 0


def test_equal_locks_are_allowed():
    ladder = RiskLadder.parse("150:0,300:0,500:100")
    assert [t.stop_loss_pct for t in ladder.tiers] == [D("0"), D("0"), D("100")]


def test_tier_for_stop_tolerance_widens_for_coarse_ticks(ladder):
    # 0.1881 on entry 0.15041 is +25.058% raw, just outside the default window
    leverage = D("10")
    assert ladder.tier_for_stop(D("25.058"), leverage) == FLOOR_TIER
    assert ladder.tier_for_stop(D("25.058"), leverage, tolerance_pct=D("0.0665")) == 2
