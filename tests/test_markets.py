from __future__ import annotations

import pytest

from errors import InconsistentOddsError
from markets import (
    DEFAULT_GAME_TOTAL,
    apply_vig,
    build_market_quote,
    check_odds_consistency,
    compute_spread,
    decimal_odds,
    implied_probability,
    league_historical_average,
    moneyline_from_probability,
    odds_in_cents,
    pickem_moneyline,
    probability_to_american,
    project_total,
    reconcile_moneylines,
    soft_cap,
    spread_odds,
    spread_to_moneyline,
    spread_to_probability,
)
from records import NormalizedSeason


def test_odds_conversions() -> None:
    assert probability_to_american(0.6) == -150
    assert probability_to_american(0.4) == 150
    assert probability_to_american(0.5) == -100
    with pytest.raises(ValueError):
        probability_to_american(1.0)
    with pytest.raises(ValueError):
        probability_to_american(0.0)
    assert implied_probability(-150) == pytest.approx(0.6)
    assert implied_probability(150) == pytest.approx(0.4)
    assert decimal_odds(0.25) == pytest.approx(4.0)
    assert odds_in_cents(-110) == -10
    assert odds_in_cents(120) == 20


def test_vig_moves_both_sides_and_clamps() -> None:
    assert apply_vig(0.6, 0.045) == pytest.approx(0.6225)
    assert apply_vig(0.4, 0.045) == pytest.approx(0.3775)
    assert apply_vig(0.94, 0.2) == 0.95
    assert apply_vig(0.06, 0.2) == 0.05
    assert moneyline_from_probability(0.5, 0.045) == (-109, -109)


def test_spread_table() -> None:
    assert spread_to_probability(0.5) == 0.525
    assert spread_to_probability(-3.0) == 0.62
    assert spread_to_probability(30.0) == 0.94
    assert spread_to_moneyline(-3.0, vig=0.0) == (-163, 163)
    assert spread_to_moneyline(3.0, vig=0.0) == (163, -163)


def test_soft_cap_and_spread() -> None:
    assert soft_cap(10.0, 0) == 10.0
    assert soft_cap(45.0, 0) == pytest.approx(35.0)
    assert soft_cap(-45.0, 0) == pytest.approx(-35.0)
    assert compute_spread(0.5, 0.0, 0.0, 5, "1", "2") == 0.0
    margin = compute_spread(0.75, 15.0, 10.0, 8, "1", "2")
    assert margin > 0
    assert (margin * 2) == int(margin * 2)
    assert compute_spread(0.25, -15.0, -10.0, 8, "1", "2") < 0


def test_spread_odds() -> None:
    assert spread_odds(0.5, 3.0, 10) == -105
    assert spread_odds(0.95, 3.0, 12) == -115
    assert spread_odds(0.95, 25.0, 12) == -108
    assert spread_odds(0.6, 3.0, 12) == -108
    assert pickem_moneyline(0.5) == (-105, -105)
    assert pickem_moneyline(0.55) == (-110, -105)


def test_consistency_check_and_reconciliation() -> None:
    check_odds_consistency(-150, -160, tolerance_cents=50, tolerance_probability=0.05)
    with pytest.raises(InconsistentOddsError) as excinfo:
        check_odds_consistency(-150, -300, tolerance_cents=50, tolerance_probability=0.05)
    assert excinfo.value.expected == -300
    assert excinfo.value.actual == -150

    lines, reconciled = reconcile_moneylines((-150, 130), (-160, 140), tolerance_cents=50, tolerance_probability=0.05)
    assert (lines, reconciled) == ((-150, 130), False)
    lines, reconciled = reconcile_moneylines((-150, 130), (-300, 250), tolerance_cents=50, tolerance_probability=0.05)
    assert (lines, reconciled) == ((-300, 250), True)


def test_totals(season_2022: NormalizedSeason, season_2023: NormalizedSeason) -> None:
    assert project_total(100.0, 110.0, 220.0, 2) == pytest.approx(217.0)
    assert project_total(0.0, 0.0, 100.0, 10) == 150.0
    assert project_total(200.0, 200.0, 300.0, 10) == 300.0
    assert league_historical_average([season_2022, season_2023], 2023) == pytest.approx(202.5)
    assert league_historical_average([season_2022], 2022) == DEFAULT_GAME_TOTAL


def test_quote_for_favourite() -> None:
    quote = build_market_quote(
        0.7,
        roster_a="1",
        roster_b="2",
        average_a=120.0,
        average_b=100.0,
        power_a=40.0,
        power_b=30.0,
        games_played=8,
        historical_total=220.0,
        vig=0.045,
        season=2023,
        week=9,
    )
    assert quote.spread < 0
    assert quote.favorite == "1"
    assert quote.moneyline_a < 0 < quote.moneyline_b
    # Split vig moves the two sides in opposite directions, so the quoted hold stays near zero.
    assert abs(quote.hold) < 0.01
    assert quote.win_probability_b == pytest.approx(0.3)
    assert 150.0 <= quote.total <= 300.0
    payload = quote.to_dict()
    assert payload["week"] == 9
    assert payload["implied_probability_a"] == pytest.approx(quote.implied_probability_a)


def test_pickem_quote() -> None:
    quote = build_market_quote(
        0.5,
        roster_a="1",
        roster_b="2",
        average_a=100.0,
        average_b=100.0,
        games_played=4,
    )
    assert quote.spread == 0.0
    assert quote.favorite is None
    assert (quote.moneyline_a, quote.moneyline_b) == (-105, -105)
    assert not quote.reconciled
    assert quote.hold == pytest.approx(2 * 105 / 205 - 1)
