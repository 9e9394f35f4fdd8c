from __future__ import annotations

from typing import Optional

import pytest

from cache import TTLCache
from records import NormalizedSeason
from win_probability import (
    TeamProfile,
    WinProbabilityModel,
    build_team_profiles,
    deterministic_unit,
    head_to_head,
    numeric_id,
    score_distribution_win_probability,
    team_confidence,
    weight_profile,
    win_probability,
)


def _profile(
    roster_id: str,
    *,
    dpr: Optional[float] = 1.0,
    games: int = 2,
    elo: float = 1500.0,
    average: float = 100.0,
    all_play: float = 0.5,
    power: float = 30.0,
) -> TeamProfile:
    return TeamProfile(
        roster_id=roster_id,
        owner_id=f"u{roster_id}",
        adjusted_dpr=dpr,
        average_score=average,
        games_played=games,
        all_play_win_percentage=all_play,
        win_percentage=0.5,
        elo=elo,
        momentum=0.0,
        power_score=power,
        recent_form=0.5,
        luck_rating=0.0,
    )


def test_helpers() -> None:
    assert numeric_id("12") == 12
    assert numeric_id("ab") == 97 + 2 * 98
    assert deterministic_unit(0) == pytest.approx(49297 / 233280)
    assert [weight_profile(g) for g in (0, 4, 5, 10, 11)] == ["early", "early", "standard", "standard", "late"]
    assert team_confidence(3) == 0.6
    assert team_confidence(7) == 0.9
    assert team_confidence(20, has_dpr=False) == 0.5
    assert score_distribution_win_probability(0.0, 100.0, 100.0) == pytest.approx(0.5)
    assert score_distribution_win_probability(10.0, 0.0, 0.0) == 1.0
    assert score_distribution_win_probability(10.0, 200.0, 200.0) > 0.5


def test_even_matchup_only_moves_by_deterministic_error() -> None:
    result = win_probability(_profile("1"), _profile("2"))
    assert result.base_probability == pytest.approx(0.5)
    expected_error = (deterministic_unit(1 * 7 + 2 * 11) - 0.5) * 0.25
    assert result.deterministic_error == pytest.approx(expected_error)
    assert result.probability == pytest.approx(0.5 + expected_error)
    assert result.profile == "early"
    assert result.confidence == pytest.approx(0.6 * 0.7)
    assert not result.used_fallback
    # Stable for repeated calls.
    assert win_probability(_profile("1"), _profile("2")).probability == result.probability


def test_stronger_team_is_favoured() -> None:
    strong = _profile("1", dpr=1.3, games=12, elo=1600, all_play=0.8)
    weak = _profile("2", dpr=0.7, games=12, elo=1400, all_play=0.2)
    result = win_probability(strong, weak, head_to_head_value=1.0)
    assert result.profile == "late"
    assert result.base_probability > 0.8
    assert 0.05 <= result.probability <= 0.95
    reverse = win_probability(weak, strong, head_to_head_value=-1.0)
    assert reverse.base_probability < 0.2


def test_fallback_when_dpr_missing() -> None:
    result = win_probability(_profile("1", dpr=None, average=120.0, power=40.0), _profile("2"), league_average=100.0)
    assert result.used_fallback
    assert "power" in result.components
    assert result.components["dpr"] > 0
    assert result.confidence == pytest.approx(0.5 * 0.7)


def test_head_to_head(season_2022: NormalizedSeason, season_2023: NormalizedSeason) -> None:
    assert head_to_head([season_2022], "u1", "u2") == pytest.approx(1.0)
    assert head_to_head([season_2022], "u2", "u1") == pytest.approx(-1.0)
    assert head_to_head([season_2022], "u1", "u4") == pytest.approx(0.0)
    # 2022: u1 beat u2 twice; 2023: u2 beat u1 once.
    assert head_to_head([season_2022, season_2023], "u1", "u2") == pytest.approx((2 / 3 - 0.5) * 2)
    assert head_to_head([season_2022], "u1", None) == 0.0


def test_team_profiles(season_2023: NormalizedSeason) -> None:
    profiles = build_team_profiles(season_2023)
    assert profiles.season == 2023
    assert profiles.through_week == 3
    assert "1" in profiles and "9" not in profiles
    assert profiles["1"].games_played == 3
    assert profiles["1"].average_score == pytest.approx(110.0)
    assert profiles.league_average_score > 0


def test_model_caches_profiles(season_2023: NormalizedSeason, season_2022: NormalizedSeason) -> None:
    model = WinProbabilityModel(cache=TTLCache(ttl=60))
    first = model.profiles(season_2023, 2)
    assert model.profiles(season_2023, 2) is first
    assert first["1"].games_played == 2
    assert model.profiles(season_2023, None) is not first

    breakdown = model.matchup(season_2023, "1", "2", through_week=2, history=[season_2022])
    assert breakdown.games_played == 2
    assert 0.05 <= breakdown.probability <= 0.95

    model.clear()
    assert len(model.cache) == 0
