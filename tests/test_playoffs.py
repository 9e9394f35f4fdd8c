from __future__ import annotations

from typing import Dict, Iterator, List

import numpy as np
import pytest

from config import settings
from conftest import Game, make_season
from playoffs import (
    TeamRecord,
    championship_odds,
    championship_probability,
    compute_playoff_predictions,
    compute_records,
    elimination_status,
    hybrid_seeding,
    _simulate_week,
    remaining_regular_weeks,
    simulate_playoff_odds,
)
from records import NormalizedSeason


@pytest.fixture
def small_bracket() -> Iterator[None]:
    settings.set("playoff_record_seeds", 1)
    settings.set("playoff_wildcard_seeds", 1)
    yield
    settings.reset("playoff_record_seeds")
    settings.reset("playoff_wildcard_seeds")


def _record(wins: int, losses: int, points_for: float) -> TeamRecord:
    return TeamRecord(wins=wins, losses=losses, points_for=points_for, games_played=wins + losses)


def test_records_use_regular_season_only(season_2022: NormalizedSeason) -> None:
    records = compute_records(season_2022)
    alpha = records["1"]
    assert (alpha.wins, alpha.losses, alpha.ties) == (1, 1, 1)
    assert alpha.points_for == pytest.approx(330.0)
    assert alpha.win_pct == pytest.approx(0.5)
    assert records["3"].wins == 3
    assert records["3"].points_for == pytest.approx(310.0)
    assert TeamRecord().average_score == 0.0


def test_hybrid_seeding(season_2023: NormalizedSeason) -> None:
    records = compute_records(season_2023)
    # 1 and 3 are both 2-1; 3 has more points. 2 outscored 4 for the wildcard.
    assert hybrid_seeding(records, record_seeds=2, wildcard_seeds=1) == ["3", "1", "2"]
    assert hybrid_seeding(records, record_seeds=1, wildcard_seeds=1) == ["3", "1"]


def test_no_weeks_left_seeds_current_standings(season_2023: NormalizedSeason, small_bracket: None) -> None:
    records = compute_records(season_2023)
    summary = simulate_playoff_odds(records, {}, 0)
    assert summary["3"] == {"playoff_probability": 1.0, "seed_distribution": [1, 0], "average_seed": 1.0}
    assert summary["1"]["seed_distribution"] == [0, 1]
    assert summary["4"]["playoff_probability"] == 0.0
    assert summary["4"]["average_seed"] is None


def test_simulation_is_reproducible_with_seed(season_2023: NormalizedSeason, small_bracket: None) -> None:
    records = compute_records(season_2023)
    power = {"1": 40.0, "2": 20.0, "3": 35.0, "4": 10.0}
    first = simulate_playoff_odds(records, power, 2, num_simulations=200, seed=11)
    second = simulate_playoff_odds(records, power, 2, num_simulations=200, seed=11)
    assert first == second

    assert sum(entry["playoff_probability"] for entry in first.values()) == pytest.approx(2.0)
    for slot in range(2):
        assert sum(entry["seed_distribution"][slot] for entry in first.values()) == 200
    for entry in first.values():
        if entry["average_seed"] is not None:
            assert 1.0 <= entry["average_seed"] <= 2.0

    # Simulated weeks never touch the caller's records.
    assert records["1"].games_played == 3


def test_elimination_needs_both_paths_closed(small_bracket: None) -> None:
    records = {
        "A": _record(7, 1, 1200.0),
        "B": _record(7, 1, 1180.0),
        "C": _record(6, 2, 1100.0),
        "D": _record(0, 8, 500.0),
    }
    status = elimination_status(records, "D", total_games=10, min_games=8)
    assert status.eliminated_from_record
    assert status.eliminated_from_points
    assert status.eliminated
    assert (status.max_possible_wins, status.remaining_games) == (2, 2)

    records["D"] = _record(0, 8, 1150.0)
    status = elimination_status(records, "D", total_games=10, min_games=8)
    assert status.eliminated_from_record
    assert not status.eliminated_from_points
    assert not status.eliminated

    leader = elimination_status(records, "A", total_games=10, min_games=8)
    assert not leader.eliminated
    assert leader.max_possible_wins == 9


def test_elimination_waits_for_minimum_games(small_bracket: None) -> None:
    records = {"A": _record(7, 0, 1000.0), "B": _record(7, 0, 1000.0), "C": _record(0, 7, 300.0)}
    status = elimination_status(records, "C", total_games=10, min_games=8)
    assert not status.eliminated
    assert not status.eliminated_from_record
    assert status.remaining_games == 3


def test_championship_probability() -> None:
    common = dict(average_score=100.0, league_average=100.0, adjusted_dpr=1.0, momentum=0.0, form=0.5)
    assert championship_probability(0.6, eliminated=False, **common) == pytest.approx(0.1)
    assert championship_probability(0.6, eliminated=True, **common) == 0.0
    assert championship_probability(0.0, eliminated=False, **common) == 0.001
    floor = championship_probability(0.1, eliminated=False, **{**common, "adjusted_dpr": 0.01})
    assert floor == pytest.approx(0.012)


def test_championship_odds() -> None:
    assert championship_odds(0.2, vig=0.0) == {"american": 400, "decimal": 5.0}
    assert championship_odds(0.2, eliminated=True) == {"american": None, "decimal": None}
    # Futures are priced no shorter than a 95% favourite.
    assert championship_odds(0.9, vig=0.5)["american"] == -1900


def test_predictions_payload(season_2023: NormalizedSeason) -> None:
    assert remaining_regular_weeks(season_2023) == 2
    assert remaining_regular_weeks(season_2023, total_games=14) == 11
    result = compute_playoff_predictions(season_2023, num_simulations=40, seed=5)
    assert result["season"] == 2023
    assert result["simulation"] == {"runs": 40, "remaining_weeks": 2, "playoff_spots": 6, "seed": 5}
    assert {team["roster_id"] for team in result["teams"]} == {"1", "2", "3", "4"}
    for team in result["teams"]:
        assert not team["eliminated"]
        assert 0.0 < team["championship_probability"] <= 1.0
        assert team["american_odds"] is not None
        assert team["remaining_games"] == 2
    probabilities = [team["playoff_probability"] for team in result["teams"]]
    assert probabilities == sorted(probabilities, reverse=True)


def test_finished_regular_season_is_exact(season_2022: NormalizedSeason, small_bracket: None) -> None:
    assert remaining_regular_weeks(season_2022) == 0
    result = compute_playoff_predictions(season_2022, num_simulations=40, seed=5)
    assert result["simulation"] == {"runs": 0, "remaining_weeks": 0, "playoff_spots": 2, "seed": 5}
    teams = {team["roster_id"]: team for team in result["teams"]}
    assert teams["3"]["seed_distribution"] == [1, 0]
    assert teams["1"]["seed_distribution"] == [0, 1]
    assert {rid: team["playoff_probability"] for rid, team in teams.items()} == {"1": 1.0, "2": 0.0, "3": 1.0, "4": 0.0}
    assert all(team["remaining_games"] == 0 for team in teams.values())


def test_simulation_converges_across_seeds(season_2023: NormalizedSeason, small_bracket: None) -> None:
    records = compute_records(season_2023)
    power = {"1": 40.0, "2": 20.0, "3": 35.0, "4": 10.0}
    first = simulate_playoff_odds(records, power, 2, num_simulations=6000, seed=101)
    second = simulate_playoff_odds(records, power, 2, num_simulations=6000, seed=202)
    for roster_id in records:
        assert first[roster_id]["playoff_probability"] == pytest.approx(
            second[roster_id]["playoff_probability"], abs=0.03
        )


def test_bye_scores_at_league_average() -> None:
    standings: Dict[str, TeamRecord] = {rid: _record(5, 5, 3000.0) for rid in ("1", "2", "3")}
    strengths = {rid: 0.5 for rid in standings}
    _simulate_week(standings, strengths, np.random.default_rng(3), league_average=100.0)

    gained = sorted(record.points_for - 3000.0 for record in standings.values())
    # Paired teams score around their own 300-point average; the bye scores near 100.
    assert 80.0 <= gained[0] <= 110.0
    assert gained[1] > 200.0
    assert all(record.games_played == 11 for record in standings.values())


def _weekly_score(roster_id: str) -> float:
    return 50.0 if roster_id == "12" else 112.0 - int(roster_id)


def _twelve_team_season(weeks_played: int) -> NormalizedSeason:
    teams = {str(i): (f"u{i}", f"Team {i}") for i in range(1, 13)}
    ids = list(teams)
    games: List[Game] = []
    for week in range(1, weeks_played + 1):
        shift = (week - 1) % 11
        order = [ids[0]] + ids[1:][shift:] + ids[1:][:shift]
        for slot in range(6):
            home, away = order[slot], order[11 - slot]
            games.append((week, home, _weekly_score(home), away, _weekly_score(away)))
    return make_season(games, season=2024, teams=teams, playoff_week_start=15)


def test_eliminated_team_gets_no_title_price() -> None:
    season = _twelve_team_season(10)
    result = compute_playoff_predictions(season, num_simulations=50, seed=9)
    assert result["simulation"]["remaining_weeks"] == 4

    teams = {team["roster_id"]: team for team in result["teams"]}
    cellar = teams["12"]
    assert (cellar["wins"], cellar["losses"]) == (0, 10)
    assert cellar["eliminated"]
    assert cellar["eliminated_from_record"] and cellar["eliminated_from_points"]
    assert (cellar["max_possible_wins"], cellar["remaining_games"]) == (4, 4)
    assert cellar["playoff_probability"] == 0.0
    assert cellar["championship_probability"] == 0.0
    assert cellar["american_odds"] is None
    assert cellar["decimal_odds"] is None

    leader = teams["1"]
    assert leader["wins"] == 10
    assert not leader["eliminated"]
    assert leader["american_odds"] is not None
