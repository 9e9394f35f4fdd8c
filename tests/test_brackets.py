from __future__ import annotations

import pytest

from brackets import (
    bracket_participants,
    championship_match,
    parse_bracket,
    rank_playoff_finishes,
    season_status,
    third_place_match,
)
from conftest import WINNERS_2022
from season_metrics import NOT_AVAILABLE, SeasonalMetric, SeasonStatus


def _metric(roster_id: str, points: float, win_pct: float = 0.5) -> SeasonalMetric:
    return SeasonalMetric(
        season=2022,
        roster_id=roster_id,
        owner_id=f"u{roster_id}",
        regular_season_points_for=points,
        points_for=points,
        win_percentage=win_pct,
    )


def test_parse_bracket_reads_sleeper_nodes() -> None:
    matches = parse_bracket(WINNERS_2022 + [{"m": 9, "t1": 1}])
    assert len(matches) == 4
    final = matches[2]
    assert (final.round, final.match_slot, final.winner, final.loser) == (2, 3, "1", "3")
    assert final.team1_from == "w"
    assert matches[3].is_loser_fed
    assert bracket_participants(matches) == ["1", "2", "3", "4"]


def test_final_and_third_place_detection() -> None:
    matches = parse_bracket(WINNERS_2022)
    final = championship_match(matches)
    assert final is not None and final.match_slot == 3
    third = third_place_match(matches, final)
    assert third is not None and third.match_slot == 4
    assert season_status(matches) is SeasonStatus.COMPLETE


def test_placement_tag_beats_structure() -> None:
    nodes = [
        {"r": 1, "m": 1, "t1": 1, "t2": 4, "w": 1, "l": 4},
        {"r": 1, "m": 2, "t1": 2, "t2": 3, "w": 2, "l": 3},
        {"r": 2, "m": 3, "t1": 4, "t2": 3, "w": 3, "l": 4, "p": 3},
        {"r": 2, "m": 4, "t1": 1, "t2": 2, "w": 2, "l": 1, "p": 1},
    ]
    matches = parse_bracket(nodes)
    assert championship_match(matches).match_slot == 4
    assert rank_playoff_finishes(matches) == {"2": 1, "1": 2, "3": 3, "4": 4}


def test_semifinal_losers_ordered_by_points_without_consolation() -> None:
    nodes = [
        {"r": 1, "m": 1, "t1": 1, "t2": 4, "w": 1, "l": 4},
        {"r": 1, "m": 2, "t1": 2, "t2": 3, "w": 2, "l": 3},
        {"r": 2, "m": 3, "t1": 1, "t2": 2, "w": 1, "l": 2},
    ]
    metrics = {"1": _metric("1", 900), "2": _metric("2", 850), "3": _metric("3", 700), "4": _metric("4", 800)}
    ranks = rank_playoff_finishes(parse_bracket(nodes), (), metrics)
    assert ranks == {"1": 1, "2": 2, "4": 3, "3": 4}


def test_losers_bracket_continues_numbering() -> None:
    winners = [
        {"r": 1, "m": 1, "t1": 1, "t2": 2, "w": 1, "l": 2, "p": 1},
    ]
    losers = [
        {"r": 1, "m": 1, "t1": 3, "t2": 4, "w": 3, "l": 4, "p": 1},
    ]
    ranks = rank_playoff_finishes(parse_bracket(winners), parse_bracket(losers))
    assert ranks == {"1": 1, "2": 2, "3": 3, "4": 4}


def test_unranked_participants_use_fallback_order() -> None:
    nodes = [
        {"r": 1, "m": 1, "t1": 5, "t2": 6, "w": None, "l": None},
        {"r": 1, "m": 2, "t1": 3, "t2": 2, "w": None, "l": None},
        {"r": 2, "m": 3, "t1": 1, "t2": 4, "w": 4, "l": 1, "p": 1},
    ]
    matches = parse_bracket(nodes)
    by_id = rank_playoff_finishes(matches, fallback_order="roster_id")
    assert by_id == {"4": 1, "1": 2, "2": 3, "3": 4, "5": 5, "6": 6}

    metrics = {
        "2": _metric("2", 500, 0.3),
        "3": _metric("3", 600, 0.6),
        "5": _metric("5", 700, 0.6),
        "6": _metric("6", 400, 0.9),
    }
    by_standings = rank_playoff_finishes(matches, (), metrics, fallback_order="standings")
    assert [rid for rid, _ in sorted(by_standings.items(), key=lambda item: item[1])] == ["4", "1", "6", "5", "3", "2"]


def test_unresolved_bracket_gives_not_available() -> None:
    nodes = [{"r": 1, "m": 1, "t1": 1, "t2": 2}, {"r": 1, "m": 2, "t1": 3, "t2": 4}]
    matches = parse_bracket(nodes)
    assert season_status(matches) is SeasonStatus.IN_PROGRESS
    assert rank_playoff_finishes(matches) == {rid: NOT_AVAILABLE for rid in "1234"}


def test_unknown_fallback_order_rejected() -> None:
    with pytest.raises(ValueError):
        rank_playoff_finishes(parse_bracket(WINNERS_2022), fallback_order="coin_flip")
