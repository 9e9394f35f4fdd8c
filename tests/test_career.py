from __future__ import annotations

import dataclasses

import pytest

from career import aggregate_career, aggregate_versus_records, compute_streaks, track_milestones, weekly_owner_frame
from league import process_season
from records import NormalizedSeason, RawSeason
from season_metrics import SeasonalMetric, SeasonStatus, compute_seasonal_metrics


def test_career_totals_equal_seasonal_sums(raw_2022: RawSeason, raw_2023: RawSeason) -> None:
    reports = [process_season(raw_2022), process_season(raw_2023)]
    rows = [metric for report in reports for metric in report.metrics.values()]
    career = aggregate_career(rows)

    assert list(career) == ["u1", "u2", "u3", "u4"]
    alpha = career["u1"]
    assert alpha.seasons == [2022, 2023]
    assert alpha.seasons_played == 2
    assert alpha.wins == 5
    assert alpha.points_for == pytest.approx(600.0 + 330.0)
    assert alpha.championships == 1
    assert alpha.points_championships == 1
    assert alpha.playoff_appearances_count == 1
    assert alpha.highest_seasonal_points_avg == pytest.approx(120.0)
    assert alpha.lowest_seasonal_points_avg == pytest.approx(110.0)
    assert alpha.high_score == 140.0

    for owner, row in career.items():
        seasonal = [m for m in rows if m.owner_id == owner]
        assert row.wins == sum(m.wins for m in seasonal)
        assert row.all_play_wins == sum(m.all_play_wins for m in seasonal)
        assert row.luck_rating == pytest.approx(sum(m.luck_rating for m in seasonal))

    adjusted = [row.adjusted_dpr for row in career.values()]
    assert sum(adjusted) / len(adjusted) == pytest.approx(1.0)


def test_aggregation_is_idempotent(season_2022: NormalizedSeason) -> None:
    rows = list(compute_seasonal_metrics(season_2022).values())
    first = aggregate_career(rows)
    second = aggregate_career(rows)
    assert first["u2"].to_dict() == second["u2"].to_dict()


def test_rows_without_owner_are_skipped() -> None:
    rows = [
        SeasonalMetric(season=2022, roster_id="1", owner_id=None, wins=4, total_games=4),
        SeasonalMetric(season=2022, roster_id="2", owner_id="u2", wins=1, total_games=4, points_for=400.0),
    ]
    career = aggregate_career(rows)
    assert list(career) == ["u2"]
    assert career["u2"].average_score == pytest.approx(100.0)


def test_weekly_owner_frame_skips_unplayed_weeks(season_2023: NormalizedSeason) -> None:
    frame = weekly_owner_frame([season_2023])
    assert sorted(frame["Week"].unique()) == [1, 2, 3]
    assert len(frame) == 12


def test_milestones_in_chronological_order(season_2022: NormalizedSeason, season_2023: NormalizedSeason) -> None:
    achievements = track_milestones([season_2023, season_2022], thresholds={"wins": [2, 4]})
    two = [(a.owner_id, a.season, a.week, a.order) for a in achievements if a.threshold == 2]
    assert two == [("u3", 2022, 2, 1), ("u1", 2022, 4, 2), ("u2", 2022, 5, 3)]
    four = [(a.owner_id, a.season, a.week, a.order) for a in achievements if a.threshold == 4]
    assert four == [("u3", 2022, 4, 1), ("u1", 2023, 1, 2)]


def test_same_week_milestones_ordered_by_owner(season_2022: NormalizedSeason, season_2023: NormalizedSeason) -> None:
    achievements = track_milestones([season_2022, season_2023], thresholds={"wins": [1]})
    assert [(a.owner_id, a.season, a.week, a.order) for a in achievements] == [
        ("u1", 2022, 1, 1),
        ("u3", 2022, 1, 2),
        ("u2", 2022, 2, 3),
        ("u4", 2023, 3, 4),
    ]


def test_points_milestone(season_2022: NormalizedSeason) -> None:
    achievements = track_milestones([season_2022], thresholds={"points": [500]})
    assert [(a.owner_id, a.week) for a in achievements] == [("u1", 5), ("u2", 5), ("u3", 5)]


def test_unplayed_bracket_adds_no_playoff_appearances(raw_2023: RawSeason) -> None:
    drawn = dataclasses.replace(
        raw_2023,
        winners_bracket=[
            {"r": 1, "m": 1, "t1": 3, "t2": 2},
            {"r": 1, "m": 2, "t1": 1, "t2": 4},
            {"r": 2, "m": 3, "t1_from": {"w": 1}, "t2_from": {"w": 2}},
        ],
    )
    report = process_season(drawn)
    assert report.status is SeasonStatus.IN_PROGRESS
    assert not any(metric.made_playoffs for metric in report.metrics.values())

    career = aggregate_career(report.metrics.values())
    assert {owner: row.playoff_appearances_count for owner, row in career.items()} == {
        "u1": 0,
        "u2": 0,
        "u3": 0,
        "u4": 0,
    }


def test_versus_records_mirror_each_other(season_2022: NormalizedSeason, season_2023: NormalizedSeason) -> None:
    grid = aggregate_versus_records([season_2023, season_2022])
    assert list(grid) == ["u1", "u2", "u3", "u4"]
    assert "u1" not in grid["u1"]

    alpha_bravo = grid["u1"]["u2"]
    assert (alpha_bravo.wins, alpha_bravo.losses, alpha_bravo.ties) == (2, 1, 0)
    assert alpha_bravo.points_for == pytest.approx(345.0)
    assert alpha_bravo.points_against == pytest.approx(310.0)

    alpha_delta = grid["u1"]["u4"]
    assert (alpha_delta.wins, alpha_delta.losses, alpha_delta.ties) == (1, 0, 1)
    assert alpha_delta.games == 2
    assert alpha_delta.win_percentage == pytest.approx(0.75)
    assert alpha_delta.to_dict()["win_percentage"] == pytest.approx(0.75)

    for owner, row in grid.items():
        for opponent, record in row.items():
            mirror = grid[opponent][owner]
            assert (record.wins, record.losses, record.ties) == (mirror.losses, mirror.wins, mirror.ties)
            assert record.points_for == pytest.approx(mirror.points_against)


def test_streaks_carry_across_seasons(season_2022: NormalizedSeason, season_2023: NormalizedSeason) -> None:
    streaks = compute_streaks([season_2022, season_2023])
    summary = {
        owner: (row.longest_win_streak, row.longest_loss_streak, row.current_streak) for owner, row in streaks.items()
    }
    # Delta's four-game skid runs from the 2022 playoffs into 2023; Alpha's tie in week 3 restarts the count.
    assert summary == {
        "u1": (3, 1, 1),
        "u2": (1, 2, -1),
        "u3": (4, 1, -1),
        "u4": (1, 4, 1),
    }
