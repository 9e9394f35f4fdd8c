"""Seasonal metrics: records, all-play, DPR, luck and award gating."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, Hashable, Iterable, List, Mapping, Optional, Set, Union

import numpy as np

from errors import DegenerateInputError
from records import NormalizedSeason

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"

BLOWOUT_WIN_RATIO = 1.40
BLOWOUT_LOSS_RATIO = 0.60
SLIM_MARGIN_RATIO = 0.025

Rank = Union[int, str]


class SeasonStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


def checked_ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        raise DegenerateInputError(f"cannot divide {numerator} by zero")
    return numerator / denominator


def safe_divide(numerator: float, denominator: float) -> float:
    """Return ``numerator / denominator``, or 0.0 when the denominator is zero."""

    try:
        return checked_ratio(numerator, denominator)
    except DegenerateInputError:
        return 0.0


def raw_dpr(average_score: float, high_score: float, low_score: float, win_pct: float) -> float:
    return (average_score * 6 + (high_score + low_score) * 2 + (win_pct * 200) * 2) / 10


def competition_ranks(values: Mapping[Hashable, float], *, descending: bool = True) -> Dict[Hashable, int]:
    """Standard competition ranking: equal values share a rank, the next value skips (1, 1, 3)."""

    ordered = sorted(values.items(), key=lambda item: item[1], reverse=descending)
    ranks: Dict[Hashable, int] = {}
    previous: Optional[float] = None
    current_rank = 0
    for position, (key, value) in enumerate(ordered, start=1):
        if previous is None or value != previous:
            current_rank = position
            previous = value
        ranks[key] = current_rank
    return ranks


@dataclass
class SeasonalMetric:
    season: int
    roster_id: str
    owner_id: Optional[str]
    wins: int = 0
    losses: int = 0
    ties: int = 0
    regular_season_wins: int = 0
    regular_season_losses: int = 0
    regular_season_ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0
    regular_season_points_for: float = 0.0
    total_games: int = 0
    average_score: float = 0.0
    win_percentage: float = 0.0
    raw_dpr: float = 0.0
    adjusted_dpr: float = 0.0
    all_play_wins: int = 0
    all_play_losses: int = 0
    all_play_ties: int = 0
    all_play_win_percentage: float = 0.0
    expected_wins: float = 0.0
    luck_rating: float = 0.0
    high_score: float = 0.0
    low_score: float = 0.0
    top_score_weeks_count: int = 0
    weekly_top2_scores_count: int = 0
    blowout_wins: int = 0
    blowout_losses: int = 0
    slim_wins: int = 0
    slim_losses: int = 0
    is_champion: bool = False
    is_runner_up: bool = False
    is_third_place: bool = False
    is_points_champion: bool = False
    is_points_runner_up: bool = False
    is_third_place_points: bool = False
    made_playoffs: bool = False
    rank: Rank = NOT_AVAILABLE
    points_rank: Rank = NOT_AVAILABLE

    @property
    def regular_season_games(self) -> int:
        return self.regular_season_wins + self.regular_season_losses + self.regular_season_ties

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def _classify_margin(metric: SeasonalMetric, score: float, opponent_score: float) -> None:
    if opponent_score <= 0:
        return
    if score > opponent_score:
        if score > BLOWOUT_WIN_RATIO * opponent_score:
            metric.blowout_wins += 1
        if score - opponent_score < SLIM_MARGIN_RATIO * opponent_score:
            metric.slim_wins += 1
    elif score < opponent_score:
        if score < BLOWOUT_LOSS_RATIO * opponent_score:
            metric.blowout_losses += 1
        if opponent_score - score < SLIM_MARGIN_RATIO * opponent_score:
            metric.slim_losses += 1


def _accumulate_roster(season: NormalizedSeason, roster_id: str) -> SeasonalMetric:
    metric = SeasonalMetric(season=season.season, roster_id=roster_id, owner_id=season.owner_of(roster_id))
    game_scores: List[float] = []

    for record in season.weekly_records(roster_id):
        metric.points_for += record.points_for
        if record.is_regular_season:
            metric.regular_season_points_for += record.points_for
        if not record.has_opponent:
            continue

        score = record.points_for
        opponent_score = record.opponent_points_for
        metric.total_games += 1
        metric.points_against += opponent_score
        game_scores.append(score)
        result = record.result
        if result == "W":
            metric.wins += 1
        elif result == "L":
            metric.losses += 1
        else:
            metric.ties += 1

        if not record.is_regular_season:
            continue
        if result == "W":
            metric.regular_season_wins += 1
        elif result == "L":
            metric.regular_season_losses += 1
        else:
            metric.regular_season_ties += 1
        _classify_margin(metric, score, opponent_score)

        week_scores = season.weekly_scores_by_week.get(record.week, {})
        others = [value for rid, value in week_scores.items() if rid != roster_id]
        if not others:
            continue
        week_wins = sum(1 for value in others if score > value)
        week_losses = sum(1 for value in others if score < value)
        week_ties = len(others) - week_wins - week_losses
        metric.all_play_wins += week_wins
        metric.all_play_losses += week_losses
        metric.all_play_ties += week_ties
        metric.expected_wins += (week_wins + 0.5 * week_ties) / len(others)

        ordered = sorted(week_scores.values(), reverse=True)
        if score == ordered[0]:
            metric.top_score_weeks_count += 1
        second = ordered[1] if len(ordered) > 1 else ordered[0]
        if score >= second:
            metric.weekly_top2_scores_count += 1

    if game_scores:
        metric.high_score = max(game_scores)
        metric.low_score = min(game_scores)
    metric.average_score = safe_divide(metric.points_for, metric.total_games)
    metric.win_percentage = safe_divide(metric.wins + 0.5 * metric.ties, metric.total_games)
    all_play_total = metric.all_play_wins + metric.all_play_losses + metric.all_play_ties
    metric.all_play_win_percentage = safe_divide(metric.all_play_wins + 0.5 * metric.all_play_ties, all_play_total)
    metric.luck_rating = (metric.regular_season_wins + 0.5 * metric.regular_season_ties) - metric.expected_wins
    if metric.total_games > 0:
        metric.raw_dpr = raw_dpr(metric.average_score, metric.high_score, metric.low_score, metric.win_percentage)
    return metric


def normalize_dpr(rows: Iterable[SeasonalMetric | object]) -> None:
    """Set ``adjusted_dpr`` so the mean over rows that played a game is 1.0.

    Works on any row exposing ``raw_dpr``, ``adjusted_dpr`` and ``total_games``,
    which lets career rows reuse it.
    """

    rows = list(rows)
    active = [row.raw_dpr for row in rows if row.total_games > 0]
    mean_dpr = float(np.mean(active)) if active else 0.0
    for row in rows:
        row.adjusted_dpr = safe_divide(row.raw_dpr, mean_dpr) if row.total_games > 0 else 0.0


def compute_seasonal_metrics(season: NormalizedSeason) -> Dict[str, SeasonalMetric]:
    """Compute one :class:`SeasonalMetric` per roster for a normalized season.

    Award flags and ranks are left unset; :func:`apply_awards` fills them once
    the season status is known.
    """

    metrics = {roster_id: _accumulate_roster(season, roster_id) for roster_id in season.roster_ids}
    normalize_dpr(metrics.values())
    logger.debug("Season %s: computed metrics for %d rosters", season.season, len(metrics))
    return metrics


def apply_awards(
    metrics: Mapping[str, SeasonalMetric],
    status: SeasonStatus,
    playoff_ranks: Optional[Mapping[str, Rank]] = None,
    playoff_participants: Optional[Set[str]] = None,
) -> None:
    """Populate ranks and award flags, gated on a completed championship."""

    for metric in metrics.values():
        metric.made_playoffs = False
        metric.is_champion = metric.is_runner_up = metric.is_third_place = False
        metric.is_points_champion = metric.is_points_runner_up = metric.is_third_place_points = False
        metric.rank = NOT_AVAILABLE
        metric.points_rank = NOT_AVAILABLE

    if status is not SeasonStatus.COMPLETE:
        return

    participants = playoff_participants or set()
    ranks = playoff_ranks or {}
    points_ranks = competition_ranks({rid: m.points_for for rid, m in metrics.items()})
    for roster_id, metric in metrics.items():
        metric.made_playoffs = roster_id in participants
        rank = ranks.get(roster_id, NOT_AVAILABLE)
        metric.rank = rank
        metric.is_champion = rank == 1
        metric.is_runner_up = rank == 2
        metric.is_third_place = rank == 3
        points_rank = points_ranks[roster_id]
        metric.points_rank = points_rank
        metric.is_points_champion = points_rank == 1
        metric.is_points_runner_up = points_rank == 2
        metric.is_third_place_points = points_rank == 3


def league_average_score(metrics: Iterable[SeasonalMetric]) -> float:
    averages = [m.average_score for m in metrics if m.total_games > 0]
    return float(np.mean(averages)) if averages else 0.0


__all__ = [
    "NOT_AVAILABLE",
    "SeasonStatus",
    "SeasonalMetric",
    "safe_divide",
    "raw_dpr",
    "competition_ranks",
    "normalize_dpr",
    "compute_seasonal_metrics",
    "apply_awards",
    "league_average_score",
]
