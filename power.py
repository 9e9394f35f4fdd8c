"""Season-scoped Elo ratings, momentum and the composite power score."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from config import settings
from records import NormalizedSeason
from season_metrics import SeasonalMetric

# (own score, opponent score) for one completed game.
GameResult = Tuple[float, float]

MOMENTUM_DECAY = 0.7
MOMENTUM_SCALE = 50.0
BLOWOUT_MARGIN = 30.0
CLOSE_MARGIN = 10.0


@dataclass
class EloHistory:
    ratings: Dict[str, float]
    timeline: Dict[str, List[Tuple[int, float]]] = field(default_factory=dict)


def elo_expected(rating: float, opponent_rating: float) -> float:
    return 1.0 / (1.0 + 10 ** ((opponent_rating - rating) / 400.0))


def compute_elo_ratings(
    season: NormalizedSeason,
    *,
    through_week: Optional[int] = None,
    initial_rating: Optional[float] = None,
    k_factor: Optional[float] = None,
) -> EloHistory:
    """Replay a season's completed games in week order.

    Every roster starts at ``initial_rating``; ties score 0.5 for both sides.
    The timeline records each roster's rating after every week it played.
    """

    initial = float(initial_rating if initial_rating is not None else settings.get("elo_initial_rating"))
    k = float(k_factor if k_factor is not None else settings.get("elo_k_factor"))
    ratings = {roster_id: initial for roster_id in season.roster_ids}
    timeline: Dict[str, List[Tuple[int, float]]] = {roster_id: [] for roster_id in season.roster_ids}

    for game in season.games(through_week=through_week):
        home, away = game.team1_roster_id, game.team2_roster_id
        expected_home = elo_expected(ratings[home], ratings[away])
        if game.team1_score > game.team2_score:
            actual_home = 1.0
        elif game.team1_score < game.team2_score:
            actual_home = 0.0
        else:
            actual_home = 0.5
        delta = k * (actual_home - expected_home)
        ratings[home] += delta
        ratings[away] -= delta
        timeline[home].append((game.week, ratings[home]))
        timeline[away].append((game.week, ratings[away]))

    return EloHistory(ratings=ratings, timeline=timeline)


def game_results(season: NormalizedSeason, roster_id: str, *, through_week: Optional[int] = None) -> List[GameResult]:
    """Chronological ``(own, opponent)`` scores for a roster's completed games."""

    return [game.scores_for(roster_id) for game in season.games(roster_id, through_week=through_week)]


def recent_form(results: Sequence[GameResult], games: Optional[int] = None) -> float:
    """Win rate over the most recent games; 0.5 without any."""

    window_size = int(games if games is not None else settings.get("recent_form_games"))
    window = list(results)[-window_size:]
    if not window:
        return 0.5
    credit = sum(1.0 if own > opp else 0.5 if own == opp else 0.0 for own, opp in window)
    return credit / len(window)


def _streak(window: Sequence[GameResult]) -> Tuple[int, int]:
    """Length and direction (+1 wins, -1 losses) of the run ending with the latest game."""

    latest_own, latest_opp = window[-1]
    if latest_own == latest_opp:
        return 0, 0
    direction = 1 if latest_own > latest_opp else -1
    length = 0
    for own, opp in reversed(window):
        if (own > opp and direction > 0) or (own < opp and direction < 0):
            length += 1
        else:
            break
    return length, direction


def compute_momentum(results: Sequence[GameResult], games: Optional[int] = None) -> float:
    """Recency-weighted form in [-1, 1].

    Each game contributes ``tanh(diff / 50)``, amplified for blowouts and damped
    for close games, with weight ``0.7 ** games_back``. A run of three or more
    wins or losses (or a hot/cold scoring run) adds up to +/-0.4 and a
    first-half vs second-half trend adds up to +/-0.15.
    """

    window_size = int(games if games is not None else settings.get("momentum_games"))
    window = list(results)[-window_size:]
    if not window:
        return 0.0

    weighted = 0.0
    weight_total = 0.0
    for games_back, (own, opp) in enumerate(reversed(window)):
        diff = own - opp
        impact = math.tanh(diff / MOMENTUM_SCALE)
        if abs(diff) > BLOWOUT_MARGIN:
            impact *= 1.2
        elif abs(diff) < CLOSE_MARGIN:
            impact *= 0.8
        weight = MOMENTUM_DECAY ** games_back
        weighted += impact * weight
        weight_total += weight
    momentum = weighted / weight_total

    streak, direction = _streak(window)
    if streak < 3 and len(window) >= 3:
        window_avg = float(np.mean([own for own, _ in window]))
        recent_avg = float(np.mean([own for own, _ in window[-3:]]))
        if window_avg > 0 and recent_avg > window_avg * 1.15:
            streak, direction = 3, 1
        elif window_avg > 0 and recent_avg < window_avg * 0.85:
            streak, direction = 3, -1
        else:
            streak = 0
    if streak >= 3:
        momentum += direction * 0.2 * min(streak / 3.0, 2.0)

    half = len(window) // 2
    if half >= 2:
        older = float(np.mean([own - opp for own, opp in window[:half]]))
        newer = float(np.mean([own - opp for own, opp in window[-half:]]))
        momentum += math.tanh((newer - older) / MOMENTUM_SCALE) * 0.15

    return max(-1.0, min(1.0, momentum))


@dataclass
class PowerRating:
    roster_id: str
    power_score: float
    elo: float
    momentum: float
    recent_form: float
    strength_of_schedule: float
    win_percentage: float
    average_score: float
    point_differential: float
    luck_rating: float
    games_played: int
    elo_timeline: List[Tuple[int, float]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def power_score(
    *,
    win_pct: float,
    average_score: float,
    form: float,
    point_differential: float,
    momentum: float,
    elo: float,
    luck: float,
    sos: float,
    elo_baseline: float = 1500.0,
) -> float:
    score = (
        (win_pct * 100) * 0.25
        + (average_score / 10) * 0.20
        + (form * 10) * 0.15
        + (point_differential / 100) * 0.15
        + (momentum * 20) * 0.10
        + ((elo - elo_baseline) / 10) * 0.10
        + (luck * 50) * 0.03
        + (sos * 10) * 0.02
    )
    return max(0.0, score)


def strength_of_schedule(
    season: NormalizedSeason,
    roster_id: str,
    scores: Mapping[str, float],
    *,
    through_week: Optional[int] = None,
) -> float:
    opponents = [game.opponent_of(roster_id) for game in season.games(roster_id, through_week=through_week)]
    values = [scores[opp] for opp in opponents if opp in scores]
    return float(np.mean(values)) if values else 0.0


def compute_power_scores(
    season: NormalizedSeason,
    metrics: Mapping[str, SeasonalMetric],
    *,
    elo: Optional[EloHistory] = None,
    momentum_games: Optional[int] = None,
    form_games: Optional[int] = None,
) -> Dict[str, PowerRating]:
    """Build the power board for a season.

    Strength of schedule is the mean first-pass power score (computed with
    schedule strength left out) of the opponents each roster has faced.
    """

    elo = elo or compute_elo_ratings(season)
    baseline = float(settings.get("elo_initial_rating"))
    ratings: Dict[str, PowerRating] = {}
    for roster_id in season.roster_ids:
        metric = metrics.get(roster_id)
        results = game_results(season, roster_id)
        ratings[roster_id] = PowerRating(
            roster_id=roster_id,
            power_score=0.0,
            elo=elo.ratings.get(roster_id, baseline),
            momentum=compute_momentum(results, momentum_games),
            recent_form=recent_form(results, form_games),
            strength_of_schedule=0.0,
            win_percentage=metric.win_percentage if metric else 0.0,
            average_score=metric.average_score if metric else 0.0,
            point_differential=(metric.points_for - metric.points_against) if metric else 0.0,
            luck_rating=metric.luck_rating if metric else 0.0,
            games_played=metric.total_games if metric else 0,
            elo_timeline=list(elo.timeline.get(roster_id, [])),
        )

    def _score(rating: PowerRating, sos: float) -> float:
        return power_score(
            win_pct=rating.win_percentage,
            average_score=rating.average_score,
            form=rating.recent_form,
            point_differential=rating.point_differential,
            momentum=rating.momentum,
            elo=rating.elo,
            luck=rating.luck_rating,
            sos=sos,
            elo_baseline=baseline,
        )

    first_pass = {roster_id: _score(rating, 0.0) for roster_id, rating in ratings.items()}
    for roster_id, rating in ratings.items():
        rating.strength_of_schedule = strength_of_schedule(season, roster_id, first_pass)
        rating.power_score = _score(rating, rating.strength_of_schedule)
    return ratings


__all__ = [
    "EloHistory",
    "elo_expected",
    "compute_elo_ratings",
    "game_results",
    "recent_form",
    "compute_momentum",
    "PowerRating",
    "power_score",
    "strength_of_schedule",
    "compute_power_scores",
]
