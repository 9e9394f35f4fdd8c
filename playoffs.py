"""Playoff and championship projections for the current season.

This module derives regular-season standings from a normalized season, runs
Monte Carlo simulations of the remaining regular-season weeks under the hybrid
seeding rule (top records first, then wildcards by points-for), checks
mathematical elimination, and converts playoff odds into championship futures.
The core entry point, :func:`compute_playoff_predictions`, returns structured
data that the API exposes directly.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from config import settings
from markets import decimal_odds, probability_to_american
from power import PowerRating, compute_elo_ratings, compute_momentum, compute_power_scores, game_results, recent_form
from records import NormalizedSeason, roster_sort_key
from season_metrics import SeasonalMetric, compute_seasonal_metrics, league_average_score

logger = logging.getLogger(__name__)

DEFAULT_SIM_AVERAGE = 100.0
TITLE_SHARE = 1.0 / 6.0


@dataclass
class TeamRecord:
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0
    games_played: int = 0

    def clone(self) -> "TeamRecord":
        return TeamRecord(
            wins=self.wins,
            losses=self.losses,
            ties=self.ties,
            points_for=self.points_for,
            points_against=self.points_against,
            games_played=self.games_played,
        )

    @property
    def win_pct(self) -> float:
        if self.games_played == 0:
            return 0.0
        return (self.wins + 0.5 * self.ties) / self.games_played

    @property
    def average_score(self) -> float:
        if self.games_played == 0:
            return 0.0
        return self.points_for / self.games_played


def compute_records(season: NormalizedSeason) -> Dict[str, TeamRecord]:
    """Regular-season standings from completed games; bye scores count toward points."""

    records = {roster_id: TeamRecord() for roster_id in season.roster_ids}
    for matchup in season.matchups:
        if not season.is_regular_season(matchup.week):
            continue
        home = records[matchup.team1_roster_id]
        home.points_for += matchup.team1_score
        if matchup.is_bye:
            continue
        away = records[matchup.team2_roster_id]
        away.points_for += matchup.team2_score
        home.points_against += matchup.team2_score
        away.points_against += matchup.team1_score
        home.games_played += 1
        away.games_played += 1
        if matchup.team1_score > matchup.team2_score:
            home.wins += 1
            away.losses += 1
        elif matchup.team1_score < matchup.team2_score:
            away.wins += 1
            home.losses += 1
        else:
            home.ties += 1
            away.ties += 1
    return records


def hybrid_seeding(
    records: Mapping[str, TeamRecord],
    *,
    record_seeds: Optional[int] = None,
    wildcard_seeds: Optional[int] = None,
) -> List[str]:
    """Seeds in order: best records first, then wildcards by points-for."""

    by_record_count = int(record_seeds if record_seeds is not None else settings.get("playoff_record_seeds"))
    wildcard_count = int(wildcard_seeds if wildcard_seeds is not None else settings.get("playoff_wildcard_seeds"))
    ordered = sorted(
        records,
        key=lambda rid: (-records[rid].win_pct, -records[rid].wins, -records[rid].points_for, roster_sort_key(rid)),
    )
    seeds = ordered[:by_record_count]
    remaining = sorted(
        ordered[by_record_count:],
        key=lambda rid: (-records[rid].points_for, roster_sort_key(rid)),
    )
    return seeds + remaining[:wildcard_count]


def team_strength(record: TeamRecord, power_score: float, rng: np.random.Generator) -> float:
    """Per-trial strength in [0.25, 0.75], regressed toward 0.5 on small samples."""

    games = record.games_played
    win_rate = record.win_pct if games else 0.5
    power_strength = (power_score / 5) * 0.15
    if games <= 2:
        base = 0.5 + power_strength * 0.05 + (win_rate - 0.5) * 0.1
    elif games <= 5:
        base = 0.5 + power_strength * 0.15 + (win_rate - 0.5) * 0.25
    else:
        early = max(0.0, (14 - games) / 14)
        base = early * power_strength + (1 - early) * win_rate
    variance = (rng.random() - 0.5) * 0.3
    return max(0.25, min(0.75, base + variance))


def _simulate_week(
    standings: Dict[str, TeamRecord],
    strengths: Dict[str, float],
    rng: np.random.Generator,
    league_average: float = DEFAULT_SIM_AVERAGE,
) -> None:
    order = list(standings)
    rng.shuffle(order)
    if len(order) % 2 == 1:
        # The bye is a coin flip scored at the league average.
        bye = standings[order.pop()]
        if rng.random() < 0.5:
            bye.wins += 1
            bye.points_for += league_average + (rng.random() - 0.5) * 20
        else:
            bye.losses += 1
            bye.points_for += league_average * 0.9 + (rng.random() - 0.5) * 20
        bye.games_played += 1

    for index in range(0, len(order), 2):
        first_id, second_id = order[index], order[index + 1]
        first, second = standings[first_id], standings[second_id]
        strength_first, strength_second = strengths[first_id], strengths[second_id]
        probability = 0.5 + (strength_first - strength_second) * 0.4 + (rng.random() - 0.5) * 0.2
        probability = max(0.15, min(0.85, probability))
        first_wins = rng.random() < probability

        score_first = max(40.0, (first.average_score or DEFAULT_SIM_AVERAGE) + (strength_first - 0.5) * 30 + (rng.random() - 0.5) * 50)
        score_second = max(40.0, (second.average_score or DEFAULT_SIM_AVERAGE) + (strength_second - 0.5) * 30 + (rng.random() - 0.5) * 50)
        winner, loser = (first, second) if first_wins else (second, first)
        winner_raw, loser_raw = (score_first, score_second) if first_wins else (score_second, score_first)
        winner.wins += 1
        loser.losses += 1
        winner.points_for += max(winner_raw, loser_raw + 5)
        loser.points_for += min(loser_raw, winner_raw - 5)
        winner.games_played += 1
        loser.games_played += 1

        drift = 0.02 if first_wins else -0.02
        strengths[first_id] = max(0.1, min(0.9, strength_first + drift))
        strengths[second_id] = max(0.1, min(0.9, strength_second - drift))


def _average_points(records: Iterable[TeamRecord]) -> float:
    records = list(records)
    games = sum(record.games_played for record in records)
    if games == 0:
        return DEFAULT_SIM_AVERAGE
    return sum(record.points_for for record in records) / games


def simulate_playoff_odds(
    base_records: Mapping[str, TeamRecord],
    power_scores: Mapping[str, float],
    remaining_weeks: int,
    *,
    num_simulations: Optional[int] = None,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    league_average: Optional[float] = None,
) -> Dict[str, Dict[str, Any]]:
    """Simulate the rest of the regular season to estimate playoff odds.

    With no weeks left the current standings are seeded once and the result
    is exact. ``league_average`` prices byes; it defaults to the points per
    game across ``base_records``.
    """

    teams = list(base_records)
    playoff_spots = int(settings.get("playoff_record_seeds")) + int(settings.get("playoff_wildcard_seeds"))
    if remaining_weeks <= 0:
        seeds = hybrid_seeding(base_records)
        summary: Dict[str, Dict[str, Any]] = {}
        for team_id in teams:
            seed_number = seeds.index(team_id) + 1 if team_id in seeds else None
            counts = [0] * playoff_spots
            if seed_number is not None:
                counts[seed_number - 1] = 1
            summary[team_id] = {
                "playoff_probability": 1.0 if seed_number else 0.0,
                "seed_distribution": counts,
                "average_seed": float(seed_number) if seed_number else None,
            }
        return summary

    trials = int(num_simulations if num_simulations is not None else settings.get("sim_trials_preview"))
    rng = rng if rng is not None else np.random.default_rng(seed)
    sim_data = {team_id: {"playoff_count": 0, "seed_sum": 0, "seeds": [0] * playoff_spots} for team_id in teams}
    if league_average is None:
        league_average = _average_points(base_records.values())

    for _ in range(trials):
        standings = {tid: record.clone() for tid, record in base_records.items()}
        strengths = {tid: team_strength(standings[tid], power_scores.get(tid, 0.0), rng) for tid in teams}
        for _week in range(remaining_weeks):
            _simulate_week(standings, strengths, rng, league_average or DEFAULT_SIM_AVERAGE)
        for seed_number, team_id in enumerate(hybrid_seeding(standings), start=1):
            entry = sim_data[team_id]
            entry["playoff_count"] += 1
            entry["seed_sum"] += seed_number
            entry["seeds"][seed_number - 1] += 1

    logger.info("Simulated %d trials over %d remaining week(s)", trials, remaining_weeks)
    summary = {}
    for team_id, entry in sim_data.items():
        count = entry["playoff_count"]
        summary[team_id] = {
            "playoff_probability": count / trials if trials else 0.0,
            "seed_distribution": entry["seeds"],
            "average_seed": entry["seed_sum"] / count if count else None,
        }
    return summary


@dataclass
class EliminationStatus:
    eliminated: bool
    eliminated_from_record: bool
    eliminated_from_points: bool
    max_possible_wins: int
    remaining_games: int


def elimination_status(
    records: Mapping[str, TeamRecord],
    roster_id: str,
    *,
    total_games: Optional[int] = None,
    min_games: Optional[int] = None,
) -> EliminationStatus:
    """Whether a roster can no longer reach a record seed nor a wildcard.

    The record path is closed when enough rivals already hold more wins than
    the roster's best case. The points path is closed when, after allowing for
    rivals who may take record seeds, enough rivals' floor projections
    (``max(0.7 * average, 60)`` per game) exceed the roster's ceiling
    (``max(1.5 * average, 150)`` per game).
    """

    season_games = int(total_games if total_games is not None else settings.get("regular_season_games"))
    threshold_games = int(min_games if min_games is not None else settings.get("elimination_min_games"))
    record_seeds = int(settings.get("playoff_record_seeds"))
    wildcard_seeds = int(settings.get("playoff_wildcard_seeds"))

    record = records[roster_id]
    remaining = max(0, season_games - record.games_played)
    max_wins = record.wins + remaining
    if record.games_played < threshold_games:
        return EliminationStatus(False, False, False, max_wins, remaining)

    rivals = {rid: rec for rid, rec in records.items() if rid != roster_id}
    record_closed = sum(1 for rec in rivals.values() if rec.wins > max_wins) >= record_seeds

    ceiling = record.points_for + remaining * max(record.average_score * 1.5, 150.0)

    def _floor(rec: TeamRecord) -> float:
        left = max(0, season_games - rec.games_played)
        return rec.points_for + left * max(rec.average_score * 0.7, 60.0)

    def _locked(rid: str) -> bool:
        wins = records[rid].wins
        threats = 0
        for other_id, other in records.items():
            if other_id == rid:
                continue
            if other.wins + max(0, season_games - other.games_played) >= wins:
                threats += 1
        return threats < record_seeds

    locked = [rid for rid in rivals if _locked(rid)]
    contenders_ahead = sum(1 for rid, rec in rivals.items() if rid not in locked and _floor(rec) > ceiling)
    open_record_seeds = max(0, record_seeds - len(locked))
    points_closed = contenders_ahead >= wildcard_seeds + open_record_seeds

    return EliminationStatus(
        eliminated=record_closed and points_closed,
        eliminated_from_record=record_closed,
        eliminated_from_points=points_closed,
        max_possible_wins=max_wins,
        remaining_games=remaining,
    )


def championship_probability(
    playoff_probability: float,
    *,
    average_score: float,
    league_average: float,
    adjusted_dpr: float,
    momentum: float,
    form: float,
    eliminated: bool,
) -> float:
    if eliminated:
        return 0.0
    scoring = average_score / league_average if league_average > 0 else 1.0
    scoring = max(0.5, min(2.0, scoring))
    dpr = adjusted_dpr if adjusted_dpr else 1.0
    probability = playoff_probability * TITLE_SHARE * scoring * dpr * (1 + 0.2 * momentum) * (1 + 0.3 * (form - 0.5))
    probability = max(0.0, min(1.0, probability))
    if probability < 0.005 and playoff_probability > 0.05:
        probability = max(0.005, 0.12 * playoff_probability)
    if probability == 0:
        probability = 0.001
    return probability


def championship_odds(probability: float, *, eliminated: bool = False, vig: Optional[float] = None) -> Dict[str, Any]:
    """Futures prices for a title probability; ``None`` prices when eliminated."""

    if eliminated or probability <= 0:
        return {"american": None, "decimal": None}
    margin = float(vig if vig is not None else settings.get("championship_vig"))
    priced = min(0.95, probability * (1 + margin))
    return {"american": probability_to_american(priced), "decimal": round(decimal_odds(priced), 2)}


@dataclass
class TeamOutlook:
    roster_id: str
    owner_id: Optional[str]
    wins: int
    losses: int
    ties: int
    points_for: float
    games_played: int
    power_score: float
    playoff_probability: float
    seed_distribution: List[int]
    average_seed: Optional[float]
    championship_probability: float
    american_odds: Optional[int]
    decimal_odds: Optional[float]
    eliminated: bool
    eliminated_from_record: bool
    eliminated_from_points: bool
    max_possible_wins: int
    remaining_games: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def remaining_regular_weeks(season: NormalizedSeason, total_games: Optional[int] = None) -> int:
    """Regular-season weeks without a completed game; ``total_games`` overrides the season length."""

    season_games = int(total_games if total_games is not None else season.regular_season_weeks)
    played = len(season.completed_weeks(regular_season_only=True))
    return max(0, season_games - played)


def compute_playoff_predictions(
    season: NormalizedSeason,
    *,
    num_simulations: Optional[int] = None,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    metrics: Optional[Mapping[str, SeasonalMetric]] = None,
    power: Optional[Mapping[str, PowerRating]] = None,
) -> Dict[str, Any]:
    """High-level helper returning standings, playoff odds and title futures."""

    metrics = metrics or compute_seasonal_metrics(season)
    power = power or compute_power_scores(season, metrics, elo=compute_elo_ratings(season))
    records = compute_records(season)
    weeks_left = remaining_regular_weeks(season)
    league_average = league_average_score(metrics.values())
    trials = int(num_simulations if num_simulations is not None else settings.get("sim_trials_preview"))

    sim_summary = simulate_playoff_odds(
        records,
        {rid: rating.power_score for rid, rating in power.items()},
        weeks_left,
        num_simulations=trials,
        seed=seed,
        rng=rng,
        league_average=league_average or None,
    )

    teams: List[TeamOutlook] = []
    for roster_id in season.roster_ids:
        record = records[roster_id]
        metric = metrics.get(roster_id)
        status = elimination_status(records, roster_id, total_games=season.regular_season_weeks)
        sim = sim_summary[roster_id]
        results = game_results(season, roster_id)
        playoff_probability = 0.0 if status.eliminated else sim["playoff_probability"]
        title = championship_probability(
            playoff_probability,
            average_score=metric.average_score if metric else 0.0,
            league_average=league_average,
            adjusted_dpr=metric.adjusted_dpr if metric else 0.0,
            momentum=compute_momentum(results, 4),
            form=recent_form(results),
            eliminated=status.eliminated,
        )
        odds = championship_odds(title, eliminated=status.eliminated)
        teams.append(
            TeamOutlook(
                roster_id=roster_id,
                owner_id=season.owner_of(roster_id),
                wins=record.wins,
                losses=record.losses,
                ties=record.ties,
                points_for=record.points_for,
                games_played=record.games_played,
                power_score=power[roster_id].power_score if roster_id in power else 0.0,
                playoff_probability=playoff_probability,
                seed_distribution=sim["seed_distribution"],
                average_seed=sim["average_seed"],
                championship_probability=title,
                american_odds=odds["american"],
                decimal_odds=odds["decimal"],
                eliminated=status.eliminated,
                eliminated_from_record=status.eliminated_from_record,
                eliminated_from_points=status.eliminated_from_points,
                max_possible_wins=status.max_possible_wins,
                remaining_games=status.remaining_games,
            )
        )

    teams.sort(key=lambda t: (-t.playoff_probability, -t.championship_probability, roster_sort_key(t.roster_id)))
    return {
        "season": season.season,
        "teams": [team.to_dict() for team in teams],
        "simulation": {
            "runs": trials if weeks_left else 0,
            "remaining_weeks": weeks_left,
            "playoff_spots": int(settings.get("playoff_record_seeds")) + int(settings.get("playoff_wildcard_seeds")),
            "seed": seed,
        },
    }


__all__ = [
    "TeamRecord",
    "EliminationStatus",
    "TeamOutlook",
    "compute_records",
    "hybrid_seeding",
    "team_strength",
    "simulate_playoff_odds",
    "elimination_status",
    "championship_probability",
    "championship_odds",
    "remaining_regular_weeks",
    "compute_playoff_predictions",
]
