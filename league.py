"""Season and league pipeline.

:func:`build_league_report` runs every raw season through normalization,
seasonal metrics, bracket ranking, award gating and the power board, then folds
the surviving seasons into career rows, milestones and head-to-head records.
Seasons that lack required data are skipped with a warning; the rest of the
history still loads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from brackets import BracketMatch, bracket_participants, parse_bracket, rank_playoff_finishes, season_status
from career import (
    CareerMetric,
    MilestoneAchievement,
    StreakSummary,
    VersusRecord,
    aggregate_career,
    aggregate_versus_records,
    compute_streaks,
    track_milestones,
)
from errors import MissingDataError
from markets import MarketQuote, build_market_quote, league_historical_average
from playoffs import compute_playoff_predictions
from power import PowerRating, compute_elo_ratings, compute_power_scores
from records import NormalizedSeason, RawSeason, normalize_season
from season_metrics import Rank, SeasonalMetric, SeasonStatus, apply_awards, compute_seasonal_metrics
from win_probability import WinProbabilityModel

logger = logging.getLogger(__name__)

UNKNOWN_TEAM_NAME = "Unknown Team"


@dataclass
class SeasonReport:
    season: int
    normalized: NormalizedSeason
    status: SeasonStatus
    metrics: Dict[str, SeasonalMetric]
    playoff_ranks: Dict[str, Rank]
    power: Dict[str, PowerRating]
    winners_bracket: List[BracketMatch] = field(default_factory=list)
    losers_bracket: List[BracketMatch] = field(default_factory=list)


def process_season(raw: RawSeason, *, fallback_order: Optional[str] = None) -> SeasonReport:
    """Run one raw season through the engine. Raises MissingDataError on incomplete bundles."""

    normalized = normalize_season(raw)
    winners = parse_bracket(raw.winners_bracket)
    losers = parse_bracket(raw.losers_bracket)
    metrics = compute_seasonal_metrics(normalized)
    status = season_status(winners)
    ranks = rank_playoff_finishes(winners, losers, metrics, fallback_order=fallback_order)
    apply_awards(metrics, status, ranks, set(bracket_participants(winners)))
    elo = compute_elo_ratings(normalized)
    power = compute_power_scores(normalized, metrics, elo=elo)
    logger.info(
        "Processed season %s: %d rosters, %d games, status %s",
        raw.season,
        len(metrics),
        len(normalized.games()),
        status.value,
    )
    return SeasonReport(
        season=raw.season,
        normalized=normalized,
        status=status,
        metrics=metrics,
        playoff_ranks=ranks,
        power=power,
        winners_bracket=winners,
        losers_bracket=losers,
    )


@dataclass
class LeagueReport:
    seasons: Dict[int, SeasonReport]
    career: Dict[str, CareerMetric]
    milestones: List[MilestoneAchievement]
    skipped: Dict[int, List[str]] = field(default_factory=dict)
    versus: Dict[str, Dict[str, VersusRecord]] = field(default_factory=dict)
    streaks: Dict[str, StreakSummary] = field(default_factory=dict)
    current_season: Optional[int] = None
    current_week: Optional[int] = None

    def season(self, season: int) -> SeasonReport:
        if season not in self.seasons:
            raise KeyError(f"Season {season} is not loaded")
        return self.seasons[season]

    def latest_season(self) -> Optional[int]:
        if self.current_season in self.seasons:
            return self.current_season
        return max(self.seasons) if self.seasons else None

    def normalized_seasons(self) -> List[NormalizedSeason]:
        return [self.seasons[s].normalized for s in sorted(self.seasons)]

    def team_name(self, owner_id: Optional[str], season: Optional[int] = None) -> str:
        """Display name for an owner; ``season=None`` means the most recent name."""

        if owner_id is None:
            return UNKNOWN_TEAM_NAME
        candidates: Iterable[int]
        if season is not None and season in self.seasons:
            candidates = [season] + sorted((s for s in self.seasons if s != season), reverse=True)
        else:
            candidates = sorted(self.seasons, reverse=True)
        for candidate in candidates:
            for roster in self.seasons[candidate].normalized.rosters.values():
                if roster.owner_id == owner_id and roster.team_name:
                    return roster.team_name
        return UNKNOWN_TEAM_NAME

    def roster_name(self, season: int, roster_id: str) -> str:
        report = self.seasons.get(season)
        owner_id = report.normalized.owner_of(roster_id) if report else None
        return self.team_name(owner_id, season)


def build_league_report(
    raw_seasons: Iterable[RawSeason],
    *,
    current_season: Optional[int] = None,
    current_week: Optional[int] = None,
    fallback_order: Optional[str] = None,
) -> LeagueReport:
    seasons: Dict[int, SeasonReport] = {}
    skipped: Dict[int, List[str]] = {}
    for raw in sorted(raw_seasons, key=lambda r: r.season):
        try:
            seasons[raw.season] = process_season(raw, fallback_order=fallback_order)
        except MissingDataError as exc:
            logger.warning("Skipping season %s: %s", raw.season, exc)
            skipped[raw.season] = exc.missing

    rows = [metric for report in seasons.values() for metric in report.metrics.values()]
    career = aggregate_career(rows)
    normalized = [report.normalized for report in seasons.values()]
    milestones = track_milestones(normalized)
    logger.info("League report built: %d season(s), %d owner(s), %d skipped", len(seasons), len(career), len(skipped))
    return LeagueReport(
        seasons=seasons,
        career=career,
        milestones=milestones,
        skipped=skipped,
        versus=aggregate_versus_records(normalized),
        streaks=compute_streaks(normalized),
        current_season=current_season,
        current_week=current_week,
    )


def quote_matchup(
    report: LeagueReport,
    model: WinProbabilityModel,
    season: int,
    roster_a: str,
    roster_b: str,
    *,
    week: Optional[int] = None,
    vig: Optional[float] = None,
) -> Tuple[MarketQuote, Dict[str, Any]]:
    """Price one pairing using everything known before ``week`` (or all data when None)."""

    normalized = report.season(season).normalized
    if roster_a not in normalized.rosters or roster_b not in normalized.rosters:
        raise KeyError(f"Unknown roster in season {season}: {roster_a!r} vs {roster_b!r}")
    through_week = week - 1 if week is not None else None
    history = report.normalized_seasons()
    profiles = model.profiles(normalized, through_week)
    breakdown = model.matchup(normalized, roster_a, roster_b, through_week=through_week, history=history)
    quote = build_market_quote(
        breakdown.probability,
        roster_a=roster_a,
        roster_b=roster_b,
        average_a=profiles[roster_a].average_score,
        average_b=profiles[roster_b].average_score,
        power_a=profiles[roster_a].power_score,
        power_b=profiles[roster_b].power_score,
        games_played=breakdown.games_played,
        historical_total=league_historical_average(history, season),
        vig=vig,
        season=season,
        week=week,
    )
    return quote, breakdown.to_dict()


def build_week_markets(
    report: LeagueReport,
    model: WinProbabilityModel,
    season: int,
    week: int,
    *,
    vig: Optional[float] = None,
) -> List[MarketQuote]:
    """Odds board for every head-to-head pairing scheduled in ``week``."""

    normalized = report.season(season).normalized
    quotes = []
    for matchup in normalized.schedule_for_week(week):
        quote, _ = quote_matchup(
            report,
            model,
            season,
            matchup.team1_roster_id,
            matchup.team2_roster_id,
            week=week,
            vig=vig,
        )
        quotes.append(quote)
    return quotes


def playoff_outlook(
    report: LeagueReport,
    season: Optional[int] = None,
    *,
    num_simulations: Optional[int] = None,
    seed: Optional[int] = None,
) -> Dict[str, Any]:
    target = season if season is not None else report.latest_season()
    if target is None:
        raise KeyError("No seasons loaded")
    season_report = report.season(target)
    outlook = compute_playoff_predictions(
        season_report.normalized,
        num_simulations=num_simulations,
        seed=seed,
        metrics=season_report.metrics,
        power=season_report.power,
    )
    for team in outlook["teams"]:
        team["team_name"] = report.team_name(team["owner_id"], target)
    return outlook


__all__ = [
    "SeasonReport",
    "LeagueReport",
    "process_season",
    "build_league_report",
    "quote_matchup",
    "build_week_markets",
    "playoff_outlook",
]
