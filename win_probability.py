"""Matchup win probability from DPR, Elo, momentum, head-to-head and all-play.

The model blends the differential of each signal with weights that depend on
how far into the season the two rosters are, shrinks the edge toward a coin
flip when samples are small, and adds a small deterministic perturbation
derived from the two roster ids so repeated calls for the same pairing are
stable. Team profiles are memoized per ``(season, week)`` in an injectable
:class:`cache.TTLCache`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Dict, Mapping, Optional, Sequence

import numpy as np

from cache import TTLCache, build_profile_key
from config import settings
from power import compute_elo_ratings, compute_momentum, compute_power_scores, game_results
from records import NormalizedSeason
from season_metrics import compute_seasonal_metrics, league_average_score, safe_divide

logger = logging.getLogger(__name__)

MIN_PROBABILITY = 0.05
MAX_PROBABILITY = 0.95
DEFAULT_SCORE_VARIANCE = 25.0 ** 2
DEFAULT_AVERAGE_SCORE = 100.0

WEIGHT_PROFILES: Dict[str, Dict[str, float]] = {
    "early": {"dpr": 0.55, "elo": 0.25, "momentum": 0.10, "head_to_head": 0.05, "all_play": 0.05},
    "standard": {"dpr": 0.50, "elo": 0.20, "momentum": 0.15, "head_to_head": 0.10, "all_play": 0.05},
    "late": {"dpr": 0.45, "elo": 0.15, "momentum": 0.20, "head_to_head": 0.15, "all_play": 0.05},
}
FALLBACK_DPR_WEIGHT = 0.40
FALLBACK_POWER_WEIGHT = 0.10


def numeric_id(roster_id: str) -> int:
    """Roster id as an integer; non-numeric ids fold their characters into one."""

    text = str(roster_id)
    if text.isdigit():
        return int(text)
    return sum((index + 1) * ord(char) for index, char in enumerate(text)) % 100000


def deterministic_unit(seed: int) -> float:
    """Linear-congruential hash of ``seed`` into [0, 1). Not a random source."""

    return ((seed * 9301 + 49297) % 233280) / 233280


def weight_profile(games_played: int) -> str:
    if games_played <= 4:
        return "early"
    if games_played > 10:
        return "late"
    return "standard"


def team_confidence(games_played: int, has_dpr: bool = True) -> float:
    if not has_dpr:
        return 0.5
    if games_played <= 3:
        return 0.6
    if games_played <= 6:
        return 0.8
    if games_played <= 10:
        return 0.9
    return 1.0


def stage_factor(games_played: int) -> float:
    if games_played <= 3:
        return 0.7
    if games_played <= 6:
        return 0.85
    if games_played <= 10:
        return 0.95
    return 1.0


def error_coefficient(games_played: int) -> float:
    if games_played <= 3:
        return 0.25
    if games_played <= 6:
        return 0.18
    if games_played <= 10:
        return 0.15
    return 0.12


def score_distribution_win_probability(mean_diff: float, variance_a: float, variance_b: float) -> float:
    """P(score A > score B) when both weekly scores are independent normals."""

    spread = math.sqrt(max(variance_a, 0.0) + max(variance_b, 0.0))
    if spread == 0:
        if mean_diff > 0:
            return 1.0
        if mean_diff < 0:
            return 0.0
        return 0.5
    return 0.5 * (1.0 + math.erf(mean_diff / (spread * math.sqrt(2.0))))


@dataclass
class TeamProfile:
    roster_id: str
    owner_id: Optional[str]
    adjusted_dpr: Optional[float]
    average_score: float
    games_played: int
    all_play_win_percentage: float
    win_percentage: float
    elo: float
    momentum: float
    power_score: float
    recent_form: float
    luck_rating: float
    score_variance: float = DEFAULT_SCORE_VARIANCE

    @property
    def has_dpr(self) -> bool:
        return self.adjusted_dpr is not None

    @property
    def confidence(self) -> float:
        return team_confidence(self.games_played, self.has_dpr)


@dataclass
class ProfileSet:
    season: int
    through_week: Optional[int]
    teams: Dict[str, TeamProfile]
    league_average_score: float

    def __getitem__(self, roster_id: str) -> TeamProfile:
        return self.teams[roster_id]

    def __contains__(self, roster_id: object) -> bool:
        return roster_id in self.teams


def build_team_profiles(season: NormalizedSeason, *, momentum_games: Optional[int] = None) -> ProfileSet:
    """Derive every roster's model inputs from one (possibly truncated) season."""

    momentum_window = int(momentum_games if momentum_games is not None else settings.get("win_probability_momentum_games"))
    metrics = compute_seasonal_metrics(season)
    elo = compute_elo_ratings(season)
    power = compute_power_scores(season, metrics, elo=elo)
    teams: Dict[str, TeamProfile] = {}
    for roster_id, metric in metrics.items():
        results = game_results(season, roster_id)
        scores = [own for own, _ in results]
        variance = float(np.var(scores, ddof=1)) if len(scores) > 1 else DEFAULT_SCORE_VARIANCE
        rating = power[roster_id]
        teams[roster_id] = TeamProfile(
            roster_id=roster_id,
            owner_id=metric.owner_id,
            adjusted_dpr=metric.adjusted_dpr if metric.total_games > 0 and metric.adjusted_dpr > 0 else None,
            average_score=metric.average_score,
            games_played=metric.total_games,
            all_play_win_percentage=metric.all_play_win_percentage,
            win_percentage=metric.win_percentage,
            elo=rating.elo,
            momentum=compute_momentum(results, momentum_window),
            power_score=rating.power_score,
            recent_form=rating.recent_form,
            luck_rating=metric.luck_rating,
            score_variance=variance,
        )
    return ProfileSet(
        season=season.season,
        through_week=season.last_completed_week() or None,
        teams=teams,
        league_average_score=league_average_score(metrics.values()),
    )


def head_to_head(seasons: Sequence[NormalizedSeason], owner_a: Optional[str], owner_b: Optional[str]) -> float:
    """Owner A's head-to-head edge over owner B in [-1, 1]; ties count half."""

    if owner_a is None or owner_b is None:
        return 0.0
    games = 0
    credit = 0.0
    for season in seasons:
        roster_a = season.roster_for_owner(owner_a)
        roster_b = season.roster_for_owner(owner_b)
        if roster_a is None or roster_b is None:
            continue
        for game in season.games(roster_a):
            if game.opponent_of(roster_a) != roster_b:
                continue
            own, opp = game.scores_for(roster_a)
            games += 1
            credit += 1.0 if own > opp else 0.5 if own == opp else 0.0
    if games == 0:
        return 0.0
    return (credit / games - 0.5) * 2


@dataclass
class WinProbabilityBreakdown:
    roster_a: str
    roster_b: str
    probability: float
    base_probability: float
    confidence: float
    deterministic_error: float
    games_played: int
    profile: str
    used_fallback: bool
    score_distribution_probability: float
    components: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def _proxy_dpr(profile: TeamProfile, league_average: float) -> float:
    if profile.average_score <= 0:
        return 1.0
    return safe_divide(profile.average_score, league_average or DEFAULT_AVERAGE_SCORE)


def win_probability(
    team_a: TeamProfile,
    team_b: TeamProfile,
    *,
    head_to_head_value: float = 0.0,
    league_average: float = 0.0,
) -> WinProbabilityBreakdown:
    """Team A's chance of beating team B, clamped to [0.05, 0.95]."""

    games = max(team_a.games_played, team_b.games_played)
    profile_name = weight_profile(games)
    weights = dict(WEIGHT_PROFILES[profile_name])
    fallback = not (team_a.has_dpr and team_b.has_dpr)

    components: Dict[str, float] = {}
    if fallback:
        dpr_diff = _proxy_dpr(team_a, league_average) - _proxy_dpr(team_b, league_average)
        components["dpr"] = math.tanh(dpr_diff * 2) * FALLBACK_DPR_WEIGHT
        components["power"] = math.tanh((team_a.power_score - team_b.power_score) / 10) * FALLBACK_POWER_WEIGHT
    else:
        dpr_diff = team_a.adjusted_dpr - team_b.adjusted_dpr
        components["dpr"] = math.tanh(dpr_diff * 2) * weights["dpr"]
    components["elo"] = math.tanh((team_a.elo - team_b.elo) / 200) * weights["elo"]
    components["momentum"] = (team_a.momentum - team_b.momentum) * weights["momentum"]
    components["head_to_head"] = max(-1.0, min(1.0, head_to_head_value)) * weights["head_to_head"]
    all_play_a = team_a.all_play_win_percentage if team_a.games_played else 0.5
    all_play_b = team_b.all_play_win_percentage if team_b.games_played else 0.5
    components["all_play"] = math.tanh((all_play_a - all_play_b) * 2) * weights["all_play"]

    confidence = min(team_a.confidence, team_b.confidence) * stage_factor(games)
    base = 0.5 + sum(components.values()) * confidence
    seed = numeric_id(team_a.roster_id) * 7 + numeric_id(team_b.roster_id) * 11
    error = (deterministic_unit(seed) - 0.5) * error_coefficient(games)
    probability = max(MIN_PROBABILITY, min(MAX_PROBABILITY, base + error))

    distribution = score_distribution_win_probability(
        team_a.average_score - team_b.average_score,
        team_a.score_variance,
        team_b.score_variance,
    )
    return WinProbabilityBreakdown(
        roster_a=team_a.roster_id,
        roster_b=team_b.roster_id,
        probability=probability,
        base_probability=base,
        confidence=confidence,
        deterministic_error=error,
        games_played=games,
        profile=profile_name,
        used_fallback=fallback,
        score_distribution_probability=distribution,
        components=components,
    )


class WinProbabilityModel:
    """Season-aware front end over :func:`win_probability` with profile memoization."""

    def __init__(self, cache: Optional[TTLCache] = None) -> None:
        if cache is None:
            cache = TTLCache(ttl=float(settings.get("dpr_cache_ttl_seconds")))
        self.cache = cache

    def profiles(self, season: NormalizedSeason, through_week: Optional[int] = None) -> ProfileSet:
        key = build_profile_key(season.season, through_week)

        def factory() -> ProfileSet:
            view = season.through_week(through_week) if through_week is not None else season
            logger.debug("Building team profiles for %s through week %s", season.season, through_week)
            return build_team_profiles(view)

        return self.cache.get_or_set(key, factory)

    def clear(self) -> None:
        self.cache.clear()

    def matchup(
        self,
        season: NormalizedSeason,
        roster_a: str,
        roster_b: str,
        *,
        through_week: Optional[int] = None,
        history: Sequence[NormalizedSeason] = (),
    ) -> WinProbabilityBreakdown:
        """Win probability for ``roster_a`` against ``roster_b``.

        ``history`` holds earlier seasons; the most recent one joins the current
        season for the head-to-head term.
        """

        profiles = self.profiles(season, through_week)
        team_a = profiles[roster_a]
        team_b = profiles[roster_b]
        view = season.through_week(through_week) if through_week is not None else season
        previous = [s for s in history if s.season < season.season]
        window = [view] + sorted(previous, key=lambda s: s.season)[-1:]
        h2h = head_to_head(window, team_a.owner_id, team_b.owner_id)
        return win_probability(
            team_a,
            team_b,
            head_to_head_value=h2h,
            league_average=profiles.league_average_score,
        )


__all__ = [
    "numeric_id",
    "deterministic_unit",
    "score_distribution_win_probability",
    "TeamProfile",
    "ProfileSet",
    "build_team_profiles",
    "head_to_head",
    "WinProbabilityBreakdown",
    "win_probability",
    "WinProbabilityModel",
]
