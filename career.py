"""Career aggregation and milestone tracking across seasons.

Career rows are folded from already-computed seasonal rows keyed by owner id,
never from raw matchups, so career totals always equal the seasonal sums.
Aggregation starts from an empty accumulator on every call. Head-to-head
records and streaks are folded from completed games.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import pandas as pd

from records import NormalizedSeason
from season_metrics import SeasonalMetric, normalize_dpr, raw_dpr, safe_divide

logger = logging.getLogger(__name__)

MILESTONE_THRESHOLDS: Dict[str, List[float]] = {
    "wins": [10, 25, 50, 75, 100],
    "losses": [10, 25, 50, 75, 100],
    "all_play_wins": [50, 100, 200, 300, 500],
    "all_play_losses": [50, 100, 200, 300, 500],
    "points": [1000, 2500, 5000, 7500, 10000],
    "top_three_weeks": [5, 10, 25, 50, 75],
}

_SUMMED_FIELDS = (
    "wins",
    "losses",
    "ties",
    "points_for",
    "points_against",
    "total_games",
    "all_play_wins",
    "all_play_losses",
    "all_play_ties",
    "luck_rating",
    "top_score_weeks_count",
    "weekly_top2_scores_count",
    "blowout_wins",
    "blowout_losses",
    "slim_wins",
    "slim_losses",
)

_AWARD_COUNTERS = {
    "is_champion": "championships",
    "is_runner_up": "runner_ups",
    "is_third_place": "third_places",
    "is_points_champion": "points_championships",
    "is_points_runner_up": "points_runner_ups",
    "is_third_place_points": "third_place_points",
    "made_playoffs": "playoff_appearances_count",
}


@dataclass
class CareerMetric:
    owner_id: str
    seasons: List[int] = field(default_factory=list)
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0
    total_games: int = 0
    average_score: float = 0.0
    win_percentage: float = 0.0
    raw_dpr: float = 0.0
    adjusted_dpr: float = 0.0
    all_play_wins: int = 0
    all_play_losses: int = 0
    all_play_ties: int = 0
    all_play_win_percentage: float = 0.0
    luck_rating: float = 0.0
    high_score: float = 0.0
    low_score: float = 0.0
    highest_seasonal_points_avg: float = 0.0
    lowest_seasonal_points_avg: float = 0.0
    top_score_weeks_count: int = 0
    weekly_top2_scores_count: int = 0
    blowout_wins: int = 0
    blowout_losses: int = 0
    slim_wins: int = 0
    slim_losses: int = 0
    championships: int = 0
    runner_ups: int = 0
    third_places: int = 0
    points_championships: int = 0
    points_runner_ups: int = 0
    third_place_points: int = 0
    playoff_appearances_count: int = 0

    @property
    def seasons_played(self) -> int:
        return len(self.seasons)

    def to_dict(self) -> Dict[str, object]:
        payload = asdict(self)
        payload["seasons_played"] = self.seasons_played
        return payload


def aggregate_career(seasonal_rows: Iterable[SeasonalMetric]) -> Dict[str, CareerMetric]:
    """Fold seasonal rows into one :class:`CareerMetric` per owner."""

    rows = sorted(seasonal_rows, key=lambda row: (row.season, row.roster_id))
    careers: Dict[str, CareerMetric] = {}
    played_rows: Dict[str, List[SeasonalMetric]] = {}

    for row in rows:
        if row.owner_id is None:
            logger.warning("Season %s roster %s has no owner; left out of career totals", row.season, row.roster_id)
            continue
        career = careers.setdefault(row.owner_id, CareerMetric(owner_id=row.owner_id))
        if row.season not in career.seasons:
            career.seasons.append(row.season)
        for name in _SUMMED_FIELDS:
            setattr(career, name, getattr(career, name) + getattr(row, name))
        for flag, counter in _AWARD_COUNTERS.items():
            if getattr(row, flag):
                setattr(career, counter, getattr(career, counter) + 1)
        if row.total_games > 0:
            played_rows.setdefault(row.owner_id, []).append(row)

    for owner_id, career in careers.items():
        active = played_rows.get(owner_id, [])
        if active:
            career.high_score = max(r.high_score for r in active)
            career.low_score = min(r.low_score for r in active)
            career.highest_seasonal_points_avg = max(r.average_score for r in active)
            career.lowest_seasonal_points_avg = min(r.average_score for r in active)
        career.average_score = safe_divide(career.points_for, career.total_games)
        career.win_percentage = safe_divide(career.wins + 0.5 * career.ties, career.total_games)
        all_play_total = career.all_play_wins + career.all_play_losses + career.all_play_ties
        career.all_play_win_percentage = safe_divide(
            career.all_play_wins + 0.5 * career.all_play_ties, all_play_total
        )
        if career.total_games > 0:
            career.raw_dpr = raw_dpr(career.average_score, career.high_score, career.low_score, career.win_percentage)

    normalize_dpr(careers.values())
    return dict(sorted(careers.items()))


@dataclass(frozen=True)
class MilestoneAchievement:
    milestone: str
    threshold: float
    owner_id: str
    season: int
    week: int
    order: int


def weekly_owner_frame(seasons: Sequence[NormalizedSeason]) -> pd.DataFrame:
    """One row per owner and recorded week with that week's milestone increments."""

    frames: List[pd.DataFrame] = []
    for season in seasons:
        frame = season.to_dataframe()
        frame = frame[~frame["Synthesized"]].copy()
        if frame.empty:
            continue
        grouped = frame.groupby("Week")["PointsFor"]
        lower = grouped.rank(method="min") - 1
        higher = grouped.transform("size") - grouped.rank(method="max")
        counted = frame["IsRegularSeason"] & frame["HasOpponent"]
        frame["wins"] = (frame["Result"] == "W").astype(int)
        frame["losses"] = (frame["Result"] == "L").astype(int)
        frame["all_play_wins"] = lower.where(counted, 0).astype(int)
        frame["all_play_losses"] = higher.where(counted, 0).astype(int)
        frame["points"] = frame["PointsFor"].astype(float)
        descending = grouped.rank(method="min", ascending=False)
        frame["top_three_weeks"] = ((descending <= 3) & frame["IsRegularSeason"]).astype(int)
        frames.append(frame[frame["OwnerId"].notna()])

    columns = ["Season", "Week", "OwnerId", *MILESTONE_THRESHOLDS.keys()]
    if not frames:
        return pd.DataFrame(columns=columns)
    combined = pd.concat(frames, ignore_index=True)[columns]
    return combined.sort_values(["Season", "Week", "OwnerId"]).reset_index(drop=True)


def track_milestones(
    seasons: Sequence[NormalizedSeason],
    thresholds: Optional[Dict[str, List[float]]] = None,
) -> List[MilestoneAchievement]:
    """Report when each owner first reached every milestone threshold.

    ``order`` is the achievement order among owners (1 = first to get there);
    owners reaching a threshold in the same week are ordered by owner id.
    """

    thresholds = thresholds or MILESTONE_THRESHOLDS
    frame = weekly_owner_frame(sorted(seasons, key=lambda s: s.season))
    achievements: List[MilestoneAchievement] = []
    if frame.empty:
        return achievements

    for milestone, levels in thresholds.items():
        running = frame.groupby("OwnerId")[milestone].cumsum()
        for threshold in levels:
            reached = frame.loc[running >= threshold, ["Season", "Week", "OwnerId"]]
            first = reached.groupby("OwnerId", sort=False).head(1)
            first = first.sort_values(["Season", "Week", "OwnerId"])
            for order, row in enumerate(first.itertuples(index=False), start=1):
                achievements.append(
                    MilestoneAchievement(
                        milestone=milestone,
                        threshold=threshold,
                        owner_id=str(row.OwnerId),
                        season=int(row.Season),
                        week=int(row.Week),
                        order=order,
                    )
                )
    logger.debug("Tracked %d milestone achievements", len(achievements))
    return achievements


@dataclass
class VersusRecord:
    """Lifetime head-to-head record of ``owner_id`` against ``opponent_id``."""

    owner_id: str
    opponent_id: str
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0

    @property
    def games(self) -> int:
        return self.wins + self.losses + self.ties

    @property
    def win_percentage(self) -> float:
        return safe_divide(self.wins + 0.5 * self.ties, self.games)

    def add_game(self, points_for: float, points_against: float) -> None:
        self.points_for += points_for
        self.points_against += points_against
        if points_for > points_against:
            self.wins += 1
        elif points_for < points_against:
            self.losses += 1
        else:
            self.ties += 1

    def to_dict(self) -> Dict[str, object]:
        payload = asdict(self)
        payload["games"] = self.games
        payload["win_percentage"] = self.win_percentage
        return payload


@dataclass
class StreakSummary:
    owner_id: str
    longest_win_streak: int = 0
    longest_loss_streak: int = 0
    # Positive while winning, negative while losing, 0 after a tie.
    current_streak: int = 0

    def add_result(self, margin: float) -> None:
        if margin > 0:
            self.current_streak = self.current_streak + 1 if self.current_streak > 0 else 1
        elif margin < 0:
            self.current_streak = self.current_streak - 1 if self.current_streak < 0 else -1
        else:
            self.current_streak = 0
        self.longest_win_streak = max(self.longest_win_streak, self.current_streak)
        self.longest_loss_streak = max(self.longest_loss_streak, -self.current_streak)

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def owner_games(seasons: Sequence[NormalizedSeason]) -> Iterator[Tuple[int, int, str, float, str, float]]:
    """Completed head-to-head games as ``(season, week, owner, score, opponent, score)``.

    Regular season and playoffs alike, oldest first. Games where either roster
    has no owner are left out.
    """

    for season in sorted(seasons, key=lambda s: s.season):
        for matchup in season.games():
            owner_a = season.owner_of(matchup.team1_roster_id)
            owner_b = season.owner_of(matchup.team2_roster_id)
            if owner_a is None or owner_b is None or owner_a == owner_b:
                continue
            yield season.season, matchup.week, owner_a, matchup.team1_score, owner_b, matchup.team2_score


def aggregate_versus_records(seasons: Sequence[NormalizedSeason]) -> Dict[str, Dict[str, VersusRecord]]:
    """Owner-by-opponent lifetime records; every game is counted from both sides."""

    grid: Dict[str, Dict[str, VersusRecord]] = {}
    for _season, _week, owner_a, score_a, owner_b, score_b in owner_games(seasons):
        forward = grid.setdefault(owner_a, {}).setdefault(owner_b, VersusRecord(owner_a, owner_b))
        forward.add_game(score_a, score_b)
        backward = grid.setdefault(owner_b, {}).setdefault(owner_a, VersusRecord(owner_b, owner_a))
        backward.add_game(score_b, score_a)
    return {owner: dict(sorted(row.items())) for owner, row in sorted(grid.items())}


def compute_streaks(seasons: Sequence[NormalizedSeason]) -> Dict[str, StreakSummary]:
    """Longest win and loss streaks per owner, carried across season boundaries.

    A tie ends both kinds of streak.
    """

    streaks: Dict[str, StreakSummary] = {}
    for _season, _week, owner_a, score_a, owner_b, score_b in owner_games(seasons):
        streaks.setdefault(owner_a, StreakSummary(owner_a)).add_result(score_a - score_b)
        streaks.setdefault(owner_b, StreakSummary(owner_b)).add_result(score_b - score_a)
    return dict(sorted(streaks.items()))


__all__ = [
    "MILESTONE_THRESHOLDS",
    "CareerMetric",
    "aggregate_career",
    "MilestoneAchievement",
    "weekly_owner_frame",
    "track_milestones",
    "VersusRecord",
    "StreakSummary",
    "owner_games",
    "aggregate_versus_records",
    "compute_streaks",
]
