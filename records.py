"""Record normalization for raw league seasons.

Raw season bundles (rosters, users, paired matchups, brackets, league metadata)
arrive from the Sleeper client or the spreadsheet feed. :func:`normalize_season`
reduces one bundle into per-roster, per-week lookups that every downstream
component reads: ``score_by_roster_and_week``, ``opponent_context_by_roster_and_week``
and ``weekly_scores_by_week``. Every roster gets a row for every week of the
season; weeks without a recorded score are zero-score placeholders.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from config import settings
from errors import MalformedRecordError, MissingDataError

logger = logging.getLogger(__name__)

WEEKLY_COLUMNS = [
    "Season",
    "Week",
    "RosterId",
    "OwnerId",
    "PointsFor",
    "OpponentPointsFor",
    "OpponentRosterId",
    "HasOpponent",
    "IsRegularSeason",
    "Synthesized",
    "Result",
]


@dataclass(frozen=True)
class RawSeason:
    """Unprocessed records for one season, as handed over by a data source."""

    season: int
    league: Dict[str, Any] = field(default_factory=dict)
    rosters: List[Dict[str, Any]] = field(default_factory=list)
    users: List[Dict[str, Any]] = field(default_factory=list)
    matchups: List[Dict[str, Any]] = field(default_factory=list)
    winners_bracket: List[Dict[str, Any]] = field(default_factory=list)
    losers_bracket: List[Dict[str, Any]] = field(default_factory=list)
    source: str = "sleeper"

    def missing_parts(self) -> List[str]:
        missing: List[str] = []
        if not self.matchups:
            missing.append("matchups")
        if not self.league:
            missing.append("metadata")
        if not self.rosters:
            missing.append("rosters")
        if not self.users:
            missing.append("users")
        return missing


@dataclass(frozen=True)
class Roster:
    roster_id: str
    owner_id: Optional[str]
    team_name: Optional[str] = None


@dataclass(frozen=True)
class Matchup:
    week: int
    team1_roster_id: str
    team1_score: float
    team2_roster_id: Optional[str]
    team2_score: float = 0.0
    matchup_id: Optional[int] = None
    completed: bool = True

    @property
    def is_bye(self) -> bool:
        return self.team2_roster_id is None

    def involves(self, roster_id: str) -> bool:
        return roster_id in (self.team1_roster_id, self.team2_roster_id)

    def opponent_of(self, roster_id: str) -> Optional[str]:
        if roster_id == self.team1_roster_id:
            return self.team2_roster_id
        if roster_id == self.team2_roster_id:
            return self.team1_roster_id
        raise KeyError(f"Roster {roster_id} is not part of this matchup")

    def scores_for(self, roster_id: str) -> Tuple[float, float]:
        """Return ``(own score, opponent score)`` from ``roster_id``'s side."""

        if roster_id == self.team1_roster_id:
            return self.team1_score, self.team2_score
        if roster_id == self.team2_roster_id:
            return self.team2_score, self.team1_score
        raise KeyError(f"Roster {roster_id} is not part of this matchup")


@dataclass(frozen=True)
class OpponentContext:
    opponent_score: float
    is_regular_season_match: bool
    has_opponent: bool
    opponent_roster_id: Optional[str] = None


@dataclass(frozen=True)
class WeeklyRecord:
    roster_id: str
    week: int
    points_for: float
    opponent_points_for: float
    has_opponent: bool
    is_regular_season: bool
    opponent_roster_id: Optional[str] = None
    synthesized: bool = False

    @property
    def result(self) -> Optional[str]:
        if not self.has_opponent:
            return None
        if self.points_for > self.opponent_points_for:
            return "W"
        if self.points_for < self.opponent_points_for:
            return "L"
        return "T"


def roster_sort_key(roster_id: str) -> Tuple[int, Any]:
    """Order roster ids numerically when they are numeric, lexically otherwise."""

    text = str(roster_id)
    if text.isdigit():
        return (0, int(text))
    return (1, text)


def _coerce_int(value: Any) -> Optional[int]:
    try:
        if value is None or value == "":
            return None
        if isinstance(value, float) and math.isnan(value):
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
    text = str(value).strip()
    return text or None


def _parse_week(value: Any, record: Mapping[str, Any]) -> int:
    try:
        week = float(str(value).strip())
    except (TypeError, ValueError):
        raise MalformedRecordError(f"unparsable week {value!r}", dict(record)) from None
    if not math.isfinite(week) or not week.is_integer() or week < 1:
        raise MalformedRecordError(f"unparsable week {value!r}", dict(record))
    return int(week)


def _parse_score(value: Any, record: Mapping[str, Any]) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        raise MalformedRecordError(f"non-numeric score {value!r}", dict(record)) from None
    if not math.isfinite(score) or score < 0:
        raise MalformedRecordError(f"invalid score {value!r}", dict(record))
    return score


def parse_matchup(record: Mapping[str, Any]) -> Matchup:
    """Parse one paired matchup row.

    Rows whose two sides are both blank or both zero are scheduled games that
    have not been played yet; they come back with ``completed=False``.
    """

    week = _parse_week(record.get("week"), record)
    team1 = _parse_id(record.get("team1_roster_id"))
    if team1 is None:
        raise MalformedRecordError("matchup row has no first roster", dict(record))
    team2 = _parse_id(record.get("team2_roster_id"))
    matchup_id = _coerce_int(record.get("matchup_id"))
    score1 = _parse_score(record.get("team1_score"), record)

    if team2 is None:
        if score1 is None:
            return Matchup(week, team1, 0.0, None, 0.0, matchup_id, completed=False)
        return Matchup(week, team1, score1, None, 0.0, matchup_id)

    if team1 == team2:
        raise MalformedRecordError(f"roster {team1} is paired with itself", dict(record))
    score2 = _parse_score(record.get("team2_score"), record)
    if score1 is None and score2 is None:
        return Matchup(week, team1, 0.0, team2, 0.0, matchup_id, completed=False)
    if score1 is None or score2 is None:
        raise MalformedRecordError("matchup row has a one-sided score", dict(record))
    if score1 == 0 and score2 == 0:
        return Matchup(week, team1, 0.0, team2, 0.0, matchup_id, completed=False)
    return Matchup(week, team1, score1, team2, score2, matchup_id)


def _team_names(users: Iterable[Mapping[str, Any]]) -> Dict[str, str]:
    names: Dict[str, str] = {}
    for user in users:
        user_id = _parse_id(user.get("user_id"))
        if user_id is None:
            continue
        metadata = user.get("metadata") or {}
        candidates = [metadata.get("team_name"), user.get("display_name"), user.get("username")]
        name = next((c for c in candidates if isinstance(c, str) and c.strip()), None)
        if name:
            names[user_id] = name.strip()
    return names


def _parse_rosters(
    rosters: Iterable[Mapping[str, Any]],
    users: Iterable[Mapping[str, Any]],
) -> Dict[str, Roster]:
    names = _team_names(users)
    parsed: Dict[str, Roster] = {}
    for entry in rosters:
        roster_id = _parse_id(entry.get("roster_id"))
        if roster_id is None:
            logger.warning("Skipping roster without roster_id: %r", entry)
            continue
        owner_id = _parse_id(entry.get("owner_id"))
        parsed[roster_id] = Roster(
            roster_id=roster_id,
            owner_id=owner_id,
            team_name=names.get(owner_id) if owner_id else None,
        )
    return parsed


def bracket_round_count(bracket: Iterable[Mapping[str, Any]]) -> Optional[int]:
    rounds = [_coerce_int(match.get("r")) for match in bracket]
    rounds = [r for r in rounds if r is not None]
    return max(rounds) if rounds else None


@dataclass
class NormalizedSeason:
    season: int
    rosters: Dict[str, Roster]
    playoff_start_week: int
    total_weeks: int
    matchups: List[Matchup]
    scheduled: List[Matchup]
    score_by_roster_and_week: Dict[str, Dict[int, float]]
    opponent_context_by_roster_and_week: Dict[str, Dict[int, OpponentContext]]
    weekly_scores_by_week: Dict[int, Dict[str, float]]
    dropped_records: int = 0

    @property
    def regular_season_weeks(self) -> int:
        return self.playoff_start_week - 1

    @property
    def roster_ids(self) -> List[str]:
        return sorted(self.rosters, key=roster_sort_key)

    def is_regular_season(self, week: int) -> bool:
        return week < self.playoff_start_week

    def owner_of(self, roster_id: str) -> Optional[str]:
        roster = self.rosters.get(roster_id)
        return roster.owner_id if roster else None

    def roster_for_owner(self, owner_id: str) -> Optional[str]:
        for roster in self.rosters.values():
            if roster.owner_id == owner_id:
                return roster.roster_id
        return None

    def is_recorded(self, roster_id: str, week: int) -> bool:
        return roster_id in self.weekly_scores_by_week.get(week, {})

    def weekly_records(self, roster_id: str) -> List[WeeklyRecord]:
        scores = self.score_by_roster_and_week[roster_id]
        contexts = self.opponent_context_by_roster_and_week[roster_id]
        records: List[WeeklyRecord] = []
        for week in range(1, self.total_weeks + 1):
            context = contexts[week]
            records.append(
                WeeklyRecord(
                    roster_id=roster_id,
                    week=week,
                    points_for=scores[week],
                    opponent_points_for=context.opponent_score,
                    has_opponent=context.has_opponent,
                    is_regular_season=context.is_regular_season_match,
                    opponent_roster_id=context.opponent_roster_id,
                    synthesized=not self.is_recorded(roster_id, week),
                )
            )
        return records

    def games(
        self,
        roster_id: Optional[str] = None,
        *,
        regular_season_only: bool = False,
        through_week: Optional[int] = None,
    ) -> List[Matchup]:
        """Completed head-to-head games in chronological order."""

        selected = []
        for matchup in self.matchups:
            if matchup.is_bye:
                continue
            if roster_id is not None and not matchup.involves(roster_id):
                continue
            if regular_season_only and not self.is_regular_season(matchup.week):
                continue
            if through_week is not None and matchup.week > through_week:
                continue
            selected.append(matchup)
        return sorted(selected, key=lambda m: (m.week, roster_sort_key(m.team1_roster_id)))

    def completed_weeks(self, *, regular_season_only: bool = False) -> List[int]:
        weeks = {m.week for m in self.games(regular_season_only=regular_season_only)}
        return sorted(weeks)

    def last_completed_week(self) -> int:
        weeks = self.completed_weeks()
        return weeks[-1] if weeks else 0

    def schedule_for_week(self, week: int) -> List[Matchup]:
        """Every head-to-head pairing of ``week``, played or not."""

        pairs = [m for m in self.matchups + self.scheduled if m.week == week and not m.is_bye]
        return sorted(pairs, key=lambda m: roster_sort_key(m.team1_roster_id))

    def through_week(self, week: int) -> "NormalizedSeason":
        """A copy of the season as it stood after ``week``; later results become unplayed."""

        kept = [m for m in self.matchups if m.week <= week]
        later = [
            Matchup(m.week, m.team1_roster_id, 0.0, m.team2_roster_id, 0.0, m.matchup_id, completed=False)
            for m in self.matchups
            if m.week > week
        ]
        score_by: Dict[str, Dict[int, float]] = {}
        context_by: Dict[str, Dict[int, OpponentContext]] = {}
        for roster_id in self.rosters:
            score_by[roster_id] = {}
            context_by[roster_id] = {}
            for current in range(1, self.total_weeks + 1):
                if current <= week:
                    score_by[roster_id][current] = self.score_by_roster_and_week[roster_id][current]
                    context_by[roster_id][current] = self.opponent_context_by_roster_and_week[roster_id][current]
                else:
                    score_by[roster_id][current] = 0.0
                    context_by[roster_id][current] = OpponentContext(0.0, self.is_regular_season(current), False)
        return NormalizedSeason(
            season=self.season,
            rosters=self.rosters,
            playoff_start_week=self.playoff_start_week,
            total_weeks=self.total_weeks,
            matchups=kept,
            scheduled=sorted(self.scheduled + later, key=lambda m: m.week),
            score_by_roster_and_week=score_by,
            opponent_context_by_roster_and_week=context_by,
            weekly_scores_by_week={w: dict(s) for w, s in self.weekly_scores_by_week.items() if w <= week},
            dropped_records=self.dropped_records,
        )

    def to_dataframe(self) -> pd.DataFrame:
        rows: List[Dict[str, Any]] = []
        for roster_id in self.roster_ids:
            owner_id = self.owner_of(roster_id)
            for record in self.weekly_records(roster_id):
                rows.append(
                    {
                        "Season": self.season,
                        "Week": record.week,
                        "RosterId": roster_id,
                        "OwnerId": owner_id,
                        "PointsFor": record.points_for,
                        "OpponentPointsFor": record.opponent_points_for,
                        "OpponentRosterId": record.opponent_roster_id,
                        "HasOpponent": record.has_opponent,
                        "IsRegularSeason": record.is_regular_season,
                        "Synthesized": record.synthesized,
                        "Result": record.result,
                    }
                )
        return pd.DataFrame(rows, columns=WEEKLY_COLUMNS)


def normalize_season(
    raw: RawSeason,
    *,
    playoff_week_start: Optional[int] = None,
    playoff_rounds: Optional[int] = None,
) -> NormalizedSeason:
    """Reduce a raw season bundle into per-roster, per-week lookups.

    Raises :class:`MissingDataError` when the bundle lacks matchups, metadata,
    rosters or users. Malformed matchup rows are logged and dropped.
    """

    missing = raw.missing_parts()
    if missing:
        raise MissingDataError(raw.season, missing)

    rosters = _parse_rosters(raw.rosters, raw.users)
    if not rosters:
        raise MissingDataError(raw.season, ["rosters"])

    league_settings = raw.league.get("settings") or {}
    start = (
        playoff_week_start
        or _coerce_int(league_settings.get("playoff_week_start"))
        or int(settings.get("default_playoff_week_start"))
    )
    rounds = (
        playoff_rounds
        or bracket_round_count(raw.winners_bracket)
        or int(settings.get("default_playoff_rounds"))
    )

    played: List[Matchup] = []
    scheduled: List[Matchup] = []
    dropped = 0
    for record in raw.matchups:
        try:
            matchup = parse_matchup(record)
        except MalformedRecordError as exc:
            dropped += 1
            logger.warning("Season %s: dropping matchup row (%s)", raw.season, exc)
            continue
        unknown = [
            rid
            for rid in (matchup.team1_roster_id, matchup.team2_roster_id)
            if rid is not None and rid not in rosters
        ]
        if unknown:
            dropped += 1
            logger.warning(
                "Season %s week %s: dropping matchup with unknown roster(s) %s",
                raw.season,
                matchup.week,
                ", ".join(unknown),
            )
            continue
        if matchup.completed:
            played.append(matchup)
        else:
            logger.debug("Season %s week %s: matchup not played yet", raw.season, matchup.week)
            scheduled.append(matchup)

    max_week = max((m.week for m in played + scheduled), default=0)
    total_weeks = max(start - 1 + rounds, max_week)

    score_by: Dict[str, Dict[int, float]] = {rid: {} for rid in rosters}
    context_by: Dict[str, Dict[int, OpponentContext]] = {rid: {} for rid in rosters}
    weekly_scores: Dict[int, Dict[str, float]] = {}
    kept: List[Matchup] = []

    for matchup in sorted(played, key=lambda m: m.week):
        week = matchup.week
        sides = [(matchup.team1_roster_id, matchup.team1_score, matchup.team2_roster_id, matchup.team2_score)]
        if not matchup.is_bye:
            sides.append((matchup.team2_roster_id, matchup.team2_score, matchup.team1_roster_id, matchup.team1_score))
        if any(week in score_by[rid] for rid, _, _, _ in sides):
            dropped += 1
            logger.warning(
                "Season %s week %s: roster already has a result, dropping duplicate matchup",
                raw.season,
                week,
            )
            continue
        regular = week < start
        for rid, score, opponent, opponent_score in sides:
            score_by[rid][week] = score
            context_by[rid][week] = OpponentContext(
                opponent_score=opponent_score if opponent is not None else 0.0,
                is_regular_season_match=regular,
                has_opponent=opponent is not None,
                opponent_roster_id=opponent,
            )
            weekly_scores.setdefault(week, {})[rid] = score
        kept.append(matchup)

    for rid in rosters:
        for week in range(1, total_weeks + 1):
            score_by[rid].setdefault(week, 0.0)
            context_by[rid].setdefault(week, OpponentContext(0.0, week < start, False))

    return NormalizedSeason(
        season=raw.season,
        rosters=rosters,
        playoff_start_week=start,
        total_weeks=total_weeks,
        matchups=kept,
        scheduled=scheduled,
        score_by_roster_and_week=score_by,
        opponent_context_by_roster_and_week=context_by,
        weekly_scores_by_week=weekly_scores,
        dropped_records=dropped,
    )


__all__ = [
    "RawSeason",
    "Roster",
    "Matchup",
    "OpponentContext",
    "WeeklyRecord",
    "NormalizedSeason",
    "parse_matchup",
    "normalize_season",
    "roster_sort_key",
    "bracket_round_count",
]
