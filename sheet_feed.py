"""CSV feed for leagues kept in a spreadsheet instead of on Sleeper.

Each row is one game. Team names double as owner IDs, so a team that keeps its
name across seasons keeps its career line.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from records import RawSeason

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["Season", "Week", "Team1", "Team1Score", "Team2", "Team2Score"]
OPTIONAL_COLUMNS = ["Playoffs", "FinalSeedingGame"]
TRUTHY = {"1", "true", "yes", "y", "x", "playoffs"}


def _is_flagged(value: Any) -> bool:
    return str(value).strip().lower() in TRUTHY


def _as_int(value: Any) -> Optional[int]:
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def _as_float(value: Any) -> Optional[float]:
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _season_bundle(season: int, frame: pd.DataFrame) -> RawSeason:
    names = sorted(
        {str(n).strip() for n in pd.concat([frame["Team1"], frame["Team2"]]) if str(n).strip()}
    )
    roster_ids = {name: str(index) for index, name in enumerate(names, start=1)}

    flagged_weeks = [
        week
        for week, flag in zip(frame["Week"], frame["Playoffs"])
        if _is_flagged(flag) and _as_int(week) is not None
    ]
    playoff_start = min(_as_int(w) for w in flagged_weeks) if flagged_weeks else None

    matchups: List[Dict[str, Any]] = []
    winners: List[Dict[str, Any]] = []
    for index, row in frame.iterrows():
        team1 = str(row["Team1"]).strip()
        team2 = str(row["Team2"]).strip()
        matchups.append(
            {
                "week": row["Week"],
                "matchup_id": index,
                "team1_roster_id": roster_ids.get(team1),
                "team1_score": row["Team1Score"],
                "team2_roster_id": roster_ids.get(team2),
                "team2_score": row["Team2Score"] if team2 else None,
            }
        )

        placement = _as_int(row["FinalSeedingGame"])
        week = _as_int(row["Week"])
        if placement is None or week is None or not team1 or not team2:
            continue
        winner = loser = None
        score1, score2 = _as_float(row["Team1Score"]), _as_float(row["Team2Score"])
        if score1 is None or score2 is None or (score1 == 0 and score2 == 0):
            logger.debug("Final seeding game in season %s week %s has no scores yet", season, week)
        elif score1 != score2:
            winner, loser = (team1, team2) if score1 > score2 else (team2, team1)
        winners.append(
            {
                "r": week - (playoff_start or week) + 1,
                "m": len(winners) + 1,
                "t1": roster_ids[team1],
                "t2": roster_ids[team2],
                "w": roster_ids[winner] if winner else None,
                "l": roster_ids[loser] if loser else None,
                "p": placement,
            }
        )

    league: Dict[str, Any] = {"season": str(season), "name": "Spreadsheet league", "settings": {}}
    if playoff_start is not None:
        league["settings"]["playoff_week_start"] = playoff_start
    return RawSeason(
        season=season,
        league=league,
        rosters=[{"roster_id": rid, "owner_id": name} for name, rid in roster_ids.items()],
        users=[{"user_id": name, "display_name": name} for name in names],
        matchups=matchups,
        winners_bracket=winners,
        losers_bracket=[],
        source="sheet",
    )


def load_sheet_seasons(path: Union[str, Path]) -> List[RawSeason]:
    """Read the CSV at ``path`` into one :class:`RawSeason` per season."""

    frame = pd.read_csv(path, dtype=str, keep_default_na=False)
    frame.columns = [str(c).strip() for c in frame.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
    if missing:
        raise ValueError(f"Sheet feed {path} is missing columns: {', '.join(missing)}")
    for column in OPTIONAL_COLUMNS:
        if column not in frame.columns:
            frame[column] = ""

    seasons: List[RawSeason] = []
    for season_value, group in frame.groupby("Season", sort=False):
        season = _as_int(season_value)
        if season is None:
            logger.warning("Skipping %d sheet row(s) with unreadable season %r", len(group), season_value)
            continue
        seasons.append(_season_bundle(season, group.reset_index(drop=True)))
    seasons.sort(key=lambda s: s.season)
    logger.info("Loaded %d season(s) from sheet feed %s", len(seasons), path)
    return seasons
