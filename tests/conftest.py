from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import pytest
from fastapi.testclient import TestClient

from records import NormalizedSeason, RawSeason, normalize_season

Game = Tuple[int, str, Optional[float], Optional[str], Optional[float]]

DEFAULT_TEAMS: Dict[str, Tuple[str, str]] = {
    "1": ("u1", "Alpha"),
    "2": ("u2", "Bravo"),
    "3": ("u3", "Charlie"),
    "4": ("u4", "Delta"),
}

# Three regular-season weeks, semifinals in week 4, final and third-place game in week 5.
GAMES_2022: List[Game] = [
    (1, "1", 120.0, "2", 100.0),
    (1, "3", 90.0, "4", 80.0),
    (2, "1", 110.0, "3", 115.0),
    (2, "2", 130.0, "4", 70.0),
    (3, "1", 100.0, "4", 100.0),
    (3, "2", 95.0, "3", 105.0),
    (4, "1", 130.0, "2", 90.0),
    (4, "3", 100.0, "4", 95.0),
    (5, "1", 140.0, "3", 120.0),
    (5, "2", 110.0, "4", 100.0),
]

WINNERS_2022 = [
    {"r": 1, "m": 1, "t1": 1, "t2": 2, "w": 1, "l": 2},
    {"r": 1, "m": 2, "t1": 3, "t2": 4, "w": 3, "l": 4},
    {"r": 2, "m": 3, "t1": 1, "t2": 3, "w": 1, "l": 3, "t1_from": {"w": 1}, "t2_from": {"w": 2}},
    {"r": 2, "m": 4, "t1": 2, "t2": 4, "w": 2, "l": 4, "t1_from": {"l": 1}, "t2_from": {"l": 2}},
]

# Five regular-season weeks; three played, two still on the schedule.
GAMES_2023: List[Game] = [
    (1, "1", 110.0, "4", 90.0),
    (1, "2", 100.0, "3", 105.0),
    (2, "1", 95.0, "2", 120.0),
    (2, "3", 130.0, "4", 85.0),
    (3, "1", 125.0, "3", 100.0),
    (3, "2", 88.0, "4", 92.0),
    (4, "1", None, "4", None),
    (4, "2", None, "3", None),
    (5, "1", 0.0, "2", 0.0),
    (5, "3", 0.0, "4", 0.0),
]


def matchup_rows(games: Iterable[Game]) -> List[dict]:
    return [
        {
            "week": week,
            "matchup_id": index,
            "team1_roster_id": team1,
            "team1_score": score1,
            "team2_roster_id": team2,
            "team2_score": score2,
        }
        for index, (week, team1, score1, team2, score2) in enumerate(games, start=1)
    ]


def make_raw_season(
    season: int,
    games: Sequence[Game],
    *,
    teams: Optional[Dict[str, Tuple[str, str]]] = None,
    playoff_week_start: int = 4,
    winners: Sequence[dict] = (),
    losers: Sequence[dict] = (),
) -> RawSeason:
    teams = teams or DEFAULT_TEAMS
    return RawSeason(
        season=season,
        league={"season": str(season), "name": "Test League", "settings": {"playoff_week_start": playoff_week_start}},
        rosters=[{"roster_id": int(rid), "owner_id": owner} for rid, (owner, _) in teams.items()],
        users=[{"user_id": owner, "display_name": name} for owner, name in teams.values()],
        matchups=matchup_rows(games),
        winners_bracket=list(winners),
        losers_bracket=list(losers),
    )


def make_season(games: Sequence[Game], **kwargs) -> NormalizedSeason:
    return normalize_season(make_raw_season(kwargs.pop("season", 2022), games, **kwargs))


@pytest.fixture
def raw_2022() -> RawSeason:
    return make_raw_season(2022, GAMES_2022, winners=WINNERS_2022)


@pytest.fixture
def raw_2023() -> RawSeason:
    return make_raw_season(2023, GAMES_2023, playoff_week_start=6)


@pytest.fixture
def season_2022(raw_2022: RawSeason) -> NormalizedSeason:
    return normalize_season(raw_2022)


@pytest.fixture
def season_2023(raw_2023: RawSeason) -> NormalizedSeason:
    return normalize_season(raw_2023)


@pytest.fixture(scope="module")
def client() -> Iterator[TestClient]:
    from api.dependencies import get_context_manager
    from api.main import app
    from context import ContextManager, LeagueSource

    def loader() -> LeagueSource:
        return LeagueSource(
            seasons=[
                make_raw_season(2022, GAMES_2022, winners=WINNERS_2022),
                make_raw_season(2023, GAMES_2023, playoff_week_start=6),
            ],
            name="synthetic",
            current_season=2023,
            current_week=4,
        )

    manager = ContextManager(loader=loader)
    app.dependency_overrides[get_context_manager] = lambda: manager
    yield TestClient(app)
    app.dependency_overrides.clear()
