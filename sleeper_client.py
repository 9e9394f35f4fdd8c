from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import httpx

from records import RawSeason, bracket_round_count


def _load_local_env() -> None:
    """Populate os.environ with values from .env files if present."""

    env_dir = Path(__file__).resolve().parent
    for filename in (".env.local", ".env"):
        path = env_dir / filename
        if not path.exists():
            continue
        try:
            for raw_line in path.read_text().splitlines():
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip().strip('"').strip("'")
                if key and key not in os.environ:
                    os.environ[key] = value
        except OSError:
            continue


_load_local_env()

SLEEPER_API_BASE = "https://api.sleeper.app/v1"
DEFAULT_MAX_SEASONS = 10
DEFAULT_PLAYOFF_WEEK_START = 15
DEFAULT_PLAYOFF_ROUNDS = 3

logger = logging.getLogger(__name__)


def _coerce_int(value: Any) -> Optional[int]:
    try:
        if value is None or value == "":
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class SleeperConfig:
    league_id: Optional[str]
    max_seasons: int = DEFAULT_MAX_SEASONS
    base_url: str = SLEEPER_API_BASE

    @classmethod
    def from_environment(cls) -> "SleeperConfig":
        league_id = os.getenv("SLEEPER_LEAGUE_ID") or None
        max_raw = os.getenv("SLEEPER_MAX_SEASONS")
        max_seasons = DEFAULT_MAX_SEASONS
        if max_raw:
            parsed = _coerce_int(max_raw)
            if parsed is None or parsed < 1:
                logger.warning("Invalid SLEEPER_MAX_SEASONS '%s'; defaulting to %s", max_raw, DEFAULT_MAX_SEASONS)
            else:
                max_seasons = parsed
        base_url = os.getenv("SLEEPER_API_BASE", SLEEPER_API_BASE)
        return cls(league_id=league_id, max_seasons=max_seasons, base_url=base_url)


def pair_matchup_entries(week: int, entries: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Pair Sleeper's per-roster weekly entries into two-sided matchup rows.

    Entries sharing a ``matchup_id`` become one row. An entry without a
    ``matchup_id`` or without a partner becomes a bye row (second side empty).
    """

    groups: Dict[int, List[Dict[str, Any]]] = {}
    rows: List[Dict[str, Any]] = []

    def _points(entry: Dict[str, Any]) -> Any:
        custom = entry.get("custom_points")
        return custom if custom is not None else entry.get("points")

    for entry in entries:
        matchup_id = _coerce_int(entry.get("matchup_id"))
        if matchup_id is None:
            rows.append(
                {
                    "week": week,
                    "matchup_id": None,
                    "team1_roster_id": entry.get("roster_id"),
                    "team1_score": _points(entry),
                    "team2_roster_id": None,
                    "team2_score": None,
                }
            )
            continue
        groups.setdefault(matchup_id, []).append(entry)

    for matchup_id in sorted(groups):
        group = groups[matchup_id]
        if len(group) > 2:
            logger.warning("Week %s matchup %s has %d entries; pairing the first two", week, matchup_id, len(group))
        first = group[0]
        second = group[1] if len(group) > 1 else None
        rows.append(
            {
                "week": week,
                "matchup_id": matchup_id,
                "team1_roster_id": first.get("roster_id"),
                "team1_score": _points(first),
                "team2_roster_id": second.get("roster_id") if second else None,
                "team2_score": _points(second) if second else None,
            }
        )
    return rows


class SleeperClient:
    """Minimal Sleeper read API client."""

    def __init__(self, config: SleeperConfig, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.config = config
        self._transport = transport

    # ------------------------------------------------------------------ #
    # Low-level HTTP helpers
    # ------------------------------------------------------------------ #
    def _request(self, path: str) -> Any:
        url = f"{self.config.base_url}{path}"
        headers = {"User-Agent": "league-odds-engine/sleeper-client"}
        with httpx.Client(timeout=30, transport=self._transport) as client:
            response = client.get(url, headers=headers)

        if response.status_code == 401:
            raise PermissionError(f"Unauthorized request to {path}.")
        if response.status_code == 404:
            raise FileNotFoundError(f"Sleeper resource not found: {path}")
        response.raise_for_status()
        return response.json()

    def _request_list(self, path: str) -> List[Dict[str, Any]]:
        try:
            payload = self._request(path)
        except FileNotFoundError:
            logger.warning("Sleeper returned 404 for %s; treating as empty", path)
            return []
        return payload if isinstance(payload, list) else []

    # ------------------------------------------------------------------ #
    # Endpoints
    # ------------------------------------------------------------------ #
    def fetch_league(self, league_id: str) -> Dict[str, Any]:
        payload = self._request(f"/league/{league_id}")
        return payload if isinstance(payload, dict) else {}

    def fetch_users(self, league_id: str) -> List[Dict[str, Any]]:
        return self._request_list(f"/league/{league_id}/users")

    def fetch_rosters(self, league_id: str) -> List[Dict[str, Any]]:
        return self._request_list(f"/league/{league_id}/rosters")

    def fetch_matchups(self, league_id: str, week: int) -> List[Dict[str, Any]]:
        return self._request_list(f"/league/{league_id}/matchups/{week}")

    def fetch_winners_bracket(self, league_id: str) -> List[Dict[str, Any]]:
        return self._request_list(f"/league/{league_id}/winners_bracket")

    def fetch_losers_bracket(self, league_id: str) -> List[Dict[str, Any]]:
        return self._request_list(f"/league/{league_id}/losers_bracket")

    def fetch_state(self) -> Dict[str, Any]:
        payload = self._request("/state/nfl")
        return payload if isinstance(payload, dict) else {}

    # ------------------------------------------------------------------ #
    # League helpers
    # ------------------------------------------------------------------ #
    def fetch_season(self, league_id: str) -> RawSeason:
        """Fetch one season's bundle; missing parts come back empty."""

        league = self.fetch_league(league_id)
        season = _coerce_int(league.get("season")) or 0
        users = self.fetch_users(league_id)
        rosters = self.fetch_rosters(league_id)
        winners = self.fetch_winners_bracket(league_id)
        losers = self.fetch_losers_bracket(league_id)

        league_settings = league.get("settings") or {}
        playoff_start = _coerce_int(league_settings.get("playoff_week_start")) or DEFAULT_PLAYOFF_WEEK_START
        rounds = bracket_round_count(winners) or DEFAULT_PLAYOFF_ROUNDS
        matchups: List[Dict[str, Any]] = []
        if rosters:
            for week in range(1, playoff_start + rounds):
                matchups.extend(pair_matchup_entries(week, self.fetch_matchups(league_id, week)))
        logger.info("Fetched Sleeper season %s (%d rosters, %d matchup rows)", season, len(rosters), len(matchups))
        return RawSeason(
            season=season,
            league=league,
            rosters=rosters,
            users=users,
            matchups=matchups,
            winners_bracket=winners,
            losers_bracket=losers,
            source="sleeper",
        )

    def fetch_league_history(self, league_id: Optional[str] = None) -> List[RawSeason]:
        """Walk ``previous_league_id`` links back from ``league_id``."""

        current = league_id or self.config.league_id
        if not current:
            raise RuntimeError("Sleeper league id not configured (SLEEPER_LEAGUE_ID).")
        seasons: List[RawSeason] = []
        seen = set()
        while current and current not in seen and len(seasons) < self.config.max_seasons:
            seen.add(current)
            try:
                raw = self.fetch_season(current)
            except FileNotFoundError:
                if not seasons:
                    raise
                logger.warning("Previous league %s not found; stopping history walk", current)
                break
            seasons.append(raw)
            previous = raw.league.get("previous_league_id")
            current = str(previous) if previous not in (None, "", "0", 0) else None
        return sorted(seasons, key=lambda s: s.season)

    def fetch_current_state(self) -> Dict[str, Optional[int]]:
        state = self.fetch_state()
        week = _coerce_int(state.get("week"))
        if week is None:
            week = _coerce_int(state.get("display_week"))
        return {"season": _coerce_int(state.get("season")), "week": week}


def default_client() -> Optional[SleeperClient]:
    config = SleeperConfig.from_environment()
    if not config.league_id:
        return None
    return SleeperClient(config)
