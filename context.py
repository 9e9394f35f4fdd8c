"""Shared league snapshot and reload management."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from config import settings
from league import LeagueReport, build_league_report
from records import RawSeason
from sheet_feed import load_sheet_seasons
from sleeper_client import default_client
from win_probability import WinProbabilityModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeagueSource:
    """Raw seasons plus where they came from and the league's current period."""

    seasons: List[RawSeason]
    name: str
    current_season: Optional[int] = None
    current_week: Optional[int] = None


def _resolve_sheet_path(value: Optional[str]) -> Optional[Path]:
    if not value:
        return None
    path = Path(value)
    if not path.is_absolute():
        path = Path(__file__).resolve().parent / value
    return path


def load_league_source(sheet_path: Optional[Path] = None) -> LeagueSource:
    """Load from the spreadsheet feed when one is configured, otherwise from Sleeper."""

    if sheet_path is not None:
        seasons = load_sheet_seasons(sheet_path)
        latest = max((s.season for s in seasons), default=None)
        return LeagueSource(seasons=seasons, name=str(sheet_path), current_season=latest)

    client = default_client()
    if client is None:
        raise RuntimeError("No league source configured; set SLEEPER_LEAGUE_ID or LEAGUE_SHEET_CSV.")
    seasons = client.fetch_league_history()
    state = client.fetch_current_state()
    return LeagueSource(
        seasons=seasons,
        name="sleeper",
        current_season=state.get("season"),
        current_week=state.get("week"),
    )


@dataclass(frozen=True)
class LeagueDataContext:
    """Immutable snapshot of everything the API serves from."""

    report: LeagueReport
    source: str
    created_at: datetime
    settings_snapshot: Dict[str, Any]
    model: WinProbabilityModel = field(default_factory=WinProbabilityModel)


def build_context(source: LeagueSource) -> LeagueDataContext:
    report = build_league_report(
        source.seasons,
        current_season=source.current_season,
        current_week=source.current_week,
        fallback_order=settings.get("bracket_fallback_order"),
    )
    return LeagueDataContext(
        report=report,
        source=source.name,
        created_at=datetime.now(timezone.utc),
        settings_snapshot=settings.snapshot(),
        model=WinProbabilityModel(),
    )


class ContextManager:
    """Manage the active :class:`LeagueDataContext` with atomic reloads.

    ``loader`` produces a :class:`LeagueSource`; by default it reads the CSV
    named by ``LEAGUE_SHEET_CSV`` or walks the Sleeper league history.
    """

    def __init__(
        self,
        *,
        sheet_path: Path | str | None = None,
        loader: Optional[Callable[[], LeagueSource]] = None,
    ) -> None:
        self._lock = RLock()
        self._sheet_path = Path(sheet_path) if sheet_path else _resolve_sheet_path(os.getenv("LEAGUE_SHEET_CSV"))
        self._loader = loader
        self._context: Optional[LeagueDataContext] = None

    def _load(self) -> LeagueDataContext:
        source = self._loader() if self._loader is not None else load_league_source(self._sheet_path)
        context = build_context(source)
        logger.info(
            "Loaded league context from %s (%d season(s))",
            context.source,
            len(context.report.seasons),
        )
        return context

    @property
    def is_loaded(self) -> bool:
        with self._lock:
            return self._context is not None

    def get(self) -> LeagueDataContext:
        """Return the current context, loading it lazily if needed."""

        with self._lock:
            if self._context is None:
                self._context = self._load()
            return self._context

    def reload(
        self,
        *,
        sheet_path: Path | str | None = None,
        loader: Optional[Callable[[], LeagueSource]] = None,
    ) -> LeagueDataContext:
        """Reload inputs and swap in a brand-new context atomically."""

        with self._lock:
            if sheet_path is not None:
                self._sheet_path = Path(sheet_path)
                self._loader = loader
            elif loader is not None:
                self._loader = loader
            previous = self._context
            fresh = self._load()
            if previous is not None:
                previous.model.clear()
            self._context = fresh
            return self._context

    def metadata(self) -> Dict[str, Any]:
        """Return lightweight info about the active context."""

        ctx = self.get()
        report = ctx.report
        return {
            "last_reload": ctx.created_at.isoformat(),
            "source": ctx.source,
            "seasons": sorted(report.seasons),
            "skipped_seasons": {str(season): parts for season, parts in report.skipped.items()},
            "current_season": report.current_season,
            "current_week": report.current_week,
            "owner_count": len(report.career),
            "settings": ctx.settings_snapshot,
        }


# Global singleton used by the API layer.
context_manager = ContextManager()
