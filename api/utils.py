from __future__ import annotations

import logging
from typing import Optional

import httpx
from fastapi import HTTPException, status

from api.models import MarketQuoteModel
from context import ContextManager, LeagueDataContext
from league import LeagueReport, SeasonReport
from markets import MarketQuote

logger = logging.getLogger(__name__)


def load_context(manager: ContextManager) -> LeagueDataContext:
    """Fetch the active snapshot, mapping upstream failures onto HTTP errors."""

    try:
        return manager.get()
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except (RuntimeError, FileNotFoundError, ValueError, httpx.HTTPError) as exc:
        logger.warning("League data unavailable: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


def season_or_404(report: LeagueReport, season: Optional[int]) -> SeasonReport:
    target = season if season is not None else report.latest_season()
    if target is None or target not in report.seasons:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Season {season} is not loaded")
    return report.seasons[target]


def quote_to_model(report: LeagueReport, quote: MarketQuote) -> MarketQuoteModel:
    payload = quote.to_dict()
    season = quote.season if quote.season is not None else report.latest_season()
    payload["team_a"] = report.roster_name(season, quote.roster_a)
    payload["team_b"] = report.roster_name(season, quote.roster_b)
    return MarketQuoteModel(**payload)
