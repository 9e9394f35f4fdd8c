from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.dependencies import get_context_manager, require_api_key
from api.models import MatchupQuoteRequest, MatchupQuoteResponse, WeekMarketsResponse
from api.utils import load_context, quote_to_model, season_or_404
from context import ContextManager
from league import build_week_markets, quote_matchup

router = APIRouter(prefix="/markets", tags=["markets"], dependencies=[Depends(require_api_key)])


@router.get("/{season}/{week}", response_model=WeekMarketsResponse, summary="Odds board for a week")
async def week_markets(
    season: int,
    week: int,
    vig: float | None = Query(None, ge=0.0, lt=0.5),
    manager: ContextManager = Depends(get_context_manager),
) -> WeekMarketsResponse:
    if week < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Week must be at least 1")
    ctx = load_context(manager)
    season_or_404(ctx.report, season)
    quotes = build_week_markets(ctx.report, ctx.model, season, week, vig=vig)
    return WeekMarketsResponse(
        season=season,
        week=week,
        markets=[quote_to_model(ctx.report, quote) for quote in quotes],
    )


@router.post("/matchup", response_model=MatchupQuoteResponse, summary="Price an arbitrary pairing")
async def matchup_quote(
    payload: MatchupQuoteRequest,
    manager: ContextManager = Depends(get_context_manager),
) -> MatchupQuoteResponse:
    if payload.roster_a == payload.roster_b:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A roster cannot play itself")
    ctx = load_context(manager)
    season_or_404(ctx.report, payload.season)
    try:
        quote, breakdown = quote_matchup(
            ctx.report,
            ctx.model,
            payload.season,
            payload.roster_a,
            payload.roster_b,
            week=payload.week,
            vig=payload.vig,
        )
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return MatchupQuoteResponse(quote=quote_to_model(ctx.report, quote), breakdown=breakdown)
