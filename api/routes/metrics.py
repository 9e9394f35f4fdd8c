from __future__ import annotations

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_context_manager, require_api_key
from api.models import (
    CareerResponse,
    CareerRow,
    MilestoneResponse,
    MilestoneRow,
    PowerRow,
    SeasonMetricRow,
    SeasonMetricsResponse,
    StreakResponse,
    StreakRow,
    VersusResponse,
    VersusRow,
)
from api.utils import load_context, season_or_404
from context import ContextManager
from records import roster_sort_key

router = APIRouter(prefix="/metrics", tags=["metrics"], dependencies=[Depends(require_api_key)])


@router.get("/seasons/{season}", response_model=SeasonMetricsResponse, summary="Seasonal metrics and power board")
async def season_metrics(
    season: int,
    manager: ContextManager = Depends(get_context_manager),
) -> SeasonMetricsResponse:
    report = load_context(manager).report
    season_report = season_or_404(report, season)
    rows = [
        SeasonMetricRow(**metric.to_dict(), team_name=report.roster_name(season, roster_id))
        for roster_id, metric in sorted(season_report.metrics.items(), key=lambda item: roster_sort_key(item[0]))
    ]
    power = [
        PowerRow(**rating.to_dict(), team_name=report.roster_name(season, roster_id))
        for roster_id, rating in sorted(season_report.power.items(), key=lambda item: -item[1].power_score)
    ]
    return SeasonMetricsResponse(
        season=season,
        status=season_report.status.value,
        playoff_ranks=season_report.playoff_ranks,
        rows=rows,
        power=power,
    )


@router.get("/career", response_model=CareerResponse, summary="Career aggregates per owner")
async def career_metrics(
    sort: str = Query("adjusted_dpr", description="Career field to sort by, descending."),
    manager: ContextManager = Depends(get_context_manager),
) -> CareerResponse:
    report = load_context(manager).report
    items = [CareerRow(**row.to_dict(), team_name=report.team_name(owner)) for owner, row in report.career.items()]
    if sort not in CareerRow.model_fields:
        sort = "adjusted_dpr"
    items.sort(key=lambda row: (getattr(row, sort), row.owner_id), reverse=True)
    return CareerResponse(items=items, total=len(items))


@router.get("/milestones", response_model=MilestoneResponse, summary="Milestones reached across league history")
async def milestones(
    milestone: Optional[str] = Query(None, description="Restrict to one milestone, e.g. 'wins'."),
    owner_id: Optional[str] = Query(None, alias="ownerId"),
    manager: ContextManager = Depends(get_context_manager),
) -> MilestoneResponse:
    report = load_context(manager).report
    items = [
        MilestoneRow(**asdict(entry), team_name=report.team_name(entry.owner_id))
        for entry in report.milestones
        if (milestone is None or entry.milestone == milestone) and (owner_id is None or entry.owner_id == owner_id)
    ]
    return MilestoneResponse(items=items, total=len(items))


@router.get("/versus", response_model=VersusResponse, summary="Lifetime head-to-head records between owners")
async def versus_records(
    owner_id: Optional[str] = Query(None, alias="ownerId"),
    opponent_id: Optional[str] = Query(None, alias="opponentId"),
    manager: ContextManager = Depends(get_context_manager),
) -> VersusResponse:
    report = load_context(manager).report
    items = [
        VersusRow(
            **record.to_dict(),
            team_name=report.team_name(record.owner_id),
            opponent_name=report.team_name(record.opponent_id),
        )
        for owner, row in report.versus.items()
        if owner_id is None or owner == owner_id
        for opponent, record in row.items()
        if opponent_id is None or opponent == opponent_id
    ]
    return VersusResponse(items=items, total=len(items))


@router.get("/streaks", response_model=StreakResponse, summary="Longest win and loss streaks per owner")
async def streaks(manager: ContextManager = Depends(get_context_manager)) -> StreakResponse:
    report = load_context(manager).report
    items = [StreakRow(**summary.to_dict(), team_name=report.team_name(owner)) for owner, summary in report.streaks.items()]
    items.sort(key=lambda row: (-row.longest_win_streak, row.owner_id))
    return StreakResponse(items=items, total=len(items))
