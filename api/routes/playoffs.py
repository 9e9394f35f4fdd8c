from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from api.background import JobManager
from api.dependencies import get_context_manager, get_job_manager, require_api_key
from api.models import JobCreatedResponse, JobStatus, PlayoffJobRequest, PlayoffOddsResponse
from api.utils import load_context, season_or_404
from config import settings
from context import ContextManager
from league import playoff_outlook

router = APIRouter(prefix="/playoffs", tags=["playoffs"], dependencies=[Depends(require_api_key)])


@router.get("/odds", response_model=PlayoffOddsResponse, summary="Playoff and championship odds")
async def playoff_odds(
    season: Optional[int] = Query(None, description="Season to simulate; defaults to the latest loaded."),
    simulations: Optional[int] = Query(None, ge=1, le=5000, description="Preview-speed Monte Carlo trials."),
    seed: Optional[int] = Query(None, description="Seed for a reproducible run."),
    manager: ContextManager = Depends(get_context_manager),
) -> PlayoffOddsResponse:
    report = load_context(manager).report
    target = season_or_404(report, season).season
    outlook = playoff_outlook(
        report,
        target,
        num_simulations=simulations if simulations is not None else int(settings.get("sim_trials_preview")),
        seed=seed,
    )
    return PlayoffOddsResponse(**outlook)


@router.post(
    "/odds/jobs",
    response_model=JobCreatedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Run a precision-grade playoff simulation in the background",
)
async def playoff_odds_job(
    payload: PlayoffJobRequest,
    manager: ContextManager = Depends(get_context_manager),
    job_manager: JobManager = Depends(get_job_manager),
) -> JobCreatedResponse:
    report = load_context(manager).report
    target = season_or_404(report, payload.season).season
    trials = payload.simulations or int(settings.get("sim_trials_precision"))
    job_id = job_manager.create_job(
        "playoff_odds",
        playoff_outlook,
        args=(report, target),
        kwargs={"num_simulations": trials, "seed": payload.seed},
        metadata={"season": target, "simulations": trials, "seed": payload.seed},
    )
    return JobCreatedResponse(job_id=job_id, status=JobStatus.pending)
