"""Status of background playoff-odds simulations started via ``POST /playoffs/odds/jobs``."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.background import JobManager, JobRecord
from api.dependencies import get_job_manager, require_api_key
from api.models import JobInfo, JobListResponse, JobStatus

router = APIRouter(prefix="/jobs", tags=["jobs"], dependencies=[Depends(require_api_key)])


def _job_info(record: JobRecord, *, include_result: bool = True) -> JobInfo:
    try:
        status_value = JobStatus(record.status)
    except ValueError:
        status_value = JobStatus.pending
    # Simulation payloads are dicts; anything else stays internal.
    result = record.result if include_result and isinstance(record.result, dict) else None
    return JobInfo(
        job_id=record.job_id,
        job_type=record.job_type,
        status=status_value,
        created_at=record.created_at,
        started_at=record.started_at,
        finished_at=record.finished_at,
        result=result,
        error=record.error,
        metadata=record.metadata,
    )


@router.get("", response_model=JobListResponse, summary="List simulation jobs, newest first")
async def list_jobs(
    job_type: Optional[str] = Query(None, alias="jobType", description="For example 'playoff_odds'."),
    job_manager: JobManager = Depends(get_job_manager),
) -> JobListResponse:
    items = [_job_info(record, include_result=False) for record in job_manager.list(job_type)]
    return JobListResponse(items=items, total=len(items))


@router.get("/{job_id}", response_model=JobInfo, summary="Fetch one simulation job with its result")
async def get_job(job_id: str, job_manager: JobManager = Depends(get_job_manager)) -> JobInfo:
    record = job_manager.get(job_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown job '{job_id}'")
    return _job_info(record)
