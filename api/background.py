"""In-memory job manager for precision-grade simulations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from threading import RLock, Thread
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)


@dataclass
class JobRecord:
    job_id: str
    job_type: str
    status: str
    created_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    result: Optional[Any] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class JobManager:
    """Run long Monte Carlo jobs on daemon threads and keep their state in memory.

    State is per process; a restart forgets every job.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._jobs: Dict[str, JobRecord] = {}

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _update(self, job_id: str, **fields: Any) -> None:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is not None:
                self._jobs[job_id] = replace(record, **fields)

    def _run(self, job_id: str, func: Callable[..., Any], args: tuple[Any, ...], kwargs: Dict[str, Any]) -> None:
        self._update(job_id, status="running", started_at=self._now())
        try:
            result = func(*args, **kwargs)
        except Exception as exc:  # surfaced through GET /jobs/{job_id}
            logger.warning("Job %s failed: %s", job_id, exc)
            self._update(job_id, status="failed", finished_at=self._now(), error=str(exc))
            return
        self._update(job_id, status="completed", finished_at=self._now(), result=result)
        logger.info("Job %s completed", job_id)

    def create_job(
        self,
        job_type: str,
        func: Callable[..., Any],
        *,
        args: tuple[Any, ...] = (),
        kwargs: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        job_id = uuid4().hex
        with self._lock:
            self._jobs[job_id] = JobRecord(
                job_id=job_id,
                job_type=job_type,
                status="pending",
                created_at=self._now(),
                metadata=dict(metadata or {}),
            )
        thread = Thread(
            target=self._run,
            args=(job_id, func, args, kwargs or {}),
            name=f"job-{job_id}",
            daemon=True,
        )
        thread.start()
        logger.info("Started %s job %s", job_type, job_id)
        return job_id

    def get(self, job_id: str) -> Optional[JobRecord]:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None:
                return None
            return replace(record, metadata=dict(record.metadata))

    def list(self, job_type: Optional[str] = None) -> List[JobRecord]:
        """Snapshot of known jobs, newest first."""

        with self._lock:
            records = [
                replace(record, metadata=dict(record.metadata))
                for record in self._jobs.values()
                if job_type is None or record.job_type == job_type
            ]
        return sorted(records, key=lambda record: record.created_at, reverse=True)


# Global singleton used throughout the API layer.
job_manager = JobManager()
