"""FastAPI dependencies for the league-odds service.

Routes reach the loaded league snapshot and the simulation job queue only
through these providers, so tests can swap either with
``app.dependency_overrides``.
"""

from __future__ import annotations

import os
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from api.background import JobManager, job_manager
from context import ContextManager, context_manager

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


class APISettings:
    """Environment-driven settings for serving the API.

    ``LEAGUE_API_KEY`` turns on header auth for every router except health;
    ``LEAGUE_API_HOST`` and ``LEAGUE_API_PORT`` are read by the
    ``league-odds-api`` script.
    """

    def __init__(self) -> None:
        self.api_key = os.environ.get("LEAGUE_API_KEY") or None
        self.host = os.environ.get("LEAGUE_API_HOST") or DEFAULT_HOST
        try:
            self.port = int(os.environ.get("LEAGUE_API_PORT") or DEFAULT_PORT)
        except ValueError:
            self.port = DEFAULT_PORT


def get_api_settings() -> APISettings:
    return APISettings()


async def require_api_key(
    settings: Annotated[APISettings, Depends(get_api_settings)],
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> None:
    """Reject requests without the configured ``X-API-Key``; open when no key is set."""

    if settings.api_key is None:
        return
    if x_api_key != settings.api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


def get_context_manager() -> ContextManager:
    """The process-wide league snapshot (Sleeper history or spreadsheet feed)."""

    return context_manager


def get_job_manager() -> JobManager:
    return job_manager
