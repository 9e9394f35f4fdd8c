"""FastAPI application for league metrics, odds and playoff projections.

Run locally with ``uvicorn api.main:app --reload`` or the ``league-odds-api``
script, which honours ``LEAGUE_API_HOST`` and ``LEAGUE_API_PORT``.
"""

from __future__ import annotations

import logging
import os

import uvicorn
from fastapi import FastAPI

from api.dependencies import APISettings
from api.routes import config, health, jobs, league, markets, metrics, playoffs

logging.basicConfig(
    level=getattr(logging, os.getenv("LEAGUE_LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(levelname)s - %(message)s",
)

app = FastAPI(title="League Metrics and Odds API", version="0.1.0")
app.include_router(health.router)
app.include_router(config.router)
app.include_router(league.router)
app.include_router(metrics.router)
app.include_router(markets.router)
app.include_router(playoffs.router)
app.include_router(jobs.router)


@app.get("/", summary="Root endpoint", tags=["health"])
async def root() -> dict[str, str]:
    return {"message": "League Metrics and Odds API"}


def run() -> None:
    api_settings = APISettings()
    uvicorn.run("api.main:app", host=api_settings.host, port=api_settings.port)


if __name__ == "__main__":
    run()
