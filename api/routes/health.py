from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from api.dependencies import get_context_manager
from context import ContextManager

router = APIRouter(tags=["health"])


@router.get("/healthz", summary="Liveness plus whether a league snapshot is loaded")
async def healthcheck(manager: ContextManager = Depends(get_context_manager)) -> dict[str, Any]:
    # Reports state only; never triggers a league load.
    return {"status": "ok", "service": "league-odds", "leagueLoaded": manager.is_loaded}
