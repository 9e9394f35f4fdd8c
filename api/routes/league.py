from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import get_context_manager, require_api_key
from api.models import LeagueMetadataResponse, LeagueReloadRequest
from api.utils import load_context
from context import ContextManager

router = APIRouter(prefix="/league", tags=["league"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=LeagueMetadataResponse, summary="Get league metadata")
async def get_league_metadata(
    manager: ContextManager = Depends(get_context_manager),
) -> LeagueMetadataResponse:
    load_context(manager)
    return LeagueMetadataResponse(**manager.metadata())


@router.post("/reload", response_model=LeagueMetadataResponse, summary="Reload league data from its source")
async def reload_league(
    payload: LeagueReloadRequest,
    manager: ContextManager = Depends(get_context_manager),
) -> LeagueMetadataResponse:
    sheet_path = None
    if payload.sheet_path:
        path = Path(payload.sheet_path)
        if not path.exists() or not path.is_file():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Sheet path not found")
        sheet_path = str(path)

    try:
        manager.reload(sheet_path=sheet_path)
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return LeagueMetadataResponse(**manager.metadata())
