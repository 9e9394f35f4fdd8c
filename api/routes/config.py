from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import require_api_key
from api.models import ConfigResponse, ConfigUpdateRequest
from config import SETTINGS_HELP, settings

router = APIRouter(prefix="/config", tags=["config"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=ConfigResponse, summary="List current engine knobs")
async def get_config() -> ConfigResponse:
    return ConfigResponse(knobs=settings.snapshot())


@router.patch("", response_model=ConfigResponse, summary="Update one or more engine knobs")
async def patch_config(payload: ConfigUpdateRequest) -> ConfigResponse:
    if not payload.updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No updates provided")
    snapshot = settings.snapshot()
    unknown = [name for name in payload.updates if name not in snapshot]
    if unknown:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown knob '{unknown[0]}'")
    try:
        for name, value in payload.updates.items():
            settings.set(name, value)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ConfigResponse(knobs=settings.snapshot())


@router.get("/help", summary="Describe available configuration knobs")
async def config_help() -> dict[str, str]:
    return SETTINGS_HELP.copy()
