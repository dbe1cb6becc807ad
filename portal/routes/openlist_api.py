"""OpenList admin routes — view and save backend settings."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from portal.dependencies import get_auth_service, get_openlist_service, get_settings
from portal.errors import PortalError
from portal.models.config import Settings
from portal.services.auth_service import AuthService
from portal.services.openlist_service import OpenListService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/openlist", tags=["openlist"])


@router.get("")
async def get_openlist_config(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
    openlist: OpenListService = Depends(get_openlist_service),
):
    try:
        auth.require_admin(request)
    except PortalError as e:
        return JSONResponse(status_code=e.status_code, content={"error": e.message})
    return {"config": openlist.get_masked_config()}


@router.post("")
async def save_openlist_config(
    request: Request,
    settings: Settings = Depends(get_settings),
    auth: AuthService = Depends(get_auth_service),
    openlist: OpenListService = Depends(get_openlist_service),
):
    if settings.storage_type == "localstorage":
        return JSONResponse(status_code=400, content={"error": "Admin config is not supported with local storage"})

    try:
        data = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})
    if not isinstance(data, dict):
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})

    try:
        auth.require_admin(request)
        if data.get("action") != "save":
            return JSONResponse(status_code=400, content={"error": "Unknown action"})
        await openlist.save(data)
    except PortalError as e:
        if e.status_code >= 500:
            logger.error(f"OpenList config save failed: {e.message}")
            return JSONResponse(status_code=e.status_code, content={"error": "Operation failed", "details": e.message})
        return JSONResponse(status_code=e.status_code, content={"error": e.message})
    except Exception as e:
        logger.error(f"OpenList config save failed: {e}")
        return JSONResponse(status_code=500, content={"error": "Operation failed", "details": str(e)})

    return {"success": True, "message": "Saved"}
