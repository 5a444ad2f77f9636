"""Health, status and QR endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse

from sessionrelay.web.auth import require_token
from sessionrelay.web.errors import ApiError

router = APIRouter(tags=["status"])
health_router = APIRouter(tags=["health"])


@health_router.get("/health")
async def health(request: Request):
    stats = request.app.state.manager.get_stats()
    return {"status": "ok", **stats.to_dict()}


@health_router.get("/qr.png", include_in_schema=False)
async def qr_image(request: Request):
    """Latest scannable code. Only the published image is ever served."""
    path = request.app.state.config.qr_path
    if not path.is_file():
        raise ApiError(404, "No QR code available")
    return FileResponse(path, media_type="image/png", headers={"Cache-Control": "no-store"})


@router.get("/status", dependencies=[Depends(require_token)])
async def status(request: Request):
    stats = request.app.state.manager.get_stats()
    return {
        **stats.to_dict(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/reconnect", dependencies=[Depends(require_token)])
async def reconnect(request: Request):
    request.app.state.manager.force_reconnect()
    return {"success": True, "message": "Reconnect started"}
