"""
QR Table-Token Endpoints

    - POST   /api/qr/generate                          Issue a token for a table
    - GET    /api/qr/verify/{token}                    Diner access check
    - POST   /api/qr/refresh/{token}                   Extend and reactivate
    - GET    /api/qr/restaurant/{restaurant_id}/tables Active tokens by table
    - DELETE /api/qr/deactivate/{token}                Revoke a token
    - POST   /api/qr/cleanup                           Expiry sweep (cron hook)

Failures are raised as ``QRServiceError`` subclasses and rendered by the
exception handlers registered in ``app.main``.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.database import get_db
from app.schemas import (
    CleanupResponse,
    ErrorResponse,
    QRGenerateRequest,
    QRRefreshRequest,
    SuccessResponse,
)
from app.services.qr import QRTokenManager, build_qr_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/qr", tags=["QR Tokens"])


async def get_qr_manager(db: AsyncSession = Depends(get_db)) -> QRTokenManager:
    """Request-scoped token manager."""
    return build_qr_manager(db)


@router.post(
    "/generate",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Generate Table QR Token",
)
async def generate_token(
    request: QRGenerateRequest,
    manager: QRTokenManager = Depends(get_qr_manager),
) -> dict[str, Any]:
    """
    Issue a new token for a table.

    Any token previously issued for the same table is deactivated first;
    diners holding it lose access on their next verification.
    """
    settings = get_settings()
    duration = request.duration_hours
    if duration is None:
        duration = settings.qr_default_duration_hours

    view = await manager.generate(
        restaurant_id=request.restaurant_id,
        table_number=request.table_number,
        duration_hours=duration,
        created_by=request.created_by or settings.qr_default_created_by,
    )

    data = view.to_dict()
    data["qrData"] = view.qr_url  # Payload to encode in the QR image
    return {"success": True, "data": data}


@router.get(
    "/verify/{token}",
    response_model=SuccessResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Verify Table QR Token",
)
async def verify_token(
    token: str,
    manager: QRTokenManager = Depends(get_qr_manager),
) -> dict[str, Any]:
    """Check a scanned token and return the table's restaurant context."""
    result = await manager.verify(token)
    return {"success": True, "data": result.to_dict()}


@router.post(
    "/refresh/{token}",
    response_model=SuccessResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Refresh Table QR Token",
)
async def refresh_token(
    token: str,
    request: Optional[QRRefreshRequest] = Body(None),
    manager: QRTokenManager = Depends(get_qr_manager),
) -> dict[str, Any]:
    """Extend a token's lifetime and reactivate it, even if expired or revoked."""
    duration = request.duration_hours if request else None
    if duration is None:
        duration = get_settings().qr_default_duration_hours

    expires_at = await manager.refresh(token, duration_hours=duration)
    return {
        "success": True,
        "data": {
            "expiresAt": expires_at.isoformat(),
            "message": f"QR code refreshed for {duration:g} hours",
        },
    }


@router.get(
    "/restaurant/{restaurant_id}/tables",
    response_model=SuccessResponse,
    summary="List Active Table Tokens",
)
async def list_restaurant_tokens(
    restaurant_id: str,
    manager: QRTokenManager = Depends(get_qr_manager),
) -> dict[str, Any]:
    """Active, unexpired tokens of a restaurant ordered by table number."""
    views = await manager.list_active(restaurant_id)
    return {"success": True, "data": [view.to_dict() for view in views]}


@router.delete(
    "/deactivate/{token}",
    response_model=SuccessResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Deactivate Table QR Token",
)
async def deactivate_token(
    token: str,
    manager: QRTokenManager = Depends(get_qr_manager),
) -> dict[str, Any]:
    """Revoke a token. Revoking an already inactive token succeeds."""
    await manager.deactivate(token)
    return {"success": True, "message": "QR code deactivated successfully"}


@router.post(
    "/cleanup",
    response_model=CleanupResponse,
    summary="Deactivate Expired Tokens",
)
async def cleanup_tokens(
    manager: QRTokenManager = Depends(get_qr_manager),
) -> CleanupResponse:
    """Batch sweep normally run by the Celery beat schedule."""
    count = await manager.cleanup()
    return CleanupResponse(count=count, message=f"Cleaned up {count} expired tokens")
