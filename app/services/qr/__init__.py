"""
QR Table-Token Service Factory

Provides a single entry point for obtaining a token manager bound to a
database session. The rest of the application stays agnostic about which
store implementation is in use.

Usage:
    from app.services.qr import build_qr_manager

    manager = build_qr_manager(session)
    view = await manager.generate(restaurant_id, "5")
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.services.qr.base import (
    BaseRestaurantDirectory,
    BaseTokenStore,
    RestaurantSummary,
    TokenView,
    VerificationResult,
    generate_token,
    utc_now,
)
from app.services.qr.manager import QRTokenManager
from app.services.qr.mock import InMemoryRestaurantDirectory, InMemoryTokenStore
from app.services.qr.store import SqlRestaurantDirectory, SqlTokenStore

logger = logging.getLogger(__name__)


def build_qr_manager(
    session: AsyncSession,
    frontend_url: Optional[str] = None,
) -> QRTokenManager:
    """
    Create a token manager over the SQLAlchemy store of ``session``.

    Args:
        session: Request-scoped async session
        frontend_url: Override of the configured FRONTEND_URL

    Returns:
        QRTokenManager: Manager using the system clock and CSPRNG
    """
    settings = get_settings()
    return QRTokenManager(
        store=SqlTokenStore(session),
        directory=SqlRestaurantDirectory(session),
        frontend_url=frontend_url or settings.frontend_base_url,
        max_duration_hours=settings.qr_max_duration_hours,
    )


__all__ = [
    "build_qr_manager",
    "QRTokenManager",
    "BaseTokenStore",
    "BaseRestaurantDirectory",
    "SqlTokenStore",
    "SqlRestaurantDirectory",
    "InMemoryTokenStore",
    "InMemoryRestaurantDirectory",
    "TokenView",
    "VerificationResult",
    "RestaurantSummary",
    "generate_token",
    "utc_now",
]
