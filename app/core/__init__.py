"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from app.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from app.core.exceptions import (
    QRServiceError,
    InvalidInputError,
    NotFoundError,
    TokenDeactivatedError,
    TokenExpiredError,
    InternalError,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "QRServiceError",
    "InvalidInputError",
    "NotFoundError",
    "TokenDeactivatedError",
    "TokenExpiredError",
    "InternalError",
]
