"""
                        Services Module

Business logic behind the HTTP layer.

Services:
    - qr: Table QR token lifecycle (manager, SQLAlchemy store, in-memory store)
"""

from app.services.qr import QRTokenManager, build_qr_manager

__all__ = ["QRTokenManager", "build_qr_manager"]
