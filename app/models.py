"""
SQLAlchemy Database Models

- Restaurant: the tenant that owns tables and issues QR codes
- QRToken: one time-limited grant of diner access to a single table
"""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String
from sqlalchemy.sql import func

from app.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Restaurant(Base):
    """
    Restaurant account.

    Only the fields the QR subsystem needs are modelled here; menus, staff
    and credentials live elsewhere.
    """
    __tablename__ = "restaurants"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    username = Column(String(100), nullable=False, unique=True, index=True)
    subdomain = Column(String(100), nullable=True, unique=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Restaurant {self.id} - {self.username}>"


class QRToken(Base):
    """
    Table access token encoded in a printed or displayed QR code.

    A token grants access only while ``is_active`` is true AND the current
    time is before ``expires_at``. Rows are never deleted; deactivated
    tokens stay for history.
    """
    __tablename__ = "qr_tokens"
    __table_args__ = (
        Index("ix_qr_tokens_table_active", "restaurant_id", "table_number", "is_active"),
        Index("ix_qr_tokens_active_expiry", "is_active", "expires_at"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)

    restaurant_id = Column(
        String(36),
        ForeignKey("restaurants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    table_number = Column(String(50), nullable=False)

    # 64 hex characters (256 bits of entropy)
    token = Column(String(64), nullable=False, unique=True, index=True)

    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(50), nullable=False, default="waiter")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        state = "active" if self.is_active else "inactive"
        return f"<QRToken {self.id} - table {self.table_number} - {state}>"
