"""
QR Table-Token Abstract Interfaces

Defines the collaborators the token manager depends on and the result
structures it returns. Both the SQLAlchemy store and the in-memory store
implement these interfaces, so the manager behaves identically regardless
of which one is injected.

Collaborators:
    - BaseTokenStore: durable table of QRToken rows
    - BaseRestaurantDirectory: restaurant lookup by identifier
    - Clock: ``() -> datetime`` returning timezone-aware UTC
    - Token factory: ``() -> str`` returning a fresh secret
"""

import math
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from app.models import QRToken, Restaurant

# 32 random bytes -> 64 hex characters
TOKEN_BYTES = 32

Clock = Callable[[], datetime]
TokenFactory = Callable[[], str]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


def generate_token() -> str:
    """Default random source: 256 bits from the OS CSPRNG, hex encoded."""
    return secrets.token_hex(TOKEN_BYTES)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps (SQLite drops tzinfo) as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def remaining_minutes(expires_at: datetime, now: datetime) -> int:
    """Whole minutes left before ``expires_at``; negative once past it."""
    return math.floor((as_utc(expires_at) - now).total_seconds() / 60)


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value is not None else None


# =============================================================================
# RESULT STRUCTURES
# =============================================================================

@dataclass
class RestaurantSummary:
    """Minimal restaurant projection shown to diners."""
    id: str
    name: str
    username: str

    @classmethod
    def from_model(cls, restaurant: Restaurant) -> "RestaurantSummary":
        return cls(id=restaurant.id, name=restaurant.name, username=restaurant.username)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "username": self.username}


@dataclass
class TokenView:
    """
    A table token as shown to staff.

    Attributes:
        id: Row identifier
        token: The secret encoded in the QR code
        table_number: Table label within the restaurant
        expires_at: Absolute expiration
        used_at: Last successful verification, if any
        created_at: Issue time
        qr_url: Diner-facing URL embedding the token
        remaining_minutes: Whole minutes until expiry at the time of the call
    """
    id: str
    token: str
    table_number: str
    expires_at: datetime
    used_at: Optional[datetime]
    created_at: Optional[datetime]
    qr_url: str
    remaining_minutes: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "token": self.token,
            "tableNumber": self.table_number,
            "expiresAt": _iso(self.expires_at),
            "usedAt": _iso(self.used_at),
            "createdAt": _iso(self.created_at),
            "qrUrl": self.qr_url,
            "remainingMinutes": self.remaining_minutes,
        }


@dataclass
class VerificationResult:
    """Successful verification of a diner's token."""
    restaurant_id: str
    restaurant: Optional[RestaurantSummary]
    table_number: str
    expires_at: datetime
    remaining_minutes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "restaurantId": self.restaurant_id,
            "restaurant": self.restaurant.to_dict() if self.restaurant else None,
            "tableNumber": self.table_number,
            "expiresAt": _iso(self.expires_at),
            "remainingMinutes": self.remaining_minutes,
        }


# =============================================================================
# COLLABORATOR INTERFACES
# =============================================================================

class BaseTokenStore(ABC):
    """
    Persistent table of QR tokens.

    Point operations address a single row; ``deactivate_table`` and
    ``deactivate_expired`` are predicate updates returning the number of
    rows they changed.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def get_by_token(self, token: str) -> Optional[QRToken]:
        pass

    @abstractmethod
    async def list_active(self, restaurant_id: str, now: datetime) -> list[QRToken]:
        """Active, unexpired tokens of a restaurant ordered by table number."""
        pass

    @abstractmethod
    async def insert(self, **values: Any) -> QRToken:
        pass

    @abstractmethod
    async def update(self, record: QRToken, **values: Any) -> QRToken:
        """Write ``values`` to one row and return it."""
        pass

    @abstractmethod
    async def expire(self, token: str) -> int:
        """Set is_active=false on one token if it is still active."""
        pass

    @abstractmethod
    async def deactivate_table(self, restaurant_id: str, table_number: str) -> int:
        """Set is_active=false on every active token of one table."""
        pass

    @abstractmethod
    async def deactivate_expired(self, now: datetime) -> int:
        """Set is_active=false where is_active and expires_at < now."""
        pass


class BaseRestaurantDirectory(ABC):
    """Restaurant lookup used to validate generate requests."""

    @abstractmethod
    async def find_by_id(self, restaurant_id: str) -> Optional[Restaurant]:
        pass

    @abstractmethod
    async def create(
        self,
        name: str,
        username: str,
        subdomain: Optional[str] = None,
    ) -> Restaurant:
        pass
