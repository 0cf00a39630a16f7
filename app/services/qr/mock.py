"""
In-Memory Token Store and Restaurant Directory

Dictionary-backed implementations of the QR collaborators. Used by the
unit tests and for local experiments where no database is running:
    - No I/O, no event-loop bound connections
    - Identical predicate semantics to the SQLAlchemy store
    - ``created_at`` is stamped from the injected clock

Example:
    >>> directory = InMemoryRestaurantDirectory()
    >>> store = InMemoryTokenStore()
    >>> manager = QRTokenManager(store, directory, "https://menu.example")
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from app.core.exceptions import InvalidInputError
from app.models import QRToken, Restaurant
from app.services.qr.base import (
    BaseRestaurantDirectory,
    BaseTokenStore,
    Clock,
    as_utc,
    utc_now,
)

logger = logging.getLogger(__name__)


class InMemoryTokenStore(BaseTokenStore):
    """
    Token store keeping transient ``QRToken`` instances in a dict.

    Attributes:
        tokens: Rows keyed by token string
        now: Clock used for ``created_at``
    """

    def __init__(self, now: Clock = utc_now):
        self.tokens: dict[str, QRToken] = {}
        self.now = now

    @property
    def provider_name(self) -> str:
        return "memory"

    async def get_by_token(self, token: str) -> Optional[QRToken]:
        return self.tokens.get(token)

    async def list_active(self, restaurant_id: str, now: datetime) -> list[QRToken]:
        rows = [
            record for record in self.tokens.values()
            if record.restaurant_id == restaurant_id
            and record.is_active
            and as_utc(record.expires_at) > now
        ]
        return sorted(rows, key=lambda record: record.table_number)

    async def insert(self, **values: Any) -> QRToken:
        if values["token"] in self.tokens:
            raise ValueError("duplicate token")
        values.setdefault("id", str(uuid.uuid4()))
        values.setdefault("created_at", self.now())
        record = QRToken(**values)
        self.tokens[record.token] = record
        return record

    async def update(self, record: QRToken, **values: Any) -> QRToken:
        for key, value in values.items():
            setattr(record, key, value)
        return record

    async def expire(self, token: str) -> int:
        record = self.tokens.get(token)
        if record is None or not record.is_active:
            return 0
        record.is_active = False
        return 1

    async def deactivate_table(self, restaurant_id: str, table_number: str) -> int:
        count = 0
        for record in self.tokens.values():
            if (
                record.restaurant_id == restaurant_id
                and record.table_number == table_number
                and record.is_active
            ):
                record.is_active = False
                count += 1
        return count

    async def deactivate_expired(self, now: datetime) -> int:
        count = 0
        for record in self.tokens.values():
            if record.is_active and as_utc(record.expires_at) < now:
                record.is_active = False
                count += 1
        return count

    def active_for_table(self, restaurant_id: str, table_number: str) -> list[QRToken]:
        return [
            record for record in self.tokens.values()
            if record.restaurant_id == restaurant_id
            and record.table_number == table_number
            and record.is_active
        ]


class InMemoryRestaurantDirectory(BaseRestaurantDirectory):
    """Restaurant directory keeping transient ``Restaurant`` instances."""

    def __init__(self):
        self.restaurants: dict[str, Restaurant] = {}

    async def find_by_id(self, restaurant_id: str) -> Optional[Restaurant]:
        return self.restaurants.get(restaurant_id)

    async def create(
        self,
        name: str,
        username: str,
        subdomain: Optional[str] = None,
        restaurant_id: Optional[str] = None,
    ) -> Restaurant:
        for existing in self.restaurants.values():
            if existing.username == username or (subdomain and existing.subdomain == subdomain):
                raise InvalidInputError("Username or subdomain is already in use")
        restaurant = Restaurant(
            id=restaurant_id or str(uuid.uuid4()),
            name=name,
            username=username,
            subdomain=subdomain,
        )
        self.restaurants[restaurant.id] = restaurant
        logger.debug(f"In-memory restaurant created: {restaurant.id}")
        return restaurant
