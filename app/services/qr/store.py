"""
SQLAlchemy Token Store and Restaurant Directory

Production implementations backed by the async session of the current
request. Every method commits its own write, so a manager operation is a
sequence of independent statements rather than one transaction.

Store errors are rolled back, logged and re-raised as ``InternalError``.
"""

import functools
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InternalError, InvalidInputError
from app.models import QRToken, Restaurant
from app.services.qr.base import BaseRestaurantDirectory, BaseTokenStore

logger = logging.getLogger(__name__)


def _store_errors(func):
    """Roll back and convert SQLAlchemy failures into ``InternalError``."""

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"{type(self).__name__}.{func.__name__} failed: {e}")
            raise InternalError(cause=e) from e

    return wrapper


class SqlTokenStore(BaseTokenStore):
    """Token store over the ``qr_tokens`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @property
    def provider_name(self) -> str:
        return "sqlalchemy"

    @_store_errors
    async def get_by_token(self, token: str) -> Optional[QRToken]:
        result = await self.session.execute(
            select(QRToken).where(QRToken.token == token)
        )
        return result.scalar_one_or_none()

    @_store_errors
    async def list_active(self, restaurant_id: str, now: datetime) -> list[QRToken]:
        result = await self.session.execute(
            select(QRToken)
            .where(
                QRToken.restaurant_id == restaurant_id,
                QRToken.is_active.is_(True),
                QRToken.expires_at > now,
            )
            .order_by(QRToken.table_number.asc())
        )
        return list(result.scalars().all())

    @_store_errors
    async def insert(self, **values: Any) -> QRToken:
        record = QRToken(**values)
        self.session.add(record)
        await self.session.commit()
        await self.session.refresh(record)
        return record

    @_store_errors
    async def update(self, record: QRToken, **values: Any) -> QRToken:
        for key, value in values.items():
            setattr(record, key, value)
        await self.session.commit()
        await self.session.refresh(record)
        return record

    @_store_errors
    async def expire(self, token: str) -> int:
        result = await self.session.execute(
            update(QRToken)
            .where(
                QRToken.token == token,
                QRToken.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount or 0

    @_store_errors
    async def deactivate_table(self, restaurant_id: str, table_number: str) -> int:
        result = await self.session.execute(
            update(QRToken)
            .where(
                QRToken.restaurant_id == restaurant_id,
                QRToken.table_number == table_number,
                QRToken.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount or 0

    @_store_errors
    async def deactivate_expired(self, now: datetime) -> int:
        result = await self.session.execute(
            update(QRToken)
            .where(
                QRToken.is_active.is_(True),
                QRToken.expires_at < now,
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount or 0


class SqlRestaurantDirectory(BaseRestaurantDirectory):
    """Restaurant lookup over the ``restaurants`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @_store_errors
    async def find_by_id(self, restaurant_id: str) -> Optional[Restaurant]:
        return await self.session.get(Restaurant, restaurant_id)

    @_store_errors
    async def create(
        self,
        name: str,
        username: str,
        subdomain: Optional[str] = None,
    ) -> Restaurant:
        restaurant = Restaurant(name=name, username=username, subdomain=subdomain)
        self.session.add(restaurant)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise InvalidInputError("Username or subdomain is already in use")
        await self.session.refresh(restaurant)
        logger.info(f"Restaurant created: {restaurant.id} ({restaurant.username})")
        return restaurant
