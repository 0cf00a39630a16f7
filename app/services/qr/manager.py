"""
QR Table-Token Manager

Owns the lifecycle of table access tokens: generate, verify, refresh,
list, deactivate and the bulk expiry sweep.

The manager is stateless. Each operation issues a short sequence of store
calls with no locking, so the following races are accepted:
    - Two concurrent ``generate`` calls for one table can both pass the
      deactivate step and leave two active tokens. The deactivate step is a
      single predicate update, which narrows the window.
    - ``verify`` and ``cleanup`` may both flip the same row to inactive;
      the writes converge.
    - ``refresh`` racing a lazy expiry in ``verify`` may end in either
      state.

Expiration is enforced twice, independently: lazily in ``verify`` and in
bulk by ``cleanup``. Neither path ever sets ``is_active`` back to true.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from app.core.exceptions import (
    InvalidInputError,
    NotFoundError,
    TokenDeactivatedError,
    TokenExpiredError,
)
from app.models import QRToken
from app.services.qr.base import (
    BaseRestaurantDirectory,
    BaseTokenStore,
    Clock,
    RestaurantSummary,
    TokenFactory,
    TokenView,
    VerificationResult,
    as_utc,
    generate_token,
    remaining_minutes,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_DURATION_HOURS = 2
DEFAULT_CREATED_BY = "waiter"


def _short(token: str) -> str:
    return f"{token[:8]}…"


class QRTokenManager:
    """
    Issues and checks per-table QR tokens.

    Args:
        store: Persistent token table
        directory: Restaurant lookup
        frontend_url: Base of the diner-facing URL
        now: Clock returning timezone-aware UTC
        token_factory: Random source for new tokens
        max_duration_hours: Upper bound for the lifetime of a newly issued token
    """

    def __init__(
        self,
        store: BaseTokenStore,
        directory: BaseRestaurantDirectory,
        frontend_url: str,
        now: Clock = utc_now,
        token_factory: TokenFactory = generate_token,
        max_duration_hours: Optional[float] = None,
    ):
        self.store = store
        self.directory = directory
        self.frontend_url = frontend_url.rstrip("/")
        self.now = now
        self.token_factory = token_factory
        self.max_duration_hours = max_duration_hours

    # =========================================================================
    # HELPERS
    # =========================================================================

    def qr_url(self, token: str) -> str:
        """Diner-facing URL encoded in the QR image."""
        return f"{self.frontend_url}/menu/?t={token}"

    def _check_duration(self, duration_hours: float, max_hours: Optional[float] = None) -> None:
        if duration_hours is None or not math.isfinite(duration_hours) or duration_hours <= 0:
            raise InvalidInputError("Duration must be a positive number of hours")
        if max_hours is not None and duration_hours > max_hours:
            raise InvalidInputError(f"Duration cannot exceed {max_hours:g} hours")

    def _expires_in(self, duration_hours: float) -> datetime:
        try:
            return self.now() + timedelta(hours=duration_hours)
        except OverflowError:
            raise InvalidInputError("Duration is too large")

    def _view(self, record: QRToken) -> TokenView:
        return TokenView(
            id=record.id,
            token=record.token,
            table_number=record.table_number,
            expires_at=as_utc(record.expires_at),
            used_at=as_utc(record.used_at),
            created_at=as_utc(record.created_at),
            qr_url=self.qr_url(record.token),
            remaining_minutes=remaining_minutes(record.expires_at, self.now()),
        )

    async def _require(self, token: str, message: str) -> QRToken:
        record = await self.store.get_by_token(token) if token else None
        if record is None:
            raise NotFoundError(message)
        return record

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def generate(
        self,
        restaurant_id: str,
        table_number: str,
        duration_hours: float = DEFAULT_DURATION_HOURS,
        created_by: Optional[str] = None,
    ) -> TokenView:
        """
        Issue a new token for a table, revoking any older active one.

        Raises:
            InvalidInputError: restaurant_id or table_number missing, bad duration
            NotFoundError: the restaurant does not exist
        """
        if not restaurant_id or not table_number:
            raise InvalidInputError("Restaurant ID and table number are required")
        self._check_duration(duration_hours, self.max_duration_hours)

        restaurant = await self.directory.find_by_id(restaurant_id)
        if restaurant is None:
            raise NotFoundError("Restaurant not found")

        revoked = await self.store.deactivate_table(restaurant_id, table_number)
        if revoked:
            logger.info(
                f"Revoked {revoked} previous token(s) for restaurant {restaurant_id} "
                f"table {table_number}"
            )

        expires_at = self._expires_in(duration_hours)
        record = await self.store.insert(
            restaurant_id=restaurant_id,
            table_number=table_number,
            token=self.token_factory(),
            expires_at=expires_at,
            is_active=True,
            used_at=None,
            created_by=created_by or DEFAULT_CREATED_BY,
        )
        logger.info(
            f"QR token {_short(record.token)} issued for restaurant {restaurant_id} "
            f"table {table_number} until {expires_at.isoformat()}"
        )
        return self._view(record)

    async def verify(self, token: str) -> VerificationResult:
        """
        Check a diner's token and record the visit.

        Revocation is checked before expiration.

        Raises:
            NotFoundError: unknown token
            TokenDeactivatedError: token was revoked
            TokenExpiredError: token is past expires_at (it is deactivated)
        """
        record = await self._require(token, "Invalid QR code")

        if not record.is_active:
            raise TokenDeactivatedError()

        now = self.now()
        expires_at = as_utc(record.expires_at)
        if now >= expires_at:
            await self.store.expire(token)
            logger.info(f"QR token {_short(token)} expired at {expires_at.isoformat()}")
            raise TokenExpiredError(expires_at)

        record = await self.store.update(record, used_at=now)
        restaurant = await self.directory.find_by_id(record.restaurant_id)

        return VerificationResult(
            restaurant_id=record.restaurant_id,
            restaurant=RestaurantSummary.from_model(restaurant) if restaurant else None,
            table_number=record.table_number,
            expires_at=expires_at,
            remaining_minutes=remaining_minutes(expires_at, now),
        )

    async def refresh(self, token: str, duration_hours: float = DEFAULT_DURATION_HOURS):
        """
        Extend a token and force it active again.

        Expired and deactivated tokens are revived too; staff use this to
        re-arm a table's existing code instead of printing a new one.

        Returns:
            The new expiration timestamp
        """
        record = await self._require(token, "QR token not found")
        self._check_duration(duration_hours)
        expires_at = self._expires_in(duration_hours)

        await self.store.update(record, expires_at=expires_at, is_active=True)
        logger.info(f"QR token {_short(token)} refreshed until {expires_at.isoformat()}")
        return expires_at

    async def list_active(self, restaurant_id: str) -> list[TokenView]:
        """Valid tokens of a restaurant ordered by table number; empty if none."""
        records = await self.store.list_active(restaurant_id, self.now())
        return [self._view(record) for record in records]

    async def deactivate(self, token: str) -> None:
        """Revoke a token. Revoking an inactive token is not an error."""
        record = await self._require(token, "QR token not found")
        if record.is_active:
            await self.store.update(record, is_active=False)
        logger.info(f"QR token {_short(token)} deactivated")

    async def cleanup(self) -> int:
        """Deactivate every active token past its expiration."""
        count = await self.store.deactivate_expired(self.now())
        logger.info(f"Cleaned up {count} expired QR token(s)")
        return count
