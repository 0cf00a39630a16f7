import re
from datetime import timedelta

import pytest

from app.core.exceptions import (
    InvalidInputError,
    NotFoundError,
    TokenDeactivatedError,
    TokenExpiredError,
)
from app.services.qr import QRTokenManager

from .conftest import T0


# =============================================================================
# GENERATE
# =============================================================================

@pytest.mark.asyncio
async def test_generated_tokens_are_unique_hex(manager):
    tokens = set()
    for i in range(50):
        view = await manager.generate("R1", str(i % 7))
        assert re.fullmatch(r"[0-9a-f]{64}", view.token)
        tokens.add(view.token)

    assert len(tokens) == 50


@pytest.mark.asyncio
async def test_generate_returns_view_with_url_and_expiry(manager):
    view = await manager.generate("R1", "5", duration_hours=2)

    assert view.table_number == "5"
    assert view.expires_at == T0 + timedelta(hours=2)
    assert view.used_at is None
    assert view.created_at == T0
    assert view.remaining_minutes == 120
    assert view.qr_url == f"https://menu.example.com/menu/?t={view.token}"

    data = view.to_dict()
    assert data["tableNumber"] == "5"
    assert data["qrUrl"] == view.qr_url
    assert data["usedAt"] is None


@pytest.mark.asyncio
async def test_generate_defaults_created_by(manager, store):
    view = await manager.generate("R1", "5")
    custom = await manager.generate("R1", "6", created_by="manager")

    assert store.tokens[view.token].created_by == "waiter"
    assert store.tokens[custom.token].created_by == "manager"


@pytest.mark.asyncio
async def test_regenerate_leaves_single_active_token_per_table(manager, store):
    first = await manager.generate("R1", "5")
    other_table = await manager.generate("R1", "6")
    other_restaurant = await manager.generate("R2", "5")
    second = await manager.generate("R1", "5")

    active = store.active_for_table("R1", "5")
    assert [record.token for record in active] == [second.token]
    assert store.tokens[first.token].is_active is False
    assert store.tokens[other_table.token].is_active is True
    assert store.tokens[other_restaurant.token].is_active is True

    with pytest.raises(TokenDeactivatedError):
        await manager.verify(first.token)


@pytest.mark.asyncio
@pytest.mark.parametrize("restaurant_id, table_number", [
    ("", "5"),
    (None, "5"),
    ("R1", ""),
    ("R1", None),
])
async def test_generate_requires_restaurant_and_table(manager, restaurant_id, table_number):
    with pytest.raises(InvalidInputError) as exc_info:
        await manager.generate(restaurant_id, table_number)

    assert exc_info.value.message == "Restaurant ID and table number are required"


@pytest.mark.asyncio
@pytest.mark.parametrize("duration", [0, -1, 25, float("nan"), float("inf")])
async def test_generate_rejects_bad_duration(manager, duration):
    with pytest.raises(InvalidInputError):
        await manager.generate("R1", "5", duration_hours=duration)


@pytest.mark.asyncio
async def test_generate_unknown_restaurant(manager, store):
    with pytest.raises(NotFoundError) as exc_info:
        await manager.generate("missing", "5")

    assert exc_info.value.message == "Restaurant not found"
    assert store.tokens == {}


@pytest.mark.asyncio
async def test_generate_uses_injected_random_source(store, directory, clock):
    tokens = iter(["a" * 64, "b" * 64])
    manager = QRTokenManager(store, directory, "https://menu.example.com", now=clock,
                             token_factory=lambda: next(tokens))

    assert (await manager.generate("R1", "1")).token == "a" * 64
    assert (await manager.generate("R1", "2")).token == "b" * 64


# =============================================================================
# VERIFY
# =============================================================================

@pytest.mark.asyncio
async def test_verify_returns_table_context_and_records_use(manager, store, clock):
    view = await manager.generate("R1", "5")
    clock.advance(minutes=30)

    result = await manager.verify(view.token)

    assert result.restaurant_id == "R1"
    assert result.restaurant.to_dict() == {"id": "R1", "name": "Masa", "username": "masa"}
    assert result.table_number == "5"
    assert result.expires_at == view.expires_at
    assert result.remaining_minutes == 90
    assert store.tokens[view.token].used_at == clock()


@pytest.mark.asyncio
async def test_verify_unknown_token(manager):
    with pytest.raises(NotFoundError) as exc_info:
        await manager.verify("0" * 64)

    assert exc_info.value.message == "Invalid QR code"


@pytest.mark.asyncio
async def test_verify_expired_token_deactivates_it(manager, store, clock):
    view = await manager.generate("R1", "5", duration_hours=1)
    clock.advance(hours=1)

    with pytest.raises(TokenExpiredError) as exc_info:
        await manager.verify(view.token)

    assert exc_info.value.expires_at == view.expires_at
    assert exc_info.value.to_dict()["expiresAt"] == view.expires_at.isoformat()
    assert store.tokens[view.token].is_active is False

    # Once flipped, the token reports revocation
    with pytest.raises(TokenDeactivatedError):
        await manager.verify(view.token)


@pytest.mark.asyncio
async def test_verify_checks_deactivation_before_expiry(manager, clock):
    view = await manager.generate("R1", "5", duration_hours=1)
    await manager.deactivate(view.token)
    clock.advance(hours=5)

    with pytest.raises(TokenDeactivatedError):
        await manager.verify(view.token)


@pytest.mark.asyncio
async def test_expiration_is_monotonic(manager, clock):
    view = await manager.generate("R1", "5", duration_hours=2)

    clock.advance(minutes=119)
    assert (await manager.verify(view.token)).remaining_minutes == 1

    clock.advance(minutes=1)
    with pytest.raises(TokenExpiredError):
        await manager.verify(view.token)

    assert await manager.list_active("R1") == []


# =============================================================================
# REFRESH
# =============================================================================

@pytest.mark.asyncio
async def test_refresh_revives_deactivated_token(manager, store, clock):
    view = await manager.generate("R1", "5")
    await manager.deactivate(view.token)
    clock.advance(minutes=10)

    expires_at = await manager.refresh(view.token, 2)

    assert expires_at == clock() + timedelta(hours=2)
    assert store.tokens[view.token].is_active is True
    assert (await manager.verify(view.token)).remaining_minutes == 120


@pytest.mark.asyncio
async def test_refresh_revives_expired_token(manager, clock):
    view = await manager.generate("R1", "5", duration_hours=1)
    clock.advance(hours=3)
    with pytest.raises(TokenExpiredError):
        await manager.verify(view.token)

    await manager.refresh(view.token, 2)

    result = await manager.verify(view.token)
    assert result.remaining_minutes == 120
    assert [v.token for v in await manager.list_active("R1")] == [view.token]


@pytest.mark.asyncio
async def test_refresh_accepts_long_durations(manager, clock):
    view = await manager.generate("R1", "5")

    expires_at = await manager.refresh(view.token, 48)

    assert expires_at == T0 + timedelta(hours=48)
    assert (await manager.verify(view.token)).remaining_minutes == 48 * 60


@pytest.mark.asyncio
@pytest.mark.parametrize("duration", [0, float("nan"), float("-inf"), 1e12])
async def test_refresh_rejects_unusable_durations(manager, store, duration):
    view = await manager.generate("R1", "5")

    with pytest.raises(InvalidInputError):
        await manager.refresh(view.token, duration)

    assert store.tokens[view.token].expires_at == view.expires_at


@pytest.mark.asyncio
async def test_refresh_unknown_token(manager):
    with pytest.raises(NotFoundError) as exc_info:
        await manager.refresh("f" * 64)

    assert exc_info.value.message == "QR token not found"


# =============================================================================
# LIST ACTIVE
# =============================================================================

@pytest.mark.asyncio
async def test_list_active_orders_by_table_and_skips_invalid(manager, clock):
    short = await manager.generate("R1", "3", duration_hours=1)
    await manager.generate("R1", "2", duration_hours=4)
    revoked = await manager.generate("R1", "4", duration_hours=4)
    await manager.generate("R1", "1", duration_hours=4)
    await manager.generate("R2", "0", duration_hours=4)
    await manager.deactivate(revoked.token)

    clock.advance(hours=1)
    views = await manager.list_active("R1")

    assert [v.table_number for v in views] == ["1", "2"]
    assert all(v.remaining_minutes == 180 for v in views)
    assert short.token not in {v.token for v in views}


@pytest.mark.asyncio
async def test_list_active_unknown_restaurant_is_empty(manager):
    assert await manager.list_active("nowhere") == []


# =============================================================================
# DEACTIVATE
# =============================================================================

@pytest.mark.asyncio
async def test_deactivate_is_idempotent(manager, store):
    view = await manager.generate("R1", "5")

    await manager.deactivate(view.token)
    await manager.deactivate(view.token)

    assert store.tokens[view.token].is_active is False


@pytest.mark.asyncio
async def test_deactivate_unknown_token(manager):
    with pytest.raises(NotFoundError):
        await manager.deactivate("e" * 64)


# =============================================================================
# CLEANUP
# =============================================================================

@pytest.mark.asyncio
async def test_cleanup_is_idempotent(manager, clock):
    await manager.generate("R1", "1", duration_hours=1)
    await manager.generate("R1", "2", duration_hours=1)
    await manager.generate("R1", "3", duration_hours=5)
    clock.advance(hours=2)

    assert await manager.cleanup() == 2
    assert await manager.cleanup() == 0
    assert [v.table_number for v in await manager.list_active("R1")] == ["3"]


@pytest.mark.asyncio
async def test_cleanup_never_reactivates(manager, store, clock):
    revoked = await manager.generate("R1", "1", duration_hours=5)
    expired = await manager.generate("R1", "2", duration_hours=1)
    await manager.deactivate(revoked.token)
    clock.advance(hours=2)

    assert await manager.cleanup() == 1

    assert store.tokens[revoked.token].is_active is False
    assert store.tokens[expired.token].is_active is False


@pytest.mark.asyncio
async def test_lazy_expiry_only_flips_active_tokens(manager, store):
    view = await manager.generate("R1", "5")

    assert await store.expire(view.token) == 1
    assert await store.expire(view.token) == 0
    assert await store.expire("9" * 64) == 0
    assert store.tokens[view.token].is_active is False


@pytest.mark.asyncio
async def test_cleanup_and_lazy_expiry_converge(manager, store, clock):
    view = await manager.generate("R1", "5", duration_hours=1)
    clock.advance(hours=2)

    with pytest.raises(TokenExpiredError):
        await manager.verify(view.token)
    assert await manager.cleanup() == 0
    assert store.tokens[view.token].is_active is False


# =============================================================================
# END TO END
# =============================================================================

@pytest.mark.asyncio
async def test_table_token_end_to_end(manager, clock):
    view = await manager.generate("R1", "5", duration_hours=2)
    assert view.expires_at == T0 + timedelta(hours=2)

    clock.advance(hours=1)
    result = await manager.verify(view.token)
    assert result.remaining_minutes == 60

    clock.advance(hours=2)
    with pytest.raises(TokenExpiredError):
        await manager.verify(view.token)

    tables = [v.table_number for v in await manager.list_active("R1")]
    assert "5" not in tables
