import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

TEST_DB = Path("./test_qr.db")

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB}"
os.environ["FRONTEND_URL"] = "https://menu.example.com/"
os.environ["ENV_MODE"] = "development"
if TEST_DB.exists():
    TEST_DB.unlink()

sys.path.append(str(Path(__file__).resolve().parents[1]))

from app.core.config import get_settings  # noqa: E402

get_settings.cache_clear()

from app.database import Base, engine, init_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Restaurant  # noqa: E402
from app.services.qr import (  # noqa: E402
    InMemoryRestaurantDirectory,
    InMemoryTokenStore,
    QRTokenManager,
)

T0 = datetime(2026, 10, 19, 18, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable clock for expiry tests."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def directory():
    directory = InMemoryRestaurantDirectory()
    for restaurant_id, username in (("R1", "masa"), ("R2", "kebap")):
        directory.restaurants[restaurant_id] = Restaurant(
            id=restaurant_id,
            name=username.title(),
            username=username,
        )
    return directory


@pytest.fixture
def store(clock):
    return InMemoryTokenStore(now=clock)


@pytest.fixture
def manager(store, directory, clock):
    return QRTokenManager(
        store=store,
        directory=directory,
        frontend_url="https://menu.example.com/",
        now=clock,
        max_duration_hours=24,
    )


@pytest_asyncio.fixture(scope="function")
async def setup_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await init_db()
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_client(setup_db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def restaurant_id(async_client):
    response = await async_client.post(
        "/api/restaurants",
        json={"name": "Masa Kebap", "username": "masakebap"},
    )
    assert response.status_code == 201
    return response.json()["id"]
