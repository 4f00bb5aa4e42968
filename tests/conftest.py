"""
Shared test fixtures.

Each test gets its own SQLite database file (via aiosqlite) so tests run
without Docker / PostgreSQL / Redis.  A file rather than ``:memory:`` lets
several sessions see the same data, which the concurrency tests need.
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fare_core.infrastructure.database import Base
from fare_core.infrastructure.models import PromoCodeModel, RideModel
from fare_core.infrastructure.repositories import PromoCodeRepository, RideRepository
from fare_core.services.promo_redemption import PromoRedemptionService

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables in a fresh database file, then drop everything."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        connect_args={"timeout": 15},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def service(session_factory) -> PromoRedemptionService:
    return PromoRedemptionService(session_factory, clock=lambda: NOW)


@pytest.fixture
def add_promo(session_factory):
    """Insert a promo code row; returns its id."""

    async def _add(**overrides) -> int:
        values = dict(
            code="WELCOME10",
            description="Welcome discount",
            discount_type="fixed_amount",
            discount_value=10.0,
            max_uses=None,
            used_count=0,
            expires_at=NOW + timedelta(days=30),
            is_active=True,
            applicable_roles='["rider", "driver"]',
            minimum_amount=0,
        )
        values.update(overrides)
        async with session_factory() as session:
            promo = await PromoCodeRepository(session).create(PromoCodeModel(**values))
            await session.commit()
            return promo.id

    return _add


@pytest.fixture
def add_ride(session_factory):
    """Insert an Atlanta -> Piedmont Hospital ride; returns its id."""

    async def _add(**overrides) -> int:
        values = dict(
            rider_id=1,
            pickup_lat=33.7490,
            pickup_lng=-84.3880,
            dropoff_lat=33.8038,
            dropoff_lng=-84.3694,
            vehicle_type="standard",
            is_round_trip=False,
            estimated_fare=78.62,
        )
        values.update(overrides)
        async with session_factory() as session:
            ride = await RideRepository(session).create(RideModel(**values))
            await session.commit()
            return ride.id

    return _add


@pytest.fixture
def now() -> datetime:
    return NOW
