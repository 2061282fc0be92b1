"""Fixtures for repository tests: in-memory SQLite through aiosqlite."""

import enum
from datetime import datetime, time, timedelta

import pytest
from sqlalchemy import DateTime, Enum, Integer, Interval, LargeBinary, String, Time
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from entity_cache.application.services.lifecycle_hooks import EntityLifecycleHooks
from entity_cache.infrastructure.persistence.database import Base, make_session_factory
from entity_cache.infrastructure.persistence.models import CacheableMixin
from entity_cache.infrastructure.persistence.repositories import BaseRepository


class Account(CacheableMixin, Base):
    __tablename__ = "account"

    indexed_fields = ("team_id", "email")

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    email: Mapped[str] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime(2024, 1, 1))


class ShipmentStatus(enum.Enum):
    PACKED = 1
    SHIPPED = 2


class Shipment(CacheableMixin, Base):
    __tablename__ = "shipment"

    indexed_fields = ("status",)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    status: Mapped[ShipmentStatus] = mapped_column(Enum(ShipmentStatus))
    pickup_at: Mapped[time] = mapped_column(Time)
    transit: Mapped[timedelta] = mapped_column(Interval)
    label: Mapped[bytes] = mapped_column(LargeBinary)


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def hooks() -> EntityLifecycleHooks:
    return EntityLifecycleHooks()


@pytest.fixture
def repo(db, hooks) -> BaseRepository[Account]:
    return BaseRepository(db, Account, hooks)
