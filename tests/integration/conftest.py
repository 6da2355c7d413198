"""
Database fixtures for integration tests.

Each test gets a fresh SQLite file with every mapped table created, and a
session seeded with two roles and two users. SAVEPOINTs need the driver's
own transaction handling switched off so SQLAlchemy emits BEGIN itself.
"""

from collections.abc import AsyncGenerator

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from basepack.models.orm.base import Base
from tests.helpers.models import Role, User


@pytest_asyncio.fixture
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Engine over a per-test SQLite file; NullPool keeps no connections between tests."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'basepack.db'}",
        echo=False,
        poolclass=NullPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Seeded session, rolled back after the test.

    Roles: 1 admin, 2 writer. Users: 1 Ann (admin), 2 Bob (writer).
    """
    factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        session.add_all([Role(id=1, name="admin"), Role(id=2, name="writer")])
        await session.flush()
        session.add_all(
            [
                User(id=1, email="ann@example.com", first_name="Ann", role_id=1),
                User(id=2, email="bob@example.com", first_name="Bob", role_id=2),
            ]
        )
        await session.flush()
        yield session
        await session.rollback()
