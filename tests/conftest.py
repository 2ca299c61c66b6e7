from zoneinfo import ZoneInfo

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from habit_tracker.main import app
from habit_tracker.database import Base, get_db, enable_sqlite_savepoints
from habit_tracker.core.clock import LocalDay
from habit_tracker.models.user import User

from helpers import TODAY, auth_headers


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def user(db):
    user = User(email="alex@example.com", name="Alex", points=0, level=1)
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
def day():
    return LocalDay(today=TODAY, tz=ZoneInfo("UTC"))


async def _create_user(session_factory, email, name):
    # own short-lived session: requests share the single in-memory connection
    async with session_factory() as session:
        user = User(email=email, name=name)
        session.add(user)
        await session.commit()
        return user.id


@pytest.fixture
async def api_user(session_factory):
    return await _create_user(session_factory, "sam@example.com", "Sam")


@pytest.fixture
async def other_user(session_factory):
    return await _create_user(session_factory, "kim@example.com", "Kim")


@pytest.fixture
async def client(session_factory, api_user):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test", headers=auth_headers(api_user)
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
