"""
Shared pytest fixtures for CrewTime backend tests.

Uses SQLite in-memory with StaticPool so all sessions share one connection,
meaning data written in one session is visible to others (important for HTTP client tests).
"""
import uuid
from datetime import date, time

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

import crewtime.models  # noqa – registers all SQLAlchemy models with Base.metadata
from crewtime.core.database import Base, get_db
from crewtime.core.security import create_access_token
from crewtime.main import app
from crewtime.models.client import Client, Job
from crewtime.models.shift import Shift
from crewtime.models.user import User, ROLE_ADMIN, ROLE_CLIENT, ROLE_CREW_CHIEF, ROLE_EMPLOYEE

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ── Shared engine (function-scoped: fresh DB per test) ───────────────────────

@pytest_asyncio.fixture
async def engine():
    """Creates a fresh in-memory SQLite engine per test with a shared connection pool."""
    eng = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,          # single shared connection → all sessions see same data
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield eng

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine) -> AsyncSession:
    """Async DB session for direct data setup and inspection inside tests."""
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


# ── HTTP client fixture ───────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(engine) -> AsyncClient:
    """
    FastAPI test client with get_db overridden to use the test engine.
    Each request gets its own session but shares the same underlying
    connection via StaticPool.
    """
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


# ── Users ─────────────────────────────────────────────────────────────────────

async def make_user(db, role: str, name: str, is_active: bool = True) -> User:
    u = User(
        id=uuid.uuid4(),
        name=name,
        email=f"{name.lower().replace(' ', '.')}-{uuid.uuid4().hex[:6]}@test.com",
        role=role,
        is_active=is_active,
    )
    db.add(u)
    await db.commit()
    await db.refresh(u)
    return u


@pytest_asyncio.fixture
async def admin_user(db) -> User:
    return await make_user(db, ROLE_ADMIN, "Alice Admin")


@pytest_asyncio.fixture
async def employee_user(db) -> User:
    return await make_user(db, ROLE_EMPLOYEE, "Eddie Employee")


@pytest_asyncio.fixture
async def crew_chief_user(db) -> User:
    return await make_user(db, ROLE_CREW_CHIEF, "Carla Chief")


@pytest_asyncio.fixture
async def client_user(db) -> User:
    return await make_user(db, ROLE_CLIENT, "Cody Client")


@pytest_asyncio.fixture
def admin_token(admin_user) -> str:
    return create_access_token(admin_user.id, admin_user.role)


@pytest_asyncio.fixture
def employee_token(employee_user) -> str:
    return create_access_token(employee_user.id, employee_user.role)


@pytest_asyncio.fixture
def crew_chief_token(crew_chief_user) -> str:
    return create_access_token(crew_chief_user.id, crew_chief_user.role)


# ── Client → Job → Shift hierarchy ────────────────────────────────────────────

@pytest_asyncio.fixture
async def company(db) -> Client:
    c = Client(id=uuid.uuid4(), company_name="Stagehands Inc")
    db.add(c)
    await db.commit()
    await db.refresh(c)
    return c


@pytest_asyncio.fixture
async def job(db, company) -> Job:
    j = Job(id=uuid.uuid4(), client_id=company.id, name="Arena Load-In")
    db.add(j)
    await db.commit()
    await db.refresh(j)
    return j


async def make_shift(db, job: Job, crew_chief_id=None, shift_date: date = date(2025, 7, 3)) -> Shift:
    s = Shift(
        id=uuid.uuid4(),
        job_id=job.id,
        crew_chief_id=crew_chief_id,
        date=shift_date,
        start_time=time(9, 0),
        end_time=time(17, 0),
    )
    db.add(s)
    await db.commit()
    await db.refresh(s)
    return s


@pytest_asyncio.fixture
async def shift(db, job) -> Shift:
    return await make_shift(db, job)


# ── Helper ────────────────────────────────────────────────────────────────────

def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
