from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from crewtime.core.config import settings


def engine_options(database_url: str, echo: bool = False) -> dict:
    """Keyword arguments for ``create_async_engine`` for the given URL."""
    options: dict = {"echo": echo}
    if database_url.startswith("sqlite"):
        # aiosqlite hands the connection to a worker thread
        options["connect_args"] = {"check_same_thread": False}
    else:
        # Long-lived Postgres connections get dropped between timesheet views
        options["pool_pre_ping"] = True
    return options


engine = create_async_engine(
    settings.DATABASE_URL,
    **engine_options(settings.DATABASE_URL, echo=settings.DATABASE_ECHO),
)

# Permission grants and timesheet rows are read back after commit
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    """Request-scoped session; rolled back if the route raises."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def create_tables():
    """Create the schema directly (local SQLite without Alembic)."""
    import crewtime.models  # noqa – registers all models
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
