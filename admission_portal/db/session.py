from typing import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from admission_portal.core.config import settings


def build_engine(database_url: str) -> AsyncEngine:
    """
    Async engine for the admissions database.

    Server databases get liveness checks and a 5 minute connection lifetime.
    SQLite (local runs and tests) uses SQLAlchemy's default pool.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return create_async_engine(url, echo=False)
    return create_async_engine(url, echo=False, pool_pre_ping=True, pool_recycle=300)


engine = build_engine(settings.database_url)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; services commit their own writes."""
    async with AsyncSessionLocal() as session:
        yield session


async def create_tables() -> None:
    """Create any missing tables, registering the user and admissions models first."""
    import admission_portal.auth.models  # noqa: F401
    import admission_portal.core.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
