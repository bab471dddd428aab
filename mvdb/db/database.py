"""Database connection and session management."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from mvdb.config import get_settings

settings = get_settings()


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine with pool settings suited to the backend."""
    # Always disable SQL echo - it creates massive log spam
    if database_url.startswith("sqlite"):
        # In-memory SQLite must share one connection or every session sees an empty DB
        pool_kwargs = {"poolclass": StaticPool} if ":memory:" in database_url else {}
        return create_async_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            **pool_kwargs,
        )

    return create_async_engine(
        database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        echo=False,
        pool_pre_ping=True,  # Verify connections before use to avoid stale connections
        pool_recycle=300,    # Recycle connections after 5 minutes
    )


engine = build_engine(settings.database_url)

# Session factory
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Alias used by scripts
async_session_maker = async_session

# Base class for models
Base = declarative_base()


async def init_db(bind: AsyncEngine | None = None):
    """Initialize database tables."""
    # Import models so they register on Base.metadata
    from mvdb.db import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)


async def get_db() -> AsyncSession:
    """Dependency for getting database sessions."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()
