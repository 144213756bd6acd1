from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from sqlalchemy import text
from typing import AsyncGenerator

from ..core.config import settings

# Base class for models
Base = declarative_base()


def _create_engine(url: str) -> AsyncEngine:
    # NullPool: SQLite connections are cheap and must not be shared across loops
    return create_async_engine(
        url,
        echo=settings.DEBUG,
        connect_args={
            "timeout": 30,  # wait for locks held by a concurrent writer
            "check_same_thread": False,
        },
        poolclass=NullPool,
    )


def _create_sessionmaker(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = _create_engine(settings.DATABASE_URL)
AsyncSessionLocal = _create_sessionmaker(engine)


def configure(url: str) -> None:
    """Point the history store at another database (CLI option, tests)."""
    global engine, AsyncSessionLocal
    engine = _create_engine(url)
    AsyncSessionLocal = _create_sessionmaker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """Create the history tables; SQLite runs in WAL mode so the API can read during a pass."""
    async with engine.begin() as conn:
        await conn.execute(text("PRAGMA journal_mode=WAL"))
        await conn.execute(text("PRAGMA busy_timeout=30000"))
        await conn.run_sync(Base.metadata.create_all)
