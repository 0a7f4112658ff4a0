"""Database connection and session management."""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from buyer_intake.config import settings


def _async_url(url: str) -> str:
    """Point plain driver URLs at their asyncio drivers."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def build_engine(url: str, echo: bool = False):
    """Create an async engine with pool settings suited to the backend."""
    url = _async_url(url)

    if url.startswith("sqlite"):
        # Single shared connection so in-memory databases survive between sessions
        return create_async_engine(
            url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=20,
        max_overflow=10
    )


def build_session_factory(bind) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


# Create async engine
engine = build_engine(settings.DATABASE_URL, echo=settings.LOG_LEVEL == "DEBUG")

# Create session factory
AsyncSessionLocal = build_session_factory(engine)

# Base class for models
Base = declarative_base()


async def get_db():
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_tables(bind=None):
    """Create all tables registered on Base."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
