"""
Database engine and session factory.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from chainsweep.config.settings import settings


def async_database_url(url: str) -> str:
    """Force the asyncpg driver on plain postgresql:// URLs."""
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


def build_engine(url: str | None = None, echo: bool | None = None) -> AsyncEngine:
    """Create an async engine (defaults from settings)."""
    return create_async_engine(
        async_database_url(url or settings.database_url),
        echo=settings.database_echo if echo is None else echo,
        pool_pre_ping=True,
    )


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = build_engine()
async_session_maker = build_session_maker(engine)
