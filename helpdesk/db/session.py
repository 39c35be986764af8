"""
Database session management.

WHY: Each request gets one AsyncSession and therefore one transaction.
Ticket creation writes the ticket, its tag links and its first event;
either all of them land or none do.
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker

from helpdesk.core.config import settings


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine for a database URL.

    SQLite (used for local runs and tests) does not accept queue pool
    sizing arguments, so they are only passed for server databases.
    """
    options: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        options.update(pool_size=10, max_overflow=20)
    return create_async_engine(database_url, **options)


engine = build_engine(settings.async_database_url, echo=settings.DEBUG)

# expire_on_commit=False keeps loaded tickets usable for the response
# after the request transaction commits.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get database session.

    Commits when the route returns, rolls back if it raises.

    Yields:
        AsyncSession: Database session for the request
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
