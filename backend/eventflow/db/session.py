"""
Async engine, session factory and the explicit unit of work.

Every booking/payment operation runs inside one ``UnitOfWork``. The unit
hands out a single ``AsyncSession``; the service decides when to ``commit``
or ``rollback``. Leaving the context without a commit rolls back, so a
failure half-way through a multi-step change is never visible to other readers.
"""

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from eventflow.core.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    pool_recycle=settings.DB_POOL_RECYCLE,
    pool_pre_ping=True,
)

SessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


class UnitOfWork:
    """Transaction boundary shared by all reads and writes of one atomic step."""

    def __init__(self, session_factory: async_sessionmaker = SessionLocal):
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork used outside of its context")
        return self._session

    async def __aenter__(self) -> "UnitOfWork":
        self._session = self._session_factory()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        # close() discards anything not explicitly committed and detaches
        # loaded objects without expiring them, so responses can still be built
        await self.session.close()
        self._session = None

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


async def get_uow() -> AsyncGenerator[UnitOfWork, None]:
    """FastAPI dependency: one unit of work per request."""
    async with UnitOfWork() as uow:
        yield uow
