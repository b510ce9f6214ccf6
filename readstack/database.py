from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from readstack.middleware import install_query_counter


class Base(DeclarativeBase):
    pass


class Database:
    """
    Owns the async engine and session factory for the process.

    Constructed in the application lifespan and disposed on shutdown;
    ``pool_pre_ping`` transparently replaces connections the server has
    dropped, so a database restart does not poison the pool.
    """

    def __init__(self, url: str, *, echo: bool = False, engine: AsyncEngine | None = None) -> None:
        if engine is None:
            engine = create_async_engine(url, echo=echo, pool_pre_ping=True, pool_timeout=10)
        self.engine = engine
        install_query_counter(self.engine)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


# Callbacks queued on a session to run only after its transaction commits.
_AFTER_COMMIT = "readstack.after_commit"


def after_commit(session: AsyncSession, callback: Callable[[], Awaitable[None]]) -> None:
    """Defer *callback* until ``commit(session)`` succeeds; dropped on rollback."""
    session.info.setdefault(_AFTER_COMMIT, []).append(callback)


async def commit(session: AsyncSession) -> None:
    """Commit *session*, then run the callbacks queued with :func:`after_commit`."""
    try:
        await session.commit()
    except Exception:
        session.info.pop(_AFTER_COMMIT, None)
        raise
    for callback in session.info.pop(_AFTER_COMMIT, []):
        await callback()


async def rollback(session: AsyncSession) -> None:
    session.info.pop(_AFTER_COMMIT, None)
    await session.rollback()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """One session per request; commit on success, roll back on any exception."""
    database: Database = request.app.state.db
    async with database.session_factory() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await rollback(session)
            raise
