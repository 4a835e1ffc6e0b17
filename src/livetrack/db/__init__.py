"""Database access for livetrack.

One async engine per process, created lazily from the configured URL on the
first session request. Models live in livetrack.db.models and the schema
is managed by the Alembic environment in livetrack.db.migrations.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

_PSYCOPG_SCHEME = "postgresql+psycopg://"

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def psycopg_url(url: str) -> str:
    """Point a plain PostgreSQL URL at the psycopg driver (sync and async alike)."""
    for scheme in ("postgresql://", "postgres://"):
        if url.startswith(scheme):
            return _PSYCOPG_SCHEME + url[len(scheme) :]
    return url


def _get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    global _engine, _sessionmaker

    if _sessionmaker is None:
        from livetrack.core.settings import get_settings

        db = get_settings().database
        _engine = create_async_engine(
            psycopg_url(str(db.url)),
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
            echo=db.echo,
        )
        # Loaded rows stay readable after commit; responses are built from them
        _sessionmaker = async_sessionmaker(bind=_engine, expire_on_commit=False)
    return _sessionmaker


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Open a session that is rolled back on error and always closed.

    Nothing is committed implicitly; services call commit() themselves.
    """
    session = _get_sessionmaker()()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def close_engine() -> None:
    """Dispose of the pool; the next session request builds a new engine."""
    global _engine, _sessionmaker

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None
