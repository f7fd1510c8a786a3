"""Process-wide async engine for the triage session store.

The engine and its session factory are built on first use, so importing
the package (tests, the CLI) never opens a connection.  The API server
disposes them in its lifespan shutdown; the cleanup job does the same when
it runs standalone.

Pool settings are read when the engine is built:

    PG_POOL_SIZE       persistent connections (default 5)
    PG_MAX_OVERFLOW    burst connections above the pool (default 10)
    PG_POOL_RECYCLE    seconds before a connection is replaced (default 1800)
"""

import os

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from neuro_intake_db.config import get_async_url

# Shows up in pg_stat_activity next to the triage queries
APPLICATION_NAME = "neuro_intake"

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def pool_settings() -> dict[str, int]:
    """Pool keyword arguments for ``create_async_engine`` from the environment."""
    return {
        "pool_size": int(os.getenv("PG_POOL_SIZE", "5")),
        "max_overflow": int(os.getenv("PG_MAX_OVERFLOW", "10")),
        "pool_recycle": int(os.getenv("PG_POOL_RECYCLE", "1800")),
    }


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            get_async_url(),
            pool_pre_ping=True,
            connect_args={"server_settings": {"application_name": APPLICATION_NAME}},
            **pool_settings(),
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded attributes after commit.

    ``get_db`` commits at request teardown; rows the handler already read
    stay usable without a reload.
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(), class_=AsyncSession, expire_on_commit=False,
        )
    return _session_factory


async def dispose_engine() -> None:
    """Close pooled connections; the next ``get_engine`` call starts fresh."""
    global _engine, _session_factory
    engine, _engine, _session_factory = _engine, None, None
    if engine is not None:
        await engine.dispose()
