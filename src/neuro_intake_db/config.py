"""Where the triage session store lives.

The URL is taken from the first of ``INTAKE_DATABASE_URL`` and
``DATABASE_URL`` that is set; otherwise it is assembled from the ``PG_HOST``,
``PG_PORT``, ``PG_USER``, ``PG_PASSWORD`` and ``PG_DATABASE`` parts that the
docker-compose file provides.

Whatever driver prefix the operator wrote, the service gets an asyncpg URL
(:func:`get_async_url`) and Alembic, which owns the ``triage_sessions`` and
``patient_profiles`` schema, gets a psycopg2 one (:func:`get_sync_url`).
"""

import os

URL_ENV_VARS = ("INTAKE_DATABASE_URL", "DATABASE_URL")

_SYNC_PREFIX = "postgresql://"
_ASYNC_PREFIX = "postgresql+asyncpg://"
# Spellings accepted on input; all name the same database
_KNOWN_PREFIXES = (_ASYNC_PREFIX, "postgresql+psycopg2://", _SYNC_PREFIX, "postgres://")


def _configured_url() -> str:
    for var in URL_ENV_VARS:
        url = os.getenv(var)
        if url:
            return url
    host = os.getenv("PG_HOST", "localhost")
    port = os.getenv("PG_PORT", "5432")
    user = os.getenv("PG_USER", "neuro_intake")
    password = os.getenv("PG_PASSWORD", "neuro_intake")
    database = os.getenv("PG_DATABASE", "neuro_intake")
    return f"{_SYNC_PREFIX}{user}:{password}@{host}:{port}/{database}"


def _with_prefix(url: str, prefix: str) -> str:
    for known in _KNOWN_PREFIXES:
        if url.startswith(known):
            return prefix + url[len(known):]
    # Non-PostgreSQL URLs (e.g. a sqlite file in a scratch setup) pass through
    return url


def get_sync_url() -> str:
    """psycopg2 URL for Alembic migrations."""
    return _with_prefix(_configured_url(), _SYNC_PREFIX)


def get_async_url() -> str:
    """asyncpg URL for the service's engine."""
    return _with_prefix(_configured_url(), _ASYNC_PREFIX)
