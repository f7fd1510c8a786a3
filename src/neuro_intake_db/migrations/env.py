"""Alembic runner for the ``triage_sessions`` and ``patient_profiles`` schema.

Migrations run over psycopg2 (``get_sync_url``) even though the service
itself talks asyncpg.  ``compare_type`` is on because the CHECK constraints
in ``triage_sessions`` rely on the state and disease columns keeping their
``String(20)`` width.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from neuro_intake_db.config import get_sync_url
from neuro_intake_db.models.base import Base

# Both tables must be on Base.metadata before autogenerate compares
import neuro_intake_db.models.profile  # noqa: F401
import neuro_intake_db.models.session  # noqa: F401

config = context.config
config.set_main_option("sqlalchemy.url", get_sync_url())

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
TRIAGE_TABLES = frozenset(target_metadata.tables)


def include_object(obj, name, type_, reflected, compare_to) -> bool:
    """Leave tables this package does not own out of autogenerate."""
    if type_ == "table":
        return name in TRIAGE_TABLES
    return True


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        include_object=include_object,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Print the DDL instead of applying it (``alembic upgrade --sql``)."""
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
