"""
Alembic environment for the marketplace schema.

The database URL always comes from the application settings, so migrations
and the API agree on the target (``DATABASE_URL`` or the POSTGRES_* parts).
SQLite runs in batch mode because it cannot ALTER most constraints in place.
"""
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from trademart.core.config import settings
from trademart.db import models  # noqa: F401  registers the tables on Base
from trademart.db.session import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

CONFIGURE_OPTIONS = {
    "target_metadata": target_metadata,
    "compare_type": True,
    "render_as_batch": settings.is_sqlite,
}


def run_migrations_offline() -> None:
    context.configure(
        url=settings.DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **CONFIGURE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(settings.DATABASE_URL, poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **CONFIGURE_OPTIONS)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
