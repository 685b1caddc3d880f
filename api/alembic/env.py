from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine

from oldjournal import models  # noqa: F401  (registers tables on Base.metadata)
from oldjournal.db import Base, enable_sqlite_foreign_keys, get_database_url

config = context.config

if config.config_file_name:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def get_migration_url() -> str:
    """Database URL for migrations. DB_ADMIN_URL wins so DDL can run with elevated privileges."""
    url = config.get_main_option("sqlalchemy.url") or os.getenv("DB_ADMIN_URL")
    if url:
        return url
    return get_database_url()


def run_migrations_offline() -> None:
    url = get_migration_url()

    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_migration_url()
    connectable = create_engine(url, pool_pre_ping=True)
    is_sqlite = connectable.dialect.name == "sqlite"
    if is_sqlite:
        enable_sqlite_foreign_keys(connectable)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=is_sqlite,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
