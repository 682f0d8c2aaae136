# alembic/env.py
import logging
import os
import sys
from logging.config import fileConfig

from sqlalchemy import create_engine

from alembic import context

# Make the project root importable so 'waterlily' resolves when alembic is run
# from a checkout without an installed package.
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Importing waterlily.config also loads the .env from the project root.
from waterlily.config import DATABASE_URL  # noqa: E402
from waterlily.database import Base  # noqa: E402
from waterlily import models  # noqa: E402,F401  (registers tables on Base.metadata)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def sync_url(url: str) -> str:
    """Alembic runs schema operations synchronously; drop the async driver."""
    for async_driver, sync_driver in (("+asyncpg", "+psycopg2"), ("+aiosqlite", "")):
        if async_driver in url:
            return url.replace(async_driver, sync_driver)
    return url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (emit SQL without a connection)."""
    offline_url = sync_url(DATABASE_URL)
    logger.info("Offline migrations for %s", offline_url)
    context.configure(
        url=offline_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against DATABASE_URL."""
    online_url = sync_url(DATABASE_URL)
    logger.info("Online migrations for %s", online_url)
    connectable = create_engine(online_url)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
