"""Alembic environment for the edtech schema.

Learn: Migrations connect with the same Settings and engine builder the
app uses (build_engine), so EDTECH_DATABASE_URL is the only place the
database is configured. Offline mode renders SQL for review instead.
"""

import asyncio
from logging.config import fileConfig

from alembic import context

from edtech.config import load_settings
from edtech.db.engine import build_engine
from edtech.db.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _configure(**kwargs) -> None:
    context.configure(target_metadata=target_metadata, compare_type=True, **kwargs)


def migrate_offline(url: str) -> None:
    """Emit the migration SQL to stdout without a connection."""
    _configure(url=url, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _apply(connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def migrate_online() -> None:
    engine = build_engine(load_settings())
    try:
        async with engine.connect() as conn:
            await conn.run_sync(_apply)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    migrate_offline(load_settings().database_url)
else:
    asyncio.run(migrate_online())
