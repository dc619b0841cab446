"""Alembic environment for the Accolade badge tables.

The target URL is resolved in this order:

1. ``alembic -x url=sqlite:///dev.db upgrade head``
2. ``DATABASE_URL`` (from the environment or ``.env``)
3. ``sqlalchemy.url`` in ``alembic.ini``

Online runs reuse :func:`accolade.database.engine.create_db_engine`, so
migrations connect exactly the way the CLI does.  SQLite gets batch mode
because it can't ALTER constraints in place.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from dotenv import load_dotenv

from accolade.database.engine import create_db_engine
from accolade.database.models import Base
from alembic import context

config = context.config
target_metadata = Base.metadata

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _database_url() -> str:
    load_dotenv()
    url = context.get_x_argument(as_dictionary=True).get("url")
    return url or os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")


def _configure(url: str, **kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting (``alembic upgrade --sql``)."""
    url = _database_url()
    _configure(
        url,
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = _database_url()
    engine = create_db_engine(url)
    try:
        with engine.connect() as connection:
            _configure(url, connection=connection)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
