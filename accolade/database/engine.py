"""
accolade.database.engine — Database Connection & Async Helper
==============================================================

The badge engine is ``asyncio``-based, while SQLAlchemy + psycopg2 is
synchronous.  Every SQL collaborator (catalog, award store, metrics
provider) therefore does its work in a plain function and hands it to
:func:`run_db`, which runs it on the default thread pool so concurrent
evaluations never block the event loop.

Usage::

    from accolade.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    outcome = await run_db(_insert_award, engine, user_id, badge_id)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from accolade.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine`.

    *url* defaults to the ``DATABASE_URL`` environment variable.  Server
    databases get a bounded pool (5 persistent connections, 10 overflow,
    10 s checkout timeout, hourly recycle); SQLite URLs allow
    connections to move between the ``run_db`` worker threads.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is not set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    if url.startswith("sqlite"):
        engine = create_engine(
            url, echo=False, connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            url,
            echo=False,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            pool_timeout=10,
            pool_recycle=3600,
        )
    logger.info("Database engine created → %s", engine.url.host or engine.url.database)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine, *, seed: bool = False) -> None:
    """Create all tables defined in :mod:`accolade.database.models`.

    Safe to call on every startup.  With ``seed=True`` the default badge
    catalog from ``seeds/badges.yaml`` is inserted as well (only badges
    that don't exist yet).

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` covers dev/test databases.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")

    if seed:
        from accolade.services.seed import seed_badges

        seed_badges(engine)


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that commits on success and rolls back on
    exception.
    """
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Parameters
    ----------
    func:
        Any sync callable (typically one that opens a session and runs
        queries).
    *args, **kwargs:
        Forwarded to *func*.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
