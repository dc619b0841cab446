"""
tests/test_migrations.py — Alembic Migration Tests
===================================================

Runs the real migration scripts against a throwaway SQLite file, with the
URL passed as ``-x url=...``.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from sqlalchemy import create_engine, inspect

from alembic import command
from alembic.config import Config

ALEMBIC_DIR = Path(__file__).resolve().parent.parent / "alembic"


def _config(url: str) -> Config:
    cfg = Config(cmd_opts=argparse.Namespace(x=[f"url={url}"]))
    cfg.set_main_option("script_location", str(ALEMBIC_DIR))
    return cfg


class TestMigrations:
    def test_upgrade_creates_badge_tables(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'migrate.db'}"
        command.upgrade(_config(url), "head")

        insp = inspect(create_engine(url))
        assert {"users", "user_metrics", "badges", "user_badges"} <= set(insp.get_table_names())
        indexes = {ix["name"]: ix for ix in insp.get_indexes("user_badges")}
        assert indexes["uq_user_badges_active"]["unique"]

    def test_downgrade_drops_everything(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'migrate.db'}"
        cfg = _config(url)
        command.upgrade(cfg, "head")
        command.downgrade(cfg, "base")

        tables = set(inspect(create_engine(url)).get_table_names())
        assert tables <= {"alembic_version"}
