"""
accolade.__main__ — Entry point for ``python -m accolade``
===========================================================

Commands:

* ``seed``       Insert the default catalog from ``seeds/badges.yaml``.
* ``reconcile``  Full-catalog sweep over every (non-banned) user.  This is
                 how tenure badges get awarded; run it from cron.
* ``stats``      Print catalog and award counts.

Wiring:
1. Load .env (``DATABASE_URL``).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Run the command.

Run with::

    python -m accolade reconcile
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv
from sqlalchemy import Engine

from accolade.config import AccoladeConfig, load_config
from accolade.constants import RARITY_EMOJI
from accolade.database.engine import create_db_engine, init_db
from accolade.engine.badge_engine import BadgeEngine
from accolade.engine.cache import CachedMetricsProvider
from accolade.services.award_store import SqlAwardStore
from accolade.services.catalog_service import SqlBadgeCatalog
from accolade.services.metrics_service import SqlMetricsProvider
from accolade.services.reconciliation_service import all_user_ids, reconcile_users
from accolade.services.seed import seed_badges
from accolade.services.stats_service import badge_stats

logger = logging.getLogger("accolade")

LOG_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"


def build_badge_engine(engine: Engine, cfg: AccoladeConfig) -> BadgeEngine:
    """Wire the SQL collaborators into a :class:`BadgeEngine`."""
    catalog = SqlBadgeCatalog(engine)
    catalog.load_all()

    metrics = SqlMetricsProvider(engine)
    if cfg.metrics_cache_ttl_seconds > 0:
        metrics = CachedMetricsProvider(metrics, ttl_seconds=cfg.metrics_cache_ttl_seconds)

    return BadgeEngine(
        catalog,
        SqlAwardStore(engine),
        metrics,
        default_timeout=cfg.evaluation_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
def _cmd_seed(engine: Engine, cfg: AccoladeConfig, args: argparse.Namespace) -> int:
    added = seed_badges(engine, args.seed_file)
    print(f"Seeded {added} badge(s).")
    return 0


def _cmd_reconcile(engine: Engine, cfg: AccoladeConfig, args: argparse.Namespace) -> int:
    badge_engine = build_badge_engine(engine, cfg)
    user_ids = args.user or all_user_ids(engine)
    report = asyncio.run(reconcile_users(
        badge_engine, user_ids, concurrency=cfg.reconcile_concurrency,
    ))
    print(
        f"Checked {report['checked']} user(s): {report['awarded']} badge(s) awarded, "
        f"{report['errors']} error(s), {len(report['failed_users'])} failed user(s)."
    )
    return 1 if report["failed_users"] else 0


def _cmd_stats(engine: Engine, cfg: AccoladeConfig, args: argparse.Namespace) -> int:
    stats = badge_stats(engine)
    print(f"{cfg.community_name} — badge catalog")
    print(f"  Badges:   {stats['total']} ({stats['active']} active, {stats['inactive']} inactive)")
    print(f"  Awarded:  {stats['total_awarded']} ({stats['revoked']} revoked)")
    for category, count in sorted(stats["by_category"].items()):
        print(f"  {category:<12} {count}")
    for rarity, count in sorted(stats["by_rarity"].items()):
        print(f"  {RARITY_EMOJI.get(rarity, ' ')} {rarity:<10} {count}")
    return 0


_COMMANDS = {
    "seed": _cmd_seed,
    "reconcile": _cmd_reconcile,
    "stats": _cmd_stats,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="accolade", description="Badge rule engine tools")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    parser.add_argument("--database-url", default=None, help="Overrides DATABASE_URL")
    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="Insert the default badge catalog")
    seed.add_argument("--seed-file", default=None, help="Alternative badges.yaml")

    reconcile = sub.add_parser("reconcile", help="Full badge sweep over all users")
    reconcile.add_argument(
        "--user", action="append", default=None, help="Only this user id (repeatable)",
    )

    sub.add_parser("stats", help="Print catalog statistics")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, bootstrap, and run one command.  Returns the exit code."""
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
    )

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    cfg = load_config(args.config)
    logger.info("Config loaded — Community: %s", cfg.community_name)

    # 3. Database.
    engine = create_db_engine(args.database_url)
    init_db(engine, seed=cfg.seed_catalog and args.command != "seed")

    # 4. Command.
    return _COMMANDS[args.command](engine, cfg, args)


if __name__ == "__main__":
    sys.exit(main())
