"""
Accolade — Event-Driven Badge Rule Engine
==========================================
Decides, in response to domain events, whether a member has become eligible
for a badge, and records each award exactly once.  Badge conditions are
data (a small tree of threshold / flag / date-window checks combined with
AND, OR, NOT) stored alongside the catalog, so new badges ship without code.

Package layout::

    accolade/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Metric / profile vocabulary
    ├── errors.py          # Error taxonomy + ErrorKind
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # users, user_metrics, badges, user_badges
    ├── engine/
    │   ├── conditions.py  # Condition tree: parse, serialise, evaluate
    │   ├── context.py     # UserContextData snapshot
    │   ├── badges.py      # BadgeDefinition, AwardResult, enums
    │   ├── events.py      # EventType + EventContext
    │   ├── contracts.py   # MetricsProvider / BadgeCatalog / AwardStore protocols
    │   ├── badge_engine.py # Evaluation + award orchestration
    │   └── cache.py       # Optional TTL cache for metrics snapshots
    └── services/
        ├── catalog_service.py        # SQL badge catalog (in-memory cache)
        ├── award_store.py            # SQL award store (partial unique index)
        ├── metrics_service.py        # SQL metrics snapshots
        ├── trigger_service.py        # One method per domain event
        ├── reconciliation_service.py # Full-catalog sweep for many users
        ├── stats_service.py          # Catalog statistics
        └── seed.py                   # Default catalog seeder
"""

__version__ = "0.1.0"
