"""
accolade.constants — Shared Constants
======================================

Single source of truth for the metric and profile vocabulary the condition
language may reference, and for rarity presentation.  Import from here
instead of duplicating names in services, seeds, and tests.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Metric vocabulary (METRIC_THRESHOLD conditions)
# ---------------------------------------------------------------------------
# Counters maintained by the host application in ``user_metrics``.
COUNTER_METRICS: frozenset[str] = frozenset({
    "posts_published",
    "posts_drafted",
    "places_owned",
    "places_claimed",
    "reviews_written",
    "events_organized",
    "products_listed",
    "services_listed",
})

# Metrics computed by the provider at snapshot time.
DERIVED_METRICS: frozenset[str] = frozenset({
    "account_age_days",
})

VALID_METRICS: frozenset[str] = COUNTER_METRICS | DERIVED_METRICS

# ---------------------------------------------------------------------------
# Profile vocabulary (FLAG / DATE_WINDOW conditions)
# ---------------------------------------------------------------------------
FLAG_FIELDS: frozenset[str] = frozenset({
    "email_verified",
    "banned",
    "is_public",
    "profile_basic",
    "profile_complete",
    "ambassador",
})

DATE_FIELDS: frozenset[str] = frozenset({
    "created_at",
    "last_login_at",
})

# Profile text fields counted towards completion (basic = 2 of 3, complete = 3)
PROFILE_COMPLETION_FIELDS: tuple[str, ...] = ("bio", "first_name", "last_name")

# ---------------------------------------------------------------------------
# Rarity presentation (CLI stats output)
# ---------------------------------------------------------------------------
RARITY_EMOJI: dict[str, str] = {
    "COMMON": "\u26aa",        # ⚪
    "UNCOMMON": "\U0001f7e2",  # 🟢
    "RARE": "\U0001f535",      # 🔵
    "EPIC": "\U0001f7e3",      # 🟣
    "LEGENDARY": "\U0001f7e1", # 🟡
}
