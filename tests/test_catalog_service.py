"""
tests/test_catalog_service.py — SqlBadgeCatalog Tests
======================================================
"""

from __future__ import annotations

from conftest import add_badge, run_async

from accolade.engine.badges import BadgeCategory, BadgeRarity
from accolade.engine.conditions import MetricThreshold
from accolade.engine.contracts import BadgeCatalog
from accolade.engine.events import EventType
from accolade.services.catalog_service import SqlBadgeCatalog

_POSTS_5 = {"type": "METRIC_THRESHOLD", "metric": "posts_published", "op": ">=", "value": 5}


class TestSqlBadgeCatalog:
    def test_satisfies_protocol(self, db_engine):
        assert isinstance(SqlBadgeCatalog(db_engine), BadgeCatalog)

    def test_parses_rows(self, db_engine):
        add_badge(
            db_engine, "regular_author",
            category="ACHIEVEMENT", rarity="UNCOMMON",
            criteria=_POSTS_5, trigger_events=["CONTENT_PUBLISHED"],
        )
        catalog = SqlBadgeCatalog(db_engine)
        badge = run_async(catalog.get_badge("regular_author"))

        assert badge.condition == MetricThreshold("posts_published", ">=", 5)
        assert badge.trigger_events == frozenset({EventType.CONTENT_PUBLISHED})
        assert badge.category == BadgeCategory.ACHIEVEMENT
        assert badge.rarity == BadgeRarity.UNCOMMON
        assert badge.config_error is None

    def test_active_badges_filters_by_event_and_activity(self, db_engine):
        add_badge(db_engine, "a", criteria=_POSTS_5, trigger_events=["CONTENT_PUBLISHED"])
        add_badge(db_engine, "b", criteria=_POSTS_5, trigger_events=["PLACE_CREATED"])
        add_badge(db_engine, "c", criteria=_POSTS_5, trigger_events=["CONTENT_PUBLISHED"],
                  is_active=False)
        catalog = SqlBadgeCatalog(db_engine)

        published = run_async(catalog.active_badges(EventType.CONTENT_PUBLISHED))
        everything = run_async(catalog.active_badges(None))
        assert [b.id for b in published] == ["a"]
        assert {b.id for b in everything} == {"a", "b"}
        # Inactive badges are still reachable by id.
        assert run_async(catalog.get_badge("c")).is_active is False

    def test_malformed_criteria_flagged_not_dropped(self, db_engine):
        add_badge(db_engine, "broken", criteria={"type": "NOT", "children": []},
                  trigger_events=["CONTENT_PUBLISHED"])
        catalog = SqlBadgeCatalog(db_engine)
        [badge] = run_async(catalog.active_badges(EventType.CONTENT_PUBLISHED))
        assert badge.id == "broken"
        assert badge.condition is None
        assert "exactly one child" in badge.config_error

    def test_unknown_rarity_flagged(self, db_engine):
        add_badge(db_engine, "odd", rarity="MYTHIC", criteria=_POSTS_5)
        catalog = SqlBadgeCatalog(db_engine)
        badge = run_async(catalog.get_badge("odd"))
        assert badge.config_error is not None
        assert badge.is_automatic

    def test_manual_only_badge(self, db_engine):
        add_badge(db_engine, "pioneer", criteria=None)
        catalog = SqlBadgeCatalog(db_engine)
        badge = run_async(catalog.get_badge("pioneer"))
        assert badge.condition is None and not badge.is_automatic

    def test_reload_sees_new_rows(self, db_engine):
        catalog = SqlBadgeCatalog(db_engine)
        catalog.load_all()
        add_badge(db_engine, "late", criteria=_POSTS_5)
        assert run_async(catalog.get_badge("late")) is None
        catalog.reload()
        assert run_async(catalog.get_badge("late")) is not None
        assert [b.id for b in catalog.all_badges()] == ["late"]
