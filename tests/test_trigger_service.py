"""
tests/test_trigger_service.py — BadgeTriggerService Tests
==========================================================

Each domain method must build one event of the right type, and no failure
may escape to the caller.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import NOW, run_async

from accolade.engine.badges import AwardResult
from accolade.engine.events import EventType
from accolade.errors import ErrorKind, MetricsUnavailableError, NotFoundError
from accolade.services.trigger_service import BadgeTriggerService


@pytest.fixture
def engine():
    engine = MagicMock()
    engine.evaluate = AsyncMock(return_value=[AwardResult.created("welcome")])
    engine.award_manually = AsyncMock(return_value=AwardResult.created("pioneer"))
    return engine


@pytest.fixture
def triggers(engine):
    return BadgeTriggerService(engine)


class TestDomainEvents:
    @pytest.mark.parametrize(
        "method, kwargs, event_type, payload",
        [
            ("on_user_registered", {}, EventType.USER_REGISTERED, {}),
            ("on_profile_updated", {}, EventType.PROFILE_UPDATED, {}),
            ("on_content_published", {"post_id": "p1"}, EventType.CONTENT_PUBLISHED,
             {"post_id": "p1"}),
            ("on_place_created", {"place_id": "pl1"}, EventType.PLACE_CREATED,
             {"place_id": "pl1"}),
            ("on_place_claimed", {"place_id": "pl1"}, EventType.PLACE_CLAIMED,
             {"place_id": "pl1"}),
            ("on_review_submitted", {"place_id": "pl2"}, EventType.REVIEW_SUBMITTED,
             {"place_id": "pl2"}),
            ("on_post_created", {"post_id": "p2"}, EventType.POST_CREATED,
             {"post_id": "p2"}),
            ("on_event_created", {"event_id": "e1"}, EventType.EVENT_CREATED,
             {"event_id": "e1"}),
            ("on_product_created", {"product_id": "pr1"}, EventType.PRODUCT_CREATED,
             {"product_id": "pr1"}),
            ("on_service_created", {"service_id": "s1"}, EventType.SERVICE_CREATED,
             {"service_id": "s1"}),
        ],
    )
    def test_builds_one_event(self, triggers, engine, method, kwargs, event_type, payload):
        results = run_async(getattr(triggers, method)("u1", **kwargs))

        engine.evaluate.assert_awaited_once()
        event = engine.evaluate.await_args.args[0]
        assert event.event_type == event_type
        assert event.user_id == "u1"
        assert event.payload == payload
        assert results == [AwardResult.created("welcome")]

    def test_occurred_at_forwarded(self, triggers, engine):
        run_async(triggers.on_user_registered("u1", occurred_at=NOW))
        assert engine.evaluate.await_args.args[0].occurred_at == NOW

    def test_check_all_badges_is_full_sweep(self, triggers, engine):
        run_async(triggers.check_all_badges("u1"))
        event = engine.evaluate.await_args.args[0]
        assert event.event_type == EventType.RECONCILIATION
        assert event.is_full_sweep


class TestFailuresSwallowed:
    @pytest.mark.parametrize(
        "error",
        [NotFoundError("ghost"), MetricsUnavailableError("db down"), RuntimeError("boom")],
    )
    def test_evaluate_failure_returns_empty(self, triggers, engine, error):
        engine.evaluate.side_effect = error
        assert run_async(triggers.on_content_published("u1")) == []


class TestSpecialBadge:
    def test_new_award_true(self, triggers, engine):
        assert run_async(triggers.award_special_badge("u1", "pioneer", "early")) is True
        engine.award_manually.assert_awaited_once_with("u1", "pioneer", "early")

    def test_already_held_false(self, triggers, engine):
        engine.award_manually.return_value = AwardResult.held("pioneer")
        assert run_async(triggers.award_special_badge("u1", "pioneer", "early")) is False

    def test_failed_result_false(self, triggers, engine):
        engine.award_manually.return_value = AwardResult.failed(
            "pioneer", ErrorKind.TRANSIENT_STORE, "down",
        )
        assert run_async(triggers.award_special_badge("u1", "pioneer", "early")) is False

    def test_unknown_badge_false(self, triggers, engine):
        engine.award_manually.side_effect = NotFoundError("Badge 'x' not found")
        assert run_async(triggers.award_special_badge("u1", "x", "early")) is False
