"""
accolade.errors — Error Taxonomy
=================================

Every failure the badge engine can report, plus the :class:`ErrorKind` tag
carried on an :class:`~accolade.engine.badges.AwardResult` when a single
badge fails inside an otherwise successful evaluation.

Propagation rules:

* Per-badge failures (bad condition, store hiccup, timeout) are caught by the
  engine and reported on that badge's result.  ``evaluate`` never raises for
  one badge.
* Caller-level failures (the metrics snapshot cannot be fetched at all, an
  unknown id passed to a manual operation) are raised once.
"""

from __future__ import annotations

import enum


class ErrorKind(enum.StrEnum):
    """Failure tag attached to a per-badge result."""
    CONFIGURATION = "CONFIGURATION"
    NOT_FOUND = "NOT_FOUND"
    TRANSIENT_STORE = "TRANSIENT_STORE"
    TIMEOUT = "TIMEOUT"


class AccoladeError(Exception):
    """Base class for all engine errors."""

    kind: ErrorKind | None = None


class ConfigurationError(AccoladeError):
    """A badge condition is malformed or references an unknown metric/field."""

    kind = ErrorKind.CONFIGURATION


class NotFoundError(AccoladeError):
    """Unknown user or badge id on a manual operation or snapshot fetch."""

    kind = ErrorKind.NOT_FOUND


class ConflictError(AccoladeError):
    """The (user, badge) pair already holds an active award.

    The engine treats this as a successful no-op, never as a failure.
    """


class TransientStoreError(AccoladeError):
    """The award store is unavailable; the caller may retry the evaluation."""

    kind = ErrorKind.TRANSIENT_STORE


class MetricsUnavailableError(AccoladeError):
    """The metrics provider could not produce a snapshot for this call."""
