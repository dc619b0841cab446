"""
accolade.engine.conditions — Condition Trees & Evaluator
=========================================================

A badge's eligibility rule is a small boolean expression tree.  Leaves read
one value from a :class:`~accolade.engine.context.UserContextData`
snapshot; composites combine their children.

Node kinds (a closed set — :func:`evaluate_condition` matches every one)::

    MetricThreshold(metric, op, value)     METRIC_THRESHOLD
    Flag(field, expected)                  FLAG
    DateWindow(field, within_days)         DATE_WINDOW
    AllOf(children)                        AND
    AnyOf(children)                        OR
    Not(child)                             NOT

Trees are stored as JSON (``badges.criteria``) and in the seed YAML; use
:func:`parse_condition` to build a validated tree and
:func:`condition_to_dict` to serialise one back.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from accolade.engine.context import UserContextData, as_utc
from accolade.errors import ConfigurationError


__all__ = [
    "AllOf",
    "AnyOf",
    "Condition",
    "DateWindow",
    "Flag",
    "MetricThreshold",
    "Not",
    "condition_to_dict",
    "evaluate_condition",
    "parse_condition",
    "referenced_fields",
    "referenced_metrics",
]

# ---------------------------------------------------------------------------
# Comparison operators for METRIC_THRESHOLD
# ---------------------------------------------------------------------------
OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    ">=": operator.ge,
    ">": operator.gt,
    "==": operator.eq,
    "<=": operator.le,
    "<": operator.lt,
}


# ---------------------------------------------------------------------------
# Node types
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MetricThreshold:
    metric: str
    op: str
    value: int | float


@dataclass(frozen=True, slots=True)
class Flag:
    field: str
    expected: bool


@dataclass(frozen=True, slots=True)
class DateWindow:
    """True when ``profile[field]`` lies within *within_days* of ``as_of``."""

    field: str
    within_days: int


@dataclass(frozen=True, slots=True)
class AllOf:
    children: tuple[Condition, ...]


@dataclass(frozen=True, slots=True)
class AnyOf:
    children: tuple[Condition, ...]


@dataclass(frozen=True, slots=True)
class Not:
    child: Condition


Condition = MetricThreshold | Flag | DateWindow | AllOf | AnyOf | Not


# ---------------------------------------------------------------------------
# Parsing — JSON mapping → validated tree
# ---------------------------------------------------------------------------
def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _require(data: Mapping[str, Any], key: str, node_type: str) -> Any:
    if key not in data:
        raise ConfigurationError(f"{node_type} condition is missing '{key}'")
    return data[key]


def _reject_children(data: Mapping[str, Any], node_type: str) -> None:
    if data.get("children"):
        raise ConfigurationError(f"{node_type} is a leaf and cannot have children")


def _parse_children(data: Mapping[str, Any], node_type: str) -> tuple[Condition, ...]:
    children = data.get("children")
    if not isinstance(children, list | tuple):
        raise ConfigurationError(f"{node_type} condition needs a 'children' list")
    return tuple(parse_condition(child) for child in children)


def parse_condition(data: Any) -> Condition:
    """Build a condition tree from its JSON form.

    Raises
    ------
    ConfigurationError
        On an unknown node type, a missing or mistyped key, an AND/OR with
        no children, a NOT without exactly one child, or a leaf with
        children.
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Condition must be a mapping, got {type(data).__name__}")

    node_type = str(data.get("type", "")).upper()

    if node_type == "METRIC_THRESHOLD":
        _reject_children(data, node_type)
        metric = _require(data, "metric", node_type)
        op = _require(data, "op", node_type)
        value = _require(data, "value", node_type)
        if not isinstance(metric, str) or not metric:
            raise ConfigurationError("METRIC_THRESHOLD 'metric' must be a non-empty string")
        if op not in OPERATORS:
            raise ConfigurationError(f"Unknown comparison operator: {op!r}")
        if not _is_number(value):
            raise ConfigurationError(
                f"METRIC_THRESHOLD value for {metric!r} must be a number, got {value!r}"
            )
        return MetricThreshold(metric=metric, op=op, value=value)

    if node_type == "FLAG":
        _reject_children(data, node_type)
        field_name = _require(data, "field", node_type)
        expected = _require(data, "expected", node_type)
        if not isinstance(field_name, str) or not field_name:
            raise ConfigurationError("FLAG 'field' must be a non-empty string")
        if not isinstance(expected, bool):
            raise ConfigurationError(f"FLAG 'expected' must be a boolean, got {expected!r}")
        return Flag(field=field_name, expected=expected)

    if node_type == "DATE_WINDOW":
        _reject_children(data, node_type)
        field_name = _require(data, "field", node_type)
        within = _require(data, "withinDays", node_type)
        if not isinstance(field_name, str) or not field_name:
            raise ConfigurationError("DATE_WINDOW 'field' must be a non-empty string")
        if not isinstance(within, int) or isinstance(within, bool) or within < 0:
            raise ConfigurationError(
                f"DATE_WINDOW 'withinDays' must be a non-negative integer, got {within!r}"
            )
        return DateWindow(field=field_name, within_days=within)

    if node_type in ("AND", "OR"):
        children = _parse_children(data, node_type)
        if not children:
            raise ConfigurationError(f"{node_type} condition needs at least one child")
        return AllOf(children) if node_type == "AND" else AnyOf(children)

    if node_type == "NOT":
        children = _parse_children(data, node_type)
        if len(children) != 1:
            raise ConfigurationError(
                f"NOT condition needs exactly one child, got {len(children)}"
            )
        return Not(children[0])

    raise ConfigurationError(f"Unknown condition type: {data.get('type')!r}")


def condition_to_dict(condition: Condition) -> dict[str, Any]:
    """Serialise *condition* to the JSON form accepted by :func:`parse_condition`."""
    match condition:
        case MetricThreshold(metric=metric, op=op, value=value):
            return {"type": "METRIC_THRESHOLD", "metric": metric, "op": op, "value": value}
        case Flag(field=field_name, expected=expected):
            return {"type": "FLAG", "field": field_name, "expected": expected}
        case DateWindow(field=field_name, within_days=within):
            return {"type": "DATE_WINDOW", "field": field_name, "withinDays": within}
        case AllOf(children=children):
            return {"type": "AND", "children": [condition_to_dict(c) for c in children]}
        case AnyOf(children=children):
            return {"type": "OR", "children": [condition_to_dict(c) for c in children]}
        case Not(child=child):
            return {"type": "NOT", "children": [condition_to_dict(child)]}
    raise ConfigurationError(f"Unsupported condition node: {condition!r}")


def _walk(condition: Condition) -> Iterator[Condition]:
    yield condition
    match condition:
        case AllOf(children=children) | AnyOf(children=children):
            for child in children:
                yield from _walk(child)
        case Not(child=child):
            yield from _walk(child)


def referenced_metrics(condition: Condition) -> set[str]:
    """Names of every metric a tree reads."""
    return {n.metric for n in _walk(condition) if isinstance(n, MetricThreshold)}


def referenced_fields(condition: Condition) -> set[str]:
    """Names of every profile field a tree reads."""
    return {n.field for n in _walk(condition) if isinstance(n, Flag | DateWindow)}


# ---------------------------------------------------------------------------
# Leaf handlers — pure functions (node, ctx) → bool
# ---------------------------------------------------------------------------
def _check_metric_threshold(node: MetricThreshold, ctx: UserContextData) -> bool:
    if node.metric not in ctx.metrics:
        raise ConfigurationError(f"Unknown metric: {node.metric!r}")
    actual = ctx.metrics[node.metric]
    if not _is_number(actual):
        raise ConfigurationError(
            f"Metric {node.metric!r} is not numeric (got {type(actual).__name__})"
        )
    compare = OPERATORS.get(node.op)
    if compare is None:
        raise ConfigurationError(f"Unknown comparison operator: {node.op!r}")
    return compare(actual, node.value)


def _check_flag(node: Flag, ctx: UserContextData) -> bool:
    if node.field not in ctx.profile:
        raise ConfigurationError(f"Unknown profile field: {node.field!r}")
    actual = ctx.profile[node.field]
    if actual is None:
        return False
    if not isinstance(actual, bool):
        raise ConfigurationError(
            f"Profile field {node.field!r} is not a flag (got {type(actual).__name__})"
        )
    return actual is node.expected


def _check_date_window(node: DateWindow, ctx: UserContextData) -> bool:
    if node.field not in ctx.profile:
        raise ConfigurationError(f"Unknown profile field: {node.field!r}")
    actual = ctx.profile[node.field]
    if actual is None:
        return False
    if not isinstance(actual, datetime):
        raise ConfigurationError(
            f"Profile field {node.field!r} is not a date (got {type(actual).__name__})"
        )
    return as_utc(ctx.as_of) - as_utc(actual) <= timedelta(days=node.within_days)


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------
def evaluate_condition(condition: Condition, ctx: UserContextData) -> bool:
    """Evaluate *condition* against *ctx*.

    AND stops at the first false child and OR at the first true child.

    Raises
    ------
    ConfigurationError
        If the tree references a metric or field the snapshot lacks, or
        contains a node that isn't one of the known kinds.
    """
    match condition:
        case MetricThreshold():
            return _check_metric_threshold(condition, ctx)
        case Flag():
            return _check_flag(condition, ctx)
        case DateWindow():
            return _check_date_window(condition, ctx)
        case AllOf(children=children):
            return all(evaluate_condition(child, ctx) for child in children)
        case AnyOf(children=children):
            return any(evaluate_condition(child, ctx) for child in children)
        case Not(child=child):
            return not evaluate_condition(child, ctx)
    raise ConfigurationError(f"Unsupported condition node: {condition!r}")
