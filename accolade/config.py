"""
accolade.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for the engine's soft settings.  Connection strings
and other secrets stay in the environment (``DATABASE_URL``, loaded from
``.env`` by the entry points).

Usage::

    from accolade.config import load_config

    cfg = load_config()                      # reads ./config.yaml by default
    print(cfg.community_name)                # "Bédarieux"
    print(cfg.evaluation_timeout_seconds)    # 10.0
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AccoladeConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str

    # Evaluation
    evaluation_timeout_seconds: float | None = 10.0  # None = no deadline
    metrics_cache_ttl_seconds: float = 0.0           # 0 = always fetch fresh

    # Reconciliation sweep
    reconcile_concurrency: int = 5

    # Seeding
    seed_catalog: bool = True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> AccoladeConfig:
    """Read *path* and return an :class:`AccoladeConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If a numeric setting is out of range.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    timeout = raw.get("evaluation_timeout_seconds", 10.0)
    concurrency = int(raw.get("reconcile_concurrency", 5))
    if concurrency < 1:
        raise ValueError(f"reconcile_concurrency must be >= 1, got {concurrency}")

    return AccoladeConfig(
        community_name=raw["community_name"],
        evaluation_timeout_seconds=float(timeout) if timeout is not None else None,
        metrics_cache_ttl_seconds=float(raw.get("metrics_cache_ttl_seconds", 0)),
        reconcile_concurrency=concurrency,
        seed_catalog=bool(raw.get("seed_catalog", True)),
    )
