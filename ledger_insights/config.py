"""Configuration management for the ledger analytics engine.

This module centralizes paths, environment variable overrides and the
tuning options recognised by the query layer.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .defaults import load_config
from .logging_setup import get_logger

logger = get_logger(__name__)

# Base project root - assumes this file is in ledger_insights/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("LEDGER_INSIGHTS_DATA_DIR", _PROJECT_ROOT / "data"))
LEDGER_DIR = Path(os.getenv("LEDGER_INSIGHTS_LEDGER_DIR", DATA_DIR / "ledger"))

BUDGET_CONFIG_PATH = Path(
    os.getenv("LEDGER_INSIGHTS_BUDGET_PATH", DATA_DIR / "budget_config.json")
).resolve()

OWNERS_PATH = Path(
    os.getenv("LEDGER_INSIGHTS_OWNERS_PATH", DATA_DIR / "owners.json")
).resolve()

ENV_PREFIX = "LEDGER_INSIGHTS_"


def ensure_data_directories() -> None:
    """Create the data directories if they don't exist."""
    for directory in [DATA_DIR, LEDGER_DIR]:
        directory.mkdir(parents=True, exist_ok=True)


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass(frozen=True)
class AnalyticsOptions:
    """Tuning parameters for every report.

    Field names are the snake_case forms of the recognised option names
    (``topCategoriesCount`` -> ``top_categories_count``); both spellings are
    accepted by :meth:`from_mapping`.
    """

    top_categories_count: int = 8
    top_merchants_per_category: int = 3
    merchant_inclusion_ratio: float = 0.005
    quadrant_min_total: float = 50.0
    quadrant_min_frequency: int = 2
    word_cloud_min_amount: float = 10.0
    word_cloud_limit: int = 30
    single_transaction_threshold: float = 1000.0
    monthly_increase_threshold_pct: float = 20.0
    yearly_increase_threshold_pct: float = 20.0
    budget_usage_threshold_pct: float = 80.0
    pareto_limit: int = 15
    theme_river_top_n: int = 10
    box_plot_top_n: int = 8
    top_merchants_limit: int = 100
    top_expenses_limit: int = 100
    salary_categories: Tuple[str, ...] = ("工资", "salary", "Salary")
    food_categories: Tuple[str, ...] = ("餐饮", "食品", "外卖", "超市", "生鲜", "水果", "零食", "酒水")
    unbudgeted_tag: str = "预算外"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base: Optional["AnalyticsOptions"] = None) -> "AnalyticsOptions":
        """Build options from a flat mapping, ignoring unknown keys."""
        base = base or cls()
        known = {f.name: f for f in fields(cls)}
        updates: Dict[str, Any] = {}
        for raw_key, value in data.items():
            key = _snake_case(raw_key)
            if key not in known or value is None:
                continue
            updates[key] = _coerce(getattr(base, key), value, key)
        return replace(base, **updates)

    @classmethod
    def from_env(cls, base: Optional["AnalyticsOptions"] = None, environ: Optional[Mapping[str, str]] = None) -> "AnalyticsOptions":
        """Apply ``LEDGER_INSIGHTS_<OPTION>`` environment overrides."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            env_value = environ.get(ENV_PREFIX + f.name.upper())
            if env_value is not None and env_value.strip():
                overrides[f.name] = env_value
        return cls.from_mapping(overrides, base=base)


def _coerce(current: Any, value: Any, key: str) -> Any:
    try:
        if isinstance(current, tuple):
            if isinstance(value, str):
                return tuple(part.strip() for part in value.split(',') if part.strip())
            return tuple(str(item) for item in value)
        if isinstance(current, int):
            return int(float(value))
        if isinstance(current, float):
            return float(value)
        return str(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid value %r for option %s", value, key)
        return current


def _flatten_sections(config: Mapping[str, Any]) -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in config.items():
        if key == 'version':
            continue
        if isinstance(value, Mapping):
            flat.update(value)
        else:
            flat[key] = value
    return flat


def load_options(
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    use_env: bool = True,
) -> AnalyticsOptions:
    """Resolve options from bundled defaults, environment and explicit overrides.

    Later layers win: ``defaults/analytics.json`` < environment < ``overrides``.
    """
    options = AnalyticsOptions()
    try:
        options = AnalyticsOptions.from_mapping(_flatten_sections(load_config('analytics')), base=options)
    except FileNotFoundError:
        logger.warning("Bundled analytics defaults missing; using built-in values")
    if use_env:
        options = AnalyticsOptions.from_env(base=options)
    if overrides:
        options = AnalyticsOptions.from_mapping(overrides, base=options)
    return options
