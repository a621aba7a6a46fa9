"""Engine configuration.

Values that used to be hardcoded in the dashboard (CAGR caps, year anchors,
bubble limits) live here so a caller can tune them per session.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

# Vega "tableau10", the default categorical scheme Altair renders with.
DEFAULT_PALETTE: Tuple[str, ...] = (
    "#4c78a8",
    "#f58518",
    "#e45756",
    "#72b7b2",
    "#54a24b",
    "#eeca3b",
    "#b279a2",
    "#ff9da6",
    "#9d755d",
    "#bab0ac",
)

DEFAULT_BASE_YEAR = 2024
DEFAULT_FORECAST_YEAR = 2032


@dataclass(frozen=True)
class EngineConfig:
    segment_separator: str = " > "
    key_separator: str = "::"
    base_year: Optional[int] = None
    forecast_year: Optional[int] = None
    max_growth_ratio: float = 100.0
    max_cagr: float = 100.0
    palette: Tuple[str, ...] = DEFAULT_PALETTE
    max_bubbles: int = 30
    min_opportunity_index: float = 0.0
    rollup_geographies: Tuple[str, ...] = field(default_factory=tuple)


def _env_float(name: str, fallback: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return fallback
    try:
        return float(raw)
    except ValueError:
        return fallback


def _env_int(name: str, fallback: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return fallback
    try:
        return int(raw)
    except ValueError:
        return fallback


def _as_optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def load_config(raw: Optional[Mapping[str, Any]] = None) -> EngineConfig:
    """Build an EngineConfig from a plain mapping.

    Unknown keys are ignored and unparsable values fall back to defaults.
    ``MARKET_CORE_MAX_GROWTH_RATIO``, ``MARKET_CORE_MAX_CAGR`` and
    ``MARKET_CORE_MAX_BUBBLES`` override the mapping when set.
    """
    raw = dict(raw or {})
    defaults = EngineConfig()

    try:
        max_growth_ratio = float(raw.get("max_growth_ratio", defaults.max_growth_ratio))
    except (TypeError, ValueError):
        max_growth_ratio = defaults.max_growth_ratio
    try:
        max_cagr = float(raw.get("max_cagr", defaults.max_cagr))
    except (TypeError, ValueError):
        max_cagr = defaults.max_cagr
    try:
        max_bubbles = int(raw.get("max_bubbles", defaults.max_bubbles))
    except (TypeError, ValueError):
        max_bubbles = defaults.max_bubbles
    try:
        min_index = float(raw.get("min_opportunity_index", defaults.min_opportunity_index))
    except (TypeError, ValueError):
        min_index = defaults.min_opportunity_index

    palette = tuple(str(c) for c in (raw.get("palette") or defaults.palette))
    rollups = tuple(str(g) for g in (raw.get("rollup_geographies") or ()))

    return EngineConfig(
        segment_separator=str(raw.get("segment_separator") or defaults.segment_separator),
        key_separator=str(raw.get("key_separator") or defaults.key_separator),
        base_year=_as_optional_int(raw.get("base_year")),
        forecast_year=_as_optional_int(raw.get("forecast_year")),
        max_growth_ratio=max(1.0, _env_float("MARKET_CORE_MAX_GROWTH_RATIO", max_growth_ratio)),
        max_cagr=max(0.0, _env_float("MARKET_CORE_MAX_CAGR", max_cagr)),
        palette=palette or DEFAULT_PALETTE,
        max_bubbles=max(0, _env_int("MARKET_CORE_MAX_BUBBLES", max_bubbles)),
        min_opportunity_index=max(0.0, min(100.0, min_index)),
        rollup_geographies=rollups,
    )
