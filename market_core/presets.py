"""One-click filter presets derived from the loaded dataset."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Sequence, Tuple

import pandas as pd

from market_core.context import AnalyticsContext
from market_core.data import DataRecord, year_value
from market_core.filters import FilterState, matches_business_type
from market_core.geography import geography_matches

logger = logging.getLogger(__name__)

PRESET_BUSINESS_TYPE = "B2B"


def _segment_type(ctx: AnalyticsContext) -> str:
    types = ctx.dataset.segment_types
    return types[0] if types else ""


def _candidate_records(ctx: AnalyticsContext, segment_type: str) -> List[DataRecord]:
    separator = ctx.config.segment_separator
    return [
        r
        for r in ctx.dataset.value_records
        if r.segment_type == segment_type and matches_business_type(r, PRESET_BUSINESS_TYPE, separator)
    ]


def _records_frame(records: Sequence[DataRecord], year: int) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "geography": r.geography,
                "level": r.geography_level,
                "segment": r.segment,
                "value": year_value(r, year),
                "cagr": r.cagr,
                "has_data": any(v > 0 for v in r.time_series.values()),
            }
            for r in records
        ],
        columns=["geography", "level", "segment", "value", "cagr", "has_data"],
    )


def _is_region(frame: pd.DataFrame, ctx: AnalyticsContext) -> pd.Series:
    dim = ctx.dataset.geographies
    not_global = ~frame["geography"].isin(dim.global_entries)
    by_level = (frame["level"] == "region") & not_global
    if by_level.any():
        return by_level
    return frame["geography"].isin(dim.regions) & not_global


def _is_country(frame: pd.DataFrame, ctx: AnalyticsContext) -> pd.Series:
    dim = ctx.dataset.geographies
    excluded = set(dim.global_entries) | set(dim.regions)
    by_level = (frame["level"] == "country") & ~frame["geography"].isin(excluded)
    if by_level.any():
        return by_level
    countries = [g for g in dim.all_geographies if g not in excluded]
    return frame["geography"].isin(countries)


def _top(frame: pd.DataFrame, by: str, column: str, how: str, limit: int) -> List[str]:
    if frame.empty:
        return []
    ranked = frame.groupby(by, sort=False)[column].agg(how).sort_values(ascending=False, kind="stable")
    return [str(name) for name in ranked.head(limit).index]


def _in_selection(frame: pd.DataFrame, geographies: Sequence[str]) -> pd.Series:
    matched = [any(geography_matches(g, sel) for sel in geographies) for g in frame["geography"]]
    return pd.Series(matched, index=frame.index, dtype=bool)


def _preset(
    segment_type: str,
    geographies: Sequence[str],
    segments: Sequence[str],
    year_range: Tuple[int, int],
) -> FilterState:
    return FilterState(
        geographies=tuple(geographies),
        segments=tuple(segments),
        segment_type=segment_type,
        year_range=year_range,
        data_type="value",
        view_mode="geography-mode",
        business_type=PRESET_BUSINESS_TYPE,
    )


def top_markets(ctx: AnalyticsContext) -> FilterState:
    """Top 3 regions by base-year value, then their top 5 segments by base-year value."""
    segment_type = _segment_type(ctx)
    base = ctx.base_year
    frame = _records_frame(_candidate_records(ctx, segment_type), base)
    positive = frame[frame["value"] > 0]

    regions = _top(positive[_is_region(positive, ctx)], "geography", "value", "sum", 3)
    if not regions:
        regions = list(ctx.dataset.geographies.regions[:3])
    segments: List[str] = []
    if regions:
        segments = _top(positive[_in_selection(positive, regions)], "segment", "value", "sum", 5)
    logger.debug("Top markets preset: %s / %d segments", regions, len(segments))
    return _preset(segment_type, regions, segments, (base, base + 4))


def _growth_preset(ctx: AnalyticsContext, *, countries: bool, geo_limit: int, segment_limit: int) -> FilterState:
    segment_type = _segment_type(ctx)
    frame = _records_frame(_candidate_records(ctx, segment_type), ctx.base_year)
    mask = _is_country(frame, ctx) if countries else _is_region(frame, ctx)
    geographies = _top(frame[mask], "geography", "cagr", "mean", geo_limit)

    segments: List[str] = []
    if geographies:
        in_geo = frame[_in_selection(frame, geographies)]
        with_data = in_geo[in_geo["segment"].isin(in_geo.loc[in_geo["has_data"], "segment"])]
        if not with_data.empty:
            averages = with_data.groupby("segment", sort=False)["cagr"].mean()
            averages = averages[averages > 0].sort_values(ascending=False, kind="stable")
            segments = [str(s) for s in averages.head(segment_limit).index]
    if not segments:
        logger.info("No segments with positive growth for preset geographies %s", geographies)
        geographies = []
    return _preset(segment_type, geographies, segments, (ctx.base_year, ctx.forecast_year))


def growth_leaders(ctx: AnalyticsContext) -> FilterState:
    """Top 2 regions by average CAGR, with their top 3 positive-CAGR segments."""
    return _growth_preset(ctx, countries=False, geo_limit=2, segment_limit=3)


def emerging_markets(ctx: AnalyticsContext) -> FilterState:
    """Top 5 countries by average CAGR, with their top 5 positive-CAGR segments."""
    return _growth_preset(ctx, countries=True, geo_limit=5, segment_limit=5)


PRESETS: Dict[str, Callable[[AnalyticsContext], FilterState]] = {
    "top-markets": top_markets,
    "growth-leaders": growth_leaders,
    "emerging-markets": emerging_markets,
}


def apply_preset(name: str, ctx: AnalyticsContext) -> FilterState:
    try:
        builder = PRESETS[name]
    except KeyError:
        raise KeyError(f"Unknown preset {name!r}; expected one of {sorted(PRESETS)}") from None
    return builder(ctx)
