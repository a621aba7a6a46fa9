"""Per-year aggregation of filtered records into chart series.

Each output variant has its own entry point; ``aggregate`` picks the bar
variant from the filter state. Every function is a pure function of
(records, filters, context) and never raises on odd data: years outside the
range contribute nothing and missing year values count as 0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple

import pandas as pd

from market_core.context import AnalyticsContext
from market_core.data import DataRecord, records_frame, year_value
from market_core.errors import ResultNote
from market_core.filters import FilterState

logger = logging.getLogger(__name__)


class OutputShape(str, Enum):
    SIMPLE_BAR = "simple_bar"
    STACKED_BAR = "stacked_bar"
    LINE = "line"
    HEATMAP = "heatmap"
    TABLE = "table"
    WATERFALL = "waterfall"
    BUBBLE = "bubble"


@dataclass(frozen=True)
class AggregateResult:
    shape: OutputShape
    rows: List[Dict[str, float]]
    series: Tuple[str, ...]
    groups: Tuple[str, ...] = ()
    slices: Tuple[str, ...] = ()
    notes: Tuple[ResultNote, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.series


@dataclass(frozen=True)
class WaterfallTotals:
    start_year: int
    end_year: int
    start_total: float
    end_total: float
    deltas: List[Tuple[str, float]] = field(default_factory=list)


class _Contributions:
    """Collects (year, key, value) triples and pivots them to one row per year."""

    def __init__(self, years: Sequence[int]) -> None:
        self.years = list(years)
        self.keys: List[str] = []
        self._seen: Set[str] = set()
        self._rows: List[Tuple[int, str, float]] = []
        self.notes: Set[ResultNote] = set()

    def ensure(self, key: str) -> None:
        if key not in self._seen:
            self._seen.add(key)
            self.keys.append(key)

    def add(self, record: DataRecord, key: str) -> None:
        self.ensure(key)
        for year in self.years:
            if year not in record.time_series:
                self.notes.add(ResultNote.MISSING_YEAR_VALUE)
            self._rows.append((year, key, year_value(record, year)))

    def reorder(self, preferred: Sequence[str]) -> None:
        """Put keys named in ``preferred`` first, in that order."""
        rank = {key: idx for idx, key in enumerate(preferred)}
        self.keys.sort(key=lambda k: rank.get(k, len(rank)))

    def to_rows(self) -> List[Dict[str, float]]:
        if not self._rows:
            return [{"year": year, **{key: 0.0 for key in self.keys}} for year in self.years]
        frame = pd.DataFrame(self._rows, columns=["year", "key", "value"])
        table = (
            frame.groupby(["year", "key"], sort=False)["value"]
            .sum()
            .unstack("key", fill_value=0.0)
            .reindex(index=self.years, columns=self.keys, fill_value=0.0)
        )
        rows: List[Dict[str, float]] = []
        for year, values in table.iterrows():
            point: Dict[str, float] = {"year": int(year)}
            for key in self.keys:
                point[key] = float(values[key])
            rows.append(point)
        return rows


def compose_key(primary: str, secondary: str, ctx: AnalyticsContext) -> str:
    return f"{primary}{ctx.config.key_separator}{secondary}"


def is_stacked(filters: FilterState) -> bool:
    """Stacking needs more than one selection on both dimensions."""
    if filters.view_mode == "matrix":
        return False
    return len(filters.geographies) > 1 and len(filters.segments) > 1


def select_bar_shape(filters: FilterState) -> OutputShape:
    return OutputShape.STACKED_BAR if is_stacked(filters) else OutputShape.SIMPLE_BAR


def _segment_key(record: DataRecord, filters: FilterState, ctx: AnalyticsContext, notes: Set[ResultNote]) -> Optional[str]:
    if not filters.segments:
        return record.segment
    matched = ctx.matcher.matching(record.segment, filters.segments)
    if len(matched) > 1:
        notes.add(ResultNote.AMBIGUOUS_MATCH)
    return matched[0] if matched else None


def _finish(
    acc: _Contributions,
    shape: OutputShape,
    notes: Set[ResultNote],
    *,
    groups: Sequence[str] = (),
    slices: Sequence[str] = (),
) -> AggregateResult:
    notes |= acc.notes
    if not acc.keys:
        notes.add(ResultNote.EMPTY_RESULT)
    logger.debug("Aggregated %s: %d series over %d years", shape.value, len(acc.keys), len(acc.years))
    return AggregateResult(
        shape=shape,
        rows=acc.to_rows(),
        series=tuple(acc.keys),
        groups=tuple(groups),
        slices=tuple(slices),
        notes=tuple(sorted(notes, key=lambda n: n.value)),
    )


def _aggregate_unstacked(
    records: Sequence[DataRecord],
    filters: FilterState,
    ctx: AnalyticsContext,
    shape: OutputShape,
) -> AggregateResult:
    acc = _Contributions(filters.years)
    notes: Set[ResultNote] = set()
    rollup_enabled = bool(filters.segments)

    for record in records:
        if filters.view_mode == "matrix":
            acc.add(record, compose_key(record.geography, record.segment, ctx))
            continue

        segment_key = _segment_key(record, filters, ctx, notes)
        if segment_key is None:
            continue
        geo_keys = ctx.geography.geography_keys(record.geography, filters.geographies, rollup_enabled=rollup_enabled)
        if not geo_keys:
            continue

        if filters.view_mode == "geography-mode":
            for geo_key in geo_keys:
                acc.add(record, geo_key)
        else:
            # Geography collapses in segment-mode: one contribution per record.
            acc.add(record, segment_key)

    if filters.view_mode == "geography-mode":
        acc.reorder(filters.geographies)
    elif filters.view_mode == "segment-mode":
        acc.reorder(filters.segments)
    return _finish(acc, shape, notes)


def aggregate_simple(records: Sequence[DataRecord], filters: FilterState, ctx: AnalyticsContext) -> AggregateResult:
    return _aggregate_unstacked(records, filters, ctx, OutputShape.SIMPLE_BAR)


def aggregate_matrix(records: Sequence[DataRecord], filters: FilterState, ctx: AnalyticsContext) -> AggregateResult:
    """One series per observed geography/segment pair."""
    if filters.view_mode != "matrix":
        filters = replace(filters, view_mode="matrix")
    return _aggregate_unstacked(records, filters, ctx, OutputShape.SIMPLE_BAR)


def aggregate_lines(records: Sequence[DataRecord], filters: FilterState, ctx: AnalyticsContext) -> AggregateResult:
    """Line series never stack; the primary dimension is always the series."""
    return _aggregate_unstacked(records, filters, ctx, OutputShape.LINE)


def aggregate_stacked(records: Sequence[DataRecord], filters: FilterState, ctx: AnalyticsContext) -> AggregateResult:
    """Grouped bars with stacked slices.

    segment-mode: one bar group per geography, one slice per segment.
    geography-mode: one bar group per segment, one slice per geography.
    Every selected group x slice pair is present, zero-filled when absent.

    A selected rollup parent is its own bar group in segment-mode. As a slice
    it only holds members not selected alongside it, so the slices of a bar
    always add up to that bar's unstacked total.
    """
    geographies = list(filters.geographies)
    segments = list(filters.segments)
    by_geography = filters.view_mode != "geography-mode"
    groups, slices = (geographies, segments) if by_geography else (segments, geographies)

    acc = _Contributions(filters.years)
    notes: Set[ResultNote] = set()
    for group in groups:
        for slice_ in slices:
            acc.ensure(compose_key(group, slice_, ctx))

    rollup_enabled = bool(segments)
    for record in records:
        segment_key = _segment_key(record, filters, ctx, notes)
        if segment_key is None:
            continue
        geo_keys = ctx.geography.geography_keys(record.geography, geographies, rollup_enabled=rollup_enabled)
        if by_geography:
            for geo_key in geo_keys:
                acc.add(record, compose_key(geo_key, segment_key, ctx))
        elif geo_keys:
            # Direct key first: the record fills its most specific slice only.
            acc.add(record, compose_key(segment_key, geo_keys[0], ctx))

    return _finish(acc, OutputShape.STACKED_BAR, notes, groups=groups, slices=slices)


ROW_SHAPES = (OutputShape.SIMPLE_BAR, OutputShape.STACKED_BAR, OutputShape.LINE)


def aggregate(
    records: Sequence[DataRecord],
    filters: FilterState,
    ctx: AnalyticsContext,
    shape: Optional[OutputShape] = None,
) -> AggregateResult:
    """Dispatch to the row-per-year entry point for ``shape`` (bar by default).

    Heatmap, table, waterfall and bubble data are not rows per year; they have
    their own entry points and are rejected here.
    """
    shape = shape or select_bar_shape(filters)
    if shape not in ROW_SHAPES:
        raise ValueError(f"aggregate() builds {[s.value for s in ROW_SHAPES]} only, got {shape.value!r}")
    if shape is OutputShape.LINE:
        return aggregate_lines(records, filters, ctx)
    if shape is OutputShape.STACKED_BAR:
        return aggregate_stacked(records, filters, ctx)
    if filters.view_mode == "matrix":
        return aggregate_matrix(records, filters, ctx)
    return aggregate_simple(records, filters, ctx)


# ---------------- Non time-series variants ----------------
def aggregate_heatmap(
    records: Sequence[DataRecord],
    filters: FilterState,
    ctx: AnalyticsContext,
    *,
    year: Optional[int] = None,
) -> List[Tuple[str, str, float]]:
    """(geography, segment, value) per observed pair at ``year`` (default: end of range)."""
    year = filters.end_year if year is None else int(year)
    frame = records_frame(records, [year])
    if frame.empty:
        return []
    grouped = frame.groupby(["geography", "segment"], sort=False)["value"].sum()
    return [(str(geo), str(seg), float(value)) for (geo, seg), value in grouped.items()]


def aggregate_table(
    records: Sequence[DataRecord],
    filters: FilterState,
    ctx: AnalyticsContext,
) -> List[Tuple[DataRecord, List[float]]]:
    """Each record with its values across the year range."""
    years = filters.years
    return [(record, [year_value(record, year) for year in years]) for record in records]


def aggregate_waterfall(records: Sequence[DataRecord], filters: FilterState, ctx: AnalyticsContext) -> WaterfallTotals:
    """Start/end totals and per-entity (end - start) deltas in first-seen order."""
    start, end = filters.start_year, filters.end_year
    dimension = "segment" if filters.view_mode == "segment-mode" else "geography"
    years = [start] if start == end else [start, end]
    frame = records_frame(records, years)
    if frame.empty:
        return WaterfallTotals(start_year=start, end_year=end, start_total=0.0, end_total=0.0)

    at_start = frame["value"].where(frame["year"] == start, 0.0)
    at_end = frame["value"].where(frame["year"] == end, 0.0)
    frame = frame.assign(delta=at_end - at_start)
    grouped = frame.groupby(dimension, sort=False)["delta"].sum()
    return WaterfallTotals(
        start_year=start,
        end_year=end,
        start_total=float(at_start.sum()),
        end_total=float(at_end.sum()),
        deltas=[(str(name), float(delta)) for name, delta in grouped.items()],
    )
