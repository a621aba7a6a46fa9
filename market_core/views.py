"""Page payload builders.

Every ``compute_*_view(filters, ctx)`` returns a JSON-serializable dict with
the echoed filters, axis labels, the projected data, Vega-Lite chart specs
and any result notes. UIs render from these payloads only.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Iterable, List, Optional

from market_core.aggregate import (
    aggregate,
    aggregate_heatmap,
    aggregate_lines,
    aggregate_table,
    aggregate_waterfall,
)
from market_core.charts import bar_chart, bubble_chart, heatmap_chart, line_chart, to_vega_spec, waterfall_chart
from market_core.context import AnalyticsContext
from market_core.data import (
    DataRecord,
    axis_label,
    calculate_totals,
    find_fastest_growing,
    find_top_performers,
    recompute_market_shares,
    unique_geographies,
    unique_segments,
    unit_label,
)
from market_core.errors import ResultNote
from market_core.filters import FilterState, filter_records
from market_core.indices import compute_opportunity_matrix
from market_core.projections import (
    project_bar,
    project_bubble,
    project_heatmap,
    project_line,
    project_table,
    project_waterfall,
)


def _filtered(filters: FilterState, ctx: AnalyticsContext) -> List[DataRecord]:
    return filter_records(ctx.dataset.records_for(filters.data_type), filters, ctx)


def _notes(notes: Iterable[ResultNote]) -> List[str]:
    return sorted({n.value for n in notes})


def _payload(filters: FilterState, ctx: AnalyticsContext) -> Dict[str, Any]:
    meta = ctx.dataset.metadata
    return {
        "filters": asdict(filters),
        "labels": {
            "y_axis": axis_label(meta, filters.data_type),
            "unit": unit_label(meta, filters.data_type),
        },
        "charts": {},
        "notes": [],
    }


def compute_bar_view(filters: FilterState, ctx: AnalyticsContext) -> Dict[str, Any]:
    payload = _payload(filters, ctx)
    result = aggregate(_filtered(filters, ctx), filters, ctx)
    bar = project_bar(result)
    payload["bar"] = bar
    payload["notes"] = _notes(result.notes)
    if not result.is_empty:
        chart = bar_chart(bar, payload["labels"]["y_axis"], ctx.config.key_separator)
        payload["charts"]["bar"] = to_vega_spec(chart)
    return payload


def compute_line_view(filters: FilterState, ctx: AnalyticsContext) -> Dict[str, Any]:
    payload = _payload(filters, ctx)
    result = aggregate_lines(_filtered(filters, ctx), filters, ctx)
    line = project_line(result)
    payload["line"] = line
    payload["notes"] = _notes(result.notes)
    if not result.is_empty:
        payload["charts"]["line"] = to_vega_spec(line_chart(line, payload["labels"]["y_axis"]))
    return payload


def compute_heatmap_view(filters: FilterState, ctx: AnalyticsContext, *, year: Optional[int] = None) -> Dict[str, Any]:
    payload = _payload(filters, ctx)
    cells = project_heatmap(aggregate_heatmap(_filtered(filters, ctx), filters, ctx, year=year))
    payload["year"] = filters.end_year if year is None else int(year)
    payload["heatmap"] = cells
    if cells:
        payload["charts"]["heatmap"] = to_vega_spec(heatmap_chart(cells, payload["labels"]["unit"]))
    else:
        payload["notes"] = _notes([ResultNote.EMPTY_RESULT])
    return payload


def compute_table_view(filters: FilterState, ctx: AnalyticsContext) -> Dict[str, Any]:
    payload = _payload(filters, ctx)
    records = recompute_market_shares(_filtered(filters, ctx), filters.end_year)
    rows = project_table(aggregate_table(records, filters, ctx), filters)
    for row, record in zip(rows, records):
        row["market_share"] = record.market_share
    payload["table"] = rows
    if not rows:
        payload["notes"] = _notes([ResultNote.EMPTY_RESULT])
    return payload


def compute_waterfall_view(filters: FilterState, ctx: AnalyticsContext) -> Dict[str, Any]:
    payload = _payload(filters, ctx)
    records = _filtered(filters, ctx)
    steps = project_waterfall(aggregate_waterfall(records, filters, ctx))
    payload["waterfall"] = [asdict(step) for step in steps]
    if records:
        payload["charts"]["waterfall"] = to_vega_spec(waterfall_chart(steps, payload["labels"]["y_axis"]))
    else:
        payload["notes"] = _notes([ResultNote.EMPTY_RESULT])
    return payload


def default_bubble_geography(filters: FilterState, ctx: AnalyticsContext) -> str:
    """First selected geography, else the global entry, else the first geography with data."""
    if filters.geographies:
        return filters.geographies[0]
    dim = ctx.dataset.geographies
    if dim.global_entries:
        return dim.global_entries[0]
    records = ctx.dataset.records_for(filters.data_type)
    return records[0].geography if records else ""


def compute_opportunity_view(
    filters: FilterState,
    ctx: AnalyticsContext,
    *,
    geography: Optional[str] = None,
    max_bubbles: Optional[int] = None,
    min_index: Optional[float] = None,
) -> Dict[str, Any]:
    payload = _payload(filters, ctx)
    geography = geography or default_bubble_geography(filters, ctx)
    matrix = compute_opportunity_matrix(
        ctx.dataset.records_for(filters.data_type),
        ctx,
        geography=geography,
        segment_type=filters.segment_type,
        business_type=filters.business_type,
        segments=filters.segments,
        max_bubbles=max_bubbles,
        min_index=min_index,
    )
    bubble = project_bubble(matrix)
    payload["geography"] = geography
    payload["bubble"] = bubble
    payload["notes"] = _notes(matrix.notes)
    if matrix.rows:
        payload["charts"]["bubble"] = to_vega_spec(bubble_chart(bubble))
    return payload


def compute_summary_view(filters: FilterState, ctx: AnalyticsContext, *, limit: int = 5) -> Dict[str, Any]:
    payload = _payload(filters, ctx)
    records = _filtered(filters, ctx)
    payload["kpis"] = {
        "start": calculate_totals(records, filters.start_year),
        "end": calculate_totals(records, filters.end_year),
    }
    payload["top_performers"] = find_top_performers(records, filters.end_year, limit)
    payload["fastest_growing"] = find_fastest_growing(records, limit)
    payload["geographies"] = unique_geographies(records)
    payload["segments"] = unique_segments(records)
    if not records:
        payload["notes"] = _notes([ResultNote.EMPTY_RESULT])
    return payload


VIEWS = {
    "bar": compute_bar_view,
    "line": compute_line_view,
    "heatmap": compute_heatmap_view,
    "table": compute_table_view,
    "waterfall": compute_waterfall_view,
    "opportunity": compute_opportunity_view,
    "summary": compute_summary_view,
}
