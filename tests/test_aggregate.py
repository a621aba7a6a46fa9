"""Tests for per-year aggregation."""
from collections import defaultdict
from dataclasses import replace

import pytest

from market_core.aggregate import (
    OutputShape,
    aggregate,
    aggregate_heatmap,
    aggregate_lines,
    aggregate_matrix,
    aggregate_simple,
    aggregate_stacked,
    aggregate_waterfall,
    select_bar_shape,
)
from market_core.errors import ResultNote
from market_core.filters import filter_records
from tests.conftest import SNACKS, SPICES, TEA


def _run(fn, dataset, filters, ctx):
    return fn(filter_records(dataset.value_records, filters, ctx), filters, ctx)


def _by_year(result):
    return {row["year"]: row for row in result.rows}


def test_india_rollup_sums_children_and_keeps_them_separate(ctx, dataset, product_filters):
    filters = replace(
        product_filters,
        geographies=("India", "North India", "South India"),
        segments=(SPICES,),
        view_mode="geography-mode",
        year_range=(2024, 2024),
    )
    result = _run(aggregate, dataset, filters, ctx)
    assert result.shape is OutputShape.SIMPLE_BAR
    assert result.series == ("India", "North India", "South India")
    assert result.rows == [{"year": 2024, "India": 100.0, "North India": 50.0, "South India": 50.0}]


def test_rollup_includes_states_under_regions_without_records(ctx, dataset, product_filters):
    filters = replace(
        product_filters,
        geographies=("India",),
        segments=("B2B",),
        view_mode="geography-mode",
        year_range=(2024, 2024),
    )
    result = _run(aggregate_simple, dataset, filters, ctx)
    # North (50 + 30) + South (50) + Maharashtra (100); India's own 120 is replaced.
    assert result.rows == [{"year": 2024, "India": 230.0}]


def test_segment_mode_counts_each_record_once_under_rollup(ctx, dataset, product_filters):
    filters = replace(product_filters, geographies=("India", "North India"), segments=(SPICES,), year_range=(2024, 2024))
    result = _run(aggregate_simple, dataset, filters, ctx)
    assert result.rows == [{"year": 2024, SPICES: 100.0}]


def test_segment_mode_without_selection_uses_raw_segments(ctx, dataset, product_filters):
    result = _run(aggregate, dataset, product_filters, ctx)
    assert result.series == (SPICES, SNACKS, TEA)
    assert len(result.rows) == 9
    assert _by_year(result)[2032][SPICES] == pytest.approx(240 + 80 + 70)


def test_select_bar_shape(product_filters):
    assert select_bar_shape(product_filters) is OutputShape.SIMPLE_BAR
    stacked = replace(product_filters, geographies=("A", "B"), segments=("x", "y"))
    assert select_bar_shape(stacked) is OutputShape.STACKED_BAR
    assert select_bar_shape(replace(stacked, view_mode="matrix")) is OutputShape.SIMPLE_BAR
    assert select_bar_shape(replace(stacked, segments=("x",))) is OutputShape.SIMPLE_BAR


def test_stacked_materializes_every_group_and_slice(ctx, dataset, product_filters):
    filters = replace(product_filters, geographies=("North India", "South India"), segments=(SPICES, SNACKS))
    result = _run(aggregate, dataset, filters, ctx)
    assert result.shape is OutputShape.STACKED_BAR
    assert result.groups == ("North India", "South India")
    assert result.slices == (SPICES, SNACKS)
    assert result.series == (
        f"North India::{SPICES}",
        f"North India::{SNACKS}",
        f"South India::{SPICES}",
        f"South India::{SNACKS}",
    )
    assert all(row[f"South India::{SNACKS}"] == 0.0 for row in result.rows)


@pytest.mark.parametrize("view_mode", ["segment-mode", "geography-mode"])
@pytest.mark.parametrize("geographies", [("North India", "South India"), ("India", "North India")])
def test_stacked_slices_sum_to_unstacked_group(ctx, dataset, product_filters, view_mode, geographies):
    filters = replace(
        product_filters,
        geographies=geographies,
        segments=(SPICES, SNACKS),
        view_mode=view_mode,
    )
    stacked = _run(aggregate_stacked, dataset, filters, ctx)
    primary = "geography-mode" if view_mode == "segment-mode" else "segment-mode"
    unstacked = _run(aggregate_simple, dataset, replace(filters, view_mode=primary), ctx)

    for s_row, u_row in zip(stacked.rows, unstacked.rows):
        for group in stacked.groups:
            total = sum(s_row[f"{group}::{slice_}"] for slice_ in stacked.slices)
            assert total == pytest.approx(u_row.get(group, 0.0))


def test_rollup_slice_holds_only_unselected_members(ctx, dataset, product_filters):
    filters = replace(
        product_filters,
        geographies=("India", "North India"),
        segments=(SPICES, SNACKS),
        view_mode="geography-mode",
        year_range=(2024, 2024),
    )
    row = _run(aggregate_stacked, dataset, filters, ctx).rows[0]
    assert row[f"{SPICES}::North India"] == 50.0
    assert row[f"{SPICES}::India"] == 50.0
    assert row[f"{SNACKS}::North India"] == 30.0
    assert row[f"{SNACKS}::India"] == 0.0


@pytest.mark.parametrize("shape", [OutputShape.HEATMAP, OutputShape.TABLE, OutputShape.WATERFALL, OutputShape.BUBBLE])
def test_dispatcher_rejects_shapes_without_year_rows(ctx, dataset, product_filters, shape):
    with pytest.raises(ValueError):
        aggregate(dataset.value_records, product_filters, ctx, shape=shape)


@pytest.mark.parametrize("shape", [OutputShape.SIMPLE_BAR, OutputShape.STACKED_BAR, OutputShape.LINE])
def test_dispatcher_tags_result_with_requested_shape(ctx, dataset, product_filters, shape):
    filters = replace(product_filters, geographies=("North India", "South India"), segments=(SPICES, SNACKS))
    records = filter_records(dataset.value_records, filters, ctx)
    assert aggregate(records, filters, ctx, shape=shape).shape is shape


def test_partitions_merge_to_whole(ctx, dataset, product_filters):
    records = filter_records(dataset.value_records, replace(product_filters, business_type=None), ctx)
    whole = aggregate_simple(records, product_filters, ctx)
    parts = [aggregate_simple(records[:3], product_filters, ctx), aggregate_simple(records[3:], product_filters, ctx)]

    merged = defaultdict(float)
    for part in parts:
        for row in part.rows:
            for key in part.series:
                merged[(row["year"], key)] += row[key]
    for row in whole.rows:
        for key in whole.series:
            assert merged[(row["year"], key)] == pytest.approx(row[key])


def test_matrix_keys_pair_geography_and_segment(ctx, dataset, product_filters):
    filters = replace(product_filters, geographies=("North India", "South India"), segments=(SPICES, SNACKS))
    result = _run(aggregate_matrix, dataset, filters, ctx)
    assert f"North India::{SNACKS}" in result.series
    assert f"India::{SPICES}" in result.series
    assert f"South India::{SNACKS}" not in result.series


def test_lines_never_stack(ctx, dataset, product_filters):
    filters = replace(product_filters, geographies=("North India", "South India"), segments=(SPICES, SNACKS))
    result = _run(aggregate_lines, dataset, filters, ctx)
    assert result.shape is OutputShape.LINE
    assert result.series == (SPICES, SNACKS)


def test_years_outside_series_and_empty_results_are_noted(ctx, dataset, product_filters):
    filters = replace(product_filters, segments=(TEA,), year_range=(2022, 2024))
    result = _run(aggregate, dataset, filters, ctx)
    assert ResultNote.MISSING_YEAR_VALUE in result.notes
    assert [row[TEA] for row in result.rows] == [0.0, 0.0, 100.0]

    empty = _run(aggregate, dataset, replace(product_filters, geographies=("Atlantis",)), ctx)
    assert empty.is_empty
    assert ResultNote.EMPTY_RESULT in empty.notes
    assert empty.rows[0] == {"year": 2024}


def test_ambiguous_segment_match_is_first_wins(ctx, dataset, product_filters):
    filters = replace(product_filters, segments=("B2B > Food", SPICES), year_range=(2024, 2024))
    result = _run(aggregate_simple, dataset, filters, ctx)
    assert ResultNote.AMBIGUOUS_MATCH in result.notes
    assert result.series == ("B2B > Food",)


def test_heatmap_cells_at_end_year(ctx, dataset, product_filters):
    cells = _run(aggregate_heatmap, dataset, product_filters, ctx)
    assert ("Maharashtra", TEA, 200.0) in cells
    assert len(cells) == 5


def test_waterfall_totals_and_deltas(ctx, dataset, product_filters):
    filters = replace(product_filters, view_mode="geography-mode")
    totals = _run(aggregate_waterfall, dataset, filters, ctx)
    assert totals.start_total == pytest.approx(120 + 50 + 50 + 30 + 100)
    assert totals.end_total == pytest.approx(240 + 80 + 70 + 45 + 200)
    assert dict(totals.deltas) == pytest.approx(
        {"India": 120.0, "North India": 45.0, "South India": 20.0, "Maharashtra": 100.0}
    )


def test_national_record_falls_under_loosely_matching_region(ctx, dataset, product_filters):
    filters = replace(
        product_filters,
        geographies=("North India",),
        segments=(SPICES,),
        view_mode="geography-mode",
        year_range=(2024, 2024),
    )
    result = _run(aggregate_simple, dataset, filters, ctx)
    # India's own 120 joins North India's 50: "India" is a substring of "North India".
    assert result.rows == [{"year": 2024, "North India": 170.0}]
