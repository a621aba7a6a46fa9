from __future__ import annotations

from typing import Any, Dict, List, Sequence

import altair as alt
import pandas as pd

from market_core.projections import WaterfallStep

alt.data_transformers.disable_max_rows()

STEP_COLORS = {"start": "#4c78a8", "end": "#4c78a8", "positive": "#10b981", "negative": "#ef4444"}


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _long_rows(rows: Sequence[Dict[str, float]], series: Sequence[str]) -> pd.DataFrame:
    wide = pd.DataFrame(list(rows), columns=["year", *series])
    return wide.melt(id_vars="year", value_vars=list(series), var_name="series", value_name="value")


def bar_chart(bar: Dict[str, Any], y_title: str, key_separator: str = "::") -> alt.Chart:
    long_df = _long_rows(bar["rows"], bar["series"])
    value_axis = alt.Axis(format="~s", gridDash=[4, 4], domain=False, ticks=False)
    x = alt.X("year:O", title="Year", axis=alt.Axis(grid=False))

    if bar["shape"] == "stacked":
        parts = long_df["series"].str.split(key_separator, n=1, expand=True).reindex(columns=[0, 1])
        long_df = long_df.assign(group=parts[0], slice=parts[1])
        return (
            alt.Chart(long_df)
            .mark_bar()
            .encode(
                x=x,
                xOffset=alt.XOffset("group:N", sort=list(bar["groups"])),
                y=alt.Y("value:Q", title=y_title, stack="zero", axis=value_axis),
                color=alt.Color("slice:N", title="Segment", sort=list(bar["slices"])),
                tooltip=["year", "group", "slice", alt.Tooltip("value:Q", format=",.2f")],
            )
            .properties(height=320)
        )

    return (
        alt.Chart(long_df)
        .mark_bar()
        .encode(
            x=x,
            xOffset=alt.XOffset("series:N", sort=list(bar["series"])),
            y=alt.Y("value:Q", title=y_title, axis=value_axis),
            color=alt.Color("series:N", title="Series", sort=list(bar["series"])),
            tooltip=["year", "series", alt.Tooltip("value:Q", format=",.2f")],
        )
        .properties(height=320)
    )


def line_chart(line: Dict[str, Any], y_title: str) -> alt.Chart:
    long_df = _long_rows(line["rows"], line["series"])
    hover = alt.selection_point(fields=["series"], on="mouseover", empty="all")
    return (
        alt.Chart(long_df)
        .mark_line(point={"filled": True, "size": 60})
        .encode(
            x=alt.X("year:O", title="Year", axis=alt.Axis(grid=False)),
            y=alt.Y("value:Q", title=y_title, axis=alt.Axis(format="~s", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("series:N", title="Series", sort=list(line["series"])),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.2)),
            tooltip=["year", "series", alt.Tooltip("value:Q", format=",.2f")],
        )
        .add_params(hover)
        .properties(height=320)
    )


def heatmap_chart(cells: Sequence[Dict[str, Any]], title: str) -> alt.Chart:
    frame = pd.DataFrame(list(cells), columns=["geography", "segment", "value", "display_value"])
    return (
        alt.Chart(frame)
        .mark_rect()
        .encode(
            x=alt.X("segment:N", title="Segment"),
            y=alt.Y("geography:N", title="Geography"),
            color=alt.Color("value:Q", title=title, scale=alt.Scale(scheme="blues")),
            tooltip=["geography", "segment", alt.Tooltip("display_value:N", title="Value")],
        )
    )


def waterfall_frame(steps: Sequence[WaterfallStep]) -> pd.DataFrame:
    """Floating bar extents: totals start at zero, deltas continue from the running level."""
    records: List[Dict[str, Any]] = []
    level = 0.0
    for order, step in enumerate(steps):
        if step.type in ("start", "end"):
            start, end = 0.0, step.value
            level = step.value
        else:
            start, end = level, level + step.signed_value
            level = end
        records.append(
            {"order": order, "name": step.name, "type": step.type, "value": step.value, "bar_start": start, "bar_end": end}
        )
    return pd.DataFrame(records, columns=["order", "name", "type", "value", "bar_start", "bar_end"])


def waterfall_chart(steps: Sequence[WaterfallStep], y_title: str) -> alt.Chart:
    frame = waterfall_frame(steps)
    return (
        alt.Chart(frame)
        .mark_bar()
        .encode(
            x=alt.X("name:N", title=None, sort=alt.SortField("order")),
            y=alt.Y("bar_start:Q", title=y_title, axis=alt.Axis(format="~s", gridDash=[4, 4], domain=False, ticks=False)),
            y2=alt.Y2("bar_end"),
            color=alt.Color(
                "type:N",
                scale=alt.Scale(domain=list(STEP_COLORS), range=list(STEP_COLORS.values())),
                legend=None,
            ),
            tooltip=["name", "type", alt.Tooltip("value:Q", format=",.2f")],
        )
        .properties(height=320)
    )


def bubble_chart(bubble: Dict[str, Any]) -> alt.Chart:
    frame = pd.DataFrame(
        bubble["bubbles"],
        columns=["name", "x", "y", "z", "color", "cagr", "market_share", "absolute_growth"],
    )
    return (
        alt.Chart(frame)
        .mark_circle(opacity=0.8, stroke="white", strokeWidth=1)
        .encode(
            x=alt.X("x:Q", title=bubble["x_label"], scale=alt.Scale(domain=[0, 100])),
            y=alt.Y("y:Q", title=bubble["y_label"], scale=alt.Scale(domain=[0, 100])),
            size=alt.Size("z:Q", title="Incremental Opportunity Index", scale=alt.Scale(domain=[0, 100])),
            color=alt.Color("color:N", scale=None),
            tooltip=[
                alt.Tooltip("name:N", title="Segment"),
                alt.Tooltip("x:Q", title=bubble["x_label"], format=".1f"),
                alt.Tooltip("y:Q", title=bubble["y_label"], format=".1f"),
                alt.Tooltip("z:Q", title="Incremental Opportunity Index", format=".1f"),
                alt.Tooltip("cagr:Q", title="CAGR %", format=".2f"),
            ],
        )
        .properties(height=420)
    )
