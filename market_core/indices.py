"""Opportunity indices for the bubble chart.

For one geography the immediate children of a segment type (present segments
with no present ancestor) are scored on three normalized axes:

* CAGR index (x): compound annual growth between the base and forecast year.
* Market share index (y): share of the geography's base-year total.
* Incremental opportunity index (size): absolute growth, forecast - base.

Each axis is scaled so the best child scores 100.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple

import numpy as np
import pandas as pd

from market_core.config import DEFAULT_PALETTE
from market_core.context import AnalyticsContext
from market_core.data import DataRecord, year_value
from market_core.errors import ResultNote
from market_core.filters import matches_business_type
from market_core.segments import SegmentTree

logger = logging.getLogger(__name__)

CAGR_INDEX_LABEL = "CAGR Index"


@dataclass(frozen=True)
class OpportunityRow:
    segment: str
    base_value: float
    forecast_value: float
    cagr: float
    market_share: float
    absolute_growth: float
    cagr_index: float
    market_share_index: float
    opportunity_index: float
    color: str
    position: int


@dataclass(frozen=True)
class OpportunityMatrix:
    rows: List[OpportunityRow] = field(default_factory=list)
    x_label: str = CAGR_INDEX_LABEL
    y_label: str = ""
    notes: Tuple[ResultNote, ...] = ()


def market_share_label(base_year: int) -> str:
    return f"Market Share Index ({base_year})"


def compute_cagr(
    base: float,
    forecast: float,
    years: int,
    *,
    max_ratio: float = 100.0,
    max_rate: float = 100.0,
) -> float:
    """CAGR in percent, bounded to [0, max_rate].

    The growth ratio is capped at ``max_ratio`` before taking the root so a
    near-zero base cannot produce an absurd rate.
    """
    if base <= 0 or forecast <= 0 or years <= 0:
        return 0.0
    ratio = min(forecast / base, max_ratio)
    rate = (ratio ** (1.0 / years) - 1.0) * 100.0
    return max(0.0, min(rate, max_rate))


def normalize_index(value: float, maximum: float) -> float:
    """Share of ``maximum`` on a 0..100 scale; a non-positive maximum gives 0."""
    if maximum <= 0:
        return 0.0
    return float(np.clip(value / maximum * 100.0, 0.0, 100.0))


def immediate_children(segments: Sequence[str], tree: SegmentTree) -> List[str]:
    """Present segments with no present ancestor, in first-appearance order."""
    return tree.roots_among(list(dict.fromkeys(segments)))


def _empty(y_label: str, notes: Set[ResultNote]) -> OpportunityMatrix:
    notes.add(ResultNote.EMPTY_RESULT)
    return OpportunityMatrix(rows=[], y_label=y_label, notes=tuple(sorted(notes, key=lambda n: n.value)))


def compute_opportunity_matrix(
    records: Sequence[DataRecord],
    ctx: AnalyticsContext,
    *,
    geography: str,
    segment_type: str,
    business_type: Optional[str] = None,
    segments: Sequence[str] = (),
    base_year: Optional[int] = None,
    forecast_year: Optional[int] = None,
    max_bubbles: Optional[int] = None,
    min_index: Optional[float] = None,
) -> OpportunityMatrix:
    config = ctx.config
    base_year = ctx.base_year if base_year is None else int(base_year)
    forecast_year = ctx.forecast_year if forecast_year is None else int(forecast_year)
    max_bubbles = config.max_bubbles if max_bubbles is None else max(0, int(max_bubbles))
    min_index = config.min_opportunity_index if min_index is None else float(min_index)
    palette = config.palette or DEFAULT_PALETTE
    separator = config.segment_separator
    y_label = market_share_label(base_year)
    notes: Set[ResultNote] = set()

    pool = [
        r
        for r in records
        if r.geography == geography
        and r.segment_type == segment_type
        and matches_business_type(r, business_type, separator)
        and ctx.matcher.matches_any(r.segment, segments)
    ]
    if not pool:
        logger.info("No records for opportunity matrix (geography=%r, type=%r)", geography, segment_type)
        return _empty(y_label, notes)

    dimension = ctx.dataset.segments.get(segment_type)
    hierarchy = dimension.hierarchy_for(business_type) if dimension is not None else {}
    present = [r.segment for r in pool]
    tree = SegmentTree.build(present, hierarchy, separator)
    roots = immediate_children(present, tree)

    frame = pd.DataFrame(
        [{"segment": r.segment, "base": year_value(r, base_year), "forecast": year_value(r, forecast_year)} for r in pool]
    )
    by_segment = frame.groupby("segment", sort=False)[["base", "forecast"]].sum()
    total_base = float(frame["base"].sum())
    span = forecast_year - base_year

    raw = []
    for position, root in enumerate(roots):
        members = [root, *tree.descendants(root)]
        included = by_segment.reindex(members, fill_value=0.0)
        base = float(included["base"].sum())
        forecast = float(included["forecast"].sum())
        if base <= 0 or forecast <= 0:
            continue
        raw.append(
            {
                "segment": root,
                "base_value": base,
                "forecast_value": forecast,
                "cagr": compute_cagr(base, forecast, span, max_ratio=config.max_growth_ratio, max_rate=config.max_cagr),
                "market_share": base / total_base * 100.0 if total_base > 0 else 0.0,
                "absolute_growth": forecast - base,
                "position": position,
            }
        )
    if not raw:
        return _empty(y_label, notes)

    table = pd.DataFrame(raw)
    for column, target in (
        ("cagr", "cagr_index"),
        ("market_share", "market_share_index"),
        ("absolute_growth", "opportunity_index"),
    ):
        maximum = float(table[column].max())
        if maximum <= 0:
            notes.add(ResultNote.DEGENERATE_INDEX)
        table[target] = table[column].map(lambda v: normalize_index(v, maximum))

    table = table.sort_values("opportunity_index", ascending=False, kind="stable")
    table = table[table["opportunity_index"] >= min_index]
    if max_bubbles > 0:
        table = table.head(max_bubbles)

    rows = [
        OpportunityRow(
            segment=str(rec["segment"]),
            base_value=float(rec["base_value"]),
            forecast_value=float(rec["forecast_value"]),
            cagr=float(rec["cagr"]),
            market_share=float(rec["market_share"]),
            absolute_growth=float(rec["absolute_growth"]),
            cagr_index=float(rec["cagr_index"]),
            market_share_index=float(rec["market_share_index"]),
            opportunity_index=float(rec["opportunity_index"]),
            color=palette[int(rec["position"]) % len(palette)],
            position=int(rec["position"]),
        )
        for rec in table.to_dict(orient="records")
    ]
    if not rows:
        notes.add(ResultNote.EMPTY_RESULT)
    logger.debug("Opportunity matrix for %s: %d of %d children", geography, len(rows), len(roots))
    return OpportunityMatrix(rows=rows, y_label=y_label, notes=tuple(sorted(notes, key=lambda n: n.value)))
