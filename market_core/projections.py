"""Pure adapters from aggregator output to the structures each chart consumes."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Literal, Sequence, Tuple

from market_core.aggregate import AggregateResult, OutputShape, WaterfallTotals
from market_core.data import DataRecord, year_value
from market_core.filters import FilterState
from market_core.indices import OpportunityMatrix

StepType = Literal["start", "positive", "negative", "end"]


@dataclass(frozen=True)
class WaterfallStep:
    name: str
    value: float
    type: StepType

    @property
    def signed_value(self) -> float:
        """Negative steps carry their magnitude in ``value``; this restores the sign."""
        return -self.value if self.type == "negative" else self.value


def project_bar(result: AggregateResult) -> Dict[str, Any]:
    return {
        "shape": "stacked" if result.shape is OutputShape.STACKED_BAR else "simple",
        "rows": result.rows,
        "series": list(result.series),
        "groups": list(result.groups),
        "slices": list(result.slices),
    }


def project_line(result: AggregateResult) -> Dict[str, Any]:
    return {"rows": result.rows, "series": list(result.series)}


def project_heatmap(cells: Sequence[Tuple[str, str, float]]) -> List[Dict[str, Any]]:
    return [
        {"geography": geo, "segment": seg, "value": value, "display_value": f"{value:.2f}"}
        for geo, seg, value in cells
    ]


def project_table(entries: Sequence[Tuple[DataRecord, List[float]]], filters: FilterState) -> List[Dict[str, Any]]:
    """One comparison row per record; growth_pct is 0 when the base value is not positive."""
    rows: List[Dict[str, Any]] = []
    for record, sparkline in entries:
        base = year_value(record, filters.start_year)
        forecast = year_value(record, filters.end_year)
        rows.append(
            {
                "geography": record.geography,
                "segment": record.segment,
                "base_year_value": base,
                "forecast_year_value": forecast,
                "cagr": record.cagr,
                "growth_pct": (forecast - base) / base * 100.0 if base > 0 else 0.0,
                "sparkline": list(sparkline),
            }
        )
    return rows


def project_waterfall(totals: WaterfallTotals) -> List[WaterfallStep]:
    """Start total, gains (largest first), losses (largest first), end total."""
    ordered = sorted(totals.deltas, key=lambda item: abs(item[1]), reverse=True)
    steps = [WaterfallStep(name=f"Start ({totals.start_year})", value=totals.start_total, type="start")]
    steps.extend(WaterfallStep(name=name, value=delta, type="positive") for name, delta in ordered if delta > 0)
    steps.extend(WaterfallStep(name=name, value=abs(delta), type="negative") for name, delta in ordered if delta < 0)
    steps.append(WaterfallStep(name=f"End ({totals.end_year})", value=totals.end_total, type="end"))
    return steps


def project_bubble(matrix: OpportunityMatrix) -> Dict[str, Any]:
    bubbles = []
    for row in matrix.rows:
        bubble = asdict(row)
        bubble.update(name=row.segment, x=row.cagr_index, y=row.market_share_index, z=row.opportunity_index)
        bubbles.append(bubble)
    return {"bubbles": bubbles, "x_label": matrix.x_label, "y_label": matrix.y_label}
