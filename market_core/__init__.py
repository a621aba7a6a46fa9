"""Market data aggregation and chart projection core (UI-agnostic).

This package contains:
- dataset loading (JSON envelope -> immutable records, validated with pydantic)
- geography rollups and hierarchical segment matching
- filter normalization and the record filter
- per-year aggregation (pandas) and opportunity indices
- projections and page payloads (JSON-serializable)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
