"""Shared fixtures: a small in-memory market dataset."""
from typing import Any, Dict, Optional

import pytest

from market_core.context import AnalyticsContext
from market_core.data import load_dataset
from market_core.filters import FilterState

YEARS = list(range(2024, 2033))


def linear(start: float, end: float) -> Dict[str, float]:
    """Straight-line series 2024..2032 keyed by string years, as JSON delivers them."""
    step = (end - start) / (len(YEARS) - 1)
    return {str(y): start + step * i for i, y in enumerate(YEARS)}


def record(
    geography: str,
    segment: str,
    start: float,
    end: float,
    *,
    level: str = "region",
    parent: Optional[str] = "India",
    segment_type: str = "By Product",
    cagr: float = 0.0,
) -> Dict[str, Any]:
    parts = segment.split(" > ")
    hierarchy = {f"level_{i + 1}": p for i, p in enumerate(parts[:4])}
    return {
        "geography": geography,
        "geography_level": level,
        "parent_geography": parent,
        "segment_type": segment_type,
        "segment": segment,
        "segment_level": "leaf",
        "segment_hierarchy": hierarchy,
        "time_series": linear(start, end),
        "cagr": cagr,
        "market_share": 0,
    }


SPICES = "B2B > Food > Spices"
SNACKS = "B2B > Food > Snacks"
TEA = "B2B > Beverages > Tea"
GROCERY = "B2C > Retail > Grocery"


def build_envelope() -> Dict[str, Any]:
    value_records = [
        record("India", SPICES, 120, 240, level="global", parent=None, cagr=9.05),
        record("North India", SPICES, 50, 80, cagr=6.0),
        record("South India", SPICES, 50, 70, cagr=4.3),
        record("North India", SNACKS, 30, 45, cagr=5.2),
        record("Maharashtra", TEA, 100, 200, level="country", parent="West India", cagr=9.05),
        record("North India", GROCERY, 40, 60, cagr=5.0),
        record("South India", "Online", 10, 30, segment_type="By Channel"),
        record("South India", "Offline", 5, 10, segment_type="By Channel"),
        record("South India", "Retail Stores", 20, 30, segment_type="By Channel"),
        record("South India", "Distributors", 10, 10, segment_type="By Channel"),
    ]
    volume_records = [record("North India", SPICES, 5, 8)]
    return {
        "metadata": {
            "currency": "USD",
            "value_unit": "Million",
            "volume_unit": "Tons",
            "start_year": 2024,
            "base_year": 2024,
            "forecast_year": 2032,
            "years": YEARS,
        },
        "dimensions": {
            "geographies": {
                "global": ["India"],
                "regions": ["North India", "South India", "West India"],
                "countries": {
                    "North India": ["Delhi"],
                    "South India": ["Kerala"],
                    "West India": ["Maharashtra", "Gujarat"],
                },
                "all_geographies": ["India", "North India", "South India", "West India"],
            },
            "segments": {
                "By Product": {
                    "type": "hierarchical",
                    "items": ["Food", "Beverages", "Retail"],
                    "b2b_hierarchy": {"Food": ["Spices", "Snacks"], "Beverages": ["Tea"]},
                    "b2c_hierarchy": {"Retail": ["Grocery"]},
                },
                "By Channel": {
                    "type": "hierarchical",
                    "items": ["Online", "Offline", "Retail Stores", "Distributors"],
                    "hierarchy": {"Offline": ["Retail Stores", "Distributors"]},
                },
            },
        },
        "data": {
            "value": {"geography_segment_matrix": value_records},
            "volume": {"records": volume_records},
        },
    }


@pytest.fixture
def envelope():
    return build_envelope()


@pytest.fixture
def dataset(envelope):
    return load_dataset(envelope)


@pytest.fixture
def ctx(dataset):
    return AnalyticsContext.from_dataset(dataset)


@pytest.fixture
def product_filters():
    """Product taxonomy, B2B, whole range, nothing selected."""
    return FilterState(segment_type="By Product", year_range=(2024, 2032), business_type="B2B")
