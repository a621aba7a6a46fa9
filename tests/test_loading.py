"""Tests for dataset loading, labels, summaries, config and logging."""
import json
import logging

import pytest

from market_core.config import DEFAULT_PALETTE, EngineConfig, load_config
from market_core.data import (
    axis_label,
    calculate_totals,
    find_fastest_growing,
    find_top_performers,
    load_dataset,
    load_dataset_file,
    recompute_market_shares,
    records_frame,
    unique_geographies,
    unique_segments,
    unit_label,
    year_value,
)
from market_core.errors import DatasetError
from market_core.logging_config import PACKAGE_LOGGER, configure_logging
from tests.conftest import SPICES


def test_load_dataset_accepts_matrix_alias_and_string_years(dataset):
    assert len(dataset.value_records) == 10
    assert len(dataset.volume_records) == 1
    first = dataset.value_records[0]
    assert first.geography == "India"
    assert year_value(first, 2024) == 120.0
    assert year_value(first, 2032) == 240.0
    assert dataset.segment_types == ["By Product", "By Channel"]


def test_load_dataset_builds_dimensions(dataset):
    geo = dataset.geographies
    assert geo.global_entries == ("India",)
    assert geo.countries["West India"] == ("Maharashtra", "Gujarat")
    assert geo.children_of("India") == ("North India", "South India", "West India")
    product = dataset.segments["By Product"]
    assert product.kind == "hierarchical"
    assert product.hierarchy_for("B2B") == {"Food": ("Spices", "Snacks"), "Beverages": ("Tea",)}
    assert set(product.hierarchy_for()) == {"Food", "Beverages", "Retail"}


def test_invalid_envelope_raises_dataset_error(envelope):
    envelope["data"]["value"]["geography_segment_matrix"][0].pop("geography")
    with pytest.raises(DatasetError):
        load_dataset(envelope)


def test_load_dataset_file(tmp_path, envelope):
    path = tmp_path / "data.json"
    path.write_text(json.dumps(envelope), encoding="utf-8")
    assert len(load_dataset_file(path).value_records) == 10

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(DatasetError):
        load_dataset_file(broken)


def test_missing_and_null_year_values_count_as_zero(envelope):
    envelope["data"]["value"]["geography_segment_matrix"][0]["time_series"]["2025"] = None
    ds = load_dataset(envelope)
    assert year_value(ds.value_records[0], 2025) == 0.0
    assert year_value(ds.value_records[0], 1999) == 0.0


def test_labels(dataset):
    meta = dataset.metadata
    assert axis_label(meta, "value") == "Market Value (USD Million)"
    assert axis_label(meta, "volume") == "Market Volume (Tons)"
    assert unit_label(meta, "value") == "USD Million"
    assert unit_label(meta, "volume") == "Tons"


def test_summaries(dataset):
    records = [r for r in dataset.value_records if r.segment_type == "By Product"]
    totals = calculate_totals(records, 2024)
    assert totals["count"] == 6
    assert totals["total"] == pytest.approx(120 + 50 + 50 + 30 + 100 + 40)

    top = find_top_performers(records, 2024, limit=2)
    assert [t["name"] for t in top] == [f"India - {SPICES}", "Maharashtra - B2B > Beverages > Tea"]

    fastest = find_fastest_growing(records, limit=1)
    assert fastest[0]["cagr"] == pytest.approx(9.05)

    assert unique_geographies(records)[:3] == ["India", "North India", "South India"]
    assert unique_segments(records)[0] == SPICES


def test_recompute_market_shares(dataset):
    records = [r for r in dataset.value_records if r.geography == "South India"]
    shared = recompute_market_shares(records, 2024)
    assert sum(r.market_share for r in shared) == pytest.approx(100.0)
    assert records[0].market_share == 0.0


def test_records_frame_is_long_format(dataset):
    frame = records_frame(dataset.value_records[:2], [2024, 2032])
    assert list(frame.columns) == ["record", "geography", "segment", "segment_type", "year", "value"]
    assert len(frame) == 4
    assert frame["value"].sum() == pytest.approx(120 + 240 + 50 + 80)


def test_load_config_defaults_and_overrides(monkeypatch):
    monkeypatch.delenv("MARKET_CORE_MAX_CAGR", raising=False)
    monkeypatch.delenv("MARKET_CORE_MAX_GROWTH_RATIO", raising=False)
    monkeypatch.delenv("MARKET_CORE_MAX_BUBBLES", raising=False)
    cfg = load_config({})
    assert cfg == EngineConfig()
    assert cfg.palette == DEFAULT_PALETTE

    cfg = load_config({"max_cagr": "oops", "max_bubbles": 5, "rollup_geographies": ["West India"]})
    assert cfg.max_cagr == 100.0
    assert cfg.max_bubbles == 5
    assert cfg.rollup_geographies == ("West India",)

    monkeypatch.setenv("MARKET_CORE_MAX_CAGR", "50")
    monkeypatch.setenv("MARKET_CORE_MAX_BUBBLES", "-3")
    cfg = load_config({"max_cagr": 80})
    assert cfg.max_cagr == 50.0
    assert cfg.max_bubbles == 0


def test_configure_logging(monkeypatch):
    monkeypatch.setenv("MARKET_CORE_LOG_LEVEL", "debug")
    logger = configure_logging()
    assert logger.name == PACKAGE_LOGGER
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert logger.propagate is False

    logger = configure_logging("WARNING")
    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING
