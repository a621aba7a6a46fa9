from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
from pydantic import ValidationError

from market_core.errors import DatasetError
from market_core.geography import GeographyDimension
from market_core.schemas import DataRecordModel, EnvelopeModel
from market_core.segments import DEFAULT_SEPARATOR, SegmentDimension

logger = logging.getLogger(__name__)

BUSINESS_TYPES = ("B2B", "B2C")


@dataclass(frozen=True)
class DataRecord:
    geography: str
    segment_type: str
    segment: str
    time_series: Mapping[int, float] = field(default_factory=dict)
    geography_level: str = "country"
    parent_geography: Optional[str] = None
    segment_level: str = "leaf"
    segment_hierarchy: Mapping[str, Optional[str]] = field(default_factory=dict)
    cagr: float = 0.0
    market_share: float = 0.0

    def business_type(self, separator: str = DEFAULT_SEPARATOR) -> Optional[str]:
        """B2B/B2C from hierarchy level 1, else from the first path token, else None."""
        level_1 = self.segment_hierarchy.get("level_1")
        if level_1 in BUSINESS_TYPES:
            return level_1
        head = self.segment.split(separator)[0]
        if head in BUSINESS_TYPES:
            return head
        return None


@dataclass(frozen=True)
class Metadata:
    currency: str = "USD"
    value_unit: str = "Million"
    volume_unit: str = "Units"
    start_year: Optional[int] = None
    base_year: int = 2024
    forecast_year: int = 2032
    years: Tuple[int, ...] = ()

    @property
    def year_span(self) -> Tuple[int, int]:
        if self.years:
            return min(self.years), max(self.years)
        start = self.start_year if self.start_year is not None else self.base_year
        return start, self.forecast_year


@dataclass(frozen=True)
class Dataset:
    metadata: Metadata
    geographies: GeographyDimension
    segments: Mapping[str, SegmentDimension]
    value_records: Tuple[DataRecord, ...] = ()
    volume_records: Tuple[DataRecord, ...] = ()

    def records_for(self, data_type: str) -> Tuple[DataRecord, ...]:
        return self.volume_records if data_type == "volume" else self.value_records

    @property
    def all_records(self) -> Tuple[DataRecord, ...]:
        return self.value_records + self.volume_records

    @property
    def segment_types(self) -> List[str]:
        if self.segments:
            return list(self.segments)
        seen: List[str] = []
        for record in self.all_records:
            if record.segment_type not in seen:
                seen.append(record.segment_type)
        return seen


# ---------------- Loading ----------------
def _as_float(value: object) -> float:
    if value is None:
        return 0.0
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(out) or math.isinf(out) else out


def _record_from_model(model: DataRecordModel) -> DataRecord:
    return DataRecord(
        geography=model.geography.strip(),
        segment_type=model.segment_type,
        segment=model.segment.strip(),
        time_series={int(year): _as_float(v) for year, v in model.time_series.items() if v is not None},
        geography_level=model.geography_level,
        parent_geography=model.parent_geography or None,
        segment_level=model.segment_level,
        segment_hierarchy=model.segment_hierarchy.model_dump(),
        cagr=_as_float(model.cagr),
        market_share=_as_float(model.market_share),
    )


def load_dataset(raw: Mapping[str, Any]) -> Dataset:
    """Validate a data-source envelope and build an immutable Dataset."""
    try:
        envelope = EnvelopeModel.model_validate(raw)
    except ValidationError as exc:
        raise DatasetError(f"Invalid dataset envelope: {exc.error_count()} validation error(s)") from exc

    meta = envelope.metadata
    metadata = Metadata(
        currency=meta.currency,
        value_unit=meta.value_unit,
        volume_unit=meta.volume_unit,
        start_year=meta.start_year,
        base_year=meta.base_year,
        forecast_year=meta.forecast_year,
        years=tuple(sorted(meta.years)),
    )

    geo = envelope.dimensions.geographies
    geographies = GeographyDimension(
        global_entries=tuple(geo.global_),
        regions=tuple(geo.regions),
        countries={region: tuple(members) for region, members in geo.countries.items()},
        all_geographies=tuple(geo.all_geographies or [*geo.global_, *geo.regions]),
    )

    segments: Dict[str, SegmentDimension] = {}
    for name, definition in envelope.dimensions.segments.items():
        business: Dict[str, Dict[str, Tuple[str, ...]]] = {}
        if definition.b2b_hierarchy:
            business["B2B"] = {k: tuple(v) for k, v in definition.b2b_hierarchy.items()}
        if definition.b2c_hierarchy:
            business["B2C"] = {k: tuple(v) for k, v in definition.b2c_hierarchy.items()}
        segments[name] = SegmentDimension(
            name=name,
            kind=definition.type,
            items=tuple(definition.items),
            hierarchy={k: tuple(v) for k, v in definition.hierarchy.items()},
            business_hierarchies=business,
        )

    value_records = tuple(_record_from_model(r) for r in envelope.data.value.records)
    volume_records = tuple(_record_from_model(r) for r in envelope.data.volume.records)
    logger.info(
        "Loaded dataset: %d value records, %d volume records, %d segment types",
        len(value_records),
        len(volume_records),
        len(segments),
    )
    return Dataset(
        metadata=metadata,
        geographies=geographies,
        segments=segments,
        value_records=value_records,
        volume_records=volume_records,
    )


def load_dataset_file(path: str | Path) -> Dataset:
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise DatasetError(f"{path.name} is not valid JSON: {exc.msg}") from exc
    return load_dataset(raw)


# ---------------- Value access ----------------
def year_value(record: DataRecord, year: int) -> float:
    """Value for one year; a missing or non-numeric entry counts as 0."""
    return _as_float(record.time_series.get(year))


def year_range(start: int, end: int) -> List[int]:
    return list(range(int(start), int(end) + 1))


def records_frame(records: Iterable[DataRecord], years: Optional[Sequence[int]] = None) -> pd.DataFrame:
    """Long format frame: one row per (record, year)."""
    rows: List[Dict[str, Any]] = []
    for idx, record in enumerate(records):
        wanted = years if years is not None else sorted(record.time_series)
        for year in wanted:
            rows.append(
                {
                    "record": idx,
                    "geography": record.geography,
                    "segment": record.segment,
                    "segment_type": record.segment_type,
                    "year": int(year),
                    "value": year_value(record, year),
                }
            )
    return pd.DataFrame(rows, columns=["record", "geography", "segment", "segment_type", "year", "value"])


# ---------------- Labels ----------------
def unit_label(metadata: Metadata, data_type: str) -> str:
    if data_type == "volume":
        return metadata.volume_unit
    return f"{metadata.currency} {metadata.value_unit}"


def axis_label(metadata: Metadata, data_type: str) -> str:
    if data_type == "volume":
        return f"Market Volume ({metadata.volume_unit})"
    return f"Market Value ({metadata.currency} {metadata.value_unit})"


# ---------------- Summaries ----------------
def calculate_totals(records: Sequence[DataRecord], year: int) -> Dict[str, float]:
    total = sum(year_value(r, year) for r in records)
    count = len(records)
    return {"total": total, "count": count, "average": total / count if count else 0.0}


def find_top_performers(records: Sequence[DataRecord], year: int, limit: int = 5) -> List[Dict[str, Any]]:
    frame = pd.DataFrame(
        [{"name": f"{r.geography} - {r.segment}", "value": year_value(r, year)} for r in records],
        columns=["name", "value"],
    )
    top = frame.sort_values("value", ascending=False, kind="stable").head(max(0, limit))
    return top.to_dict(orient="records")


def find_fastest_growing(records: Sequence[DataRecord], limit: int = 5) -> List[Dict[str, Any]]:
    frame = pd.DataFrame(
        [{"name": f"{r.geography} - {r.segment}", "cagr": r.cagr} for r in records],
        columns=["name", "cagr"],
    )
    top = frame.sort_values("cagr", ascending=False, kind="stable").head(max(0, limit))
    return top.to_dict(orient="records")


def unique_geographies(records: Iterable[DataRecord]) -> List[str]:
    return list(dict.fromkeys(r.geography for r in records))


def unique_segments(records: Sequence[DataRecord]) -> List[str]:
    """Parent segments, plus leaves whose level-2 parent has no record of its own."""
    parents = {r.segment for r in records if r.segment_level == "parent"}
    out: List[str] = []
    for record in records:
        if record.segment_level == "parent":
            keep = True
        else:
            keep = record.segment_hierarchy.get("level_2") not in parents
        if keep and record.segment not in out:
            out.append(record.segment)
    return out


def recompute_market_shares(records: Sequence[DataRecord], year: int) -> List[DataRecord]:
    """Copies of ``records`` whose market_share is their share of the ``year`` total."""
    total = sum(year_value(r, year) for r in records)
    if total <= 0:
        return list(records)
    return [replace(r, market_share=year_value(r, year) / total * 100) for r in records]
