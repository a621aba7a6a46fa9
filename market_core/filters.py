from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple, Union

from pydantic import AliasChoices, BaseModel

from market_core.data import BUSINESS_TYPES, DataRecord, Dataset, year_range
from market_core.schemas import FilterStateModel
from market_core.segments import DEFAULT_SEPARATOR

if TYPE_CHECKING:
    from market_core.context import AnalyticsContext

logger = logging.getLogger(__name__)

ViewMode = Literal["segment-mode", "geography-mode", "matrix"]
DataType = Literal["value", "volume"]

VIEW_MODES = ("segment-mode", "geography-mode", "matrix")
DATA_TYPES = ("value", "volume")


@dataclass(frozen=True)
class FilterState:
    geographies: Tuple[str, ...] = ()
    segments: Tuple[str, ...] = ()
    segment_type: str = ""
    year_range: Tuple[int, int] = (2024, 2032)
    data_type: DataType = "value"
    view_mode: ViewMode = "segment-mode"
    business_type: Optional[str] = "B2B"

    @property
    def start_year(self) -> int:
        return self.year_range[0]

    @property
    def end_year(self) -> int:
        return self.year_range[1]

    @property
    def years(self) -> List[int]:
        return year_range(self.start_year, self.end_year)


def _as_str_tuple(values: Optional[Iterable[object]]) -> Tuple[str, ...]:
    if not values or isinstance(values, str):
        return ()
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if s and s not in out:
            out.append(s)
    return tuple(out)


def filter_fields(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Known filter keys renamed to field names; camelCase aliases come from FilterStateModel."""
    out: Dict[str, Any] = {}
    for name, info in FilterStateModel.model_fields.items():
        alias = info.validation_alias
        choices = alias.choices if isinstance(alias, AliasChoices) else [name]
        for choice in choices:
            if isinstance(choice, str) and choice in raw:
                out[name] = raw[choice]
                break
    return out


def _year_range(value: Any, fallback: Tuple[int, int]) -> Tuple[int, int]:
    try:
        start, end = (int(v) for v in value)
    except Exception:
        return fallback
    return (start, end) if start <= end else (end, start)


def normalize_filters(
    raw: Union[Mapping[str, Any], BaseModel, FilterState, None],
    *,
    dataset: Optional[Dataset] = None,
) -> FilterState:
    """Coerce an opaque filter payload from the UI into a FilterState.

    Accepts snake_case or camelCase keys. Anything unparsable falls back to
    the dataset-derived default instead of raising.
    """
    if isinstance(raw, FilterState):
        return raw
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    fields = filter_fields(raw or {})
    base = default_filters(dataset) if dataset is not None else FilterState()

    geographies = _as_str_tuple(fields.get("geographies"))
    segments = _as_str_tuple(fields.get("segments"))

    segment_type = fields.get("segment_type")
    segment_type = str(segment_type).strip() if segment_type else base.segment_type
    if dataset is not None and dataset.segment_types and segment_type not in dataset.segment_types:
        logger.info("Unknown segment type %r; using %r", segment_type, base.segment_type)
        segment_type = base.segment_type

    years = _year_range(fields.get("year_range"), base.year_range)

    data_type = fields.get("data_type")
    data_type = data_type if data_type in DATA_TYPES else base.data_type

    view_mode = fields.get("view_mode")
    view_mode = view_mode if view_mode in VIEW_MODES else base.view_mode

    if "business_type" in fields:
        business_type = fields["business_type"]
        business_type = business_type if business_type in BUSINESS_TYPES else None
    else:
        business_type = base.business_type

    return FilterState(
        geographies=geographies,
        segments=segments,
        segment_type=segment_type,
        year_range=years,
        data_type=data_type,
        view_mode=view_mode,
        business_type=business_type,
    )


def _default_segments(dataset: Dataset, segment_type: str, business_type: str, separator: str) -> Tuple[str, ...]:
    """Two leaf segments for a first render: depth >= 4 when available, else the deepest."""
    unique: List[str] = []
    for record in dataset.value_records:
        if record.segment_type != segment_type:
            continue
        record_bt = record.business_type(separator)
        if record_bt is not None and record_bt != business_type:
            continue
        if record.segment not in unique:
            unique.append(record.segment)
    if not unique:
        return ()
    deep = [s for s in unique if len(s.split(separator)) >= 4]
    if deep:
        return tuple(deep[:2])
    by_depth = sorted(unique, key=lambda s: len(s.split(separator)), reverse=True)
    return tuple(by_depth[:2])


def default_filters(dataset: Optional[Dataset], *, separator: str = DEFAULT_SEPARATOR) -> FilterState:
    if dataset is None:
        return FilterState()
    segment_types = dataset.segment_types
    segment_type = segment_types[0] if segment_types else ""
    meta = dataset.metadata
    start = meta.start_year if meta.start_year is not None else meta.year_span[0]
    business_type = "B2B"
    return FilterState(
        geographies=(),
        segments=_default_segments(dataset, segment_type, business_type, separator),
        segment_type=segment_type,
        year_range=(start, meta.forecast_year) if start <= meta.forecast_year else meta.year_span,
        data_type="value",
        view_mode="segment-mode",
        business_type=business_type,
    )


# ---------------- Filter engine ----------------
def matches_business_type(record: DataRecord, business_type: Optional[str], separator: str = DEFAULT_SEPARATOR) -> bool:
    if not business_type:
        return True
    record_bt = record.business_type(separator)
    return record_bt is None or record_bt == business_type


def filter_records(records: Sequence[DataRecord], filters: FilterState, ctx: "AnalyticsContext") -> List[DataRecord]:
    """Records passing every filter axis, in input order. Never raises."""
    separator = ctx.config.segment_separator
    out: List[DataRecord] = []
    for record in records:
        if not ctx.geography.is_match(record.geography, filters.geographies):
            continue
        if record.segment_type != filters.segment_type:
            continue
        if not matches_business_type(record, filters.business_type, separator):
            continue
        if not ctx.matcher.matches_any(record.segment, filters.segments):
            continue
        out.append(record)

    if not out:
        logger.info(
            "No records matched (type=%r, business=%r, %d geographies, %d segments)",
            filters.segment_type,
            filters.business_type,
            len(filters.geographies),
            len(filters.segments),
        )
    else:
        logger.debug("Filtered %d of %d records", len(out), len(records))
    return out
