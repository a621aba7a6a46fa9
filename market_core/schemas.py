from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class MetadataModel(BaseModel):
    currency: str = "USD"
    value_unit: str = "Million"
    volume_unit: str = "Units"
    start_year: Optional[int] = None
    base_year: int = 2024
    forecast_year: int = 2032
    years: List[int] = Field(default_factory=list)


class SegmentHierarchyModel(BaseModel):
    level_1: Optional[str] = None
    level_2: Optional[str] = None
    level_3: Optional[str] = None
    level_4: Optional[str] = None


class DataRecordModel(BaseModel):
    geography: str
    geography_level: str = "country"
    parent_geography: Optional[str] = None
    segment_type: str
    segment: str
    segment_level: str = "leaf"
    segment_hierarchy: SegmentHierarchyModel = Field(default_factory=SegmentHierarchyModel)
    # JSON object keys arrive as strings; lax mode turns "2024" into 2024.
    time_series: Dict[int, Optional[float]] = Field(default_factory=dict)
    cagr: Optional[float] = None
    market_share: Optional[float] = None


class RecordBlockModel(BaseModel):
    records: List[DataRecordModel] = Field(
        default_factory=list,
        validation_alias=AliasChoices("records", "geography_segment_matrix"),
    )


class DataBlockModel(BaseModel):
    value: RecordBlockModel = Field(default_factory=RecordBlockModel)
    volume: RecordBlockModel = Field(default_factory=RecordBlockModel)


class GeographiesModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    global_: List[str] = Field(default_factory=list, alias="global")
    regions: List[str] = Field(default_factory=list)
    countries: Dict[str, List[str]] = Field(default_factory=dict)
    all_geographies: List[str] = Field(default_factory=list)


class SegmentDefinitionModel(BaseModel):
    type: Literal["flat", "hierarchical"] = "flat"
    items: List[str] = Field(default_factory=list)
    hierarchy: Dict[str, List[str]] = Field(default_factory=dict)
    b2b_hierarchy: Dict[str, List[str]] = Field(default_factory=dict)
    b2c_hierarchy: Dict[str, List[str]] = Field(default_factory=dict)


class DimensionsModel(BaseModel):
    geographies: GeographiesModel = Field(default_factory=GeographiesModel)
    segments: Dict[str, SegmentDefinitionModel] = Field(default_factory=dict)


class EnvelopeModel(BaseModel):
    metadata: MetadataModel = Field(default_factory=MetadataModel)
    dimensions: DimensionsModel = Field(default_factory=DimensionsModel)
    data: DataBlockModel = Field(default_factory=DataBlockModel)


class FilterStateModel(BaseModel):
    geographies: List[str] = Field(default_factory=list)
    segments: List[str] = Field(default_factory=list)
    segment_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("segment_type", "segmentType"))
    year_range: Optional[List[int]] = Field(default=None, validation_alias=AliasChoices("year_range", "yearRange"))
    data_type: str = Field(default="value", validation_alias=AliasChoices("data_type", "dataType"))
    view_mode: str = Field(default="segment-mode", validation_alias=AliasChoices("view_mode", "viewMode"))
    business_type: Optional[str] = Field(default="B2B", validation_alias=AliasChoices("business_type", "businessType"))
