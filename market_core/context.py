"""Immutable per-dataset context threaded into every compute call."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from market_core.config import DEFAULT_BASE_YEAR, DEFAULT_FORECAST_YEAR, EngineConfig
from market_core.data import Dataset
from market_core.geography import GeographyResolver
from market_core.segments import SegmentMatcher, SegmentTree


@dataclass(frozen=True)
class AnalyticsContext:
    dataset: Dataset
    config: EngineConfig
    geography: GeographyResolver
    tree: SegmentTree
    matcher: SegmentMatcher

    @classmethod
    def from_dataset(cls, dataset: Dataset, config: Optional[EngineConfig] = None) -> "AnalyticsContext":
        config = config or EngineConfig()
        records = dataset.all_records
        geography = GeographyResolver(
            dataset.geographies,
            records,
            rollup_geographies=config.rollup_geographies,
        )
        tree = SegmentTree.build((r.segment for r in records), separator=config.segment_separator)
        for dimension in dataset.segments.values():
            for parent, children in dimension.hierarchy_for().items():
                for child in children:
                    tree.add_edge(parent, child)
        return cls(dataset=dataset, config=config, geography=geography, tree=tree, matcher=SegmentMatcher(tree))

    @property
    def base_year(self) -> int:
        if self.config.base_year is not None:
            return self.config.base_year
        return self.dataset.metadata.base_year or DEFAULT_BASE_YEAR

    @property
    def forecast_year(self) -> int:
        if self.config.forecast_year is not None:
            return self.config.forecast_year
        return self.dataset.metadata.forecast_year or DEFAULT_FORECAST_YEAR
