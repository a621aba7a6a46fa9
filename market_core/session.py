"""Per-user dashboard session: current filters plus a bounded memo of computed views."""

from __future__ import annotations

import logging
from dataclasses import asdict
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from market_core.config import EngineConfig
from market_core.context import AnalyticsContext
from market_core.data import Dataset, load_dataset_file
from market_core.filters import FilterState, default_filters, filter_fields, normalize_filters
from market_core.presets import apply_preset
from market_core.views import VIEWS

logger = logging.getLogger(__name__)

MEMO_SIZE = 32


class DashboardSession:
    """Holds the mutable filter state for one dashboard user.

    The dataset and config are shared read-only through ``ctx``; computed
    view payloads are cached per (view, FilterState) for this session only,
    keeping the ``memo_size`` most recently used.
    """

    def __init__(self, dataset: Dataset, config: Optional[EngineConfig] = None, *, memo_size: int = MEMO_SIZE) -> None:
        self.ctx = AnalyticsContext.from_dataset(dataset, config)
        self.filters = self.default_filters()
        self._cached_view = lru_cache(maxsize=max(1, int(memo_size)))(self._build_view)

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        config: Optional[EngineConfig] = None,
        *,
        memo_size: int = MEMO_SIZE,
    ) -> "DashboardSession":
        return cls(load_dataset_file(path), config, memo_size=memo_size)

    def default_filters(self) -> FilterState:
        return default_filters(self.ctx.dataset, separator=self.ctx.config.segment_separator)

    def update_filters(self, changes: Mapping[str, Any]) -> FilterState:
        """Merge a partial (snake or camelCase) filter payload into the current state."""
        merged = {**asdict(self.filters), **filter_fields(changes)}
        self.filters = normalize_filters(merged, dataset=self.ctx.dataset)
        return self.filters

    def reset_filters(self) -> FilterState:
        self.filters = self.default_filters()
        return self.filters

    def apply_preset(self, name: str) -> FilterState:
        self.filters = apply_preset(name, self.ctx)
        logger.info("Applied preset %s", name)
        return self.filters

    def _build_view(self, name: str, filters: FilterState) -> Dict[str, Any]:
        try:
            builder = VIEWS[name]
        except KeyError:
            raise KeyError(f"Unknown view {name!r}; expected one of {sorted(VIEWS)}") from None
        return builder(filters, self.ctx)

    def view(self, name: str) -> Dict[str, Any]:
        """Payload for view ``name`` under the current filters, memoized."""
        return self._cached_view(name, self.filters)

    def clear_cache(self) -> None:
        self._cached_view.cache_clear()

    @property
    def cache_size(self) -> int:
        return self._cached_view.cache_info().currsize
