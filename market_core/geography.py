"""Geography matching and rollups (state -> region -> national)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple


@dataclass(frozen=True)
class GeographyDimension:
    global_entries: Tuple[str, ...] = ()
    regions: Tuple[str, ...] = ()
    countries: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    all_geographies: Tuple[str, ...] = ()

    def children_of(self, geography: str) -> Tuple[str, ...]:
        if geography in self.global_entries:
            return self.regions
        return tuple(self.countries.get(geography, ()))


def geography_matches(record_geo: str, selected: str) -> bool:
    """Loose name match, tolerant of display variants like "West India (5 states)"."""
    if record_geo == selected:
        return True
    if record_geo.startswith(selected) or selected.startswith(record_geo):
        return True
    return selected in record_geo or record_geo in selected


class GeographyResolver:
    """Resolves record geographies against a selection.

    Built once per dataset; holds no per-request state.
    """

    def __init__(
        self,
        dimension: GeographyDimension,
        records: Iterable[object] = (),
        rollup_geographies: Sequence[str] = (),
    ) -> None:
        self.dimension = dimension
        self._rollups: Set[str] = set(dimension.global_entries) | set(rollup_geographies)
        self._present: Set[str] = set()
        self._record_children: Dict[str, List[str]] = {}
        self._region_level: List[str] = []
        self._members_cache: Dict[str, List[str]] = {}
        self._descendants_cache: Dict[str, Set[str]] = {}
        for record in records:
            geo = getattr(record, "geography")
            if geo in self._present:
                continue
            self._present.add(geo)
            parent = getattr(record, "parent_geography", None)
            if parent:
                self._record_children.setdefault(parent, []).append(geo)
            elif getattr(record, "geography_level", None) == "region":
                self._region_level.append(geo)

    # ---------------- matching ----------------
    def is_match(self, record_geo: str, selected: Sequence[str]) -> bool:
        """Loose name match, or membership under a selected rollup parent."""
        if not selected:
            return True
        for sel in selected:
            if geography_matches(record_geo, sel):
                return True
            if self.is_rollup_parent(sel) and record_geo in self.descendants_of(sel):
                return True
        return False

    def is_rollup_parent(self, geography: str) -> bool:
        return geography in self._rollups

    def children_of(self, parent: str) -> List[str]:
        out: List[str] = []
        for child in self.dimension.children_of(parent):
            if child not in out:
                out.append(child)
        for child in self._record_children.get(parent, []):
            if child not in out:
                out.append(child)
        if parent in self.dimension.global_entries and not self.dimension.regions:
            # No region list in the dimension: fall back to region-level records.
            for child in self._region_level:
                if child not in out and child != parent:
                    out.append(child)
        return out

    def descendants_of(self, parent: str) -> Set[str]:
        if parent in self._descendants_cache:
            return self._descendants_cache[parent]
        seen: Set[str] = set()
        stack = list(self.children_of(parent))
        while stack:
            geo = stack.pop()
            if geo in seen or geo == parent:
                continue
            seen.add(geo)
            stack.extend(self.children_of(geo))
        self._descendants_cache[parent] = seen
        return seen

    def rollup_members(self, parent: str) -> List[str]:
        """Top-most present descendants of ``parent``.

        A state is only summed when its region has no records of its own, so
        each unit of market value is counted once.
        """
        if parent in self._members_cache:
            return self._members_cache[parent]
        members: List[str] = []
        seen: Set[str] = {parent}
        queue = list(self.children_of(parent))
        while queue:
            geo = queue.pop(0)
            if geo in seen:
                continue
            seen.add(geo)
            if geo in self._present:
                members.append(geo)
            else:
                queue.extend(self.children_of(geo))
        self._members_cache[parent] = members
        return members

    def active_rollups(self, selected: Sequence[str]) -> List[str]:
        """Selected rollup parents that have at least one present child."""
        return [sel for sel in selected if self.is_rollup_parent(sel) and self.rollup_members(sel)]

    # ---------------- resolution ----------------
    def resolve_key(self, record_geo: str, selected: Sequence[str], *, rollup_enabled: bool = False) -> Optional[str]:
        """Return the selected entry a record is bucketed under, in declared order.

        Descendants of a selected rollup parent are never bucketed directly
        under that parent; when the rollup is enabled the parent's own records
        are skipped as well because the children's sum replaces them.
        """
        if not selected:
            return record_geo
        if rollup_enabled and record_geo in self.active_rollups(selected):
            return None
        for sel in selected:
            if self.is_rollup_parent(sel) and self.rollup_members(sel) and record_geo in self.descendants_of(sel):
                continue
            if geography_matches(record_geo, sel):
                return sel
        return None

    def rollup_keys(self, record_geo: str, selected: Sequence[str]) -> List[str]:
        """Selected rollup parents this record is summed into."""
        return [parent for parent in self.active_rollups(selected) if record_geo in self.rollup_members(parent)]

    def geography_keys(self, record_geo: str, selected: Sequence[str], *, rollup_enabled: bool) -> List[str]:
        """Every geography bucket a record contributes to: direct key first, then rollups."""
        keys: List[str] = []
        direct = self.resolve_key(record_geo, selected, rollup_enabled=rollup_enabled)
        if direct is not None:
            keys.append(direct)
        if rollup_enabled and selected:
            for parent in self.rollup_keys(record_geo, selected):
                if parent not in keys:
                    keys.append(parent)
        return keys
