"""Segment taxonomy: an explicit node tree plus hierarchical path matching.

Segment paths such as ``"B2B > Food > Spices"`` are stored as nodes that
know their parent and children, so ancestor checks walk parent links instead
of comparing string prefixes. Dimension adjacency lists (parent -> children)
are merged into the same tree; a child listed under several parents keeps
its first parent and is still reachable from every parent's children.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

logger = logging.getLogger(__name__)

DEFAULT_SEPARATOR = " > "


@dataclass
class SegmentNode:
    key: str
    parent: Optional[str] = None
    children: List[str] = field(default_factory=list)


class SegmentTree:
    def __init__(self, separator: str = DEFAULT_SEPARATOR) -> None:
        self.separator = separator
        self._nodes: Dict[str, SegmentNode] = {}

    @classmethod
    def build(
        cls,
        paths: Iterable[str] = (),
        hierarchy: Optional[Mapping[str, Sequence[str]]] = None,
        separator: str = DEFAULT_SEPARATOR,
    ) -> "SegmentTree":
        tree = cls(separator)
        for path in paths:
            tree.add_path(path)
        for parent, children in (hierarchy or {}).items():
            for child in children:
                tree.add_edge(parent, child)
        return tree

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def add_path(self, path: str) -> SegmentNode:
        """Register ``path`` and every prefix of it."""
        if path in self._nodes:
            return self._nodes[path]
        parts = path.split(self.separator)
        parent_key: Optional[str] = None
        for depth in range(1, len(parts)):
            parent_key = self._register(self.separator.join(parts[:depth]), parent_key).key
        return self._register(path, parent_key)

    def _register(self, key: str, parent_key: Optional[str]) -> SegmentNode:
        node = self._nodes.get(key)
        if node is None:
            node = SegmentNode(key=key, parent=parent_key)
            self._nodes[key] = node
            if parent_key is not None:
                self._nodes[parent_key].children.append(key)
        return node

    def add_edge(self, parent: str, child: str) -> None:
        if parent == child or self.is_ancestor(child, parent):
            logger.warning("Ignoring segment edge %r -> %r: it would create a cycle", parent, child)
            return
        parent_node = self.add_path(parent)
        child_node = self.add_path(child)
        if child not in parent_node.children:
            parent_node.children.append(child)
        if child_node.parent is None:
            child_node.parent = parent

    def parent_of(self, key: str) -> Optional[str]:
        node = self._nodes.get(key)
        if node is not None:
            return node.parent
        parts = key.split(self.separator)
        return self.separator.join(parts[:-1]) if len(parts) > 1 else None

    def ancestors(self, key: str) -> Iterator[str]:
        """Yield ancestors nearest first. O(depth)."""
        seen: Set[str] = {key}
        current = self.parent_of(key)
        while current is not None and current not in seen:
            seen.add(current)
            yield current
            current = self.parent_of(current)

    def is_ancestor(self, ancestor: str, key: str) -> bool:
        return any(a == ancestor for a in self.ancestors(key))

    def children(self, key: str) -> List[str]:
        node = self._nodes.get(key)
        return list(node.children) if node is not None else []

    def descendants(self, key: str) -> List[str]:
        """All transitive descendants, each listed once even if reachable twice."""
        out: List[str] = []
        visited: Set[str] = {key}
        stack = list(reversed(self.children(key)))
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            out.append(current)
            stack.extend(reversed(self.children(current)))
        return out

    def roots_among(self, keys: Sequence[str]) -> List[str]:
        """Keys with no ancestor inside ``keys``, in input order."""
        present = set(keys)
        roots: List[str] = []
        for key in keys:
            if key in roots:
                continue
            if any(a in present for a in self.ancestors(key)):
                continue
            roots.append(key)
        return roots


class SegmentMatcher:
    """Bidirectional hierarchical matching over a SegmentTree.

    A selected parent matches its descendants and a selected descendant also
    matches its ancestors; both directions are intended.
    """

    def __init__(self, tree: SegmentTree) -> None:
        self.tree = tree

    def matches(self, record_path: str, selected_path: str) -> bool:
        if record_path == selected_path:
            return True
        if self.tree.is_ancestor(selected_path, record_path):
            return True
        return self.tree.is_ancestor(record_path, selected_path)

    def matches_any(self, record_path: str, selected: Sequence[str]) -> bool:
        if not selected:
            return True
        return any(self.matches(record_path, sel) for sel in selected)

    def matching(self, record_path: str, selected: Sequence[str]) -> List[str]:
        return [sel for sel in selected if self.matches(record_path, sel)]

    def resolve_key(self, record_path: str, selected: Sequence[str]) -> Optional[str]:
        """First selected entry that matches, honoring the declared order."""
        for sel in selected:
            if self.matches(record_path, sel):
                return sel
        return None


@dataclass(frozen=True)
class SegmentDimension:
    name: str
    kind: str = "flat"
    items: Tuple[str, ...] = ()
    hierarchy: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    business_hierarchies: Mapping[str, Mapping[str, Tuple[str, ...]]] = field(default_factory=dict)

    def hierarchy_for(self, business_type: Optional[str] = None) -> Dict[str, Tuple[str, ...]]:
        """Parent -> children adjacency, merged with the business-type variant when one exists."""
        merged: Dict[str, Tuple[str, ...]] = {k: tuple(v) for k, v in self.hierarchy.items()}
        variants = [business_type] if business_type else list(self.business_hierarchies)
        for variant in variants:
            for parent, children in (self.business_hierarchies.get(variant) or {}).items():
                existing = list(merged.get(parent, ()))
                existing.extend(c for c in children if c not in existing)
                merged[parent] = tuple(existing)
        return merged

