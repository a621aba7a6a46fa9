"""Tests for the segment tree and hierarchical matching."""
from market_core.segments import SegmentDimension, SegmentMatcher, SegmentTree

PARENT = "B2B > Food"
CHILD = "B2B > Food > Spices"


def _matcher(*paths):
    return SegmentMatcher(SegmentTree.build(paths))


def test_path_registers_every_prefix():
    tree = SegmentTree.build([CHILD])
    assert "B2B" in tree
    assert tree.parent_of(CHILD) == PARENT
    assert list(tree.ancestors(CHILD)) == [PARENT, "B2B"]
    assert tree.descendants("B2B") == [PARENT, CHILD]


def test_matching_is_symmetric_across_ancestry():
    matcher = _matcher(CHILD)
    assert matcher.matches(PARENT, PARENT)
    assert matcher.matches(CHILD, PARENT)
    assert matcher.matches(PARENT, CHILD)
    assert not matcher.matches("B2B > Beverages", PARENT)


def test_matching_unknown_paths_falls_back_to_separator():
    matcher = SegmentMatcher(SegmentTree())
    p = "Retail > Grocery"
    c = p + " > X"
    assert matcher.matches(p, p)
    assert matcher.matches(c, p)
    assert matcher.matches(p, c)


def test_resolve_key_first_match_wins():
    matcher = _matcher(CHILD, "B2B > Beverages > Tea")
    assert matcher.resolve_key(CHILD, ["B2B > Beverages", PARENT, CHILD]) == PARENT
    assert matcher.matching(CHILD, [PARENT, CHILD]) == [PARENT, CHILD]
    assert matcher.resolve_key(CHILD, ["B2B > Beverages"]) is None
    assert matcher.matches_any(CHILD, [])


def test_adjacency_edges_and_cycles():
    tree = SegmentTree.build(["Offline", "Retail Stores"], {"Offline": ["Retail Stores", "Distributors"]})
    assert tree.parent_of("Retail Stores") == "Offline"
    assert tree.descendants("Offline") == ["Retail Stores", "Distributors"]
    tree.add_edge("Distributors", "Offline")
    assert tree.parent_of("Offline") is None
    assert tree.roots_among(["Retail Stores", "Offline", "Online"]) == ["Offline", "Online"]


def test_add_path_is_idempotent_and_links_prefixes():
    tree = SegmentTree()
    node = tree.add_path(CHILD)
    assert tree.add_path(CHILD) is node
    assert node.parent == PARENT
    assert tree.children("B2B") == [PARENT]
    assert tree.children(PARENT) == [CHILD]


def test_segment_dimension_merges_business_hierarchy():
    dim = SegmentDimension(
        name="By Product",
        kind="hierarchical",
        hierarchy={"Food": ("Spices",)},
        business_hierarchies={"B2B": {"Food": ("Spices", "Snacks")}, "B2C": {"Retail": ("Grocery",)}},
    )
    assert dim.hierarchy_for("B2B") == {"Food": ("Spices", "Snacks")}
    assert dim.hierarchy_for() == {"Food": ("Spices", "Snacks"), "Retail": ("Grocery",)}
    assert dim.hierarchy_for("B2X") == {"Food": ("Spices",)}
