"""Tests for geography matching and rollups."""
from market_core.geography import GeographyDimension, GeographyResolver, geography_matches


def test_geography_matches_loose_variants():
    assert geography_matches("North India", "North India")
    assert geography_matches("North India (5 states)", "North India")
    assert geography_matches("North India", "North India (5 states)")
    assert not geography_matches("North India", "South India")


def test_empty_selection_matches_everything(ctx):
    assert ctx.geography.is_match("Anywhere", [])
    assert ctx.geography.resolve_key("Anywhere", []) == "Anywhere"


def test_rollup_parents_and_children(ctx):
    geo = ctx.geography
    assert geo.is_rollup_parent("India")
    assert not geo.is_rollup_parent("North India")
    assert geo.children_of("India")[:3] == ["North India", "South India", "West India"]
    assert geo.children_of("West India") == ["Maharashtra", "Gujarat"]


def test_rollup_members_are_topmost_present_descendants(ctx):
    # West India has no records of its own, so its state stands in for it.
    assert ctx.geography.rollup_members("India") == ["North India", "South India", "Maharashtra"]


def test_descendants_of_rollup_parent_match_selection(ctx):
    assert ctx.geography.is_match("Maharashtra", ["India"])
    assert not ctx.geography.is_match("Maharashtra", ["North India"])


def test_resolve_key_never_buckets_children_under_rollup_parent(ctx):
    geo = ctx.geography
    selected = ["India", "North India"]
    assert geo.resolve_key("North India", selected) == "North India"
    assert geo.resolve_key("South India", selected) is None
    assert geo.geography_keys("South India", selected, rollup_enabled=True) == ["India"]
    assert geo.geography_keys("North India", selected, rollup_enabled=True) == ["North India", "India"]


def test_parent_records_skipped_when_rollup_enabled(ctx):
    geo = ctx.geography
    assert geo.resolve_key("India", ["India"], rollup_enabled=False) == "India"
    assert geo.resolve_key("India", ["India", "North India"], rollup_enabled=True) is None


def test_configured_rollup_geographies():
    dim = GeographyDimension(regions=("West",), countries={"West": ("Goa", "Gujarat")})

    class Rec:
        def __init__(self, geography):
            self.geography = geography

    resolver = GeographyResolver(dim, [Rec("Goa"), Rec("Gujarat")], rollup_geographies=["West"])
    assert resolver.is_rollup_parent("West")
    assert resolver.rollup_members("West") == ["Goa", "Gujarat"]
    assert resolver.active_rollups(["West", "Goa"]) == ["West"]
