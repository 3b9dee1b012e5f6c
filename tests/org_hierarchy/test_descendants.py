"""
Tests for descendant lookups - tolerant of malformed (cyclic) snapshots.
"""

import pytest

from src.core.exceptions import NotFoundError
from src.core.services.org_hierarchy.descendants import (
    get_descendants,
    get_sub_organizations,
    get_subtree_height,
    is_descendant,
)
from src.core.services.org_hierarchy.resolver import sort_by_name


class TestGetDescendants:
    def test_chain_descendants(self, chain_snapshot):
        assert get_descendants(chain_snapshot, "A") == {"B", "C"}
        assert get_descendants(chain_snapshot, "B") == {"C"}
        assert get_descendants(chain_snapshot, "C") == set()

    def test_never_contains_self(self, org_forest):
        for node in org_forest:
            assert node.id not in get_descendants(org_forest, node.id)

    def test_unknown_id_has_no_descendants(self, org_forest):
        assert get_descendants(org_forest, "missing") == set()

    def test_cycle_does_not_raise_or_loop(self, cyclic_snapshot):
        assert get_descendants(cyclic_snapshot, "D") == {"E"}
        assert get_descendants(cyclic_snapshot, "E") == {"D"}

    def test_self_loop_excludes_self(self, make_snapshot):
        snapshot = make_snapshot({"S": "S", "T": "S"})
        assert get_descendants(snapshot, "S") == {"T"}

    def test_does_not_cross_into_other_trees(self, org_forest):
        assert get_descendants(org_forest, "acme-fr") == {"acme-paris", "acme-lyon"}


class TestSubOrganizations:
    def test_breadth_first_order(self, org_forest):
        ids = [node.id for node in get_sub_organizations(org_forest, "acme")]
        assert ids == ["acme-fr", "acme-de", "acme-paris", "acme-lyon", "acme-berlin"]

    def test_sorted_by_name(self, org_forest):
        names = [node.name for node in get_sub_organizations(org_forest, "acme", sort_key=sort_by_name)]
        assert names == ["Berlin", "France", "Germany", "Lyon", "Paris"]

    def test_unknown_org_raises(self, org_forest):
        with pytest.raises(NotFoundError):
            get_sub_organizations(org_forest, "missing")


class TestIsDescendant:
    def test_grandchild_is_descendant(self, chain_snapshot):
        assert is_descendant(chain_snapshot, "C", "A") is True

    def test_ancestor_is_not_descendant(self, chain_snapshot):
        assert is_descendant(chain_snapshot, "A", "C") is False

    def test_same_org_is_not_descendant(self, chain_snapshot):
        assert is_descendant(chain_snapshot, "B", "B") is False


class TestSubtreeHeight:
    def test_heights(self, org_forest):
        assert get_subtree_height(org_forest, "acme") == 2
        assert get_subtree_height(org_forest, "acme-de") == 1
        assert get_subtree_height(org_forest, "acme-paris") == 0

    def test_cycle_terminates(self, cyclic_snapshot):
        assert get_subtree_height(cyclic_snapshot, "D") == 1
