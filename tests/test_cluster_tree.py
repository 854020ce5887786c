"""Tests for pcr_batching/clustering/models.py - the append-only merge tree."""
from __future__ import annotations

import pytest

from pcr_batching.clustering.models import ClusterTree, combine_means
from pcr_batching.errors import InternalInvariantViolation
from pcr_batching.models import PcrOperation, anneal_temp_of, extension_time_of


def _tree_with(*values):
    tree = ClusterTree(extension_time_of, anneal_temp_of)
    leaves = [
        tree.add_leaf(PcrOperation(extension_time=ext, anneal_temp=temp, unique_id=i))
        for i, (ext, temp) in enumerate(values)
    ]
    return tree, leaves


# Tree built below:
#
#           6
#          / \
#         4   5
#        / \ / \
#       0  1 2  3
#
@pytest.fixture
def balanced_tree():
    tree, leaves = _tree_with((10, 60), (20, 62), (100, 70), (130, 71))
    left = tree.merge(leaves[0], leaves[1], 10.0)
    right = tree.merge(leaves[2], leaves[3], 30.0)
    root = tree.merge(left, right, 100.0)
    return tree, leaves, left, right, root


class TestLeaves:
    @pytest.mark.unit
    def test_leaf_statistics_come_from_stage_attribute(self):
        tree, (leaf,) = _tree_with((45.0, 61.5))
        assert leaf.size == 1
        assert leaf.min_value == leaf.max_value == leaf.mean_value == 45.0
        assert leaf.min_other == leaf.max_other == 61.5
        assert leaf.is_leaf and leaf.is_top_level
        assert leaf.members()[0].unique_id == 0

    @pytest.mark.unit
    def test_swapped_accessors_cluster_on_temperature(self):
        tree = ClusterTree(anneal_temp_of, extension_time_of)
        leaf = tree.add_leaf(PcrOperation(extension_time=45.0, anneal_temp=61.5))
        assert leaf.mean_value == 61.5
        assert leaf.min_other == 45.0

    @pytest.mark.unit
    def test_leaves_cannot_be_added_after_a_merge(self):
        tree, leaves = _tree_with((1, 1), (2, 2))
        tree.merge(leaves[0], leaves[1])
        with pytest.raises(InternalInvariantViolation):
            tree.add_leaf(PcrOperation(extension_time=3, anneal_temp=3))


class TestMerge:
    @pytest.mark.unit
    def test_merge_combines_statistics(self, balanced_tree):
        _, _, left, right, root = balanced_tree
        assert left.size == 2
        assert (left.min_value, left.max_value, left.mean_value) == (10, 20, 15)
        assert (left.min_other, left.max_other) == (60, 62)
        assert root.size == 4
        assert root.min_value == 10 and root.max_value == 130
        assert root.mean_value == pytest.approx((10 + 20 + 100 + 130) / 4)
        assert root.merge_distance == 100.0

    @pytest.mark.unit
    def test_combine_means_is_count_weighted(self):
        assert combine_means(3, 1, 10.0, 50.0) == pytest.approx(20.0)

    @pytest.mark.unit
    def test_merge_sets_back_pointers_once(self, balanced_tree):
        tree, leaves, left, right, root = balanced_tree
        assert leaves[0].merged_into == left.index
        assert left.merged_into == root.index
        assert root.merged_into is None

        with pytest.raises(InternalInvariantViolation):
            left.merged_into = 99
        assert left.merged_into == root.index

    @pytest.mark.unit
    def test_merging_a_retired_cluster_is_rejected(self, balanced_tree):
        tree, leaves, _, _, root = balanced_tree
        with pytest.raises(InternalInvariantViolation):
            tree.merge(leaves[0], root)

    @pytest.mark.unit
    def test_merging_a_cluster_with_itself_is_rejected(self):
        tree, leaves = _tree_with((1, 1))
        with pytest.raises(InternalInvariantViolation):
            tree.merge(leaves[0], leaves[0])

    @pytest.mark.unit
    def test_anchor_is_smallest_leaf_index(self, balanced_tree):
        _, _, left, right, root = balanced_tree
        assert left.anchor == 0
        assert right.anchor == 2
        assert root.anchor == 0

    @pytest.mark.unit
    def test_merge_count(self, balanced_tree):
        tree = balanced_tree[0]
        assert tree.leaf_count == 4
        assert tree.merge_count == 3
        assert len(tree) == 7


class TestResolution:
    @pytest.mark.unit
    def test_every_node_resolves_to_the_root(self, balanced_tree):
        tree, _, _, _, root = balanced_tree
        for node in tree:
            assert tree.find_top_level(node) is root

    @pytest.mark.unit
    def test_top_level_nodes_after_partial_merge(self):
        tree, leaves = _tree_with((1, 1), (2, 2), (3, 3))
        merged = tree.merge(leaves[0], leaves[2])
        assert tree.top_level_nodes() == [leaves[1], merged]

    @pytest.mark.unit
    def test_members_are_recovered_left_to_right(self, balanced_tree):
        _, _, left, _, root = balanced_tree
        assert [op.unique_id for op in root.members()] == [0, 1, 2, 3]
        assert [op.unique_id for op in left.members()] == [0, 1]

    @pytest.mark.unit
    def test_member_recovery_handles_deep_chains(self):
        values = [(float(i), 60.0) for i in range(3000)]
        tree, leaves = _tree_with(*values)
        current = leaves[0]
        for leaf in leaves[1:]:
            current = tree.merge(current, leaf)
        assert len(current.members()) == 3000
        assert tree.find_top_level(leaves[0]) is current
