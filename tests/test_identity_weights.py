"""
Tests for identity grouping and voting-weight allocation.
"""

from fractions import Fraction

import pytest

from faultline.nemesis import (
    AttackMode,
    ScenarioError,
    dup_groups,
    dup_validators,
    identity_weights,
    validator_weights,
    vote_fractions,
)


def cluster_with_identities(n: int) -> tuple[list[str], dict[str, str]]:
    """n identities over n+1 nodes: node2 clones node1."""
    nodes = [f"node{i}" for i in range(1, n + 2)]
    return nodes, {"node2": "node1"}


# =============================================================================
# Identity Grouper
# =============================================================================


class TestDupGroups:
    def test_end_to_end_grouping(self):
        nodes = ["node1", "node2", "node3", "node4", "node5"]
        grouping = dup_groups(nodes, {"node2": "node1"})

        assert set(grouping.groups) == {
            frozenset({"node1", "node2"}),
            frozenset({"node3"}),
            frozenset({"node4"}),
            frozenset({"node5"}),
        }
        assert len(grouping.singles) == 3
        assert grouping.dups == [frozenset({"node1", "node2"})]
        assert len(grouping) == 4

    @pytest.mark.parametrize(
        "clone_map",
        [
            {},
            {"b": "a"},
            {"b": "a", "c": "a"},
            {"b": "a", "d": "c"},
            {"a": "z"},  # imitating a node outside the cluster
            {"b": "a", "c": "a", "e": "a", "f": "d"},
        ],
    )
    def test_groups_partition_nodes(self, clone_map):
        nodes = ["a", "b", "c", "d", "e", "f"]
        grouping = dup_groups(nodes, clone_map)

        members = [node for group in grouping.groups for node in group]
        assert sorted(members) == sorted(nodes)
        assert len(members) == len(set(members))
        assert all(grouping.groups)
        assert len(grouping.singles) + len(grouping.dups) == len(grouping.groups)

    def test_empty_nodes(self):
        grouping = dup_groups([], {"b": "a"})
        assert grouping.groups == []
        assert grouping.singles == []
        assert grouping.dups == []

    def test_no_clones_means_all_singles(self):
        grouping = dup_groups(["a", "b", "c"], {})
        assert grouping.dups == []
        assert grouping.single_nodes == ["a", "b", "c"]


class TestDupValidators:
    def test_second_node_clones_first(self):
        assert dup_validators(["n1", "n2", "n3"], True) == {"n2": "n1"}

    def test_disabled(self):
        assert dup_validators(["n1", "n2", "n3"], False) == {}

    def test_too_few_nodes(self):
        assert dup_validators(["n1"], True) == {}


# =============================================================================
# Voting-Weight Allocator
# =============================================================================


class TestValidatorWeights:
    def test_symmetric_without_clones(self):
        assert validator_weights(["a", "b", "c"], {}) == {"a": 1, "b": 1, "c": 1}

    def test_end_to_end_regular_weights(self):
        nodes = ["node1", "node2", "node3", "node4", "node5"]
        clone_map = {"node2": "node1"}
        weights = validator_weights(nodes, clone_map, AttackMode.REGULAR)

        assert weights == {"node1": 2, "node2": 2, "node3": 2, "node4": 2, "node5": 2}

        grouping = dup_groups(nodes, clone_map)
        per_identity = identity_weights(grouping, weights)
        assert sum(per_identity.values()) == 3 * 4 - 4
        fractions = vote_fractions(grouping, weights)
        assert fractions[frozenset({"node1", "node2"})] == Fraction(1, 4)

    def test_super_weights(self):
        nodes, clone_map = cluster_with_identities(4)
        weights = validator_weights(nodes, clone_map, AttackMode.SUPER)

        assert weights["node1"] == weights["node2"] == 4 * 3 - 1
        assert all(weights[n] == 2 for n in nodes[2:])
        grouping = dup_groups(nodes, clone_map)
        assert sum(identity_weights(grouping, weights).values()) == 6 * 3 - 1

    def test_duplicate_members_share_weight(self):
        nodes = ["a", "b", "c", "d", "e", "f"]
        weights = validator_weights(nodes, {"b": "a", "c": "a"}, AttackMode.REGULAR)
        assert weights["a"] == weights["b"] == weights["c"]

    def test_more_than_one_dup_group_is_rejected(self):
        with pytest.raises(ScenarioError, match="more than one dup validator"):
            validator_weights(["a", "b", "c", "d", "e"], {"b": "a", "d": "c"})

    def test_clone_map_without_dups_is_rejected(self):
        with pytest.raises(ScenarioError):
            validator_weights(["a", "b", "c"], {"a": "z"})

    @pytest.mark.parametrize("mode", list(AttackMode))
    def test_single_identity_is_rejected(self, mode):
        with pytest.raises(ScenarioError, match="at least 2 identities"):
            validator_weights(["a", "b"], {"b": "a"}, mode)
        with pytest.raises(ScenarioError):
            validator_weights(["a", "b", "c"], {"b": "a", "c": "a"}, mode)

    @pytest.mark.parametrize("mode", list(AttackMode))
    @pytest.mark.parametrize("n", range(2, 8))
    def test_weights_never_negative(self, mode, n):
        nodes, clone_map = cluster_with_identities(n)
        assert all(w >= 0 for w in validator_weights(nodes, clone_map, mode).values())

    @pytest.mark.parametrize("n", range(3, 25))
    def test_regular_dup_alone_stays_under_a_third(self, n):
        nodes, clone_map = cluster_with_identities(n)
        grouping = dup_groups(nodes, clone_map)
        weights = validator_weights(nodes, clone_map, AttackMode.REGULAR)
        total = sum(identity_weights(grouping, weights).values())
        dup = weights["node1"]

        assert total == 3 * n - 4
        assert 0 < Fraction(dup, total) < Fraction(1, 3)
        # One single ally pushes it over a third
        assert Fraction(dup + 2, total) > Fraction(1, 3)

    @pytest.mark.parametrize("n", range(2, 25))
    def test_super_dup_sits_between_half_and_two_thirds(self, n):
        nodes, clone_map = cluster_with_identities(n)
        grouping = dup_groups(nodes, clone_map)
        weights = validator_weights(nodes, clone_map, AttackMode.SUPER)
        total = sum(identity_weights(grouping, weights).values())
        fraction = Fraction(weights["node1"], total)

        assert total == 6 * (n - 1) - 1
        assert Fraction(1, 2) < fraction < Fraction(2, 3)
        # One honest node completes a 2/3 quorum
        assert Fraction(weights["node1"] + 2, total) > Fraction(2, 3)
