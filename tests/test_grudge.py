"""
Tests for partition grudges and the partitioner nemesis.
"""

import numpy as np
import pytest

from faultline.nemesis import (
    MajoritiesRing,
    Operation,
    OpType,
    Partitioner,
    PeekabooDupGrudge,
    RandomHalves,
    ScenarioError,
    SingleNode,
    SplitDupGrudge,
    complete_grudge,
    dup_groups,
)

NODES = ["n1", "n2", "n3", "n4", "n5", "n6", "n7"]


def assert_disjoint(components):
    seen = set()
    for component in components:
        assert not (seen & component)
        seen |= component


# =============================================================================
# complete_grudge
# =============================================================================


class TestCompleteGrudge:
    def test_components_drop_each_other(self):
        drops = complete_grudge([frozenset({"a", "b"}), frozenset({"c"})])
        assert drops == {
            "a": frozenset({"c"}),
            "b": frozenset({"c"}),
            "c": frozenset({"a", "b"}),
        }

    def test_unmentioned_nodes_untouched(self):
        drops = complete_grudge([frozenset({"a"}), frozenset({"b"})])
        assert "c" not in drops


# =============================================================================
# Peekaboo strategy
# =============================================================================


class TestPeekabooDupGrudge:
    def test_one_representative_per_dup_group(self):
        grouping = dup_groups(NODES, {"n2": "n1", "n3": "n1", "n5": "n4"})
        strategy = PeekabooDupGrudge(grouping)
        rng = np.random.default_rng(7)

        for _ in range(50):
            main, *exiles = strategy(NODES, rng)
            assert_disjoint([main, *exiles])
            assert set(grouping.single_nodes) <= main
            assert len(exiles) == len(grouping.dups)
            for group in grouping.dups:
                assert len(main & group) == 1
                assert (group - main) in exiles
                assert len(group - main) == len(group) - 1

    def test_pair_exile_is_singleton(self):
        grouping = dup_groups(["node1", "node2", "node3", "node4", "node5"], {"node2": "node1"})
        main, exile = PeekabooDupGrudge(grouping)([], np.random.default_rng(0))
        assert len(exile) == 1
        assert exile < {"node1", "node2"}
        assert main == {"node1", "node2", "node3", "node4", "node5"} - exile

    def test_rerolls_each_activation(self):
        grouping = dup_groups(NODES, {"n2": "n1"})
        strategy = PeekabooDupGrudge(grouping)
        rng = np.random.default_rng(3)
        exiles = {next(iter(strategy(NODES, rng)[1])) for _ in range(40)}
        assert exiles == {"n1", "n2"}


# =============================================================================
# Split strategy
# =============================================================================


class TestSplitDupGrudge:
    @pytest.mark.parametrize(
        "clone_map, m",
        [
            ({"n2": "n1"}, 2),
            ({"n2": "n1", "n3": "n1"}, 3),
            ({"n2": "n1", "n3": "n1", "n5": "n4"}, 3),
        ],
    )
    def test_every_node_in_exactly_one_component(self, clone_map, m):
        grouping = dup_groups(NODES, clone_map)
        strategy = SplitDupGrudge(grouping)
        rng = np.random.default_rng(11)

        for _ in range(30):
            components = strategy(NODES, rng)
            assert len(components) == m
            assert_disjoint(components)
            assert frozenset().union(*components) == frozenset(NODES)
            assert all(components)
            sizes = [len(c) for c in components]
            assert max(sizes) - min(sizes) <= 1

    def test_clones_land_in_different_components(self):
        grouping = dup_groups(NODES, {"n2": "n1", "n3": "n1"})
        strategy = SplitDupGrudge(grouping)
        rng = np.random.default_rng(5)
        for _ in range(30):
            for component in strategy(NODES, rng):
                assert len(component & {"n1", "n2", "n3"}) == 1

    def test_requires_a_dup_group(self):
        with pytest.raises(ScenarioError):
            SplitDupGrudge(dup_groups(NODES, {}))


# =============================================================================
# Other strategies
# =============================================================================


class TestPlainPartitions:
    def test_random_halves(self, rng):
        small, large = RandomHalves()(NODES, rng)
        assert len(small) == 3
        assert len(large) == 4
        assert small | large == set(NODES)

    def test_single_node(self, rng):
        loner, rest = SingleNode()(NODES, rng)
        assert len(loner) == 1
        assert loner | rest == set(NODES)
        assert not loner & rest

    @pytest.mark.parametrize("n", [3, 4, 5, 7])
    def test_majorities_ring_each_node_sees_a_majority(self, n, rng):
        nodes = [f"n{i}" for i in range(n)]
        drops = MajoritiesRing().drops(nodes, rng)
        majority = n // 2 + 1

        assert set(drops) == set(nodes)
        for node, dropped in drops.items():
            assert node not in dropped
            assert n - len(dropped) == majority
        if n >= 5:
            # No two nodes see the same majority
            assert len({frozenset(nodes) - d for d in drops.values()}) == n


# =============================================================================
# Partitioner nemesis
# =============================================================================


class TestPartitioner:
    def test_start_applies_fresh_grudge_and_stop_heals(self, context, network):
        nemesis = Partitioner(PeekabooDupGrudge(dup_groups(context.nodes, context.clone_map)))
        nemesis.setup(context)

        done = nemesis.invoke(Operation("start"))
        assert done.op_type == OpType.INFO
        assert len(network.drops) == 1
        drops = network.drops[0]
        exiled = [node for node, others in drops.items() if len(others) == len(context.nodes) - 1]
        assert len(exiled) == 1
        assert exiled[0] in {"n1", "n2"}

        nemesis.invoke(Operation("stop"))
        assert network.heals == 1

        nemesis.invoke(Operation("start"))
        assert len(network.drops) == 2

    def test_teardown_heals(self, context, network):
        nemesis = Partitioner(RandomHalves()).setup(context)
        nemesis.teardown()
        assert network.heals == 1

    def test_rejects_unknown_ops(self, context):
        nemesis = Partitioner(RandomHalves()).setup(context)
        with pytest.raises(ValueError):
            nemesis.invoke(Operation("crash"))
