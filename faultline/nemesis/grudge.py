"""
Network partition topologies ("grudges").

A grudge is an ordered list of disjoint node components. Nodes in one
component cannot hear nodes in any other; the first component is the main
one by convention. ``complete_grudge`` turns components into the per-node
drop map the network controller applies.

Strategies are called afresh on every partition so their random choices are
re-rolled each time the nemesis fires. They never cache a grudge.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from .control import DropMap
from .errors import ScenarioError
from .identity import DupGroups

Grudge = list[frozenset[str]]


def complete_grudge(components: Grudge) -> DropMap:
    """Make every component unable to hear every other component.

    Nodes outside all components are left alone.

    Args:
        components: Disjoint sets of nodes.

    Returns:
        Mapping of node to the nodes whose traffic it drops.
    """
    universe = frozenset().union(*components)
    drops: DropMap = {}
    for component in components:
        others = universe - component
        for node in component:
            drops[node] = others
    return drops


def shuffled(items, rng: np.random.Generator) -> list:
    """Return ``items`` in a random order drawn from ``rng``."""
    items = list(items)
    return [items[i] for i in rng.permutation(len(items))]


def majority(n: int) -> int:
    return n // 2 + 1


class GrudgeStrategy(ABC):
    """Builds the drop map for one partition activation."""

    @abstractmethod
    def drops(self, nodes: list[str], rng: np.random.Generator) -> DropMap:
        """Compute which traffic each node should drop.

        Args:
            nodes: Every node in the cluster.
            rng: Random number generator for this activation.

        Returns:
            Mapping of node to the nodes it must not hear from.
        """
        pass


class ComponentGrudge(GrudgeStrategy):
    """A strategy expressed as disjoint components."""

    @abstractmethod
    def __call__(self, nodes: list[str], rng: np.random.Generator) -> Grudge:
        pass

    def drops(self, nodes: list[str], rng: np.random.Generator) -> DropMap:
        return complete_grudge(self(nodes, rng))


class PeekabooDupGrudge(ComponentGrudge):
    """Isolate most of every duplicated identity, leaving one node connected.

    For each duplicate group one node, picked at random, stays in the main
    component with all single nodes. The rest of that group is cut off as
    one exile component of ``len(group) - 1`` nodes.

    The grouping is fixed at construction; ``nodes`` is accepted to match
    the strategy contract.
    """

    def __init__(self, grouping: DupGroups):
        self.grouping = grouping

    def __call__(self, nodes: list[str], rng: np.random.Generator) -> Grudge:
        main = set(self.grouping.single_nodes)
        exiles: Grudge = []
        for group in self.grouping.dups:
            members = sorted(group)
            chosen = members[int(rng.integers(len(members)))]
            main.add(chosen)
            exiles.append(frozenset(members) - {chosen})
        return [frozenset(main), *exiles]


class SplitDupGrudge(ComponentGrudge):
    """Split the cluster so each clone of an identity lands in its own component.

    With ``m`` the size of the largest duplicate group, groups and their
    members are shuffled and dealt round-robin into ``m`` components. Members
    of one group are dealt consecutively, so no component holds two clones of
    the largest group, and component sizes differ by at most one.
    """

    def __init__(self, grouping: DupGroups):
        if not grouping.dups:
            raise ScenarioError("Split dup-validator partitions need at least one duplicate group")
        self.grouping = grouping
        self.num_components = max(len(g) for g in grouping.dups)

    def __call__(self, nodes: list[str], rng: np.random.Generator) -> Grudge:
        ordered = [
            node
            for group in shuffled(sorted(sorted(g) for g in self.grouping.groups), rng)
            for node in shuffled(group, rng)
        ]
        components: list[set[str]] = [set() for _ in range(self.num_components)]
        for i, node in enumerate(ordered):
            components[i % self.num_components].add(node)
        return [frozenset(c) for c in components]


class RandomHalves(ComponentGrudge):
    """Cut the cluster into two random halves, the smaller listed first."""

    def __call__(self, nodes: list[str], rng: np.random.Generator) -> Grudge:
        order = shuffled(nodes, rng)
        half = len(order) // 2
        return [frozenset(order[:half]), frozenset(order[half:])]


class SingleNode(ComponentGrudge):
    """Isolate one random node from the rest of the cluster."""

    def __call__(self, nodes: list[str], rng: np.random.Generator) -> Grudge:
        loner = nodes[int(rng.integers(len(nodes)))]
        return [frozenset({loner}), frozenset(nodes) - {loner}]


class MajoritiesRing(GrudgeStrategy):
    """Every node sees a majority, but no two nodes see the same majority.

    Nodes are arranged in a random ring. Each window of ``majority(n)``
    consecutive ring positions is the view of the node at its centre, which
    drops traffic from everyone outside the window.
    """

    def drops(self, nodes: list[str], rng: np.random.Generator) -> DropMap:
        ring = shuffled(nodes, rng)
        n = len(ring)
        m = majority(n)
        universe = frozenset(ring)
        drops: DropMap = {}
        for i in range(n):
            window = [ring[(i + k) % n] for k in range(m)]
            drops[window[m // 2]] = universe - frozenset(window)
        return drops
