"""
Grouping of nodes that share a validator identity.

A scenario may configure several physical nodes with one validator key. To
the consensus protocol those nodes are one voting participant. The clone map
records which node each clone imitates; nodes absent from the map use their
own key.
"""

from dataclasses import dataclass, field
from typing import Iterable


@dataclass(frozen=True)
class DupGroups:
    """Nodes grouped by the validator identity they use.

    Attributes:
        groups: Every identity group. Together they partition the node set.
        singles: Groups with exactly one node.
        dups: Groups with more than one node (duplicated identities).
    """

    groups: list[frozenset[str]] = field(default_factory=list)
    singles: list[frozenset[str]] = field(default_factory=list)
    dups: list[frozenset[str]] = field(default_factory=list)

    @property
    def single_nodes(self) -> list[str]:
        """All nodes with an identity of their own, in a stable order."""
        return sorted(node for group in self.singles for node in group)

    def __len__(self) -> int:
        return len(self.groups)


def dup_groups(nodes: Iterable[str], clone_map: dict[str, str]) -> DupGroups:
    """Group nodes by the node whose validator key they use.

    Args:
        nodes: Every node in the cluster.
        clone_map: Node -> node it imitates.

    Returns:
        The identity groups, split into singles and duplicates.
    """
    index: dict[str, set[str]] = {}
    for node in nodes:
        index.setdefault(clone_map.get(node, node), set()).add(node)

    groups = [frozenset(members) for members in index.values()]
    return DupGroups(
        groups=groups,
        singles=[g for g in groups if len(g) == 1],
        dups=[g for g in groups if len(g) > 1],
    )


def dup_validators(nodes: list[str], enabled: bool) -> dict[str, str]:
    """Build the clone map for a scenario.

    When duplicate validators are enabled, the second node reuses the first
    node's key. Otherwise every node generates its own key.
    """
    if not enabled or len(nodes) < 2:
        return {}
    orig, clone = nodes[0], nodes[1]
    return {clone: orig}
