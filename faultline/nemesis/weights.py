"""
Voting weights for clusters with a duplicated validator identity.

Weights are handed to cluster bootstrap once per run. With no duplicated
identity every node votes equally. With exactly one duplicated identity the
weights are chosen so that identity sits just on one side of a BFT threshold.

Let ``n`` be the number of identity groups and give every single node weight
2, so the honest bloc holds ``2(n-1)`` votes.

Regular mode gives the duplicated identity ``d = n - 2`` votes, for a total
of ``3n - 4``. Alone it holds ``(n-2)/(3n-4) < 1/3`` of the votes, so it
cannot block consensus by itself; with one honest ally it holds
``n/(3n-4) > 1/3`` and can.

Super mode gives it ``4(n-1) - 1`` votes, for a total of ``6(n-1) - 1``.
Alone it holds just under 2/3 of the votes; with one honest node it holds
more than 2/3 for every ``n >= 1``, enough to form a quorum.
"""

from enum import Enum
from fractions import Fraction
from typing import Iterable

from .errors import ScenarioError
from .identity import DupGroups, dup_groups


class AttackMode(Enum):
    """How much voting power a duplicated identity receives."""

    REGULAR = "regular"  # Just under 1/3: can block only with an ally
    SUPER = "super"  # Just under 2/3: can commit with one honest node


SINGLE_WEIGHT = 2


def dup_weight(n: int, mode: AttackMode) -> int:
    """Weight of the duplicated identity in a cluster of ``n`` identities."""
    if mode == AttackMode.SUPER:
        return 4 * (n - 1) - 1
    return n - 2


def validator_weights(
    nodes: Iterable[str],
    clone_map: dict[str, str],
    mode: AttackMode = AttackMode.REGULAR,
) -> dict[str, int]:
    """Compute the voting weight of every node.

    Every member of a duplicate group receives the same weight, since they
    all sign with the same key.

    Args:
        nodes: Every node in the cluster.
        clone_map: Node -> node whose key it uses.
        mode: Attack mode for the duplicated identity.

    Returns:
        Mapping of node to voting weight.

    Raises:
        ScenarioError: If the clone map does not produce exactly one
            duplicate group, or the cluster has fewer than two identities
            so the duplicated identity would get a negative weight.
    """
    nodes = list(nodes)
    if not clone_map:
        return {node: 1 for node in nodes}

    grouping = dup_groups(nodes, clone_map)
    if len(grouping.dups) != 1:
        raise ScenarioError(
            "Don't know how to handle more than one dup validator key: "
            f"expected exactly 1 duplicate group, got {len(grouping.dups)}"
        )

    shared = dup_weight(len(grouping), mode)
    if shared < 0:
        raise ScenarioError(
            f"Dup validators need at least 2 identities, got {len(grouping)}: "
            f"{mode.value} weight would be {shared}"
        )

    weights = {node: SINGLE_WEIGHT for node in grouping.single_nodes}
    for node in grouping.dups[0]:
        weights[node] = shared
    return weights


def identity_weights(grouping: DupGroups, weights: dict[str, int]) -> dict[frozenset[str], int]:
    """Collapse per-node weights into one weight per identity group."""
    return {group: weights[next(iter(group))] for group in grouping.groups}


def vote_fractions(grouping: DupGroups, weights: dict[str, int]) -> dict[frozenset[str], Fraction]:
    """Fraction of the total vote held by each identity.

    Args:
        grouping: Identity groups of the cluster.
        weights: Per-node weights from ``validator_weights``.

    Returns:
        Mapping of identity group to its share of all votes.
    """
    per_identity = identity_weights(grouping, weights)
    total = sum(per_identity.values())
    if total == 0:
        return {group: Fraction(0) for group in per_identity}
    return {group: Fraction(w, total) for group, w in per_identity.items()}
