"""
Scenario assembly.

A scenario fixes everything decided once per run: the clone map, the identity
grouping, the voting weights handed to bootstrap, the client workload and the
nemesis plan. ``Scenario.context`` then binds it to the collaborators a
harness supplies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from fractions import Fraction

import numpy as np

from .nemesis.control import ClusterClient, Network, ProcessControl, ScenarioContext
from .nemesis.errors import ScenarioError
from .nemesis.identity import DupGroups, dup_groups, dup_validators
from .nemesis.profiles import NemesisPlan, NemesisProfile, build_nemesis
from .nemesis.validators import ValidatorConfig, ValidatorState
from .nemesis.weights import AttackMode, validator_weights, vote_fractions
from .workload import Workload, WorkloadKind, build_workload

logger = logging.getLogger(__name__)

DEFAULT_NODES = ["n1", "n2", "n3", "n4", "n5"]


@dataclass
class ScenarioConfig:
    """Options for one scenario run.

    Attributes:
        workload: Client workload (name or ``WorkloadKind``).
        nemesis: Fault profile (name or ``NemesisProfile``).
        nodes: Every node in the cluster.
        dup_validators: Whether the second node reuses the first node's key.
        super_dup_validators: Give the duplicated key just under 2/3 of the
            votes rather than just under 1/3. Requires ``dup_validators``.
        time_limit: Seconds to run the workload before healing.
        seed: Seed for every random choice in the run.
    """

    workload: WorkloadKind | str = WorkloadKind.CAS_REGISTER
    nemesis: NemesisProfile | str = NemesisProfile.NONE
    nodes: list[str] = field(default_factory=lambda: list(DEFAULT_NODES))
    dup_validators: bool = False
    super_dup_validators: bool = False
    time_limit: float = 60.0
    seed: int | None = None

    def __post_init__(self) -> None:
        self.workload = WorkloadKind(self.workload)
        self.nemesis = NemesisProfile(self.nemesis)
        if not self.nodes:
            raise ValueError("A scenario needs at least one node")
        if len(set(self.nodes)) != len(self.nodes):
            raise ValueError(f"Node names must be unique, got {self.nodes}")
        if self.time_limit <= 0:
            raise ValueError(f"time_limit must be positive, got {self.time_limit}")
        if self.super_dup_validators and not self.dup_validators:
            raise ScenarioError("super_dup_validators requires dup_validators")

    @property
    def attack_mode(self) -> AttackMode:
        return AttackMode.SUPER if self.super_dup_validators else AttackMode.REGULAR

    @property
    def name(self) -> str:
        return f"tendermint {self.workload.value} {self.nemesis.value}"


@dataclass
class Scenario:
    """Everything fixed for one run.

    Attributes:
        config: The options the scenario was built from.
        clone_map: Node -> node whose validator key it uses.
        grouping: Nodes grouped by validator identity.
        weights: Voting weight per node, for cluster bootstrap.
        workload: Client workload.
        plan: Nemesis, its schedule, and its healing ops.
        validator_config: Expected validator membership for this run.
        rng: Random number generator shared by the run's nemesis and workload.
    """

    config: ScenarioConfig
    clone_map: dict[str, str]
    grouping: DupGroups
    weights: dict[str, int]
    workload: Workload
    plan: NemesisPlan
    validator_config: ValidatorConfig
    rng: np.random.Generator

    def vote_fractions(self) -> dict[frozenset[str], Fraction]:
        return vote_fractions(self.grouping, self.weights)

    def seed_validators(self, node_keys: dict[str, str]) -> ValidatorState:
        """Record the bootstrapped validator set as the expected membership.

        The validator config starts empty. A harness calls this once the
        cluster is bootstrapped with ``weights``, before the nemesis runs, so
        the changing-validators profile proposes changes from the real
        starting set.

        Args:
            node_keys: Node -> validator key installed on it. Clones must
                carry the key of the node they imitate.

        Returns:
            The seeded state.

        Raises:
            ScenarioError: If a node has no key or a clone's key differs
                from its original's.
        """
        missing = [node for node in self.config.nodes if node not in node_keys]
        if missing:
            raise ScenarioError(f"No validator key for nodes {missing}")
        for clone, orig in self.clone_map.items():
            if node_keys[clone] != node_keys[orig]:
                raise ScenarioError(f"{clone} must share {orig}'s validator key")
        keys = {node: node_keys[node] for node in self.config.nodes}
        return self.validator_config.swap(lambda _: ValidatorState.genesis(keys, self.weights))

    def context(
        self, control: ProcessControl, network: Network, client: ClusterClient
    ) -> ScenarioContext:
        """Bind the scenario to a harness's collaborators."""
        return ScenarioContext(
            nodes=list(self.config.nodes),
            control=control,
            network=network,
            client=client,
            validator_config=self.validator_config,
            clone_map=dict(self.clone_map),
            rng=self.rng,
        )

    def summary(self) -> str:
        """Human-readable description of the planned scenario."""
        lines = [
            f"Scenario: {self.config.name}",
            f"  Nodes: {', '.join(self.config.nodes)}",
            f"  Clone map: {self.clone_map or 'none'}",
            f"  Identity groups: {len(self.grouping)} "
            f"({len(self.grouping.singles)} single, {len(self.grouping.dups)} duplicated)",
        ]
        for group, fraction in sorted(
            self.vote_fractions().items(), key=lambda item: sorted(item[0])
        ):
            members = ",".join(sorted(group))
            weight = self.weights[next(iter(group))]
            lines.append(f"    [{members}] weight={weight} share={fraction} (~{float(fraction):.3f})")
        lines.append(
            f"  Nemesis: {self.plan.profile.value} ({self.plan.schedule.kind.value} schedule)"
        )
        lines.append(f"  Time limit: {self.config.time_limit:.0f}s")
        return "\n".join(lines)


def build_scenario(config: ScenarioConfig) -> Scenario:
    """Fix the per-run choices for ``config``.

    Raises:
        ScenarioError: If the duplicate-validator setup is unsupported, for
            example a weight computation over more than one duplicate group.
    """
    clone_map = dup_validators(config.nodes, config.dup_validators)
    grouping = dup_groups(config.nodes, clone_map)
    weights = validator_weights(config.nodes, clone_map, config.attack_mode)
    validator_config = ValidatorConfig()
    plan = build_nemesis(config.nemesis, config.nodes, clone_map, validator_config)
    logger.info(
        "Built scenario %r: %d identities, weights %s", config.name, len(grouping), weights
    )
    return Scenario(
        config=config,
        clone_map=clone_map,
        grouping=grouping,
        weights=weights,
        workload=build_workload(config.workload),
        plan=plan,
        validator_config=validator_config,
        rng=np.random.default_rng(config.seed),
    )
