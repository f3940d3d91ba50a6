"""
Named nemesis profiles.

A profile pairs one fault injector with the schedule that drives it, and
names the operations that wind the fault down once the workload is over.
Unknown profile names are rejected when the profile is looked up, before any
nemesis is built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction

from .clock import ClockNemesis, clock_bump_op, clock_reset_op
from .crash import CrashTruncateNemesis, NodeStartStopper
from .grudge import MajoritiesRing, PeekabooDupGrudge, RandomHalves, SingleNode, SplitDupGrudge
from .identity import dup_groups
from .nemesis import ComposedNemesis, Nemesis, NoopNemesis
from .outcome import Operation
from .partition import Partitioner
from .schedule import Schedule
from .validators import Transition, TransitionKind, ValidatorConfig, ValidatorTransitionNemesis, next_transition

CRASH_TRUNCATE_FRACTION = Fraction(1, 3)


class NemesisProfile(Enum):
    """Fault profiles a scenario can run under."""

    CHANGING_VALIDATORS = "changing-validators"
    PEEKABOO_DUP_VALIDATORS = "peekaboo-dup-validators"
    SPLIT_DUP_VALIDATORS = "split-dup-validators"
    HALF_PARTITIONS = "half-partitions"
    RING_PARTITIONS = "ring-partitions"
    SINGLE_PARTITIONS = "single-partitions"
    CLOCKS = "clocks"
    CRASH = "crash"
    CRASH_TRUNCATE = "crash-truncate"
    NONE = "none"


@dataclass
class NemesisPlan:
    """A nemesis, its schedule, and the ops that heal it at the end.

    Attributes:
        profile: Which profile this plan implements.
        nemesis: The fault injector.
        schedule: When to invoke it during the workload.
        final_ops: Operations to invoke once the workload's time limit passes.
    """

    profile: NemesisProfile
    nemesis: Nemesis
    schedule: Schedule
    final_ops: list[Operation] = field(default_factory=list)


def build_nemesis(
    profile: NemesisProfile | str,
    nodes: list[str],
    clone_map: dict[str, str],
    validator_config: ValidatorConfig,
) -> NemesisPlan:
    """Build the nemesis plan for a profile.

    Args:
        profile: Profile or its name.
        nodes: Every node in the cluster.
        clone_map: Node -> node whose validator key it uses.
        validator_config: Expected validator membership; the
            changing-validators schedule generates transitions from it.

    Returns:
        The plan for the profile.

    Raises:
        ValueError: For an unknown profile name.
        ScenarioError: For a dup-validator profile without duplicates.
    """
    profile = NemesisProfile(profile)
    stop = [Operation("stop")]

    if profile == NemesisProfile.CHANGING_VALIDATORS:
        def produce_transition(rng):
            return Operation("transition", next_transition(validator_config.state, nodes, rng))

        return NemesisPlan(
            profile,
            ValidatorTransitionNemesis(),
            Schedule.stagger(10, produce_transition),
            [Operation("transition", Transition(TransitionKind.STOP))],
        )
    elif profile == NemesisProfile.PEEKABOO_DUP_VALIDATORS:
        strategy = PeekabooDupGrudge(dup_groups(nodes, clone_map))
        return NemesisPlan(profile, Partitioner(strategy), Schedule.start_stop(0, 5), stop)
    elif profile == NemesisProfile.SPLIT_DUP_VALIDATORS:
        strategy = SplitDupGrudge(dup_groups(nodes, clone_map))
        return NemesisPlan(profile, Partitioner(strategy), Schedule.once(Operation("start")), stop)
    elif profile == NemesisProfile.HALF_PARTITIONS:
        return NemesisPlan(profile, Partitioner(RandomHalves()), Schedule.start_stop(5, 30), stop)
    elif profile == NemesisProfile.RING_PARTITIONS:
        return NemesisPlan(profile, Partitioner(MajoritiesRing()), Schedule.start_stop(5, 30), stop)
    elif profile == NemesisProfile.SINGLE_PARTITIONS:
        return NemesisPlan(profile, Partitioner(SingleNode()), Schedule.start_stop(5, 30), stop)
    elif profile == NemesisProfile.CLOCKS:
        return NemesisPlan(
            profile,
            ClockNemesis(),
            Schedule.stagger(5, lambda rng: clock_bump_op(nodes, rng)),
            [clock_reset_op()],
        )
    elif profile == NemesisProfile.CRASH:
        return NemesisPlan(profile, NodeStartStopper(), Schedule.start_stop(15, 0), stop)
    elif profile == NemesisProfile.CRASH_TRUNCATE:
        nemesis = ComposedNemesis({
            frozenset({"crash"}): CrashTruncateNemesis(float(CRASH_TRUNCATE_FRACTION)),
            frozenset({"stop"}): NoopNemesis(),
        })
        return NemesisPlan(profile, nemesis, Schedule.delay(10, Operation("crash")), stop)
    elif profile == NemesisProfile.NONE:
        return NemesisPlan(profile, NoopNemesis(), Schedule.void())
    raise TypeError(f"Unhandled nemesis profile: {profile}")
