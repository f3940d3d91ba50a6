"""
Fault injection for BFT consensus clusters.

This package groups nodes by shared validator identity, allocates voting
weights that stress quorum thresholds, builds network partitions, crashes and
corrupts nodes, drives validator membership changes, and classifies client
operation outcomes for the history checker.
"""

from .errors import (
    ScenarioError,
    SetupError,
    ClusterClientError,
    Unauthorized,
    UnknownAddress,
    NoResponse,
    ClientTimeout,
    ConnectionFailure,
)
from .outcome import OpType, Operation, classify_error, crash_type
from .control import ClusterClient, ProcessControl, Network, DropMap, ScenarioContext, on_nodes
from .identity import DupGroups, dup_groups, dup_validators
from .weights import AttackMode, validator_weights, identity_weights, vote_fractions
from .grudge import (
    Grudge,
    GrudgeStrategy,
    complete_grudge,
    PeekabooDupGrudge,
    SplitDupGrudge,
    RandomHalves,
    SingleNode,
    MajoritiesRing,
)
from .nemesis import Nemesis, NoopNemesis, ComposedNemesis
from .partition import Partitioner
from .crash import CrashTruncateNemesis, NodeStartStopper
from .clock import ClockNemesis, clock_bump_op
from .validators import (
    Validator,
    TransitionKind,
    Transition,
    ValidatorState,
    ValidatorConfig,
    ValidatorTransitionNemesis,
    next_transition,
)
from .schedule import Schedule, ScheduleKind
from .profiles import NemesisProfile, NemesisPlan, build_nemesis

__all__ = [
    # Errors
    "ScenarioError",
    "SetupError",
    "ClusterClientError",
    "Unauthorized",
    "UnknownAddress",
    "NoResponse",
    "ClientTimeout",
    "ConnectionFailure",
    # Operations
    "OpType",
    "Operation",
    "classify_error",
    "crash_type",
    # Collaborators
    "ClusterClient",
    "ProcessControl",
    "Network",
    "DropMap",
    "ScenarioContext",
    "on_nodes",
    # Identity and weights
    "DupGroups",
    "dup_groups",
    "dup_validators",
    "AttackMode",
    "validator_weights",
    "identity_weights",
    "vote_fractions",
    # Grudges
    "Grudge",
    "GrudgeStrategy",
    "complete_grudge",
    "PeekabooDupGrudge",
    "SplitDupGrudge",
    "RandomHalves",
    "SingleNode",
    "MajoritiesRing",
    # Nemeses
    "Nemesis",
    "NoopNemesis",
    "ComposedNemesis",
    "Partitioner",
    "CrashTruncateNemesis",
    "NodeStartStopper",
    "ClockNemesis",
    "clock_bump_op",
    # Validators
    "Validator",
    "TransitionKind",
    "Transition",
    "ValidatorState",
    "ValidatorConfig",
    "ValidatorTransitionNemesis",
    "next_transition",
    # Profiles
    "Schedule",
    "ScheduleKind",
    "NemesisProfile",
    "NemesisPlan",
    "build_nemesis",
]
