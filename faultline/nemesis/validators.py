"""
Validator membership changes.

``ValidatorState`` is the test's belief about the cluster's validator set. A
``Transition`` is one membership change; ``ValidatorState.step`` applies it.
``ValidatorConfig`` holds the current state behind a lock and is shared, via
the scenario context, between the transition nemesis (which steps it) and the
checker (which reads it at teardown).

The cluster guards its validator set with a version number: a compare-and-swap
whose version doesn't match is rejected. Rejections are expected and show up
as failed operations, not errors.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable

import numpy as np

from .nemesis import Nemesis
from .outcome import CLASSIFIABLE_ERRORS, Operation, classify_error

logger = logging.getLogger(__name__)

MAX_VOTES = 10


@dataclass(frozen=True)
class Validator:
    """A validator key and its voting weight."""

    pub_key: str
    votes: int

    def __post_init__(self) -> None:
        if self.votes < 0:
            raise ValueError(f"votes must be non-negative, got {self.votes}")


class TransitionKind(Enum):
    """Kinds of validator membership change."""

    ADD = "add"  # CAS a new key into the validator set
    REMOVE = "remove"  # CAS a key's votes to zero
    ALTER_VOTES = "alter-votes"  # CAS a key's votes to a new value
    CREATE = "create"  # Install a key on a node and start it
    DESTROY = "destroy"  # Stop a node and wipe its state
    STOP = "stop"  # End of schedule marker


# Fields each kind must carry.
_REQUIRED_FIELDS: dict[TransitionKind, tuple[str, ...]] = {
    TransitionKind.ADD: ("version", "validator"),
    TransitionKind.REMOVE: ("version", "pub_key"),
    TransitionKind.ALTER_VOTES: ("version", "pub_key", "votes"),
    TransitionKind.CREATE: ("node", "validator"),
    TransitionKind.DESTROY: ("node",),
    TransitionKind.STOP: (),
}


@dataclass(frozen=True)
class Transition:
    """One validator membership change.

    Attributes:
        kind: What kind of change this is. Strings are coerced to
            ``TransitionKind``; unknown kinds raise ``ValueError``.
        version: Validator set version the CAS expects (add, remove,
            alter-votes).
        pub_key: Key being removed or re-weighted.
        votes: New voting weight (alter-votes).
        validator: Full validator descriptor (add, create).
        node: Node whose processes are created or destroyed.
    """

    kind: TransitionKind
    version: int | None = None
    pub_key: str | None = None
    votes: int | None = None
    validator: Validator | None = None
    node: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, TransitionKind):
            object.__setattr__(self, "kind", TransitionKind(self.kind))
        missing = [f for f in _REQUIRED_FIELDS[self.kind] if getattr(self, f) is None]
        if missing:
            raise ValueError(f"{self.kind.value} transition requires {', '.join(missing)}")

    @property
    def key(self) -> str | None:
        """The validator key this transition touches, if any."""
        if self.validator is not None:
            return self.validator.pub_key
        return self.pub_key

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transition:
        """Parse a transition from its plain-data form.

        Example::

            {"type": "add", "version": 3,
             "validator": {"pub_key": "ab12", "votes": 2}}
        """
        validator = data.get("validator")
        if isinstance(validator, dict):
            validator = Validator(validator["pub_key"], validator["votes"])
        return cls(
            kind=TransitionKind(data["type"]),
            version=data.get("version"),
            pub_key=data.get("pub_key"),
            votes=data.get("votes"),
            validator=validator,
            node=data.get("node"),
        )


@dataclass(frozen=True)
class ValidatorState:
    """Expected validator membership.

    Attributes:
        version: Version the next validator-set CAS must carry.
        validators: Validator key -> votes, for keys in the validator set.
        nodes: Node -> key it runs with, for nodes whose processes exist.
    """

    version: int = 0
    validators: dict[str, int] = field(default_factory=dict)
    nodes: dict[str, str] = field(default_factory=dict)

    @classmethod
    def genesis(cls, node_keys: dict[str, str], weights: dict[str, int]) -> ValidatorState:
        """State of a freshly bootstrapped cluster.

        Args:
            node_keys: Node -> validator key installed on it. Clones share a key.
            weights: Node -> voting weight, as handed to bootstrap.
        """
        return cls(
            version=0,
            validators={key: weights[node] for node, key in node_keys.items()},
            nodes=dict(node_keys),
        )

    def total_votes(self) -> int:
        return sum(self.validators.values())

    def step(self, t: Transition) -> ValidatorState:
        """Apply a transition to the expected membership.

        Version-checked changes advance ``version`` past the transition's
        version whether or not the cluster accepted the CAS, so the next
        generated transition carries a fresh version.
        """
        if t.kind == TransitionKind.ADD:
            return replace(
                self,
                version=t.version + 1,
                validators={**self.validators, t.validator.pub_key: t.validator.votes},
            )
        elif t.kind == TransitionKind.REMOVE:
            validators = {k: v for k, v in self.validators.items() if k != t.pub_key}
            return replace(self, version=t.version + 1, validators=validators)
        elif t.kind == TransitionKind.ALTER_VOTES:
            return replace(
                self,
                version=t.version + 1,
                validators={**self.validators, t.pub_key: t.votes},
            )
        elif t.kind == TransitionKind.CREATE:
            return replace(self, nodes={**self.nodes, t.node: t.validator.pub_key})
        elif t.kind == TransitionKind.DESTROY:
            return replace(self, nodes={n: k for n, k in self.nodes.items() if n != t.node})
        elif t.kind == TransitionKind.STOP:
            return self
        raise TypeError(f"Unhandled transition kind: {t.kind}")


class ValidatorConfig:
    """Lock-guarded holder of the current ``ValidatorState``.

    Created empty at the start of a run, stepped once per transition, read
    by the checker at teardown. Never reset mid-run.
    """

    def __init__(self, state: ValidatorState | None = None):
        self._lock = threading.Lock()
        self._state = state or ValidatorState()

    @property
    def state(self) -> ValidatorState:
        with self._lock:
            return self._state

    def swap(self, fn: Callable[[ValidatorState], ValidatorState]) -> ValidatorState:
        """Replace the state with ``fn(state)`` atomically and return it."""
        with self._lock:
            self._state = fn(self._state)
            return self._state

    def step(self, t: Transition) -> ValidatorState:
        return self.swap(lambda state: state.step(t))

    def __repr__(self) -> str:
        return f"ValidatorConfig({self.state!r})"


class ValidatorTransitionNemesis(Nemesis):
    """Applies ``transition`` operations to the live cluster.

    Version-checked changes go through the validator-set CAS on a random
    node; the CAS is cluster-wide so the node doesn't matter. ``create`` and
    ``destroy`` act on their own node directly, since that node is not (or
    no longer) part of the validator set. After every attempt, successful
    or not, the scenario's ``ValidatorConfig`` is stepped with the same
    transition.
    """

    def invoke(self, op: Operation) -> Operation:
        if op.kind != "transition":
            raise ValueError(f"Transition nemesis can't handle {op.kind!r} operations")

        t = op.value if isinstance(op.value, Transition) else Transition.from_dict(op.value)
        try:
            self._apply(t)
        except CLASSIFIABLE_ERRORS as e:
            logger.warning("Transition %s rejected: %s", t.kind.value, e)
            return classify_error(op, e)
        finally:
            self.context.validator_config.step(t)
        return op.info()

    def _apply(self, t: Transition) -> None:
        client = self.context.client
        control = self.context.control
        logger.info("Applying transition %s", t)

        if t.kind == TransitionKind.ADD:
            client.validator_set_cas(
                self.context.random_node(), t.version, t.validator.pub_key, t.validator.votes
            )
        elif t.kind == TransitionKind.REMOVE:
            client.validator_set_cas(self.context.random_node(), t.version, t.pub_key, 0)
        elif t.kind == TransitionKind.ALTER_VOTES:
            client.validator_set_cas(self.context.random_node(), t.version, t.pub_key, t.votes)
        elif t.kind == TransitionKind.CREATE:
            control.write_validator_key(t.node, t.validator)
            control.start_storage(t.node)
            control.start_consensus(t.node)
        elif t.kind == TransitionKind.DESTROY:
            control.stop_consensus(t.node)
            control.stop_storage(t.node)
            control.reset_node_state(t.node)
        elif t.kind == TransitionKind.STOP:
            pass
        else:
            raise TypeError(f"Unhandled transition kind: {t.kind}")


def next_transition(
    state: ValidatorState, nodes: list[str], rng: np.random.Generator
) -> Transition:
    """Propose one legal transition from ``state``.

    Candidates: create a validator on an idle node, add a running key that
    isn't a member, re-weight a member, remove a member (never the last one),
    or destroy a node whose key isn't a member. Picks uniformly among them,
    or returns a ``stop`` transition when nothing is possible.
    """
    members = sorted(state.validators)
    running_keys = set(state.nodes.values())
    candidates: list[Transition] = []

    for node in sorted(set(nodes) - set(state.nodes)):
        key = rng.bytes(16).hex()
        candidates.append(
            Transition(TransitionKind.CREATE, node=node, validator=Validator(key, _votes(rng)))
        )
    for key in sorted(running_keys - set(members)):
        candidates.append(
            Transition(
                TransitionKind.ADD, version=state.version, validator=Validator(key, _votes(rng))
            )
        )
    for key in members:
        candidates.append(
            Transition(
                TransitionKind.ALTER_VOTES, version=state.version, pub_key=key, votes=_votes(rng)
            )
        )
        if len(members) > 1:
            candidates.append(Transition(TransitionKind.REMOVE, version=state.version, pub_key=key))
    for node, key in sorted(state.nodes.items()):
        if key not in state.validators:
            candidates.append(Transition(TransitionKind.DESTROY, node=node))

    if not candidates:
        return Transition(TransitionKind.STOP)
    return candidates[int(rng.integers(len(candidates)))]


def _votes(rng: np.random.Generator) -> int:
    return int(rng.integers(1, MAX_VOTES, endpoint=True))
