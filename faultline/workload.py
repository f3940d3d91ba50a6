"""
Client workloads run against the cluster while nemeses inject faults.

Two workloads are supported:

- **cas-register**: reads, writes and compare-and-swaps on independent
  integer registers.
- **set**: each key holds a list; clients append unique integers with a
  read-then-CAS, and a final phase reads back every key that was used.

Clients complete every operation they are handed. Failures from the cluster
client are folded into the operation outcome by ``classify_error``.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from itertools import count
from typing import Any, Callable, Iterator, TypeVar

import numpy as np

from .nemesis.control import ScenarioContext
from .nemesis.errors import SetupError
from .nemesis.outcome import CLASSIFIABLE_ERRORS, Operation, classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Registers hold values in [0, REGISTER_VALUES).
REGISTER_VALUES = 10
# Operations issued against each cas-register key before moving on.
OPS_PER_KEY = 120

INIT_RETRIES = 10
INIT_BASE_DELAY = 0.05
INIT_MAX_DELAY = 5.0


def retry_with_backoff(
    fn: Callable[[], T],
    max_retries: int = INIT_RETRIES,
    base_delay: float = INIT_BASE_DELAY,
    max_delay: float = INIT_MAX_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it succeeds, backing off exponentially between tries.

    Only client errors are retried; anything else propagates at once.

    Args:
        fn: The call to attempt.
        max_retries: Retries after the first attempt before giving up.
        base_delay: Sleep in seconds after the first failure; doubles each try.
        max_delay: Cap on any single sleep.
        sleep: Sleep function, injectable for tests.

    Returns:
        Whatever ``fn`` returns.

    Raises:
        SetupError: Once ``max_retries`` retries have failed, chained to the
            last client error. Not a client error itself, so it aborts the
            run instead of being folded into an operation outcome.
    """
    for tries in count():
        try:
            return fn()
        except CLASSIFIABLE_ERRORS as e:
            if tries >= max_retries:
                raise SetupError(f"Gave up after {tries + 1} attempts: {e}") from e
            delay = min(base_delay * 2**tries, max_delay)
            logger.warning("Attempt %d failed: %s - retrying in %.2fs", tries + 1, e, delay)
            sleep(delay)


class WorkloadKind(Enum):
    """Client workloads."""

    CAS_REGISTER = "cas-register"
    SET = "set"


class Client(ABC):
    """A client bound to one node.

    ``setup`` returns a copy bound to the given node; the unbound template
    is never invoked.
    """

    def __init__(self, context: ScenarioContext | None = None, node: str | None = None):
        self.context = context
        self.node = node

    def setup(self, context: ScenarioContext, node: str) -> Client:
        return type(self)(context, node)

    def invoke(self, op: Operation) -> Operation:
        """Execute ``op`` and return it completed."""
        try:
            return self._invoke(op)
        except CLASSIFIABLE_ERRORS as e:
            logger.debug("%s on %s: %r", op.kind, self.node, e)
            return classify_error(op, e)

    @abstractmethod
    def _invoke(self, op: Operation) -> Operation:
        pass

    def teardown(self) -> None:
        return None


class CasRegisterClient(Client):
    """Reads, writes and compare-and-swaps integer registers.

    Operation values are ``(key, value)``; for ``cas`` the value is
    ``(expected, new)``.
    """

    def _invoke(self, op: Operation) -> Operation:
        k, v = op.value
        client = self.context.client
        if op.kind == "read":
            return op.ok(value=(k, client.read(self.node, k)))
        elif op.kind == "write":
            client.write(self.node, k, v)
            return op.ok()
        elif op.kind == "cas":
            old, new = v
            client.cas(self.node, k, old, new)
            return op.ok()
        raise ValueError(f"Unknown cas-register operation {op.kind!r}")


class SetClient(Client):
    """Grows per-key lists with read-then-CAS appends.

    ``init`` creates the empty list for a key, retrying with backoff since
    the cluster may still be settling. ``add`` appends one element.
    ``read`` returns the key's elements as a sorted list.
    """

    def _invoke(self, op: Operation) -> Operation:
        k, v = op.value
        client = self.context.client
        if op.kind == "init":
            retry_with_backoff(lambda: client.write(self.node, k, []))
            return op.ok()
        elif op.kind == "add":
            current = list(client.read(self.node, k) or [])
            client.cas(self.node, k, current, current + [v])
            return op.ok()
        elif op.kind == "read":
            return op.ok(value=(k, sorted(set(client.read(self.node, k) or []))))
        raise ValueError(f"Unknown set operation {op.kind!r}")


def register_ops(key: Any, rng: np.random.Generator, limit: int = OPS_PER_KEY) -> Iterator[Operation]:
    """Operations against one register: half reads, half writes or CASes."""
    for _ in range(limit):
        roll = rng.random()
        if roll < 0.5:
            yield Operation("read", (key, None))
        elif roll < 0.75:
            yield Operation("write", (key, int(rng.integers(REGISTER_VALUES))))
        else:
            old, new = (int(x) for x in rng.integers(REGISTER_VALUES, size=2))
            yield Operation("cas", (key, (old, new)))


@dataclass
class Workload:
    """A client and the operations it should run.

    Attributes:
        kind: Which workload this is.
        client: Unbound client template.
    """

    kind: WorkloadKind
    client: Client

    def __post_init__(self) -> None:
        self._keys: list[Any] = []
        self._lock = threading.Lock()

    def ops_for_key(self, key: Any, rng: np.random.Generator) -> Iterator[Operation]:
        """Lazily generate the operations for one key."""
        with self._lock:
            self._keys.append(key)
        if self.kind == WorkloadKind.CAS_REGISTER:
            yield from register_ops(key, rng)
        elif self.kind == WorkloadKind.SET:
            yield Operation("init", (key, None))
            for x in count():
                yield Operation("add", (key, x))
        else:
            raise TypeError(f"Unhandled workload kind: {self.kind}")

    @property
    def keys(self) -> list[Any]:
        with self._lock:
            return list(self._keys)

    def final_ops(self) -> list[Operation]:
        """Reads of every key used so far, for the set workload's final phase.

        Evaluated when called, so it sees every key registered during the run.
        """
        if self.kind != WorkloadKind.SET:
            return []
        return [Operation("read", (key, None)) for key in self.keys]


def build_workload(kind: WorkloadKind | str) -> Workload:
    """Build the workload for a name, rejecting unknown names."""
    kind = WorkloadKind(kind)
    if kind == WorkloadKind.CAS_REGISTER:
        return Workload(kind, CasRegisterClient())
    elif kind == WorkloadKind.SET:
        return Workload(kind, SetClient())
    raise TypeError(f"Unhandled workload kind: {kind}")
