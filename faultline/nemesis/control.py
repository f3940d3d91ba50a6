"""
Contracts for the collaborators the engine drives, and concurrent fan-out.

The engine does not talk to nodes itself. A harness supplies a cluster
client, a process control layer and a network controller that satisfy the
protocols below; nemeses and clients call them through a ``ScenarioContext``.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable, Protocol, TypeVar

import numpy as np

if TYPE_CHECKING:
    from .validators import Validator, ValidatorConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

# node -> nodes whose traffic it drops
DropMap = dict[str, frozenset[str]]


class ClusterClient(Protocol):
    """Wire client for the application running on the cluster.

    Every method may raise one of the ``errors.ClusterClientError``
    subclasses, or a builtin ``TimeoutError``/``ConnectionError``.
    """

    def read(self, node: str, key: Any) -> Any: ...

    def write(self, node: str, key: Any, value: Any) -> None: ...

    def cas(self, node: str, key: Any, old: Any, new: Any) -> None: ...

    def validator_set_cas(self, node: str, version: int, pub_key: str, votes: int) -> None: ...


class ProcessControl(Protocol):
    """Process and disk control on individual nodes."""

    def stop_consensus(self, node: str) -> None: ...

    def start_consensus(self, node: str) -> None: ...

    def stop_storage(self, node: str) -> None: ...

    def start_storage(self, node: str) -> None: ...

    def truncate_log(self, node: str, nbytes: int) -> None:
        """Cut ``nbytes`` off the end of the storage write-ahead log."""
        ...

    def write_validator_key(self, node: str, validator: Validator) -> None: ...

    def reset_node_state(self, node: str) -> None: ...

    def bump_clock(self, node: str, delta_ms: int) -> None: ...

    def reset_clock(self, node: str) -> None: ...


class Network(Protocol):
    """Network controller able to drop traffic between nodes."""

    def drop(self, drops: DropMap) -> None: ...

    def heal(self) -> None: ...


@dataclass
class ScenarioContext:
    """Handles shared by the clients and nemeses of one scenario run.

    Attributes:
        nodes: Names of every node in the cluster.
        control: Process control layer.
        network: Network controller.
        client: Cluster wire client.
        validator_config: Expected validator membership, stepped by the
            transition nemesis and read by the checker at teardown.
        clone_map: Node -> node whose validator key it uses.
        rng: Random number generator for all nemesis and workload choices.
    """

    nodes: list[str]
    control: ProcessControl
    network: Network
    client: ClusterClient
    validator_config: ValidatorConfig
    clone_map: dict[str, str] = field(default_factory=dict)
    rng: np.random.Generator = field(default_factory=np.random.default_rng)

    def random_node(self) -> str:
        return self.nodes[int(self.rng.integers(len(self.nodes)))]


def on_nodes(
    nodes: Iterable[str],
    action: Callable[[str], T],
    max_workers: int | None = None,
) -> dict[str, T]:
    """Run ``action`` on every node concurrently and wait for all of them.

    Ordering between nodes is not guaranteed. If any node fails, the first
    failure (in node order) is re-raised after every node has finished.

    Args:
        nodes: Nodes to act on.
        action: Callable taking a node name.
        max_workers: Thread pool size; defaults to one thread per node.

    Returns:
        Mapping of node to the action's return value.
    """
    nodes = list(nodes)
    if not nodes:
        return {}

    with ThreadPoolExecutor(max_workers=max_workers or len(nodes)) as pool:
        futures = {node: pool.submit(action, node) for node in nodes}

    results: dict[str, T] = {}
    for node, future in futures.items():
        error = future.exception()
        if error is not None:
            logger.error("Action failed on %s: %s", node, error)
            raise error
        results[node] = future.result()
    return results
