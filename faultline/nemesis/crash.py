"""
Process crash nemeses.

``CrashTruncateNemesis`` kills the consensus and storage processes on a fixed
subset of nodes, corrupts the tail of the storage write-ahead log, and
restarts them. ``NodeStartStopper`` stops processes on ``start`` and brings
them back on ``stop``.

Storage always starts before consensus, since consensus connects to it on
boot; consensus always stops before storage.
"""

from __future__ import annotations

import logging
import math
from typing import Callable

import numpy as np

from .control import ProcessControl, ScenarioContext, on_nodes
from .grudge import shuffled
from .nemesis import Nemesis
from .outcome import Operation

logger = logging.getLogger(__name__)

# Upper bound (inclusive) on how many bytes one crash cuts off the log.
MAX_TRUNCATE_BYTES = 1024 * 1024


def stop_node(control: ProcessControl, node: str) -> None:
    control.stop_consensus(node)
    control.stop_storage(node)


def start_node(control: ProcessControl, node: str) -> None:
    control.start_storage(node)
    control.start_consensus(node)


class CrashTruncateNemesis(Nemesis):
    """Crash nodes and truncate their storage log by a random byte count.

    The faulty nodes, ``floor(fraction * len(nodes))`` of them, are chosen
    once at setup and reused for every ``crash`` operation.

    Args:
        fraction: Share of the cluster to crash, in (0, 1].
        max_truncate_bytes: Largest number of bytes cut from a log.
    """

    def __init__(self, fraction: float, max_truncate_bytes: int = MAX_TRUNCATE_BYTES):
        if not 0 < fraction <= 1:
            raise ValueError(f"fraction must be in (0, 1], got {fraction}")
        if max_truncate_bytes < 1:
            raise ValueError(f"max_truncate_bytes must be positive, got {max_truncate_bytes}")
        self.fraction = fraction
        self.max_truncate_bytes = max_truncate_bytes
        self.faulty_nodes: list[str] = []

    def setup(self, context: ScenarioContext) -> Nemesis:
        super().setup(context)
        count = math.floor(self.fraction * len(context.nodes))
        self.faulty_nodes = sorted(shuffled(context.nodes, context.rng)[:count])
        logger.info("Crash-truncate targets: %s", self.faulty_nodes)
        return self

    def invoke(self, op: Operation) -> Operation:
        if op.kind != "crash":
            raise ValueError(f"Crash-truncate nemesis can't handle {op.kind!r} operations")

        control = self.context.control
        # Draw every offset up front; the generator is not shared with workers.
        cuts = {
            node: int(self.context.rng.integers(1, self.max_truncate_bytes, endpoint=True))
            for node in self.faulty_nodes
        }

        def crash(node: str) -> int:
            stop_node(control, node)
            control.truncate_log(node, cuts[node])
            start_node(control, node)
            return cuts[node]

        logger.info("Crashing and truncating %s", cuts)
        return op.info(value=on_nodes(self.faulty_nodes, crash))

    def teardown(self) -> None:
        # One failing node must not keep the others down.
        control = self.context.control
        on_nodes(self.faulty_nodes, lambda node: start_node(control, node))


class NodeStartStopper(Nemesis):
    """Stop processes on targeted nodes on ``start``; restart them on ``stop``.

    Args:
        targeter: Picks the nodes to stop from the full node list and the
            scenario's random generator. Defaults to every node.
    """

    def __init__(self, targeter: Callable[[list[str], np.random.Generator], list[str]] | None = None):
        self.targeter = targeter or (lambda nodes, rng: list(nodes))
        self.stopped: list[str] = []

    def invoke(self, op: Operation) -> Operation:
        control = self.context.control
        if op.kind == "start":
            targets = list(self.targeter(self.context.nodes, self.context.rng))
            logger.info("Stopping %s", targets)
            on_nodes(targets, lambda node: stop_node(control, node))
            self.stopped = targets
            return op.info(value=targets)
        if op.kind == "stop":
            logger.info("Restarting %s", self.stopped)
            on_nodes(self.stopped, lambda node: start_node(control, node))
            restarted, self.stopped = self.stopped, []
            return op.info(value=restarted)
        raise ValueError(f"Start-stopper can't handle {op.kind!r} operations")

    def teardown(self) -> None:
        control = self.context.control
        on_nodes(self.context.nodes, lambda node: start_node(control, node))
