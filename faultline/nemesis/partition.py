"""
Partitioner nemesis: applies a grudge strategy on ``start``, heals on ``stop``.
"""

import logging

from .grudge import GrudgeStrategy
from .nemesis import Nemesis
from .outcome import Operation

logger = logging.getLogger(__name__)


class Partitioner(Nemesis):
    """Partitions the network with a fresh grudge on every ``start``.

    Args:
        strategy: Builds the drop map for each activation.
    """

    def __init__(self, strategy: GrudgeStrategy):
        self.strategy = strategy

    def invoke(self, op: Operation) -> Operation:
        network = self.context.network
        if op.kind == "start":
            drops = self.strategy.drops(self.context.nodes, self.context.rng)
            logger.info("Partitioning with %s: %s", type(self.strategy).__name__, _describe(drops))
            network.drop(drops)
            return op.info(value={node: sorted(others) for node, others in drops.items()})
        if op.kind == "stop":
            network.heal()
            logger.info("Network healed")
            return op.info(value="network-healed")
        raise ValueError(f"Partitioner can't handle {op.kind!r} operations")

    def teardown(self) -> None:
        self.context.network.heal()


def _describe(drops) -> str:
    return ", ".join(f"{node} x {sorted(others)}" for node, others in sorted(drops.items()) if others)
