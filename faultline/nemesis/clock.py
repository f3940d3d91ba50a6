"""
Clock skew nemesis.
"""

import logging

import numpy as np

from .control import on_nodes
from .nemesis import Nemesis
from .outcome import Operation

logger = logging.getLogger(__name__)

# Offsets are +/- 2^k milliseconds for k in [0, MAX_BUMP_EXPONENT).
MAX_BUMP_EXPONENT = 18


def clock_bump_op(nodes: list[str], rng: np.random.Generator) -> Operation:
    """A ``bump`` operation skewing a random non-empty subset of nodes."""
    count = int(rng.integers(1, len(nodes), endpoint=True))
    targets = sorted(nodes[i] for i in rng.choice(len(nodes), size=count, replace=False))
    deltas = {
        node: int(rng.choice([-1, 1])) * 2 ** int(rng.integers(MAX_BUMP_EXPONENT))
        for node in targets
    }
    return Operation("bump", deltas)


def clock_reset_op() -> Operation:
    return Operation("reset")


class ClockNemesis(Nemesis):
    """Bumps node clocks by the offsets in a ``bump`` op; ``reset`` undoes them."""

    def invoke(self, op: Operation) -> Operation:
        control = self.context.control
        if op.kind == "bump":
            logger.info("Bumping clocks: %s", op.value)
            on_nodes(op.value, lambda node: control.bump_clock(node, op.value[node]))
            return op.info()
        if op.kind == "reset":
            on_nodes(self.context.nodes, control.reset_clock)
            return op.info()
        raise ValueError(f"Clock nemesis can't handle {op.kind!r} operations")

    def teardown(self) -> None:
        on_nodes(self.context.nodes, self.context.control.reset_clock)
