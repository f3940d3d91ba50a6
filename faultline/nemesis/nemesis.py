"""
Nemesis interface: a plug-in fault injector driven by the scheduler.

The scheduler calls ``setup`` once, ``invoke`` once per fault operation
(never concurrently for one nemesis), and ``teardown`` at the end of the
run. ``teardown`` must leave the cluster healthy enough to be inspected.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from .outcome import Operation

if TYPE_CHECKING:
    from .control import ScenarioContext


class Nemesis(ABC):
    """Abstract base class for fault injectors."""

    def setup(self, context: ScenarioContext) -> Nemesis:
        """Prepare for a run. Returns the nemesis to use from here on."""
        self.context = context
        return self

    @abstractmethod
    def invoke(self, op: Operation) -> Operation:
        """Apply one fault operation and return it completed."""
        pass

    def teardown(self) -> None:
        """Undo any lasting damage. Override when faults persist."""
        return None


class NoopNemesis(Nemesis):
    """Acknowledges every operation and does nothing."""

    def invoke(self, op: Operation) -> Operation:
        return op.info()


class ComposedNemesis(Nemesis):
    """Routes operations to child nemeses by operation kind.

    Args:
        routes: Mapping of a set of operation kinds to the nemesis that
            handles them. Kind sets must be disjoint.
    """

    def __init__(self, routes: dict[frozenset[str], Nemesis]):
        self.routes: dict[str, Nemesis] = {}
        for kinds, child in routes.items():
            for kind in kinds:
                if kind in self.routes:
                    raise ValueError(f"Operation kind {kind!r} routed to more than one nemesis")
                self.routes[kind] = child

    def setup(self, context: ScenarioContext) -> Nemesis:
        super().setup(context)
        for child in set(self.routes.values()):
            child.setup(context)
        return self

    def invoke(self, op: Operation) -> Operation:
        child = self.routes.get(op.kind)
        if child is None:
            raise ValueError(f"No nemesis handles {op.kind!r} operations")
        return child.invoke(op)

    def teardown(self) -> None:
        for child in set(self.routes.values()):
            child.teardown()
