"""
Timing schedules for nemesis operations.

A schedule lazily yields ``(delay, operation)`` pairs: wait ``delay`` seconds,
then hand ``operation`` to the nemesis. Calling ``steps`` again restarts the
schedule from the beginning. The external scheduler decides how long to
follow it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator

import numpy as np

from .outcome import Operation


class ScheduleKind(Enum):
    """Shapes of nemesis schedule."""

    STAGGER = "stagger"  # Produced ops, random gaps averaging `interval`
    START_STOP = "start_stop"  # Wait, start; wait, stop; repeat
    ONCE = "once"  # One op, immediately
    DELAY = "delay"  # The same op every `interval` seconds
    VOID = "void"  # Nothing at all


@dataclass
class Schedule:
    """When to invoke which nemesis operation.

    Attributes:
        kind: Shape of the schedule.
        interval: Mean gap (STAGGER) or fixed gap (DELAY), in seconds.
        start_delay: Seconds before each ``start`` (START_STOP).
        stop_delay: Seconds before each ``stop`` (START_STOP).
        op: The operation to repeat (ONCE, DELAY).
        producer: Builds the next operation on demand (STAGGER). Evaluated
            lazily so it can depend on state that changes during the run.
    """

    kind: ScheduleKind
    interval: float = 0.0
    start_delay: float = 0.0
    stop_delay: float = 0.0
    op: Operation | None = None
    producer: Callable[[np.random.Generator], Operation] | None = None

    def __post_init__(self) -> None:
        if min(self.interval, self.start_delay, self.stop_delay) < 0:
            raise ValueError("Schedule delays must be non-negative")
        if self.kind == ScheduleKind.STAGGER and self.producer is None:
            raise ValueError("A stagger schedule needs a producer")
        if self.kind in (ScheduleKind.ONCE, ScheduleKind.DELAY) and self.op is None:
            raise ValueError(f"A {self.kind.value} schedule needs an op")

    @classmethod
    def stagger(cls, interval: float, producer: Callable[[np.random.Generator], Operation]) -> Schedule:
        return cls(ScheduleKind.STAGGER, interval=interval, producer=producer)

    @classmethod
    def start_stop(cls, start_delay: float, stop_delay: float) -> Schedule:
        return cls(ScheduleKind.START_STOP, start_delay=start_delay, stop_delay=stop_delay)

    @classmethod
    def once(cls, op: Operation) -> Schedule:
        return cls(ScheduleKind.ONCE, op=op)

    @classmethod
    def delay(cls, interval: float, op: Operation) -> Schedule:
        return cls(ScheduleKind.DELAY, interval=interval, op=op)

    @classmethod
    def void(cls) -> Schedule:
        return cls(ScheduleKind.VOID)

    def steps(self, rng: np.random.Generator) -> Iterator[tuple[float, Operation]]:
        """Yield ``(delay_seconds, operation)`` pairs.

        STAGGER, START_STOP and DELAY schedules never end on their own.

        Args:
            rng: Random number generator for stagger gaps and producers.
        """
        if self.kind == ScheduleKind.STAGGER:
            while True:
                yield float(rng.uniform(0, 2 * self.interval)), self.producer(rng)
        elif self.kind == ScheduleKind.START_STOP:
            while True:
                yield self.start_delay, Operation("start")
                yield self.stop_delay, Operation("stop")
        elif self.kind == ScheduleKind.ONCE:
            yield 0.0, self.op
        elif self.kind == ScheduleKind.DELAY:
            while True:
                yield self.interval, self.op
        elif self.kind == ScheduleKind.VOID:
            return
        else:
            raise TypeError(f"Unhandled schedule kind: {self.kind}")
