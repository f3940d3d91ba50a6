"""
Operations and their outcomes.

An operation is invoked by a generator, executed by a client or nemesis, and
completed with one of three outcomes before it goes back to the harness:

- ``ok``: the operation took effect.
- ``fail``: the operation definitely did not take effect.
- ``info``: the operation may or may not have taken effect.

The checker may assume a ``fail`` never happened, so reporting an ambiguous
failure as ``fail`` can turn a correct history into a false violation. The
classifier below reports a mutation as ``fail`` only when the error proves it
was never applied.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from .errors import (
    ClusterClientError,
    NoResponse,
    Unauthorized,
    UnknownAddress,
)

CONNECTION_REFUSED = re.compile(r"Connection refused")

# Errors the classifier knows how to fold into an operation outcome.
CLASSIFIABLE_ERRORS: tuple[type[BaseException], ...] = (
    ClusterClientError,
    TimeoutError,
    ConnectionError,
)

READ_KINDS = frozenset({"read"})


class OpType(Enum):
    """Lifecycle state of an operation."""

    INVOKE = "invoke"
    OK = "ok"
    FAIL = "fail"
    INFO = "info"


@dataclass(frozen=True)
class Operation:
    """An invoked action and, once completed, its outcome.

    Attributes:
        kind: What the operation does (``read``, ``write``, ``cas``, ``add``,
            ``init``, ``start``, ``stop``, ``crash``, ``transition``, ...).
        value: Operation-specific payload. Client operations carry a
            ``(key, value)`` tuple.
        op_type: Lifecycle state; ``INVOKE`` until completed.
        error: Error detail for ``fail``/``info`` outcomes.
    """

    kind: str
    value: Any = None
    op_type: OpType = OpType.INVOKE
    error: Any = None

    @property
    def is_read(self) -> bool:
        return self.kind in READ_KINDS

    def ok(self, **changes: Any) -> Operation:
        return replace(self, op_type=OpType.OK, **changes)

    def fail(self, error: Any, **changes: Any) -> Operation:
        return replace(self, op_type=OpType.FAIL, error=error, **changes)

    def info(self, error: Any = None, **changes: Any) -> Operation:
        return replace(self, op_type=OpType.INFO, error=error, **changes)

    def __repr__(self) -> str:
        err = f", error={self.error!r}" if self.error is not None else ""
        return f"Operation({self.op_type.value} {self.kind} {self.value!r}{err})"


def crash_type(op: Operation) -> OpType:
    """Outcome type for an operation whose fate is unknown.

    A read has no side effect to be unsure about, so it simply failed.
    Anything else might have been applied.
    """
    return OpType.FAIL if op.is_read else OpType.INFO


def classify_error(op: Operation, error: BaseException) -> Operation:
    """Complete ``op`` with the outcome implied by ``error``.

    Errors which prove the request never took effect (an authorization
    rejection, an unknown address, a refused connection) complete the op as
    ``fail``. Transport faults after which the request may have been applied
    (no response, a timeout, any other connection fault) complete it as
    ``info``, or as ``fail`` when the op is a read.

    Args:
        op: The invoked operation.
        error: The error raised while executing it. Must be an instance of
            one of ``CLASSIFIABLE_ERRORS``.

    Returns:
        The completed operation.

    Raises:
        TypeError: If ``error`` is outside the known taxonomy.
    """
    if isinstance(error, Unauthorized):
        return op.fail("precondition-failed")
    if isinstance(error, UnknownAddress):
        return op.fail("not-found")

    if isinstance(error, NoResponse):
        detail: Any = "no-http-response"
    elif isinstance(error, TimeoutError):
        detail = "timeout"
    elif isinstance(error, ConnectionError):
        message = str(error)
        if isinstance(error, ConnectionRefusedError) or CONNECTION_REFUSED.search(message):
            return op.fail("connection-refused")
        detail = ("connect-exception", message)
    elif isinstance(error, ClusterClientError):
        detail = ("client-error", str(error))
    else:
        raise TypeError(f"Cannot classify {type(error).__name__}: {error}")

    return replace(op, op_type=crash_type(op), error=detail)
