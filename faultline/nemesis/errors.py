"""
Error taxonomy for calls made through the cluster client.

The client layer raises these to describe how a request failed. The outcome
classifier turns them into ``fail`` or ``info`` operation results; nothing in
this package lets them escape an operation boundary.
"""


class ScenarioError(ValueError):
    """A scenario was configured in a way the engine cannot run.

    Raised during setup (never mid-run) so the test aborts before producing
    a meaningless history.
    """


class ClusterClientError(Exception):
    """Base class for failures reported by the cluster client."""


class Unauthorized(ClusterClientError):
    """The application rejected the request before applying it."""


class UnknownAddress(ClusterClientError):
    """The request referenced an address the application does not know."""


class NoResponse(ClusterClientError):
    """The server accepted the connection but never sent a response."""


class ClientTimeout(ClusterClientError, TimeoutError):
    """The request timed out at the socket level."""


class ConnectionFailure(ClusterClientError, ConnectionError):
    """A lower-level connection fault.

    Whether the request could have reached the server depends on the
    message; see ``outcome.CONNECTION_REFUSED``.
    """


class SetupError(RuntimeError):
    """A transient setup step kept failing past its retry budget."""
