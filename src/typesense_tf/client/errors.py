"""Error types shared by the Server and Cloud clients.

A 404 on a lookup is not an error (the call returns ``None``), and neither
is a 404 on a list endpoint that newer servers have retired (the call
returns ``[]``). Everything else that is not a 2xx becomes an ``ApiError``
carrying the status code and the raw response body verbatim.
"""

from __future__ import annotations


class TypesenseError(Exception):
    """Base class for all client errors."""


class ApiError(TypesenseError):
    """The API answered with an unexpected status code."""

    def __init__(self, operation: str, status: int, body: str) -> None:
        self.operation = operation
        self.status = status
        self.body = body
        super().__init__(f"failed to {operation}: status {status}, body: {body}")


class TransportError(TypesenseError):
    """The request never got a complete HTTP answer (DNS, connection, timeout, truncated body)."""

    def __init__(self, operation: str, reason: object) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"failed to {operation}: {reason}")


class DecodeError(TypesenseError):
    """A 2xx response body did not match the expected shape."""

    def __init__(self, operation: str, detail: object) -> None:
        self.operation = operation
        super().__init__(f"failed to decode {operation} response: {detail}")


class ClusterStateError(TypesenseError):
    """A cloud cluster reached a terminal error state or disappeared."""


class ClusterTimeoutError(TypesenseError):
    """A cloud cluster did not become ready before the deadline."""


class PollCancelled(TypesenseError):
    """The caller cancelled a readiness poll."""
