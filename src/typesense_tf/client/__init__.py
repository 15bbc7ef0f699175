"""HTTP clients for the Typesense Server and Cloud Management APIs."""

from typesense_tf.client.cloud import CloudClient
from typesense_tf.client.errors import (
    ApiError,
    ClusterStateError,
    ClusterTimeoutError,
    DecodeError,
    PollCancelled,
    TransportError,
    TypesenseError,
)
from typesense_tf.client.server import ImportResult, ServerClient, count_import_results

__all__ = [
    "ApiError",
    "CloudClient",
    "ClusterStateError",
    "ClusterTimeoutError",
    "DecodeError",
    "ImportResult",
    "PollCancelled",
    "ServerClient",
    "TransportError",
    "TypesenseError",
    "count_import_results",
]
