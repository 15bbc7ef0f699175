"""Typesense Cloud Management API client.

Manages clusters and their scheduled configuration changes. Cluster
provisioning is asynchronous: ``create_cluster`` returns immediately and
``wait_for_cluster_ready`` polls until the cluster is in service.
"""

from __future__ import annotations

import logging
import threading
import time

from typesense_tf.client._http import JsonHttpClient, path
from typesense_tf.client.errors import (
    ClusterStateError,
    ClusterTimeoutError,
    PollCancelled,
)
from typesense_tf.models import (
    Cluster,
    ClusterApiKeys,
    ClusterConfigChange,
    ClusterStatus,
)

logger = logging.getLogger(__name__)

CLOUD_API_KEY_HEADER = "X-TYPESENSE-CLOUD-MANAGEMENT-API-KEY"
DEFAULT_CLOUD_URL = "https://cloud.typesense.org/api/v1"
DEFAULT_POLL_INTERVAL = 30.0

_TERMINAL_STATES = frozenset({ClusterStatus.FAILED, ClusterStatus.TERMINATED})


class CloudClient(JsonHttpClient):
    """Client for the Typesense Cloud Management API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_CLOUD_URL,
        timeout: float = 60.0,
    ) -> None:
        super().__init__(base_url, headers={CLOUD_API_KEY_HEADER: api_key}, timeout=timeout)

    # --- Clusters ---

    def create_cluster(self, cluster: Cluster) -> Cluster:
        payload = cluster.to_payload()
        for computed in ("id", "status", "hostnames", "api_keys", "created_at"):
            payload.pop(computed, None)
        return self._write_one(Cluster, "POST", "/clusters", "create cluster", payload)

    def get_cluster(self, cluster_id: str) -> Cluster | None:
        return self._get_one(Cluster, path("clusters", cluster_id), "get cluster")

    def update_cluster(self, cluster_id: str, updates: dict[str, object]) -> Cluster:
        """PATCH mutable cluster attributes (name, auto_upgrade_capacity)."""
        return self._write_one(
            Cluster, "PATCH", path("clusters", cluster_id), "update cluster", updates,
        )

    def delete_cluster(self, cluster_id: str) -> None:
        self._delete(path("clusters", cluster_id), "delete cluster")

    def list_clusters(self) -> list[Cluster]:
        return self._list(Cluster, "/clusters", "list clusters")

    def wait_for_cluster_ready(
        self,
        cluster_id: str,
        timeout: float,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        cancel: threading.Event | None = None,
    ) -> Cluster:
        """Poll until the cluster is ``in_service`` and return it.

        Checks immediately, then every *poll_interval* seconds. Raises
        ``ClusterStateError`` if the cluster fails, is terminated or
        disappears, ``ClusterTimeoutError`` once *timeout* seconds have
        passed, and ``PollCancelled`` as soon as *cancel* is set.
        API and transport errors propagate from the first failing poll.
        """
        cancel = cancel or threading.Event()
        deadline = time.monotonic() + timeout

        while True:
            if cancel.is_set():
                raise PollCancelled(f"cancelled while waiting for cluster {cluster_id}")

            cluster = self.get_cluster(cluster_id)
            if cluster is None:
                raise ClusterStateError(f"cluster {cluster_id} not found")
            if cluster.status == ClusterStatus.IN_SERVICE:
                logger.info("Cluster %s is in service", cluster_id)
                return cluster
            if cluster.status in _TERMINAL_STATES:
                raise ClusterStateError(
                    f"cluster {cluster_id} entered {cluster.status} state",
                )
            logger.debug("Cluster %s status %s, waiting", cluster_id, cluster.status)

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ClusterTimeoutError(
                    f"timeout waiting for cluster {cluster_id} to be ready",
                )
            if cancel.wait(min(poll_interval, remaining)):
                raise PollCancelled(f"cancelled while waiting for cluster {cluster_id}")

    # --- Configuration changes ---

    def create_config_change(self, change: ClusterConfigChange) -> ClusterConfigChange:
        payload = change.to_payload()
        for computed in ("id", "status"):
            payload.pop(computed, None)
        return self._write_one(
            ClusterConfigChange, "POST",
            path("clusters", change.cluster_id, "configuration-changes"),
            "create configuration change", payload,
        )

    def get_config_change(self, cluster_id: str, change_id: str) -> ClusterConfigChange | None:
        return self._get_one(
            ClusterConfigChange,
            path("clusters", cluster_id, "configuration-changes", change_id),
            "get configuration change",
        )

    def delete_config_change(self, cluster_id: str, change_id: str) -> None:
        self._delete(
            path("clusters", cluster_id, "configuration-changes", change_id),
            "delete configuration change",
        )

    # --- API keys ---

    def generate_cluster_api_keys(self, cluster_id: str) -> ClusterApiKeys:
        return self._write_one(
            ClusterApiKeys, "POST", path("clusters", cluster_id, "api-keys"),
            "generate cluster API keys", None,
        )
