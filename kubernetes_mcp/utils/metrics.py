from __future__ import annotations

from typing import Any, Dict, List, Optional

from kubernetes.client import ApiException

from .errors import cluster_error

METRICS_GROUP = "metrics.k8s.io"
METRICS_VERSION = "v1beta1"


class MetricsReader:
    """Read-only pass-through over the metrics API. No cache, no retry."""

    def __init__(self, custom_api: Any) -> None:
        self._custom = custom_api

    def pod_metrics(self, namespace: str, pod_name: str, *, timeout: Optional[float] = None) -> Dict[str, Any]:
        try:
            data = self._custom.get_namespaced_custom_object(
                METRICS_GROUP, METRICS_VERSION, namespace, "pods", pod_name, _request_timeout=timeout
            )
        except ApiException as exc:
            raise cluster_error(exc, f"failed to get metrics for pod '{pod_name}' in namespace '{namespace}'") from exc

        containers: List[Dict[str, Any]] = []
        for c in data.get("containers") or []:
            usage = c.get("usage") or {}
            containers.append({"name": c.get("name"), "cpu": usage.get("cpu"), "memory": usage.get("memory")})
        return {
            "podName": pod_name,
            "namespace": namespace,
            "timestamp": data.get("timestamp"),
            "window": data.get("window"),
            "containers": containers,
        }

    def node_metrics(self, node_name: str, *, timeout: Optional[float] = None) -> Dict[str, Any]:
        try:
            data = self._custom.get_cluster_custom_object(
                METRICS_GROUP, METRICS_VERSION, "nodes", node_name, _request_timeout=timeout
            )
        except ApiException as exc:
            raise cluster_error(exc, f"failed to get metrics for node '{node_name}'") from exc

        usage = data.get("usage") or {}
        return {
            "nodeName": node_name,
            "timestamp": data.get("timestamp"),
            "window": data.get("window"),
            "usage": {"cpu": usage.get("cpu"), "memory": usage.get("memory")},
        }
