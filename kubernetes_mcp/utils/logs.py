from __future__ import annotations

import logging
from typing import Any, List, Optional

from kubernetes.client import ApiException
from urllib3.exceptions import HTTPError

from .errors import cluster_error

logger = logging.getLogger(__name__)

TAIL_LINES = 100


class LogAggregator:
    """Pod log retrieval with a per-container fan-out for multi-container pods."""

    def __init__(self, core_api: Any) -> None:
        self._core = core_api

    def _read(self, namespace: str, pod_name: str, container: Optional[str], timeout: Optional[float]) -> str:
        kwargs: dict = {"tail_lines": TAIL_LINES, "_request_timeout": timeout}
        if container:
            kwargs["container"] = container
        text = self._core.read_namespaced_pod_log(name=pod_name, namespace=namespace, **kwargs)
        return text or ""

    def get_logs(
        self,
        namespace: str,
        pod_name: str,
        container_name: str = "",
        *,
        timeout: Optional[float] = None,
    ) -> str:
        if container_name:
            try:
                return self._read(namespace, pod_name, container_name, timeout)
            except ApiException as exc:
                raise cluster_error(exc, f"failed to get logs for container '{container_name}'") from exc

        try:
            pod = self._core.read_namespaced_pod(name=pod_name, namespace=namespace, _request_timeout=timeout)
        except ApiException as exc:
            raise cluster_error(exc, "failed to get pod details") from exc

        containers: List[str] = [c.name for c in (getattr(pod.spec, "containers", None) or [])]
        if len(containers) == 1:
            try:
                return self._read(namespace, pod_name, None, timeout)
            except ApiException as exc:
                raise cluster_error(exc, "failed to get logs") from exc

        parts: List[str] = []
        for container in containers:
            try:
                text = self._read(namespace, pod_name, container, timeout)
            except (ApiException, HTTPError) as exc:
                if isinstance(exc, ApiException):
                    detail = str(cluster_error(exc, "stream failed"))
                else:
                    detail = f"stream failed: {exc}"
                logger.warning("Log stream failed for %s/%s container %s: %s", namespace, pod_name, container, detail)
                parts.append(f"\n--- Error getting logs for container {container}: {detail} ---\n")
                continue
            parts.append(f"\n--- Logs for container {container} ---\n")
            parts.append(text)
        return "".join(parts)
