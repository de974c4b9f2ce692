from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from fastmcp import FastMCP

from .config import KubernetesMCPServerConfig
from .utils import helm_cli
from .utils.clients import KubernetesServices
from .utils.core_resources import list_events as list_events_impl
from .utils.core_resources import list_ingresses as list_ingresses_impl
from .utils.discovery import list_api_resources as list_api_resources_impl
from .utils.errors import ConfigurationError, KubernetesMCPError, error_payload
from .utils.helm_cli import HelmExecConfig

logger = logging.getLogger(__name__)

SERVER_NAME = "kubernetes-mcp"

READ_ONLY = {"readOnlyHint": True}
WRITE = {"readOnlyHint": False, "destructiveHint": False}
DESTRUCTIVE = {"readOnlyHint": False, "destructiveHint": True}


def _guard(fn: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    try:
        return fn()
    except KubernetesMCPError as exc:
        logger.info("Tool call failed: %s", exc)
        return error_payload(exc)


def create_mcp(
    services: Optional[KubernetesServices],
    helm: Optional[HelmExecConfig],
    *,
    read_only: bool = False,
    enable_k8s: bool = True,
    enable_helm: bool = True,
) -> FastMCP:
    """Build the FastMCP server with the tools for the enabled categories.

    Read-only mode registers only the tools that never change the cluster.
    """

    if not enable_k8s and not enable_helm:
        raise ConfigurationError("cannot disable both Kubernetes and Helm tools; at least one category must be enabled")
    if enable_k8s and services is None:
        raise ConfigurationError("Kubernetes tools are enabled but no cluster services were provided")
    if enable_helm and helm is None:
        raise ConfigurationError("Helm tools are enabled but no helm configuration was provided")

    mcp = FastMCP(SERVER_NAME)
    if enable_k8s:
        _register_k8s_tools(mcp, services, read_only=read_only)
    if enable_helm:
        _register_helm_tools(mcp, helm, read_only=read_only)
    return mcp


def _register_k8s_tools(mcp: FastMCP, services: KubernetesServices, *, read_only: bool) -> None:
    # argument names are camelCase to match the tool schema clients already use

    @mcp.tool(name="getAPIResources", annotations=READ_ONLY)
    def get_api_resources(
        includeNamespaceScoped: bool = True,
        includeClusterScoped: bool = True,
        timeoutSeconds: Optional[float] = None,
    ) -> Dict[str, Any]:
        """List the API resource types the cluster serves."""

        return _guard(
            lambda: {
                "ok": True,
                "resources": list_api_resources_impl(
                    services.discovery,
                    include_namespace_scoped=includeNamespaceScoped,
                    include_cluster_scoped=includeClusterScoped,
                    timeout=timeoutSeconds,
                ),
            }
        )

    @mcp.tool(name="listResources", annotations=READ_ONLY)
    def list_resources(
        kind: str,
        namespace: str = "",
        labelSelector: str = "",
        fieldSelector: str = "",
        timeoutSeconds: Optional[float] = None,
    ) -> Dict[str, Any]:
        """List resources of one kind (name, kind, namespace, labels)."""

        return _guard(
            lambda: {
                "ok": True,
                "items": services.resources.list(kind, namespace, labelSelector, fieldSelector, timeout=timeoutSeconds),
            }
        )

    @mcp.tool(name="getResource", annotations=READ_ONLY)
    def get_resource(kind: str, name: str, namespace: str = "", timeoutSeconds: Optional[float] = None) -> Dict[str, Any]:
        """Get one resource by kind and name."""

        return _guard(
            lambda: {"ok": True, "resource": services.resources.get(kind, name, namespace, timeout=timeoutSeconds)}
        )

    @mcp.tool(name="describeResource", annotations=READ_ONLY)
    def describe_resource(kind: str, name: str, namespace: str = "", timeoutSeconds: Optional[float] = None) -> Dict[str, Any]:
        """Return the full stored object, status included."""

        return _guard(
            lambda: {"ok": True, "resource": services.resources.get(kind, name, namespace, timeout=timeoutSeconds)}
        )

    @mcp.tool(name="getPodsLogs", annotations=READ_ONLY)
    def get_pods_logs(
        name: str,
        namespace: str,
        containerName: str = "",
        timeoutSeconds: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Last 100 log lines of a pod; every container when none is named."""

        return _guard(
            lambda: {
                "ok": True,
                "logs": services.logs.get_logs(namespace, name, containerName, timeout=timeoutSeconds),
            }
        )

    @mcp.tool(name="getNodeMetrics", annotations=READ_ONLY)
    def get_node_metrics(name: str, timeoutSeconds: Optional[float] = None) -> Dict[str, Any]:
        return _guard(lambda: {"ok": True, "metrics": services.metrics.node_metrics(name, timeout=timeoutSeconds)})

    @mcp.tool(name="getPodMetrics", annotations=READ_ONLY)
    def get_pod_metrics(namespace: str, podName: str, timeoutSeconds: Optional[float] = None) -> Dict[str, Any]:
        return _guard(
            lambda: {"ok": True, "metrics": services.metrics.pod_metrics(namespace, podName, timeout=timeoutSeconds)}
        )

    @mcp.tool(name="getEvents", annotations=READ_ONLY)
    def get_events(namespace: str = "", labelSelector: str = "", timeoutSeconds: Optional[float] = None) -> Dict[str, Any]:
        return _guard(
            lambda: {
                "ok": True,
                "events": list_events_impl(services.core, namespace, labelSelector, timeout=timeoutSeconds),
            }
        )

    @mcp.tool(name="getIngresses", annotations=READ_ONLY)
    def get_ingresses(host: str = "", timeoutSeconds: Optional[float] = None) -> Dict[str, Any]:
        """Ingresses that route ``host``; all ingresses when host is empty."""

        return _guard(
            lambda: {"ok": True, "ingresses": list_ingresses_impl(services.networking, host, timeout=timeoutSeconds)}
        )

    if read_only:
        return

    @mcp.tool(name="createResource", annotations=WRITE)
    def create_resource(kind: str, manifest: str, namespace: str = "", timeoutSeconds: Optional[float] = None) -> Dict[str, Any]:
        """Create or update a resource from a JSON manifest.

        A missing target namespace is created first.
        """

        return _guard(
            lambda: {
                "ok": True,
                "resource": services.resources.create_or_update(
                    manifest, namespace=namespace, kind=kind, fmt="json", timeout=timeoutSeconds
                ),
            }
        )

    @mcp.tool(name="createResourceYAML", annotations=WRITE)
    def create_resource_yaml(
        yamlManifest: str,
        kind: str = "",
        namespace: str = "",
        timeoutSeconds: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Create or update a resource from a YAML manifest.

        ``kind`` and ``namespace`` override the manifest when given.
        """

        return _guard(
            lambda: {
                "ok": True,
                "resource": services.resources.create_or_update(
                    yamlManifest, namespace=namespace, kind=kind, fmt="yaml", timeout=timeoutSeconds
                ),
            }
        )

    @mcp.tool(name="deleteResource", annotations=DESTRUCTIVE)
    def delete_resource(kind: str, name: str, namespace: str = "", timeoutSeconds: Optional[float] = None) -> Dict[str, Any]:
        def _delete() -> Dict[str, Any]:
            services.resources.delete(kind, name, namespace, timeout=timeoutSeconds)
            return {"ok": True, "deleted": {"kind": kind, "name": name, "namespace": namespace}}

        return _guard(_delete)

    @mcp.tool(name="rolloutRestart", annotations=WRITE)
    def rollout_restart(kind: str, name: str, namespace: str, timeoutSeconds: Optional[float] = None) -> Dict[str, Any]:
        """Restart the pods of a workload (Deployment, DaemonSet, StatefulSet...)."""

        return _guard(
            lambda: {
                "ok": True,
                "resource": services.resources.rollout_restart(kind, name, namespace, timeout=timeoutSeconds),
            }
        )


def _register_helm_tools(mcp: FastMCP, helm: HelmExecConfig, *, read_only: bool) -> None:
    @mcp.tool(name="helmList", annotations=READ_ONLY)
    def helm_list(namespace: str = "") -> Dict[str, Any]:
        """List releases in a namespace, or in all namespaces when empty."""

        return helm_cli.list_releases(helm, namespace=namespace or None)

    @mcp.tool(name="helmGet", annotations=READ_ONLY)
    def helm_get(releaseName: str, namespace: str) -> Dict[str, Any]:
        return helm_cli.get_release(helm, releaseName, namespace=namespace)

    @mcp.tool(name="helmHistory", annotations=READ_ONLY)
    def helm_history(releaseName: str, namespace: str) -> Dict[str, Any]:
        return helm_cli.get_history(helm, releaseName, namespace=namespace)

    @mcp.tool(name="helmRepoList", annotations=READ_ONLY)
    def helm_repo_list() -> Dict[str, Any]:
        return helm_cli.repo_list(helm)

    if read_only:
        return

    @mcp.tool(name="helmInstall", annotations=WRITE)
    def helm_install(
        releaseName: str,
        chartName: str,
        namespace: str = "",
        repoURL: str = "",
        values: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Install a chart. The namespace is created when missing."""

        return helm_cli.install(
            helm, releaseName, chartName, namespace=namespace or None, repo_url=repoURL or None, values=values
        )

    @mcp.tool(name="helmUpgrade", annotations=WRITE)
    def helm_upgrade(
        releaseName: str,
        chartName: str,
        namespace: str,
        values: Optional[Dict[str, Any]] = None,
        repoURL: str = "",
    ) -> Dict[str, Any]:
        return helm_cli.upgrade(
            helm, releaseName, chartName, namespace=namespace, repo_url=repoURL or None, values=values
        )

    @mcp.tool(name="helmUninstall", annotations=DESTRUCTIVE)
    def helm_uninstall(releaseName: str, namespace: str) -> Dict[str, Any]:
        return helm_cli.uninstall(helm, releaseName, namespace=namespace)

    @mcp.tool(name="helmRollback", annotations=DESTRUCTIVE)
    def helm_rollback(releaseName: str, namespace: str, revision: int = 0) -> Dict[str, Any]:
        """Roll back a release; revision 0 means the previous one."""

        return helm_cli.rollback(helm, releaseName, namespace=namespace, revision=revision)

    @mcp.tool(name="helmRepoAdd", annotations=WRITE)
    def helm_repo_add(repoName: str, repoURL: str) -> Dict[str, Any]:
        """Add a chart repository; does nothing if the name is taken."""

        return helm_cli.repo_add(helm, repoName, repoURL)


def run_server(mcp: FastMCP, cfg: KubernetesMCPServerConfig) -> None:
    if cfg.transport == "stdio":
        logger.info("Starting %s on stdio", SERVER_NAME)
        mcp.run(transport="stdio")
        return

    logger.info("Starting %s (%s) on %s:%s", SERVER_NAME, cfg.transport, cfg.host, cfg.port)
    mcp.run(transport=cfg.transport, host=cfg.host, port=cfg.port)
