"""Command-line entry point for the Kubernetes MCP server.

Flags override the environment (see ``KubernetesMCPServerConfig``); the
cluster connection is resolved once, before any tool is registered.
"""

from __future__ import annotations

import dataclasses
import logging
import sys
from typing import Optional

import typer

from .config import KubernetesMCPServerConfig, normalize_transport
from .mcp import create_mcp, run_server
from .utils.clients import load_services
from .utils.connection import ConnectionResolver
from .utils.errors import ConfigurationError
from .utils.helm import helm_exec_cfg_from_descriptor
from .utils.helm_config import HelmToolConfig

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="kubernetes-mcp",
    help="MCP server for Kubernetes resources and Helm releases.",
    add_completion=False,
)


def build_config(
    base: KubernetesMCPServerConfig,
    *,
    mode: Optional[str] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    kubeconfig: Optional[str] = None,
    context: Optional[str] = None,
    read_only: bool = False,
    no_k8s: bool = False,
    no_helm: bool = False,
    log_level: Optional[str] = None,
) -> KubernetesMCPServerConfig:
    """Apply CLI flags on top of the env config. Boolean flags only switch on."""

    cfg = dataclasses.replace(
        base,
        transport=normalize_transport(mode) if mode else base.transport,
        host=host or base.host,
        port=port if port is not None else base.port,
        kubeconfig=kubeconfig or base.kubeconfig,
        context=context or base.context,
        read_only=read_only or base.read_only,
        enable_k8s=base.enable_k8s and not no_k8s,
        enable_helm=base.enable_helm and not no_helm,
        log_level=(log_level or base.log_level).upper(),
    )
    return cfg.validate()


@app.command()
def main(
    mode: Optional[str] = typer.Option(None, "--mode", help="Transport: stdio, sse or streamable-http [env: SERVER_MODE]"),
    host: Optional[str] = typer.Option(None, "--host", help="Bind address for network transports [env: SERVER_HOST]"),
    port: Optional[int] = typer.Option(None, "--port", help="Port for network transports [env: SERVER_PORT]"),
    kubeconfig: Optional[str] = typer.Option(None, "--kubeconfig", help="Kubeconfig file used when no other source applies"),
    context: Optional[str] = typer.Option(None, "--context", help="Kubeconfig context"),
    read_only: bool = typer.Option(False, "--read-only", help="Register read-only tools only"),
    no_k8s: bool = typer.Option(False, "--no-k8s", help="Disable the Kubernetes tools"),
    no_helm: bool = typer.Option(False, "--no-helm", help="Disable the Helm tools"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level [env: KUBERNETES_MCP_LOG_LEVEL]"),
) -> None:
    """Resolve the cluster connection and serve the MCP tools."""

    try:
        cfg = build_config(
            KubernetesMCPServerConfig.from_env(),
            mode=mode,
            host=host,
            port=port,
            kubeconfig=kubeconfig,
            context=context,
            read_only=read_only,
            no_k8s=no_k8s,
            no_helm=no_helm,
            log_level=log_level,
        )
    except ConfigurationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    # stdout carries the stdio transport
    logging.basicConfig(
        level=cfg.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        descriptor = ConnectionResolver().resolve(kubeconfig_path=cfg.kubeconfig, context=cfg.context)
    except ConfigurationError as exc:
        logger.error("Failed to resolve Kubernetes connection: %s", exc)
        raise typer.Exit(code=1)
    logger.info("Cluster connection: %s", descriptor.summary())

    services = load_services(descriptor) if cfg.enable_k8s else None
    helm = helm_exec_cfg_from_descriptor(descriptor, HelmToolConfig.from_env()) if cfg.enable_helm else None
    mcp = create_mcp(
        services,
        helm,
        read_only=cfg.read_only,
        enable_k8s=cfg.enable_k8s,
        enable_helm=cfg.enable_helm,
    )
    run_server(mcp, cfg)


if __name__ == "__main__":
    app()
