from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .config_utils import env_bool, env_int, env_optional_str, env_str
from .utils.errors import ConfigurationError

TRANSPORTS = ("stdio", "sse", "streamable-http")


@dataclass(frozen=True)
class KubernetesMCPServerConfig:
    """Runtime configuration for the Kubernetes MCP server.

    Env vars:
    - SERVER_MODE: stdio|sse|streamable-http (http is treated as streamable-http)
    - SERVER_HOST / SERVER_PORT: bind address for the network transports
    - K8S_KUBECONFIG: path to kubeconfig file
    - K8S_CONTEXT: kube context name
    - KUBERNETES_MCP_READ_ONLY: register read tools only
    - KUBERNETES_MCP_NO_K8S / KUBERNETES_MCP_NO_HELM: disable a tool category
    - KUBERNETES_MCP_LOG_LEVEL: stdlib logging level name

    Cluster credentials (KUBECONFIG_DATA, KUBERNETES_SERVER, ...) are not
    part of this object; the connection resolver reads them on its own.
    """

    transport: str
    host: str
    port: int
    kubeconfig: Optional[str]
    context: Optional[str]
    read_only: bool
    enable_k8s: bool
    enable_helm: bool
    log_level: str

    DEFAULT_TRANSPORT: str = "sse"
    DEFAULT_HOST: str = "0.0.0.0"
    DEFAULT_PORT: int = 8080
    DEFAULT_LOG_LEVEL: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "KubernetesMCPServerConfig":
        env = os.environ if env is None else env
        return cls(
            transport=normalize_transport(env_str(env, "SERVER_MODE", cls.DEFAULT_TRANSPORT)),
            host=env_str(env, "SERVER_HOST", cls.DEFAULT_HOST),
            port=env_int(env, "SERVER_PORT", cls.DEFAULT_PORT),
            kubeconfig=env_optional_str(env, "K8S_KUBECONFIG"),
            context=env_optional_str(env, "K8S_CONTEXT"),
            read_only=env_bool(env, "KUBERNETES_MCP_READ_ONLY", False),
            enable_k8s=not env_bool(env, "KUBERNETES_MCP_NO_K8S", False),
            enable_helm=not env_bool(env, "KUBERNETES_MCP_NO_HELM", False),
            log_level=env_str(env, "KUBERNETES_MCP_LOG_LEVEL", cls.DEFAULT_LOG_LEVEL).upper(),
        )

    def validate(self) -> "KubernetesMCPServerConfig":
        if self.transport not in TRANSPORTS:
            raise ConfigurationError(f"unknown server mode {self.transport!r}, use one of: {', '.join(TRANSPORTS)}")
        if not self.enable_k8s and not self.enable_helm:
            raise ConfigurationError("cannot disable both Kubernetes and Helm tools; at least one category must be enabled")
        return self


def normalize_transport(raw: str) -> str:
    transport = (raw or "").lower().strip()
    return "streamable-http" if transport == "http" else transport
