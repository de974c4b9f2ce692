from __future__ import annotations

import logging

from .connection import (
    SOURCE_INLINE_KUBECONFIG,
    SOURCE_KUBECONFIG_FILE,
    SOURCE_SERVER_TOKEN,
    ConnectionDescriptor,
    write_private_temp_file,
)
from .helm_cli import HelmExecConfig
from .helm_config import HelmToolConfig

logger = logging.getLogger(__name__)


def helm_exec_cfg_from_descriptor(descriptor: ConnectionDescriptor, tool_cfg: HelmToolConfig) -> HelmExecConfig:
    """Point the helm CLI at the same cluster the Kubernetes tools use.

    In-cluster connections get no cluster flags at all; helm picks up the
    service account by itself.
    """

    kwargs = {
        "helm_bin": tool_cfg.helm_bin,
        "driver": tool_cfg.driver,
        "timeout_seconds": tool_cfg.timeout_seconds,
    }

    if descriptor.source == SOURCE_INLINE_KUBECONFIG and descriptor.kubeconfig_content:
        kubeconfig = write_private_temp_file(descriptor.kubeconfig_content, prefix="kubernetes-mcp-helm-", suffix=".kubeconfig")
        return HelmExecConfig(kubeconfig=kubeconfig, kubecontext=descriptor.context, **kwargs)

    if descriptor.source == SOURCE_SERVER_TOKEN:
        return HelmExecConfig(
            kube_apiserver=descriptor.host,
            kube_token=descriptor.bearer_token,
            kube_ca_file=descriptor.ca_file,
            kube_insecure=not descriptor.verify_ssl,
            **kwargs,
        )

    if descriptor.source == SOURCE_KUBECONFIG_FILE:
        return HelmExecConfig(kubeconfig=descriptor.kubeconfig_path, kubecontext=descriptor.context, **kwargs)

    logger.debug("Helm uses ambient credentials for connection source %s", descriptor.source)
    return HelmExecConfig(**kwargs)
