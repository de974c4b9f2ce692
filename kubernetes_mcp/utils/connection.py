"""Cluster connection resolution.

Four credential sources are tried in a fixed order and the first one that
applies wins:

1. ``KUBECONFIG_DATA``: a whole kubeconfig passed inline.
2. ``KUBERNETES_SERVER`` + ``KUBERNETES_TOKEN`` (optional
   ``KUBERNETES_CA_CERT`` / ``KUBERNETES_CA_CERT_PATH`` / ``KUBERNETES_INSECURE``).
3. In-cluster service account, when its token file exists.
4. A kubeconfig file: explicit path, else ``KUBECONFIG``, else ``~/.kube/config``.

The loaders always get a private ``Configuration`` so the kubernetes
library's process-wide default is never touched.
"""

from __future__ import annotations

import atexit
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import yaml
from kubernetes import client, config

from ..config_utils import env_optional_str, env_str
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_TOKEN_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/token"

SOURCE_INLINE_KUBECONFIG = "inline-kubeconfig"
SOURCE_SERVER_TOKEN = "server-token"
SOURCE_IN_CLUSTER = "in-cluster"
SOURCE_KUBECONFIG_FILE = "kubeconfig-file"


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Everything needed to talk to one cluster. Never mutated after build."""

    source: str
    host: str
    configuration: client.Configuration
    bearer_token: Optional[str] = None
    ca_file: Optional[str] = None
    client_cert_file: Optional[str] = None
    client_key_file: Optional[str] = None
    verify_ssl: bool = True
    kubeconfig_path: Optional[str] = None
    kubeconfig_content: Optional[str] = None
    context: Optional[str] = None

    def api_client(self) -> client.ApiClient:
        return client.ApiClient(configuration=self.configuration)

    def summary(self) -> dict:
        """Non-secret view for logs and health output."""

        return {
            "source": self.source,
            "host": self.host,
            "verifySSL": self.verify_ssl,
            "kubeconfig": self.kubeconfig_path,
            "context": self.context,
        }


def write_private_temp_file(content: str, *, prefix: str, suffix: str) -> str:
    """Write ``content`` to a 0600 temp file removed at interpreter exit."""

    fd, path = tempfile.mkstemp(prefix=prefix, suffix=suffix)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        fh.write(content)
    atexit.register(_unlink_quietly, path)
    return path


def _unlink_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def _bearer_token(configuration: client.Configuration) -> Optional[str]:
    # newer clients key the token as "BearerToken", older ones as "authorization"
    api_key = configuration.api_key or {}
    prefixes = configuration.api_key_prefix or {}
    for key in ("BearerToken", "authorization"):
        raw = api_key.get(key)
        if not raw:
            continue
        if prefixes.get(key):
            return raw
        scheme, _, token = raw.partition(" ")
        return token.strip() if scheme.lower() == "bearer" and token.strip() else raw
    return None


def _describe(
    source: str,
    configuration: client.Configuration,
    *,
    kubeconfig_path: Optional[str] = None,
    kubeconfig_content: Optional[str] = None,
    context: Optional[str] = None,
) -> ConnectionDescriptor:
    return ConnectionDescriptor(
        source=source,
        host=configuration.host,
        configuration=configuration,
        bearer_token=_bearer_token(configuration),
        ca_file=configuration.ssl_ca_cert,
        client_cert_file=configuration.cert_file,
        client_key_file=configuration.key_file,
        verify_ssl=bool(configuration.verify_ssl),
        kubeconfig_path=kubeconfig_path,
        kubeconfig_content=kubeconfig_content,
        context=context,
    )


class ConnectionResolver:
    """Build a ConnectionDescriptor from the environment.

    The environment mapping is captured once, at construction.
    """

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        *,
        token_path: str = SERVICE_ACCOUNT_TOKEN_PATH,
        home: Optional[str] = None,
    ) -> None:
        self._env = dict(os.environ if environ is None else environ)
        self._token_path = token_path
        self._home = home

    def resolve(self, kubeconfig_path: Optional[str] = None, context: Optional[str] = None) -> ConnectionDescriptor:
        inline = env_optional_str(self._env, "KUBECONFIG_DATA", strip=False)
        if inline and inline.strip():
            return self._from_inline_kubeconfig(inline, context)

        server = env_optional_str(self._env, "KUBERNETES_SERVER")
        if server:
            return self._from_server_token(server)

        if Path(self._token_path).exists():
            return self._from_in_cluster()

        return self._from_kubeconfig_file(kubeconfig_path, context)

    def _from_inline_kubeconfig(self, content: str, context: Optional[str]) -> ConnectionDescriptor:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"failed to load kubeconfig from KUBECONFIG_DATA: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError("failed to load kubeconfig from KUBECONFIG_DATA: content is not a mapping")

        configuration = client.Configuration()
        try:
            config.load_kube_config_from_dict(
                data,
                context=context,
                client_configuration=configuration,
                persist_config=False,
            )
        except Exception as exc:  # noqa: BLE001
            raise ConfigurationError(f"failed to build REST config from KUBECONFIG_DATA: {exc}") from exc

        logger.info("Using inline kubeconfig from KUBECONFIG_DATA (host %s)", configuration.host)
        return _describe(SOURCE_INLINE_KUBECONFIG, configuration, kubeconfig_content=content, context=context)

    def _from_server_token(self, server: str) -> ConnectionDescriptor:
        token = env_optional_str(self._env, "KUBERNETES_TOKEN")
        if not token:
            raise ConfigurationError("KUBERNETES_TOKEN environment variable is required when KUBERNETES_SERVER is set")

        configuration = client.Configuration()
        configuration.host = server.rstrip("/")
        configuration.api_key = {"authorization": f"Bearer {token}"}
        configuration.verify_ssl = env_str(self._env, "KUBERNETES_INSECURE", "false").lower() != "true"

        ca_cert = env_optional_str(self._env, "KUBERNETES_CA_CERT", strip=False)
        ca_cert_path = env_optional_str(self._env, "KUBERNETES_CA_CERT_PATH")
        if ca_cert and ca_cert.strip():
            # urllib3 only takes a CA bundle path.
            configuration.ssl_ca_cert = write_private_temp_file(ca_cert, prefix="kubernetes-mcp-ca-", suffix=".crt")
        elif ca_cert_path:
            try:
                Path(ca_cert_path).read_bytes()
            except OSError as exc:
                raise ConfigurationError(f"failed to read CA certificate from {ca_cert_path}: {exc}") from exc
            configuration.ssl_ca_cert = ca_cert_path

        logger.info("Using API server %s with bearer token", configuration.host)
        return _describe(SOURCE_SERVER_TOKEN, configuration)

    def _from_in_cluster(self) -> ConnectionDescriptor:
        configuration = client.Configuration()
        try:
            config.load_incluster_config(client_configuration=configuration)
        except Exception as exc:  # noqa: BLE001
            raise ConfigurationError(f"failed to create in-cluster config: {exc}") from exc

        logger.info("Using in-cluster service account (host %s)", configuration.host)
        return _describe(SOURCE_IN_CLUSTER, configuration)

    def _from_kubeconfig_file(self, kubeconfig_path: Optional[str], context: Optional[str]) -> ConnectionDescriptor:
        path = kubeconfig_path or env_optional_str(self._env, "KUBECONFIG")
        if not path:
            home = self._home or str(Path.home())
            path = os.path.join(home, ".kube", "config")

        configuration = client.Configuration()
        try:
            config.load_kube_config(
                config_file=path,
                context=context,
                client_configuration=configuration,
                persist_config=False,
            )
        except Exception as exc:  # noqa: BLE001
            raise ConfigurationError(f"failed to create Kubernetes configuration from {path}: {exc}") from exc

        logger.info("Using kubeconfig %s (host %s)", path, configuration.host)
        return _describe(SOURCE_KUBECONFIG_FILE, configuration, kubeconfig_path=path, context=context)
