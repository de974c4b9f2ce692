from pathlib import Path

import pytest
from kubernetes import client

from kubernetes_mcp.utils import connection
from kubernetes_mcp.utils.connection import (
    SOURCE_IN_CLUSTER,
    SOURCE_INLINE_KUBECONFIG,
    SOURCE_KUBECONFIG_FILE,
    SOURCE_SERVER_TOKEN,
    ConnectionResolver,
)
from kubernetes_mcp.utils.errors import ConfigurationError

KUBECONFIG = """
apiVersion: v1
kind: Config
clusters:
- name: one
  cluster:
    server: https://one.example:6443
    insecure-skip-tls-verify: true
- name: two
  cluster:
    server: https://two.example:6443
    insecure-skip-tls-verify: true
users:
- name: admin
  user:
    token: tok-123
contexts:
- name: first
  context:
    cluster: one
    user: admin
- name: second
  context:
    cluster: two
    user: admin
current-context: first
"""


@pytest.fixture
def no_sa(tmp_path):
    return str(tmp_path / "no-such-token")


def _write_kubeconfig(path: Path) -> str:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(KUBECONFIG, encoding="utf-8")
    return str(path)


def test_inline_kubeconfig(no_sa):
    descriptor = ConnectionResolver({"KUBECONFIG_DATA": KUBECONFIG}, token_path=no_sa).resolve()

    assert descriptor.source == SOURCE_INLINE_KUBECONFIG
    assert descriptor.host == "https://one.example:6443"
    assert descriptor.bearer_token == "tok-123"
    assert descriptor.verify_ssl is False
    assert descriptor.kubeconfig_content == KUBECONFIG


def test_inline_kubeconfig_honours_context(no_sa):
    descriptor = ConnectionResolver({"KUBECONFIG_DATA": KUBECONFIG}, token_path=no_sa).resolve(context="second")

    assert descriptor.host == "https://two.example:6443"
    assert descriptor.context == "second"


@pytest.mark.parametrize("content", ["clusters: [unclosed", "- just\n- a list\n"])
def test_malformed_inline_kubeconfig(no_sa, content):
    with pytest.raises(ConfigurationError, match="KUBECONFIG_DATA"):
        ConnectionResolver({"KUBECONFIG_DATA": content}, token_path=no_sa).resolve()


def test_inline_kubeconfig_wins_over_server_token(no_sa):
    env = {"KUBECONFIG_DATA": KUBECONFIG, "KUBERNETES_SERVER": "https://other:6443", "KUBERNETES_TOKEN": "t"}

    assert ConnectionResolver(env, token_path=no_sa).resolve().source == SOURCE_INLINE_KUBECONFIG


def test_server_and_token(no_sa):
    env = {"KUBERNETES_SERVER": "https://api.example:6443/", "KUBERNETES_TOKEN": "secret"}

    descriptor = ConnectionResolver(env, token_path=no_sa).resolve()

    assert descriptor.source == SOURCE_SERVER_TOKEN
    assert descriptor.host == "https://api.example:6443"
    assert descriptor.bearer_token == "secret"
    assert descriptor.verify_ssl is True
    assert descriptor.ca_file is None


def test_server_insecure_flag(no_sa):
    env = {"KUBERNETES_SERVER": "https://api:6443", "KUBERNETES_TOKEN": "t", "KUBERNETES_INSECURE": "true"}

    assert ConnectionResolver(env, token_path=no_sa).resolve().verify_ssl is False


def test_server_without_token_is_an_error(no_sa):
    with pytest.raises(ConfigurationError, match="KUBERNETES_TOKEN"):
        ConnectionResolver({"KUBERNETES_SERVER": "https://api:6443"}, token_path=no_sa).resolve()


def test_server_inline_ca_is_written_to_private_file(no_sa):
    pem = "-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n"
    env = {"KUBERNETES_SERVER": "https://api:6443", "KUBERNETES_TOKEN": "t", "KUBERNETES_CA_CERT": pem}

    descriptor = ConnectionResolver(env, token_path=no_sa).resolve()

    assert Path(descriptor.ca_file).read_text(encoding="utf-8") == pem


def test_server_ca_path(no_sa, tmp_path):
    ca = tmp_path / "ca.crt"
    ca.write_text("pem", encoding="utf-8")
    env = {"KUBERNETES_SERVER": "https://api:6443", "KUBERNETES_TOKEN": "t", "KUBERNETES_CA_CERT_PATH": str(ca)}

    assert ConnectionResolver(env, token_path=no_sa).resolve().ca_file == str(ca)


def test_server_unreadable_ca_path(no_sa, tmp_path):
    env = {
        "KUBERNETES_SERVER": "https://api:6443",
        "KUBERNETES_TOKEN": "t",
        "KUBERNETES_CA_CERT_PATH": str(tmp_path / "missing.crt"),
    }

    with pytest.raises(ConfigurationError, match="CA certificate"):
        ConnectionResolver(env, token_path=no_sa).resolve()


def test_in_cluster(tmp_path, monkeypatch):
    token = tmp_path / "token"
    token.write_text("sa-token", encoding="utf-8")

    def fake_incluster(client_configuration=None):
        client_configuration.host = "https://10.0.0.1:443"
        client_configuration.api_key = {"authorization": "Bearer sa-token"}

    monkeypatch.setattr(connection.config, "load_incluster_config", fake_incluster)

    descriptor = ConnectionResolver({}, token_path=str(token)).resolve()

    assert descriptor.source == SOURCE_IN_CLUSTER
    assert descriptor.host == "https://10.0.0.1:443"
    assert descriptor.bearer_token == "sa-token"


def test_in_cluster_failure(tmp_path, monkeypatch):
    token = tmp_path / "token"
    token.write_text("sa-token", encoding="utf-8")

    def broken(client_configuration=None):
        raise RuntimeError("service host/port is not set")

    monkeypatch.setattr(connection.config, "load_incluster_config", broken)

    with pytest.raises(ConfigurationError, match="in-cluster"):
        ConnectionResolver({}, token_path=str(token)).resolve()


def test_kubeconfig_from_env(no_sa, tmp_path):
    path = _write_kubeconfig(tmp_path / "kc.yaml")

    descriptor = ConnectionResolver({"KUBECONFIG": path}, token_path=no_sa).resolve()

    assert descriptor.source == SOURCE_KUBECONFIG_FILE
    assert descriptor.kubeconfig_path == path
    assert descriptor.host == "https://one.example:6443"


def test_explicit_kubeconfig_wins_over_env(no_sa, tmp_path):
    explicit = _write_kubeconfig(tmp_path / "explicit.yaml")

    descriptor = ConnectionResolver({"KUBECONFIG": str(tmp_path / "nope")}, token_path=no_sa).resolve(
        kubeconfig_path=explicit, context="second"
    )

    assert descriptor.kubeconfig_path == explicit
    assert descriptor.host == "https://two.example:6443"


def test_kubeconfig_home_fallback(no_sa, tmp_path):
    expected = _write_kubeconfig(tmp_path / ".kube" / "config")

    descriptor = ConnectionResolver({}, token_path=no_sa, home=str(tmp_path)).resolve()

    assert descriptor.kubeconfig_path == expected


def test_missing_kubeconfig_is_an_error(no_sa, tmp_path):
    with pytest.raises(ConfigurationError):
        ConnectionResolver({}, token_path=no_sa, home=str(tmp_path)).resolve()


def test_resolver_leaves_global_configuration_alone(no_sa, tmp_path):
    before = client.Configuration.get_default_copy().host
    ConnectionResolver({"KUBECONFIG": _write_kubeconfig(tmp_path / "kc.yaml")}, token_path=no_sa).resolve()

    assert client.Configuration.get_default_copy().host == before


@pytest.mark.parametrize(
    "api_key, prefix, expected",
    [
        ({"BearerToken": "tok"}, {"BearerToken": "Bearer"}, "tok"),
        ({"BearerToken": "Bearer tok"}, {}, "tok"),
        ({"authorization": "Bearer tok"}, {}, "tok"),
        ({"authorization": "bearer tok"}, {}, "tok"),
        ({"authorization": "tok"}, {"authorization": "Bearer"}, "tok"),
        ({}, {}, None),
    ],
)
def test_bearer_token_key_and_prefix_forms(api_key, prefix, expected):
    configuration = client.Configuration()
    configuration.api_key = api_key
    configuration.api_key_prefix = prefix

    assert connection._bearer_token(configuration) == expected


def test_in_cluster_lowercase_bearer_prefix(tmp_path, monkeypatch):
    token = tmp_path / "token"
    token.write_text("sa-token", encoding="utf-8")

    def fake_incluster(client_configuration=None):
        client_configuration.host = "https://10.0.0.1:443"
        client_configuration.api_key = {"authorization": "bearer sa-token"}

    monkeypatch.setattr(connection.config, "load_incluster_config", fake_incluster)

    assert ConnectionResolver({}, token_path=str(token)).resolve().bearer_token == "sa-token"
