from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from kubernetes.client import (
    ApiException,
    CoreV1Event,
    V1EventSource,
    V1HTTPIngressPath,
    V1HTTPIngressRuleValue,
    V1Ingress,
    V1IngressBackend,
    V1IngressRule,
    V1IngressServiceBackend,
    V1IngressSpec,
    V1ObjectMeta,
    V1ObjectReference,
)

from kubernetes_mcp.utils.core_resources import list_events, list_ingresses
from kubernetes_mcp.utils.errors import ClusterError


def _event(name, namespace):
    ts = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    return CoreV1Event(
        metadata=V1ObjectMeta(name=name, namespace=namespace),
        involved_object=V1ObjectReference(kind="Pod", name="web"),
        reason="BackOff",
        message="Back-off restarting failed container",
        source=V1EventSource(component="kubelet"),
        type="Warning",
        count=4,
        first_timestamp=ts,
        last_timestamp=ts,
    )


def _ingress(name, namespace, host, service):
    path = V1HTTPIngressPath(
        path="/",
        path_type="Prefix",
        backend=V1IngressBackend(service=V1IngressServiceBackend(name=service)),
    )
    rule = V1IngressRule(host=host, http=V1HTTPIngressRuleValue(paths=[path]))
    return V1Ingress(metadata=V1ObjectMeta(name=name, namespace=namespace), spec=V1IngressSpec(rules=[rule]))


def test_events_in_namespace():
    core = MagicMock()
    core.list_namespaced_event.return_value.items = [_event("web.1", "default")]

    events = list_events(core, "default", label_selector="app=web")

    assert events == [
        {
            "name": "web.1",
            "namespace": "default",
            "reason": "BackOff",
            "message": "Back-off restarting failed container",
            "source": "kubelet",
            "type": "Warning",
            "count": 4,
            "firstTime": "2024-05-01T10:00:00+00:00",
            "lastTime": "2024-05-01T10:00:00+00:00",
        }
    ]
    assert core.list_namespaced_event.call_args.kwargs["label_selector"] == "app=web"


def test_events_all_namespaces():
    core = MagicMock()
    core.list_event_for_all_namespaces.return_value.items = [_event("a.1", "a"), _event("b.1", "b")]

    events = list_events(core)

    assert [e["namespace"] for e in events] == ["a", "b"]
    core.list_namespaced_event.assert_not_called()


def test_events_error_is_wrapped():
    core = MagicMock()
    core.list_event_for_all_namespaces.side_effect = ApiException(status=403, reason="Forbidden")

    with pytest.raises(ClusterError, match="failed to retrieve events"):
        list_events(core)


def test_ingresses_filtered_by_host():
    networking = MagicMock()
    networking.list_ingress_for_all_namespaces.return_value.items = [
        _ingress("shop", "prod", "shop.example.com", "shop-svc"),
        _ingress("blog", "prod", "blog.example.com", "blog-svc"),
    ]

    assert list_ingresses(networking, "shop.example.com") == [
        {"name": "shop", "namespace": "prod", "paths": ["/"], "backendServices": ["shop-svc"]}
    ]
    assert [i["name"] for i in list_ingresses(networking)] == ["shop", "blog"]
