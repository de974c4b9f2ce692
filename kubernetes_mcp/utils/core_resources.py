from __future__ import annotations

from typing import Any, Dict, List, Optional

from kubernetes.client import ApiException

from .errors import cluster_error


def _iso(ts: Any) -> Optional[str]:
    return ts.isoformat() if ts else None


def list_events(
    core_api: Any,
    namespace: str = "",
    label_selector: str = "",
    *,
    timeout: Optional[float] = None,
) -> List[Dict[str, Any]]:
    kwargs: Dict[str, Any] = {"_request_timeout": timeout}
    if label_selector:
        kwargs["label_selector"] = label_selector
    try:
        if namespace:
            items = core_api.list_namespaced_event(namespace=namespace, **kwargs).items
        else:
            items = core_api.list_event_for_all_namespaces(**kwargs).items
    except ApiException as exc:
        raise cluster_error(exc, "failed to retrieve events") from exc

    out: List[Dict[str, Any]] = []
    for e in items:
        source = getattr(e, "source", None)
        out.append(
            {
                "name": e.metadata.name,
                "namespace": e.metadata.namespace,
                "reason": getattr(e, "reason", None),
                "message": getattr(e, "message", None),
                "source": getattr(source, "component", None),
                "type": getattr(e, "type", None),
                "count": getattr(e, "count", None),
                "firstTime": _iso(getattr(e, "first_timestamp", None)),
                "lastTime": _iso(getattr(e, "last_timestamp", None)),
            }
        )
    return out


def list_ingresses(networking_api: Any, host: str = "", *, timeout: Optional[float] = None) -> List[Dict[str, Any]]:
    """Ingresses with at least one rule for ``host`` (every rule when empty)."""

    try:
        items = networking_api.list_ingress_for_all_namespaces(_request_timeout=timeout).items
    except ApiException as exc:
        raise cluster_error(exc, "failed to retrieve ingresses") from exc

    out: List[Dict[str, Any]] = []
    for ing in items:
        matched = False
        paths: List[str] = []
        backends: List[str] = []
        for rule in getattr(ing.spec, "rules", None) or []:
            if host and rule.host != host:
                continue
            matched = True
            http = getattr(rule, "http", None)
            for p in getattr(http, "paths", None) or []:
                paths.append(p.path)
                service = getattr(p.backend, "service", None)
                if service is not None:
                    backends.append(service.name)
        if matched:
            out.append(
                {
                    "name": ing.metadata.name,
                    "namespace": ing.metadata.namespace,
                    "paths": paths,
                    "backendServices": backends,
                }
            )
    return out
