from __future__ import annotations

from typing import Any, List, Optional, Tuple

from kubernetes import client

MERGE_PATCH = "application/merge-patch+json"
STRATEGIC_MERGE_PATCH = "application/strategic-merge-patch+json"


def rest_call(
    api_client: client.ApiClient,
    method: str,
    path: str,
    *,
    query: Optional[List[Tuple[str, Any]]] = None,
    body: Any = None,
    content_type: str = "application/json",
    timeout: Optional[float] = None,
) -> Any:
    """Issue one raw API call and return the decoded JSON body.

    Raises ``kubernetes.client.ApiException`` on non-2xx responses.
    """

    # keyword form of call_api; kubernetes>=35 replaced it with param_serialize
    return api_client.call_api(
        path,
        method,
        query_params=list(query or []),
        header_params={"Accept": "application/json", "Content-Type": content_type},
        body=body,
        response_type="object",
        auth_settings=["BearerToken"],
        _return_http_data_only=True,
        _preload_content=True,
        _request_timeout=timeout,
    )
