import json
from unittest.mock import MagicMock

import pytest
from kubernetes import client

from fakes import DISCOVERY
from kubernetes_mcp.utils.discovery import DiscoveryClient, KindResolutionCache
from kubernetes_mcp.utils.resources import DynamicResourceAccessor
from kubernetes_mcp.utils.rest import MERGE_PATCH, rest_call

HOST = "https://cluster.test"
NGINX_PATH = "/api/v1/namespaces/default/pods/nginx"
NGINX = {"apiVersion": "v1", "kind": "Pod", "metadata": {"name": "nginx", "namespace": "default"}}


class _Response:
    status = 200
    reason = "OK"

    def __init__(self, payload):
        self.data = json.dumps(payload).encode("utf-8")

    def getheaders(self):
        return {"Content-Type": "application/json; charset=utf-8"}

    def getheader(self, name, default=None):
        return self.getheaders().get(name.title(), default) if name.lower() == "content-type" else default


@pytest.fixture
def api():
    configuration = client.Configuration()
    configuration.host = HOST
    configuration.api_key = {"authorization": "Bearer abc"}
    api = client.ApiClient(configuration)

    documents = dict(DISCOVERY)
    documents[NGINX_PATH] = NGINX

    def request(method, url, **kwargs):
        return _Response(documents[url[len(HOST):]])

    api.rest_client.request = MagicMock(side_effect=request)
    return api


def test_get_goes_through_the_real_client(api):
    data = rest_call(api, "GET", NGINX_PATH, query=[("labelSelector", "app=web")], timeout=4)

    assert data == NGINX
    call = api.rest_client.request.call_args
    assert call.args[:2] == ("GET", HOST + NGINX_PATH)
    assert call.kwargs["query_params"] == [("labelSelector", "app=web")]
    assert call.kwargs["headers"]["Accept"] == "application/json"
    assert call.kwargs["headers"]["authorization"] == "Bearer abc"
    assert call.kwargs["_request_timeout"] == 4


def test_patch_sends_body_and_content_type(api):
    patch = {"metadata": {"labels": {"tier": "web"}}}

    rest_call(api, "PATCH", NGINX_PATH, body=patch, content_type=MERGE_PATCH)

    call = api.rest_client.request.call_args
    assert call.args[0] == "PATCH"
    assert call.kwargs["body"] == patch
    assert call.kwargs["headers"]["Content-Type"] == MERGE_PATCH


def test_accessor_resolves_and_reads_over_the_real_client(api):
    accessor = DynamicResourceAccessor(api, KindResolutionCache(DiscoveryClient(api)))

    pod = accessor.get("Pod", "nginx", "default")

    assert pod["metadata"]["name"] == "nginx"
    urls = [c.args[1] for c in api.rest_client.request.call_args_list]
    assert urls[0] == HOST + "/api"
    assert urls[-1] == HOST + NGINX_PATH
