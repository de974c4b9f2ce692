from __future__ import annotations

from dataclasses import dataclass

from kubernetes import client

from .connection import ConnectionDescriptor
from .discovery import DiscoveryClient, KindResolutionCache
from .logs import LogAggregator
from .metrics import MetricsReader
from .resources import DynamicResourceAccessor


@dataclass(frozen=True)
class KubernetesServices:
    """Long-lived access layer shared by every tool call.

    Everything here hangs off one ApiClient built from the descriptor; the
    kind cache is the only mutable state.
    """

    descriptor: ConnectionDescriptor
    api_client: client.ApiClient
    core: client.CoreV1Api
    networking: client.NetworkingV1Api
    discovery: DiscoveryClient
    kinds: KindResolutionCache
    resources: DynamicResourceAccessor
    logs: LogAggregator
    metrics: MetricsReader


def load_services(descriptor: ConnectionDescriptor) -> KubernetesServices:
    """Create the API clients once, from an already resolved descriptor."""

    api_client = descriptor.api_client()
    discovery = DiscoveryClient(api_client)
    kinds = KindResolutionCache(discovery)
    core = client.CoreV1Api(api_client)
    return KubernetesServices(
        descriptor=descriptor,
        api_client=api_client,
        core=core,
        networking=client.NetworkingV1Api(api_client),
        discovery=discovery,
        kinds=kinds,
        resources=DynamicResourceAccessor(api_client, kinds),
        logs=LogAggregator(core),
        metrics=MetricsReader(client.CustomObjectsApi(api_client)),
    )
