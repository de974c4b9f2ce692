from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple

from kubernetes import client
from kubernetes.client import ApiException

from .errors import KindNotFoundError, PartialDiscoveryError, cluster_error
from .rest import rest_call
from .rwlock import ReadWriteLock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KindCoordinate:
    group: str
    version: str
    resource: str

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version


@dataclass(frozen=True)
class APIResource:
    name: str
    kind: str
    group: str
    version: str
    namespaced: bool
    singular_name: str = ""
    verbs: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "singularName": self.singular_name,
            "namespaced": self.namespaced,
            "kind": self.kind,
            "group": self.group,
            "version": self.version,
            "verbs": list(self.verbs),
        }


@dataclass
class APIResourceList:
    group_version: str
    resources: List[APIResource] = field(default_factory=list)


class Discovery(Protocol):
    def server_preferred_resources(self, timeout: Optional[float] = None) -> List[APIResourceList]: ...


def _split_group_version(group_version: str) -> Tuple[str, str]:
    if "/" in group_version:
        group, version = group_version.split("/", 1)
        return group, version
    return "", group_version


class DiscoveryClient:
    """Enumerate every served resource, preferred group versions first.

    A resource (group + plural) is reported at the first version it is
    seen at, so the preferred version wins. Failing group versions are
    collected and raised together as PartialDiscoveryError after the
    rest have been fetched.
    """

    def __init__(self, api_client: client.ApiClient) -> None:
        self._api_client = api_client

    def _get(self, path: str, timeout: Optional[float]) -> Dict[str, Any]:
        data = rest_call(self._api_client, "GET", path, timeout=timeout)
        return data if isinstance(data, dict) else {}

    def _group_versions(self, timeout: Optional[float]) -> List[Tuple[str, str]]:
        """(path, groupVersion) pairs, preferred version first per group."""

        out: List[Tuple[str, str]] = []
        try:
            core = self._get("/api", timeout)
            groups = self._get("/apis", timeout)
        except ApiException as exc:
            raise cluster_error(exc, "failed to retrieve API resources") from exc

        for version in core.get("versions") or []:
            out.append((f"/api/{version}", version))

        for group in groups.get("groups") or []:
            preferred = (group.get("preferredVersion") or {}).get("groupVersion")
            versions = [v.get("groupVersion") for v in group.get("versions") or [] if v.get("groupVersion")]
            if preferred in versions:
                versions.remove(preferred)
                versions.insert(0, preferred)
            out.extend((f"/apis/{gv}", gv) for gv in versions)
        return out

    def server_preferred_resources(self, timeout: Optional[float] = None) -> List[APIResourceList]:
        lists: List[APIResourceList] = []
        failed: Dict[str, Exception] = {}
        seen: set = set()

        for path, group_version in self._group_versions(timeout):
            try:
                data = self._get(path, timeout)
            except ApiException as exc:
                failed[group_version] = cluster_error(exc, f"failed to discover {group_version}")
                continue

            group, version = _split_group_version(group_version)
            resource_list = APIResourceList(group_version=group_version)
            for raw in data.get("resources") or []:
                name = raw.get("name") or ""
                if not name or "/" in name:
                    continue
                if (group, name) in seen:
                    continue
                seen.add((group, name))
                resource_list.resources.append(
                    APIResource(
                        name=name,
                        kind=raw.get("kind") or "",
                        group=group,
                        version=version,
                        namespaced=bool(raw.get("namespaced")),
                        singular_name=raw.get("singularName") or "",
                        verbs=tuple(raw.get("verbs") or ()),
                    )
                )
            if resource_list.resources:
                lists.append(resource_list)

        if failed:
            raise PartialDiscoveryError(lists, failed)
        return lists


def _preferred_resources_tolerant(discovery: Discovery, timeout: Optional[float]) -> List[APIResourceList]:
    try:
        return discovery.server_preferred_resources(timeout=timeout)
    except PartialDiscoveryError as exc:
        logger.warning("Partial API discovery, continuing with what was returned: %s", exc)
        return list(exc.resource_lists)


def list_api_resources(
    discovery: Discovery,
    *,
    include_namespace_scoped: bool = True,
    include_cluster_scoped: bool = True,
    timeout: Optional[float] = None,
) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for resource_list in _preferred_resources_tolerant(discovery, timeout):
        for res in resource_list.resources:
            if res.namespaced and not include_namespace_scoped:
                continue
            if not res.namespaced and not include_cluster_scoped:
                continue
            out.append(res.to_dict())
    return out


class KindResolutionCache:
    """Kind name -> KindCoordinate, filled lazily from discovery.

    Hits never touch the network. Misses run a full discovery and cache the
    first exact (case-sensitive) match. Unknown kinds are not cached, so
    every lookup of a missing kind runs discovery again. Entries live until
    the process exits.
    """

    def __init__(self, discovery: Discovery) -> None:
        self._discovery = discovery
        self._lock = ReadWriteLock()
        self._cache: Dict[str, KindCoordinate] = {}

    def resolve(self, kind: str, timeout: Optional[float] = None) -> KindCoordinate:
        with self._lock.read_locked():
            hit = self._cache.get(kind)
        if hit is not None:
            logger.debug("Kind %s resolved from cache: %s", kind, hit)
            return hit

        for resource_list in _preferred_resources_tolerant(self._discovery, timeout):
            for res in resource_list.resources:
                if res.kind != kind:
                    continue
                coord = KindCoordinate(group=res.group, version=res.version, resource=res.name)
                with self._lock.write_locked():
                    self._cache[kind] = coord
                logger.info("Cached kind %s -> %s/%s", kind, coord.api_version, coord.resource)
                return coord

        raise KindNotFoundError(kind)

    def cached(self) -> Dict[str, KindCoordinate]:
        with self._lock.read_locked():
            return dict(self._cache)
