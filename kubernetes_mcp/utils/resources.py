"""Kind-agnostic CRUD over unstructured documents.

Every call resolves the kind name through the shared KindResolutionCache
and then talks to the REST path for that coordinate directly, so built-in
kinds and CRDs go through the same code.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from kubernetes import client
from kubernetes.client import ApiException

from . import documents
from .discovery import KindCoordinate, KindResolutionCache
from .documents import Document
from .errors import (
    ClusterError,
    RequiredFieldError,
    RolloutNotSupportedError,
    cluster_error,
    is_not_found,
)
from .rest import MERGE_PATCH, STRATEGIC_MERGE_PATCH, rest_call

logger = logging.getLogger(__name__)

RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"


def collection_path(coord: KindCoordinate, namespace: str = "") -> str:
    base = f"/apis/{coord.group}/{coord.version}" if coord.group else f"/api/{coord.version}"
    if namespace:
        return f"{base}/namespaces/{namespace}/{coord.resource}"
    return f"{base}/{coord.resource}"


def object_path(coord: KindCoordinate, name: str, namespace: str = "") -> str:
    return f"{collection_path(coord, namespace)}/{name}"


def _ref(namespace: str, name: str) -> str:
    return f"{namespace}/{name}" if namespace else name


class ApplyState(enum.Enum):
    PENDING = "pending"
    APPLIED = "applied"
    NOT_FOUND = "not-found"
    FAILED = "failed"


@dataclass
class ApplyPlan:
    """Patch-first, create-on-not-found, as explicit steps.

    ``PENDING --patch--> APPLIED | NOT_FOUND | FAILED``
    ``NOT_FOUND --create--> APPLIED | FAILED``

    ``patch`` and ``create`` are the two cluster calls; each takes the
    document and returns the stored object.
    """

    document: Document
    patch: Callable[[Document], Document]
    create: Callable[[Document], Document]
    state: ApplyState = ApplyState.PENDING
    result: Optional[Document] = None
    error: Optional[Exception] = None
    steps: List[str] = field(default_factory=list)

    def attempt_patch(self) -> ApplyState:
        if self.state is not ApplyState.PENDING:
            raise RuntimeError(f"patch is only valid from PENDING, not {self.state.value}")
        self.steps.append("patch")
        try:
            self.result = self.patch(self.document)
        except ClusterError as exc:
            self.error = exc
            self.state = ApplyState.NOT_FOUND if is_not_found(exc) else ApplyState.FAILED
        else:
            self.state = ApplyState.APPLIED
        return self.state

    def attempt_create(self) -> ApplyState:
        if self.state is not ApplyState.NOT_FOUND:
            raise RuntimeError(f"create is only valid from NOT_FOUND, not {self.state.value}")
        self.steps.append("create")
        try:
            self.result = self.create(self.document)
        except ClusterError as exc:
            self.error = exc
            self.state = ApplyState.FAILED
        else:
            self.error = None
            self.state = ApplyState.APPLIED
        return self.state

    def run(self) -> Document:
        if self.attempt_patch() is ApplyState.NOT_FOUND:
            logger.info(
                "%s %s not found, creating it",
                documents.get_kind(self.document) or "object",
                _ref(documents.get_namespace(self.document), documents.get_name(self.document)),
            )
            self.attempt_create()
        if self.state is ApplyState.FAILED and self.error is not None:
            raise self.error
        return self.result or {}


class DynamicResourceAccessor:
    def __init__(self, api_client: client.ApiClient, kinds: KindResolutionCache) -> None:
        self._api_client = api_client
        self._kinds = kinds

    def _call(self, context: str, method: str, path: str, **kwargs: Any) -> Any:
        try:
            return rest_call(self._api_client, method, path, **kwargs)
        except ApiException as exc:
            raise cluster_error(exc, context) from exc

    def get(self, kind: str, name: str, namespace: str = "", *, timeout: Optional[float] = None) -> Document:
        coord = self._kinds.resolve(kind, timeout=timeout)
        return self._call(
            f"failed to retrieve {kind} {_ref(namespace, name)}",
            "GET",
            object_path(coord, name, namespace),
            timeout=timeout,
        )

    def list(
        self,
        kind: str,
        namespace: str = "",
        label_selector: str = "",
        field_selector: str = "",
        *,
        timeout: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """List objects of a kind as light projections, not full documents."""

        coord = self._kinds.resolve(kind, timeout=timeout)
        query = []
        if label_selector:
            query.append(("labelSelector", label_selector))
        if field_selector:
            query.append(("fieldSelector", field_selector))

        data = self._call(
            f"failed to list {kind}",
            "GET",
            collection_path(coord, namespace),
            query=query,
            timeout=timeout,
        ) or {}

        list_kind = data.get("kind") or ""
        item_kind = list_kind[: -len("List")] if list_kind.endswith("List") else kind
        out: List[Dict[str, Any]] = []
        for item in data.get("items") or []:
            out.append(
                {
                    "name": documents.get_name(item),
                    "kind": documents.get_kind(item) or item_kind,
                    "namespace": documents.get_namespace(item),
                    "labels": documents.get_labels(item),
                }
            )
        return out

    def ensure_namespace(self, namespace: str, *, timeout: Optional[float] = None) -> bool:
        """Create ``namespace`` when absent. Returns True if it was created."""

        try:
            rest_call(self._api_client, "GET", f"/api/v1/namespaces/{namespace}", timeout=timeout)
            return False
        except ApiException as exc:
            if exc.status != 404:
                raise cluster_error(exc, f"failed to retrieve namespace {namespace}") from exc

        logger.info("Namespace %s does not exist, creating it", namespace)
        body = {
            "apiVersion": "v1",
            "kind": "Namespace",
            "metadata": {"name": namespace, "labels": {"kubernetes.io/metadata.name": namespace}},
        }
        self._call(f"failed to create namespace {namespace}", "POST", "/api/v1/namespaces", body=body, timeout=timeout)
        return True

    def apply_plan(self, coord: KindCoordinate, document: Document, *, timeout: Optional[float] = None) -> ApplyPlan:
        name = documents.get_name(document)
        namespace = documents.get_namespace(document)
        kind = documents.get_kind(document) or coord.resource
        ref = _ref(namespace, name)

        def patch(doc: Document) -> Document:
            return self._call(
                f"failed to patch {kind} {ref}",
                "PATCH",
                object_path(coord, name, namespace),
                body=doc,
                content_type=MERGE_PATCH,
                timeout=timeout,
            )

        def create(doc: Document) -> Document:
            return self._call(
                f"failed to create {kind} {ref}",
                "POST",
                collection_path(coord, namespace),
                body=doc,
                timeout=timeout,
            )

        return ApplyPlan(document=document, patch=patch, create=create)

    def create_or_update(
        self,
        manifest: str,
        namespace: str = "",
        kind: str = "",
        fmt: str = "json",
        *,
        timeout: Optional[float] = None,
    ) -> Document:
        """Create a resource from a manifest, or merge-patch it if it exists.

        ``kind`` overrides the manifest's own ``kind``; ``namespace``
        overrides ``metadata.namespace``. JSON input also creates the
        target namespace when it is missing; YAML input does not.
        """

        document = documents.parse_manifest(manifest, fmt)

        effective_kind = kind or documents.get_kind(document)
        if not effective_kind:
            raise RequiredFieldError(
                "resource kind is required: either provide it as a parameter or include it in the manifest"
            )
        coord = self._kinds.resolve(effective_kind, timeout=timeout)
        document.setdefault("kind", effective_kind)
        document.setdefault("apiVersion", coord.api_version)

        if namespace:
            documents.set_namespace(document, namespace)
        target_ns = documents.get_namespace(document)
        if fmt.lower() == "json" and target_ns:
            self.ensure_namespace(target_ns, timeout=timeout)

        if not documents.get_name(document):
            raise RequiredFieldError("resource name is required in manifest metadata.name")

        return self.apply_plan(coord, document, timeout=timeout).run()

    def delete(self, kind: str, name: str, namespace: str = "", *, timeout: Optional[float] = None) -> Any:
        coord = self._kinds.resolve(kind, timeout=timeout)
        return self._call(
            f"failed to delete {kind} {_ref(namespace, name)}",
            "DELETE",
            object_path(coord, name, namespace),
            timeout=timeout,
        )

    def rollout_restart(self, kind: str, name: str, namespace: str, *, timeout: Optional[float] = None) -> Document:
        """Stamp a restart annotation onto the pod template.

        The template check runs on the patched result, so a kind without
        ``spec.template`` is still patched before the error is raised.
        """

        coord = self._kinds.resolve(kind, timeout=timeout)
        restarted_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        patch = {"spec": {"template": {"metadata": {"annotations": {RESTARTED_AT_ANNOTATION: restarted_at}}}}}

        result = self._call(
            f"failed to rollout restart {kind} {_ref(namespace, name)}",
            "PATCH",
            object_path(coord, name, namespace),
            body=patch,
            content_type=STRATEGIC_MERGE_PATCH,
            timeout=timeout,
        )
        if not isinstance(documents.nested_get(result, "spec", "template"), dict):
            raise RolloutNotSupportedError(kind)
        return result
