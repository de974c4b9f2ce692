from __future__ import annotations

from typing import Any, Dict, List, Optional

from kubernetes.client import ApiException


class KubernetesMCPError(Exception):
    """Base class for every error raised by the access layer."""


class ConfigurationError(KubernetesMCPError):
    """No usable cluster connection could be built. Fatal at startup."""


class ManifestFormatError(KubernetesMCPError):
    """The manifest text is not valid JSON/YAML or not a mapping."""


class RequiredFieldError(KubernetesMCPError):
    pass


class KindNotFoundError(KubernetesMCPError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"resource type {kind} not found")
        self.kind = kind


class RolloutNotSupportedError(KubernetesMCPError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"resource kind {kind} does not support rollout restart (no spec.template)")
        self.kind = kind


class ClusterError(KubernetesMCPError):
    """An API server call failed. ``status`` is the HTTP status when known."""

    def __init__(self, message: str, *, status: Optional[int] = None, reason: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.reason = reason


class ResourceNotFoundError(ClusterError):
    pass


class PartialDiscoveryError(ClusterError):
    """Some group versions could not be discovered.

    ``resource_lists`` holds what was discovered; ``failed`` maps each
    failing group version to its error.
    """

    def __init__(self, resource_lists: List[Any], failed: Dict[str, Exception]) -> None:
        names = ", ".join(sorted(failed))
        super().__init__(f"unable to retrieve the complete list of server APIs: {names}")
        self.resource_lists = resource_lists
        self.failed = failed


def is_not_found(exc: BaseException) -> bool:
    if isinstance(exc, ResourceNotFoundError):
        return True
    return isinstance(exc, ApiException) and exc.status == 404


def cluster_error(exc: ApiException, context: str) -> ClusterError:
    """Wrap an ApiException, keeping the 404 distinction."""

    detail = (exc.reason or "").strip() or "unknown error"
    body = exc.body.decode("utf-8", "replace") if isinstance(exc.body, bytes) else exc.body
    if body:
        detail = f"{detail}: {str(body).strip()}"
    message = f"{context}: ({exc.status}) {detail}"
    cls = ResourceNotFoundError if exc.status == 404 else ClusterError
    return cls(message, status=exc.status, reason=exc.reason)


def error_payload(exc: KubernetesMCPError) -> Dict[str, Any]:
    out: Dict[str, Any] = {"ok": False, "error": str(exc), "errorType": type(exc).__name__}
    status = getattr(exc, "status", None)
    if status is not None:
        out["status"] = status
    return out
