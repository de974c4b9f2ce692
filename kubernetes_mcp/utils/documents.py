"""Helpers for unstructured resource documents.

A document is the JSON model of a manifest: nested dicts and lists with
str/int/float/bool/None leaves. Nothing here knows about specific kinds.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Dict, Optional

import yaml

from .errors import ManifestFormatError

Document = Dict[str, Any]

FORMATS = ("json", "yaml")


def nested_get(doc: Any, *path: str, default: Any = None) -> Any:
    cur = doc
    for key in path:
        if not isinstance(cur, dict) or key not in cur:
            return default
        cur = cur[key]
    return cur


def nested_set(doc: Document, value: Any, *path: str) -> None:
    """Set ``value`` at ``path``, creating (or replacing non-dict) parents."""

    if not path:
        raise ValueError("path must not be empty")
    cur = doc
    for key in path[:-1]:
        nxt = cur.get(key)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[key] = nxt
        cur = nxt
    cur[path[-1]] = value


def get_kind(doc: Document) -> str:
    kind = doc.get("kind")
    return kind if isinstance(kind, str) else ""


def get_name(doc: Document) -> str:
    name = nested_get(doc, "metadata", "name")
    return name if isinstance(name, str) else ""


def get_namespace(doc: Document) -> str:
    ns = nested_get(doc, "metadata", "namespace")
    return ns if isinstance(ns, str) else ""


def set_namespace(doc: Document, namespace: str) -> None:
    nested_set(doc, namespace, "metadata", "namespace")


def get_labels(doc: Document) -> Dict[str, str]:
    labels = nested_get(doc, "metadata", "labels")
    return dict(labels) if isinstance(labels, dict) else {}


def _to_json_model(value: Any) -> Any:
    # PyYAML resolves timestamps and non-string keys that JSON cannot carry.
    if isinstance(value, dict):
        return {str(k) if not isinstance(k, str) else k: _to_json_model(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json_model(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return value


def parse_manifest(text: str, fmt: str = "json") -> Document:
    """Parse manifest text into a document or raise ManifestFormatError."""

    fmt = (fmt or "json").lower()
    if fmt not in FORMATS:
        raise ManifestFormatError(f"unsupported manifest format {fmt!r}")

    if fmt == "json":
        try:
            data: Optional[Any] = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise ManifestFormatError(f"failed to parse resource manifest JSON: {exc}") from exc
    else:
        try:
            data = _to_json_model(yaml.safe_load(text))
        except yaml.YAMLError as exc:
            raise ManifestFormatError(f"failed to parse YAML manifest: {exc}") from exc

    if not isinstance(data, dict):
        raise ManifestFormatError(f"{fmt.upper()} manifest must be an object, got {type(data).__name__}")
    return data
