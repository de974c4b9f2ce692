from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HelmExecConfig:
    helm_bin: str = "helm"
    kubeconfig: Optional[str] = None
    kubecontext: Optional[str] = None
    kube_apiserver: Optional[str] = None
    kube_token: Optional[str] = None
    kube_ca_file: Optional[str] = None
    kube_insecure: bool = False
    driver: Optional[str] = None
    timeout_seconds: int = 300

    def global_args(self) -> List[str]:
        args: List[str] = []
        if self.kubeconfig:
            args.extend(["--kubeconfig", self.kubeconfig])
        if self.kubecontext:
            args.extend(["--kube-context", self.kubecontext])
        if self.kube_apiserver:
            args.extend(["--kube-apiserver", self.kube_apiserver])
        if self.kube_token:
            args.extend(["--kube-token", self.kube_token])
        if self.kube_ca_file:
            args.extend(["--kube-ca-file", self.kube_ca_file])
        if self.kube_insecure:
            args.append("--kube-insecure-skip-tls-verify")
        return args


class HelmCliError(RuntimeError):
    pass


def _redact(cmd: Sequence[str]) -> List[str]:
    out = list(cmd)
    for i, part in enumerate(out[:-1]):
        if part == "--kube-token":
            out[i + 1] = "***"
    return out


def _normalize_kube_unreachable_error(*, code: int, stdout: str, stderr: str, command: Sequence[str]) -> Optional[Dict[str, Any]]:
    """Turn helm's generic connection failures into a clearer error."""

    combined = "\n".join([stderr or "", stdout or ""]).strip().lower()
    patterns = [
        "kubernetes cluster unreachable",
        "http://localhost:8080/version",
        "the connection to the server localhost:8080",
        "dial tcp",
    ]
    if not combined or not any(p in combined for p in patterns):
        return None

    raw = (stderr or "").strip() or (stdout or "").strip() or f"helm exited {code}"
    return {
        "ok": False,
        "error": "Kubernetes cluster unreachable.",
        "details": raw,
        "hint": "Check KUBECONFIG_DATA, KUBERNETES_SERVER/KUBERNETES_TOKEN, the in-cluster service account or the kubeconfig file.",
        "command": _redact(command),
        "exit_code": int(code),
    }


def _build_env(cfg: HelmExecConfig) -> Dict[str, str]:
    env = dict(os.environ)
    if cfg.kubeconfig:
        env["KUBECONFIG"] = cfg.kubeconfig
    if cfg.driver:
        env["HELM_DRIVER"] = cfg.driver
    return env


def _resolve_helm_bin(cfg: HelmExecConfig) -> str:
    p = Path(cfg.helm_bin)
    if p.is_file():
        return str(p)
    found = shutil.which(cfg.helm_bin)
    if found:
        return found
    raise HelmCliError(f"Helm binary not found: {cfg.helm_bin}")


def _run(cfg: HelmExecConfig, args: Sequence[str], *, stdin: Optional[str] = None) -> Tuple[int, str, str, List[str]]:
    """Run `helm <args>` and return (code, stdout, stderr, command)."""

    cmd = [_resolve_helm_bin(cfg), *cfg.global_args(), *list(args)]
    logger.info("Running helm %s", " ".join(args))
    try:
        proc = subprocess.run(
            cmd,
            input=stdin,
            capture_output=True,
            text=True,
            env=_build_env(cfg),
            timeout=cfg.timeout_seconds,
        )
    except subprocess.TimeoutExpired as exc:
        raise HelmCliError(f"Helm command timed out after {cfg.timeout_seconds}s: {' '.join(_redact(cmd))}") from exc

    return int(proc.returncode), (proc.stdout or ""), (proc.stderr or ""), cmd


def _failure(code: int, out: str, err: str, command: Sequence[str]) -> Dict[str, Any]:
    normalized = _normalize_kube_unreachable_error(code=code, stdout=out, stderr=err, command=command)
    if normalized:
        return normalized
    return {"ok": False, "error": err.strip() or out.strip() or f"helm exited {code}", "command": _redact(command), "exit_code": int(code)}


def run_json(cfg: HelmExecConfig, args: Sequence[str], *, stdin: Optional[str] = None) -> Dict[str, Any]:
    try:
        code, out, err, command = _run(cfg, args, stdin=stdin)
    except HelmCliError as exc:
        return {"ok": False, "error": str(exc)}
    if code != 0:
        return _failure(code, out, err, command)

    text = out.strip()
    if not text:
        return {"ok": True, "data": None}
    try:
        return {"ok": True, "data": json.loads(text)}
    except ValueError:
        # Some helm subcommands return non-JSON even with -o json; return as text.
        return {"ok": True, "data": None, "text": text}


def run_text(cfg: HelmExecConfig, args: Sequence[str]) -> Dict[str, Any]:
    try:
        code, out, err, command = _run(cfg, args)
    except HelmCliError as exc:
        return {"ok": False, "error": str(exc)}
    if code != 0:
        return _failure(code, out, err, command)
    return {"ok": True, "text": out}


def _ns_args(namespace: Optional[str]) -> List[str]:
    return ["--namespace", namespace] if namespace else []


def _values_stdin(values: Optional[Dict[str, Any]]) -> Tuple[List[str], Optional[str]]:
    if not values:
        return [], None
    return ["--values", "-"], yaml.safe_dump(values, sort_keys=False)


def list_releases(cfg: HelmExecConfig, *, namespace: Optional[str] = None) -> Dict[str, Any]:
    args = ["list", "-o", "json"]
    args.extend(_ns_args(namespace) if namespace else ["--all-namespaces"])
    result = run_json(cfg, args)
    if not result.get("ok"):
        return result
    data = result.get("data")
    return {"ok": True, "releases": data if isinstance(data, list) else []}


def get_release(cfg: HelmExecConfig, release: str, *, namespace: Optional[str] = None) -> Dict[str, Any]:
    result = run_json(cfg, ["status", release, "-o", "json", *_ns_args(namespace)])
    if not result.get("ok"):
        return result
    return {"ok": True, "release": result.get("data")}


def get_history(cfg: HelmExecConfig, release: str, *, namespace: Optional[str] = None) -> Dict[str, Any]:
    result = run_json(cfg, ["history", release, "-o", "json", *_ns_args(namespace)])
    if not result.get("ok"):
        return result
    data = result.get("data")
    return {"ok": True, "history": data if isinstance(data, list) else []}


def install(
    cfg: HelmExecConfig,
    release: str,
    chart: str,
    *,
    namespace: Optional[str] = None,
    repo_url: Optional[str] = None,
    values: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    args: List[str] = ["install", release, chart, "-o", "json", "--create-namespace", *_ns_args(namespace)]
    if repo_url:
        args.extend(["--repo", repo_url])
    values_args, stdin = _values_stdin(values)
    args.extend(values_args)
    result = run_json(cfg, args, stdin=stdin)
    if not result.get("ok"):
        return result
    return {"ok": True, "release": result.get("data")}


def upgrade(
    cfg: HelmExecConfig,
    release: str,
    chart: str,
    *,
    namespace: Optional[str] = None,
    repo_url: Optional[str] = None,
    values: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    args: List[str] = ["upgrade", release, chart, "-o", "json", *_ns_args(namespace)]
    if repo_url:
        args.extend(["--repo", repo_url])
    values_args, stdin = _values_stdin(values)
    args.extend(values_args)
    result = run_json(cfg, args, stdin=stdin)
    if not result.get("ok"):
        return result
    return {"ok": True, "release": result.get("data")}


def uninstall(cfg: HelmExecConfig, release: str, *, namespace: Optional[str] = None) -> Dict[str, Any]:
    return run_text(cfg, ["uninstall", release, *_ns_args(namespace)])


def rollback(cfg: HelmExecConfig, release: str, *, namespace: Optional[str] = None, revision: int = 0) -> Dict[str, Any]:
    """Roll back to ``revision``; 0 means the previous revision."""

    args: List[str] = ["rollback", release]
    if int(revision) > 0:
        args.append(str(int(revision)))
    args.extend(_ns_args(namespace))
    return run_text(cfg, args)


def repo_list(cfg: HelmExecConfig) -> Dict[str, Any]:
    result = run_json(cfg, ["repo", "list", "-o", "json"])
    if not result.get("ok"):
        # helm exits 1 when no repositories are configured
        if "no repositories" in str(result.get("error", "")).lower():
            return {"ok": True, "repos": []}
        return result
    data = result.get("data")
    return {"ok": True, "repos": data if isinstance(data, list) else []}


def repo_add(cfg: HelmExecConfig, name: str, url: str) -> Dict[str, Any]:
    existing = repo_list(cfg)
    if existing.get("ok") and any(r.get("name") == name for r in existing.get("repos", [])):
        return {"ok": True, "name": name, "alreadyExists": True}
    result = run_text(cfg, ["repo", "add", name, url])
    if not result.get("ok"):
        return result
    return {"ok": True, "name": name, "url": url, "text": result.get("text", "")}
