from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from ..config_utils import env_int, env_optional_str, env_str


@dataclass(frozen=True)
class HelmToolConfig:
    """Runtime configuration for the Helm tools.

    Cluster selection is not configured here: Helm talks to whatever
    cluster the Kubernetes connection resolved to.

    Env vars:
    - HELM_BIN: helm executable name or path (default: helm)
    - HELM_DRIVER: release storage driver passed through to helm
    - HELM_TIMEOUT_SECONDS: subprocess timeout for one helm invocation
    """

    helm_bin: str
    driver: Optional[str]
    timeout_seconds: int

    DEFAULT_HELM_BIN: str = "helm"
    DEFAULT_TIMEOUT_SECONDS: int = 300

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "HelmToolConfig":
        env = os.environ if env is None else env
        return cls(
            helm_bin=env_str(env, "HELM_BIN", cls.DEFAULT_HELM_BIN),
            driver=env_optional_str(env, "HELM_DRIVER"),
            timeout_seconds=env_int(env, "HELM_TIMEOUT_SECONDS", cls.DEFAULT_TIMEOUT_SECONDS),
        )


__all__ = ["HelmToolConfig"]
