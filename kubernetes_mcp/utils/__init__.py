"""Kubernetes MCP utilities.

Business-logic helpers grouped by area:
- `connection`: credential source resolution
- `discovery`: API discovery + the kind resolution cache
- `resources`: kind-agnostic CRUD and rollout restart
- `logs` / `metrics`: pod logs and metrics.k8s.io reads
- `core_resources`: events and ingresses
- `helm_cli`: helm subprocess wrapper
"""

__all__ = [
	"clients",
	"connection",
	"core_resources",
	"discovery",
	"documents",
	"errors",
	"helm",
	"helm_cli",
	"helm_config",
	"logs",
	"metrics",
	"resources",
	"rest",
	"rwlock",
]
