"""Plugin discovery via Python entry points."""

from importlib.metadata import entry_points
from typing import Any

from faas_core.exceptions import ConfigError
from faas_core.protocols import DeploymentBackend, KVStore, SandboxBackend

BACKEND_GROUPS = {
    "kv": "faas_core.backends.kv",
    "sandbox": "faas_core.backends.sandbox",
    "deploy": "faas_core.backends.deploy",
}


def discover_backends(group: str) -> dict[str, Any]:
    """Discover all registered backends for a given group.

    Args:
        group: The backend group name (kv, sandbox, deploy)

    Returns:
        Dictionary mapping backend names to their classes
    """
    full_group = BACKEND_GROUPS.get(group, group)
    eps = entry_points(group=full_group)
    return {ep.name: ep.load() for ep in eps}


def get_backend(group: str, name: str) -> Any:
    """Get a specific backend class by group and name.

    Raises:
        ConfigError: If the backend is not found
    """
    backends = discover_backends(group)
    if name not in backends:
        available = ", ".join(sorted(backends.keys())) or "(none)"
        raise ConfigError(
            f"Backend '{name}' not found in group '{group}'. Available: {available}"
        )
    return backends[name]


def create_kv_store(backend: str, **kwargs: Any) -> KVStore:
    """Create a KVStore instance (e.g. "memory", "redis")."""
    cls = get_backend("kv", backend)
    return cls(**kwargs)


def create_sandbox_backend(backend: str, **kwargs: Any) -> SandboxBackend:
    """Create a SandboxBackend instance (e.g. "local", "vercel")."""
    cls = get_backend("sandbox", backend)
    return cls(**kwargs)


def create_deployment_backend(backend: str, **kwargs: Any) -> DeploymentBackend:
    """Create a DeploymentBackend instance (e.g. "local", "vercel")."""
    cls = get_backend("deploy", backend)
    return cls(**kwargs)
