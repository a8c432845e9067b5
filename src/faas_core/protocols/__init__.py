"""Protocol interfaces for pluggable backends."""

from faas_core.protocols.deploy import (
    DeploymentBackend,
    ManifestFile,
    RemoteDeployment,
    UploadedFile,
)
from faas_core.protocols.kv_store import KVPipeline, KVStore
from faas_core.protocols.sandbox import (
    CommandResult,
    DetachedCommand,
    LogLine,
    SandboxBackend,
    SandboxFile,
    SandboxHandle,
)

__all__ = [
    "CommandResult",
    "DeploymentBackend",
    "DetachedCommand",
    "KVPipeline",
    "KVStore",
    "LogLine",
    "ManifestFile",
    "RemoteDeployment",
    "SandboxBackend",
    "SandboxFile",
    "SandboxHandle",
    "UploadedFile",
]
