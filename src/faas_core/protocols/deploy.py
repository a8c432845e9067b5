"""Deployment protocol for function hosting backends."""

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Protocol, runtime_checkable


@dataclass
class ManifestFile:
    """A file of the build output uploaded to the deployment backend."""

    file: str  # path relative to the deployment root
    data: bytes


@dataclass
class UploadedFile:
    """Reference to an uploaded file, as passed to create_deployment."""

    file: str
    sha: str
    size: int

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "sha": self.sha, "size": self.size}


@dataclass
class RemoteDeployment:
    """Deployment as reported by the backend.

    ``status`` is the backend's raw ready state (READY, ERROR, QUEUED, ...).
    """

    id: str
    url: str
    status: str
    regions: list[str] = field(default_factory=list)
    error_message: str | None = None


@runtime_checkable
class DeploymentBackend(Protocol):
    """Protocol for deployment backends (Vercel, local directory)."""

    async def upload_file(self, content: bytes) -> str:
        """Upload file content and return its SHA-1 digest."""
        ...

    async def create_deployment(
        self,
        files: list[UploadedFile],
        function_name: str,
        regions: list[str] | None = None,
    ) -> RemoteDeployment:
        """Create a deployment referencing previously uploaded files."""
        ...

    async def get_deployment_status(self, deployment_id: str) -> RemoteDeployment:
        """Fetch the current state of a deployment."""
        ...

    async def delete_deployment(self, deployment_id: str) -> None:
        """Delete a deployment. A deployment that is already gone is not an error."""
        ...

    def stream_logs(self, deployment_id: str) -> AsyncIterator[dict[str, Any]]:
        """Iterate over runtime log entries of a deployment."""
        ...
