"""Local deployment backend for development.

Uploaded files are kept in a content-addressed store on disk and each
deployment is materialized as a directory holding its Build Output tree.
"""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, AsyncIterator
from uuid import uuid4

from faas_core.backends.deploy.vercel import sha1_hex
from faas_core.exceptions import DeploymentNotFoundError, UploadError
from faas_core.protocols.deploy import RemoteDeployment, UploadedFile


class LocalDeploymentBackend:
    """Writes deployments to a directory and reports them ready immediately."""

    def __init__(self, output_path: str | None = None, **kwargs: Any) -> None:
        """Initialize local deployment backend.

        Args:
            output_path: Root directory (temp dir if unset)
            **kwargs: Ignored (for compatibility with other backends)
        """
        self.root = Path(output_path) if output_path else Path(tempfile.mkdtemp(prefix="faas-deploy-"))
        self._files_dir = self.root / "files"
        self._deployments_dir = self.root / "deployments"
        self._files_dir.mkdir(parents=True, exist_ok=True)
        self._deployments_dir.mkdir(parents=True, exist_ok=True)

    def _meta_path(self, deployment_id: str) -> Path:
        return self._deployments_dir / deployment_id / "deployment.json"

    def _read_meta(self, deployment_id: str) -> dict[str, Any]:
        path = self._meta_path(deployment_id)
        if not path.exists():
            raise DeploymentNotFoundError(f"Deployment not found: {deployment_id}")
        return json.loads(path.read_text())

    async def upload_file(self, content: bytes) -> str:
        digest = sha1_hex(content)
        (self._files_dir / digest).write_bytes(content)
        return digest

    async def create_deployment(
        self,
        files: list[UploadedFile],
        function_name: str,
        regions: list[str] | None = None,
    ) -> RemoteDeployment:
        deployment_id = f"dpl_{uuid4().hex[:16]}"
        target = self._deployments_dir / deployment_id
        target.mkdir(parents=True)

        for ref in files:
            source = self._files_dir / ref.sha
            if not source.exists():
                raise UploadError(f"File was not uploaded: {ref.file} ({ref.sha})")
            dest = target / ref.file
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, dest)

        meta = {
            "id": deployment_id,
            "url": target.as_uri(),
            "readyState": "READY",
            "regions": list(regions or []),
            "functionName": function_name,
        }
        self._meta_path(deployment_id).write_text(json.dumps(meta, indent=2))
        return self._to_remote(meta)

    @staticmethod
    def _to_remote(meta: dict[str, Any]) -> RemoteDeployment:
        return RemoteDeployment(
            id=meta["id"],
            url=meta["url"],
            status=meta["readyState"],
            regions=list(meta.get("regions") or []),
        )

    async def get_deployment_status(self, deployment_id: str) -> RemoteDeployment:
        return self._to_remote(self._read_meta(deployment_id))

    async def delete_deployment(self, deployment_id: str) -> None:
        shutil.rmtree(self._deployments_dir / deployment_id, ignore_errors=True)

    async def stream_logs(self, deployment_id: str) -> AsyncIterator[dict[str, Any]]:
        """Local deployments do not run, so there are no runtime logs."""
        self._read_meta(deployment_id)
        return
        yield
