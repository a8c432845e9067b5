"""Vercel deployment backend (Build Output API)."""

import hashlib
import json
from datetime import datetime, timezone
from typing import Any, AsyncIterator

import httpx

from faas_core.exceptions import DeploymentError, DeploymentNotFoundError, UploadError
from faas_core.protocols.deploy import RemoteDeployment, UploadedFile


def sha1_hex(content: bytes) -> str:
    return hashlib.sha1(content).hexdigest()


class VercelDeploymentBackend:
    """Deploys prebuilt Build Output API files to a Vercel project.

    Requires VERCEL_API_TOKEN and VERCEL_WORKER_PROJECT_ID (via config).
    """

    base_url = "https://api.vercel.com"

    def __init__(
        self,
        api_token: str | None = None,
        project_id: str | None = None,
        team_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the Vercel deployment backend.

        Args:
            api_token: Vercel API token
            project_id: Project that receives the deployments
            team_id: Optional team scope
            transport: Custom httpx transport (used by tests)
            **kwargs: Ignored

        Raises:
            ValueError: If required Vercel config is missing
        """
        if not api_token:
            raise ValueError("Vercel api_token is required for vercel deploy backend")
        if not project_id:
            raise ValueError("Vercel project_id is required for vercel deploy backend")

        self.api_token = api_token
        self.project_id = project_id
        self.team_id = team_id
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        """Get API request headers."""
        return {"Authorization": f"Bearer {self.api_token}"}

    def _params(self) -> dict[str, str]:
        return {"teamId": self.team_id} if self.team_id else {}

    def _client(self, timeout: float | None = 30.0) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=timeout)

    @staticmethod
    def _to_remote(data: dict[str, Any]) -> RemoteDeployment:
        return RemoteDeployment(
            id=data["id"],
            url=f"https://{data.get('url', '')}",
            status=data.get("readyState", "QUEUED"),
            regions=list(data.get("regions") or []),
            error_message=data.get("errorMessage"),
        )

    async def upload_file(self, content: bytes) -> str:
        """Upload a file to the deployment file store, keyed by its SHA-1.

        Raises:
            UploadError: If the upload fails
        """
        digest = sha1_hex(content)
        headers = self._headers()
        headers["Content-Type"] = "application/octet-stream"
        headers["x-vercel-digest"] = digest

        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/v2/files",
                headers=headers,
                params=self._params(),
                content=content,
            )

        if response.status_code not in (200, 201):
            raise UploadError(f"Failed to upload file: {response.text}")

        return digest

    async def create_deployment(
        self,
        files: list[UploadedFile],
        function_name: str,
        regions: list[str] | None = None,
    ) -> RemoteDeployment:
        """Create a production deployment from uploaded files.

        Raises:
            DeploymentError: If the deployment is rejected
        """
        body: dict[str, Any] = {
            "name": self.project_id,
            "project": self.project_id,
            "files": [f.to_dict() for f in files],
            "target": "production",
            "meta": {
                "functionName": function_name,
                "deployedAt": datetime.now(timezone.utc).isoformat(),
            },
        }
        if regions:
            body["regions"] = regions

        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/v13/deployments",
                headers=self._headers(),
                params=self._params(),
                json=body,
            )

        if response.status_code not in (200, 201):
            raise DeploymentError(f"Failed to create deployment: {response.text}")

        return self._to_remote(response.json())

    async def get_deployment_status(self, deployment_id: str) -> RemoteDeployment:
        """Fetch a deployment's ready state.

        Raises:
            DeploymentNotFoundError: If the deployment does not exist
            DeploymentError: On any other failure
        """
        async with self._client() as client:
            response = await client.get(
                f"{self.base_url}/v13/deployments/{deployment_id}",
                headers=self._headers(),
                params=self._params(),
            )

        if response.status_code == 404:
            raise DeploymentNotFoundError(f"Deployment not found: {deployment_id}")
        if response.status_code != 200:
            raise DeploymentError(f"Failed to get deployment status: {response.text}")

        return self._to_remote(response.json())

    async def delete_deployment(self, deployment_id: str) -> None:
        """Delete a deployment; one that is already gone counts as deleted.

        Raises:
            DeploymentError: If the API refuses the delete
        """
        async with self._client() as client:
            response = await client.delete(
                f"{self.base_url}/v13/deployments/{deployment_id}",
                headers=self._headers(),
                params=self._params(),
            )

        if response.status_code == 404:
            return
        if response.status_code not in (200, 204):
            raise DeploymentError(f"Failed to delete deployment: {response.text}")

    async def stream_logs(self, deployment_id: str) -> AsyncIterator[dict[str, Any]]:
        """Stream runtime log entries (NDJSON); non-JSON lines are skipped.

        Raises:
            DeploymentError: If the log stream cannot be opened
        """
        headers = self._headers()
        headers["Accept"] = "application/stream+json"
        url = (
            f"{self.base_url}/v1/projects/{self.project_id}"
            f"/deployments/{deployment_id}/runtime-logs"
        )

        async with self._client(timeout=None) as client:
            async with client.stream("GET", url, headers=headers, params=self._params()) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    raise DeploymentError(
                        f"Failed to fetch deployment logs: {body.decode(errors='replace')}"
                    )
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        yield json.loads(line)
                    except json.JSONDecodeError:
                        continue
