"""Vercel Sandbox backend.

Talks to the Vercel Sandbox REST API. Requires an API token and the project
the sandboxes are billed to (via config).
"""

import io
import json
import tarfile
from typing import Any, AsyncIterator

import httpx

from faas_core.exceptions import SandboxError, SandboxNotFoundError
from faas_core.protocols.sandbox import CommandResult, LogLine, SandboxFile


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message", "Unknown error")
    return str(error or body)


def _tar_files(files: list[SandboxFile]) -> bytes:
    """Pack files into a gzipped tarball with absolute paths stripped of '/'."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for item in files:
            info = tarfile.TarInfo(name=item.path.lstrip("/"))
            info.size = len(item.content)
            tar.addfile(info, io.BytesIO(item.content))
    return buffer.getvalue()


class VercelDetachedCommand:
    """A command running in the background inside a Vercel sandbox."""

    def __init__(self, handle: "VercelSandboxHandle", command_id: str) -> None:
        self._handle = handle
        self._command_id = command_id

    @property
    def command_id(self) -> str:
        return self._command_id

    async def logs(self) -> AsyncIterator[LogLine]:
        """Stream NDJSON log entries until the command's output closes."""
        backend = self._handle.backend
        url = backend.url(f"/sandboxes/{self._handle.sandbox_id}/cmd/{self._command_id}/logs")
        async with backend.client(timeout=None) as client:
            async with client.stream(
                "GET", url, headers=backend.headers(), params=backend.params()
            ) as response:
                if response.status_code != 200:
                    await response.aread()
                    raise SandboxError(f"Failed to read command logs: {_error_message(response)}")
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        entry = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    yield LogLine(stream=entry.get("stream", "stdout"), data=entry.get("data", ""))

    async def wait(self) -> int:
        backend = self._handle.backend
        async with backend.client(timeout=None) as client:
            response = await client.get(
                backend.url(f"/sandboxes/{self._handle.sandbox_id}/cmd/{self._command_id}"),
                headers=backend.headers(),
                params={**backend.params(), "wait": "true"},
            )
        if response.status_code != 200:
            raise SandboxError(f"Failed to wait for command: {_error_message(response)}")
        command = response.json().get("command", {})
        exit_code = command.get("exitCode")
        return int(exit_code) if exit_code is not None else 1


class VercelSandboxHandle:
    """Connection to one Vercel sandbox."""

    def __init__(self, backend: "VercelSandboxBackend", sandbox_id: str) -> None:
        self.backend = backend
        self._sandbox_id = sandbox_id

    @property
    def sandbox_id(self) -> str:
        return self._sandbox_id

    async def _post(self, path: str, **kwargs: Any) -> httpx.Response:
        async with self.backend.client() as client:
            response = await client.post(
                self.backend.url(f"/sandboxes/{self._sandbox_id}{path}"),
                params=self.backend.params(),
                **kwargs,
            )
        if response.status_code == 404:
            raise SandboxNotFoundError(f"Sandbox not found: {self._sandbox_id}")
        return response

    async def write_files(self, files: list[SandboxFile]) -> None:
        headers = self.backend.headers()
        headers["Content-Type"] = "application/gzip"
        response = await self._post("/fs/write", headers=headers, content=_tar_files(files))
        if response.status_code not in (200, 201, 204):
            raise SandboxError(f"Failed to write files: {_error_message(response)}")

    async def run_command(
        self,
        cmd: str,
        args: list[str] | None = None,
        detached: bool = False,
    ) -> CommandResult | VercelDetachedCommand:
        response = await self._post(
            "/cmd",
            headers=self.backend.headers(),
            json={"command": cmd, "args": args or [], "env": {}},
        )
        if response.status_code not in (200, 201):
            raise SandboxError(f"Failed to start command: {_error_message(response)}")

        command = VercelDetachedCommand(self, response.json()["command"]["id"])
        if detached:
            return command

        stdout: list[str] = []
        stderr: list[str] = []
        async for line in command.logs():
            (stderr if line.stream == "stderr" else stdout).append(line.data)
        exit_code = await command.wait()
        return CommandResult(stdout="".join(stdout), stderr="".join(stderr), exit_code=exit_code)

    async def snapshot(self) -> str:
        response = await self._post("/snapshot", headers=self.backend.headers())
        if response.status_code not in (200, 201):
            raise SandboxError(f"Failed to snapshot sandbox: {_error_message(response)}")
        return response.json()["snapshot"]["id"]

    async def stop(self) -> None:
        response = await self._post("/stop", headers=self.backend.headers())
        if response.status_code not in (200, 201, 204):
            raise SandboxError(f"Failed to stop sandbox: {_error_message(response)}")


class VercelSandboxBackend:
    """Vercel Sandbox provider.

    Uses the Vercel REST API to create and drive sandboxes.
    Requires VERCEL_API_TOKEN and a project id (via config).
    """

    base_url = "https://api.vercel.com/v1"

    def __init__(
        self,
        api_token: str | None = None,
        project_id: str | None = None,
        team_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the Vercel sandbox backend.

        Args:
            api_token: Vercel API token
            project_id: Project the sandboxes belong to
            team_id: Optional team scope
            transport: Custom httpx transport (used by tests)
            **kwargs: Ignored

        Raises:
            ValueError: If required Vercel config is missing
        """
        if not api_token:
            raise ValueError(
                "Vercel sandbox requires api_token. Use 'local' backend for development."
            )
        if not project_id:
            raise ValueError("Vercel sandbox requires project_id")

        self.api_token = api_token
        self.project_id = project_id
        self.team_id = team_id
        self._transport = transport

    def headers(self) -> dict[str, str]:
        """Get API request headers."""
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    def params(self) -> dict[str, str]:
        return {"teamId": self.team_id} if self.team_id else {}

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def client(self, timeout: float | None = 30.0) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=timeout)

    async def create(
        self,
        runtime: str | None = None,
        snapshot_id: str | None = None,
        timeout_seconds: int | None = None,
    ) -> VercelSandboxHandle:
        """Create a sandbox from a runtime image or a snapshot.

        Raises:
            SandboxError: If creation fails
        """
        body: dict[str, Any] = {"projectId": self.project_id}
        if snapshot_id:
            body["source"] = {"type": "snapshot", "snapshotId": snapshot_id}
        else:
            body["runtime"] = runtime or "node24"
        if timeout_seconds:
            body["timeout"] = timeout_seconds * 1000

        async with self.client() as client:
            response = await client.post(
                self.url("/sandboxes"),
                headers=self.headers(),
                params=self.params(),
                json=body,
            )

        if response.status_code not in (200, 201):
            raise SandboxError(f"Failed to create sandbox: {_error_message(response)}")

        return VercelSandboxHandle(self, response.json()["sandbox"]["id"])

    async def get(self, sandbox_id: str) -> VercelSandboxHandle:
        """Attach to an existing sandbox.

        Raises:
            SandboxNotFoundError: If the sandbox no longer exists
        """
        async with self.client() as client:
            response = await client.get(
                self.url(f"/sandboxes/{sandbox_id}"),
                headers=self.headers(),
                params=self.params(),
            )

        if response.status_code == 404:
            raise SandboxNotFoundError(f"Sandbox not found: {sandbox_id}")
        if response.status_code != 200:
            raise SandboxError(f"Failed to get sandbox: {_error_message(response)}")

        return VercelSandboxHandle(self, sandbox_id)
