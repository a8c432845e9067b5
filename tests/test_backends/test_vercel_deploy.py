"""Tests for the Vercel deployment backend."""

import json

import httpx
import pytest

from faas_core.backends.deploy.vercel import VercelDeploymentBackend, sha1_hex
from faas_core.exceptions import DeploymentError, DeploymentNotFoundError, UploadError
from faas_core.protocols.deploy import UploadedFile


def make_backend(handler) -> VercelDeploymentBackend:
    return VercelDeploymentBackend(
        api_token="token",
        project_id="prj_workers",
        transport=httpx.MockTransport(handler),
    )


class TestVercelDeploymentBackend:
    """Tests for VercelDeploymentBackend."""

    def test_requires_config(self) -> None:
        """Missing token or project raise ValueError."""
        with pytest.raises(ValueError):
            VercelDeploymentBackend(project_id="prj")
        with pytest.raises(ValueError):
            VercelDeploymentBackend(api_token="token")

    @pytest.mark.asyncio
    async def test_upload_file_sends_digest(self) -> None:
        """Uploads are keyed by their SHA-1 digest."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        digest = await make_backend(handler).upload_file(b"hello")

        assert digest == sha1_hex(b"hello")
        assert seen[0].url.path == "/v2/files"
        assert seen[0].headers["x-vercel-digest"] == digest
        assert seen[0].headers["Content-Type"] == "application/octet-stream"
        assert seen[0].content == b"hello"

    @pytest.mark.asyncio
    async def test_upload_failure(self) -> None:
        """A rejected upload raises UploadError."""
        backend = make_backend(lambda request: httpx.Response(500, text="nope"))
        with pytest.raises(UploadError):
            await backend.upload_file(b"x")

    @pytest.mark.asyncio
    async def test_create_deployment(self) -> None:
        """Create posts a production deployment and maps the response."""
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(
                200,
                json={"id": "dpl_1", "url": "w-abc.vercel.app", "readyState": "QUEUED", "regions": ["iad1"]},
            )

        files = [UploadedFile(file=".vercel/output/config.json", sha="abc", size=3)]
        remote = await make_backend(handler).create_deployment(files, "hello", regions=["iad1"])

        assert remote.id == "dpl_1"
        assert remote.url == "https://w-abc.vercel.app"
        assert remote.status == "QUEUED"
        assert remote.regions == ["iad1"]

        body = seen[0]
        assert body["project"] == "prj_workers"
        assert body["target"] == "production"
        assert body["files"] == [{"file": ".vercel/output/config.json", "sha": "abc", "size": 3}]
        assert body["meta"]["functionName"] == "hello"
        assert body["regions"] == ["iad1"]

    @pytest.mark.asyncio
    async def test_create_deployment_without_regions(self) -> None:
        """Regions are omitted from the request when not given."""
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "dpl_1", "url": "x.vercel.app"})

        await make_backend(handler).create_deployment([], "hello")

        assert "regions" not in seen[0]

    @pytest.mark.asyncio
    async def test_create_deployment_failure(self) -> None:
        """A rejected deployment raises DeploymentError."""
        backend = make_backend(lambda request: httpx.Response(400, text="bad files"))
        with pytest.raises(DeploymentError, match="bad files"):
            await backend.create_deployment([], "hello")

    @pytest.mark.asyncio
    async def test_get_status(self) -> None:
        """Status maps readyState and errorMessage."""
        backend = make_backend(
            lambda request: httpx.Response(
                200,
                json={"id": "dpl_1", "url": "x.vercel.app", "readyState": "ERROR", "errorMessage": "boom"},
            )
        )
        remote = await backend.get_deployment_status("dpl_1")

        assert remote.status == "ERROR"
        assert remote.error_message == "boom"

    @pytest.mark.asyncio
    async def test_get_status_not_found(self) -> None:
        """A 404 raises DeploymentNotFoundError."""
        backend = make_backend(lambda request: httpx.Response(404, json={}))
        with pytest.raises(DeploymentNotFoundError):
            await backend.get_deployment_status("dpl_gone")

    @pytest.mark.asyncio
    async def test_delete_treats_404_as_deleted(self) -> None:
        """Deleting an already-deleted deployment succeeds."""
        backend = make_backend(lambda request: httpx.Response(404, json={}))
        await backend.delete_deployment("dpl_gone")

    @pytest.mark.asyncio
    async def test_delete_failure(self) -> None:
        """Other delete failures raise DeploymentError."""
        backend = make_backend(lambda request: httpx.Response(403, text="forbidden"))
        with pytest.raises(DeploymentError):
            await backend.delete_deployment("dpl_1")

    @pytest.mark.asyncio
    async def test_stream_logs(self) -> None:
        """Runtime logs are parsed line by line; bad lines are skipped."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            body = "\n".join([
                json.dumps({"level": "info", "message": "one"}),
                "garbage",
                "",
                json.dumps({"level": "error", "message": "two"}),
            ])
            return httpx.Response(200, content=body.encode())

        entries = [e async for e in make_backend(handler).stream_logs("dpl_1")]

        assert [e["message"] for e in entries] == ["one", "two"]
        assert seen[0].url.path == "/v1/projects/prj_workers/deployments/dpl_1/runtime-logs"
        assert seen[0].headers["Accept"] == "application/stream+json"

    @pytest.mark.asyncio
    async def test_stream_logs_failure(self) -> None:
        """A failed log request raises DeploymentError."""
        backend = make_backend(lambda request: httpx.Response(500, text="down"))
        with pytest.raises(DeploymentError, match="down"):
            async for _ in backend.stream_logs("dpl_1"):
                pass
