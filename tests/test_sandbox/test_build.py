"""Tests for bundling user code."""

import pytest

from faas_core.events import collect
from faas_core.exceptions import BuildError
from faas_core.protocols.sandbox import LogLine
from faas_core.sandbox.build import ARTIFACT_PATH, BUILD_SCRIPT, build_code, read_bundled_code
from faas_core.sandbox.manager import SandboxManager

CODE = "export default () => new Response('ok')"


@pytest.fixture
def manager(sandbox_backend) -> SandboxManager:
    """Create a manager over the fake backend."""
    return SandboxManager(sandbox_backend)


class TestBuildCode:
    """Tests for build_code."""

    @pytest.mark.asyncio
    async def test_successful_build(self, manager, sandbox_backend) -> None:
        """A successful build logs its steps and ends with done."""
        sandbox_backend.handle_options["build_lines"] = [LogLine("stdout", "Bundled 1 module")]
        handle = await manager.create()

        events = await collect(build_code(manager, CODE, handle.sandbox_id))
        logs = [e.data for e in events if e.type == "log"]

        assert logs[:6] == [
            "Connecting to sandbox...",
            "Creating build directories...",
            "Setting up @faas/sdk...",
            "SDK ready",
            "Writing source code...",
            "Source code written to /tmp/src/handler.ts",
        ]
        assert "Checking Bun runtime..." in logs
        assert "Running bun build..." in logs
        assert "Bundled 1 module" in logs
        assert (events[-2].type, events[-2].data) == ("log", "Build completed successfully!")
        assert (events[-1].type, events[-1].data) == ("done", ARTIFACT_PATH)
        assert BUILD_SCRIPT in handle.scripts()

    def test_bundles_commonjs_for_node(self) -> None:
        """The bundle targets Node as CommonJS so the request adapter can embed it."""
        assert "--target=node" in BUILD_SCRIPT
        assert "--format=cjs" in BUILD_SCRIPT

    @pytest.mark.asyncio
    async def test_stderr_is_not_fatal(self, manager, sandbox_backend) -> None:
        """Bundler warnings surface as error events but the build still finishes."""
        sandbox_backend.handle_options["build_lines"] = [LogLine("stderr", "warning: unused")]
        handle = await manager.create()

        events = await collect(build_code(manager, CODE, handle.sandbox_id))

        assert ("error", "warning: unused") in [(e.type, e.data) for e in events]
        assert events[-1].type == "done"

    @pytest.mark.asyncio
    async def test_failed_build(self, manager, sandbox_backend) -> None:
        """A non-zero bundler exit ends with an error and never emits done."""
        sandbox_backend.handle_options["build_exit"] = 2
        handle = await manager.create()

        events = await collect(build_code(manager, CODE, handle.sandbox_id))

        assert "done" not in [e.type for e in events]
        assert (events[-1].type, events[-1].data) == ("error", "Build failed with exit code 2")

    @pytest.mark.asyncio
    async def test_install_failure(self, manager, sandbox_backend) -> None:
        """The install log is streamed and the bundler never runs."""
        sandbox_backend.handle_options.update(bun_installed=False, install_exit=1)
        handle = await manager.create()

        events = await collect(build_code(manager, CODE, handle.sandbox_id))

        logs = [e.data for e in events if e.type == "log"]
        assert "Bun installation failed with exit code 1" in logs
        assert (events[-1].type, events[-1].data) == ("error", "Failed to install Bun")
        assert BUILD_SCRIPT not in handle.scripts()

    @pytest.mark.asyncio
    async def test_missing_sandbox(self, manager) -> None:
        """A vanished sandbox ends the stream with an error."""
        events = await collect(build_code(manager, CODE, "sbx_missing"))

        assert events[0].data == "Connecting to sandbox..."
        assert events[-1].type == "error"


class TestReadBundledCode:
    """Tests for read_bundled_code."""

    @pytest.mark.asyncio
    async def test_reads_artifact(self, manager) -> None:
        """The artifact written by the bundler is returned."""
        handle = await manager.create()
        await collect(build_code(manager, CODE, handle.sandbox_id))

        assert await read_bundled_code(manager, handle.sandbox_id) == handle.bundle

    @pytest.mark.asyncio
    async def test_missing_artifact(self, manager) -> None:
        """Reading before a build raises BuildError."""
        handle = await manager.create()

        with pytest.raises(BuildError, match="Run build first"):
            await read_bundled_code(manager, handle.sandbox_id)
