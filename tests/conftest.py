"""Pytest configuration and fixtures."""

import asyncio
from typing import Any, AsyncIterator

import pytest

from faas_core.backends.kv.memory import MemoryKVStore
from faas_core.config import Config
from faas_core.exceptions import DeploymentNotFoundError, SandboxError, SandboxNotFoundError
from faas_core.protocols.deploy import RemoteDeployment, UploadedFile
from faas_core.protocols.sandbox import CommandResult, LogLine, SandboxFile
from faas_core.sandbox.build import ARTIFACT_PATH
from faas_core.service import Playground


@pytest.fixture
def sample_config_dict():
    """Sample configuration dictionary for testing."""
    return {
        "sandbox": {
            "backend": "local",
            "runtime": "node24",
            "session_timeout_seconds": 300,
            "grace_seconds": 120,
        },
        "deploy": {
            "backend": "local",
            "poll_interval_seconds": 0,
            "poll_max_attempts": 3,
        },
        "storage": {"kv": {"backend": "memory", "key_prefix": "test"}},
        "logging": {"level": "DEBUG", "format": "text"},
    }


class FakeClock:
    """Settable clock in epoch seconds."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDetachedCommand:
    """Detached command that replays scripted output."""

    def __init__(self, lines: list[LogLine], exit_code: int) -> None:
        self._lines = lines
        self._exit_code = exit_code

    @property
    def command_id(self) -> str:
        return "cmd_fake"

    async def logs(self) -> AsyncIterator[LogLine]:
        for line in self._lines:
            yield line

    async def wait(self) -> int:
        return self._exit_code


class FakeSandboxHandle:
    """In-memory sandbox that understands the toolchain's shell scripts."""

    def __init__(
        self,
        backend: "FakeSandboxBackend",
        sandbox_id: str,
        bun_installed: bool = True,
        install_exit: int = 0,
        run_lines: list[LogLine] | None = None,
        run_exit: int = 0,
        build_lines: list[LogLine] | None = None,
        build_exit: int = 0,
        bundle: str = "module.exports = { default: () => new Response('ok') };",
        snapshot_fails: bool = False,
        fail_on: str | None = None,
    ) -> None:
        self._backend = backend
        self._sandbox_id = sandbox_id
        self.bun_installed = bun_installed
        self.install_exit = install_exit
        self.run_lines = run_lines if run_lines is not None else [LogLine("stdout", "hi\n")]
        self.run_exit = run_exit
        self.build_lines = build_lines or []
        self.build_exit = build_exit
        self.bundle = bundle
        self.snapshot_fails = snapshot_fails
        self.fail_on = fail_on
        self.files: dict[str, bytes] = {}
        self.commands: list[tuple[str, list[str], bool]] = []
        self.stopped = False

    @property
    def sandbox_id(self) -> str:
        return self._sandbox_id

    def scripts(self) -> list[str]:
        """Shell scripts passed to ``sh -c`` so far."""
        return [args[1] for cmd, args, _ in self.commands if cmd == "sh"]

    async def write_files(self, files: list[SandboxFile]) -> None:
        for item in files:
            self.files[item.path] = item.content

    async def run_command(
        self,
        cmd: str,
        args: list[str] | None = None,
        detached: bool = False,
    ) -> CommandResult | FakeDetachedCommand:
        args = list(args or [])
        self.commands.append((cmd, args, detached))
        script = args[1] if cmd == "sh" and len(args) > 1 else ""

        if self.fail_on and (self.fail_on in script or self.fail_on == cmd):
            raise SandboxError(f"{self.fail_on} failed")

        if cmd == "cat":
            content = self.files.get(args[0])
            if content is None:
                return CommandResult(stdout="", stderr="No such file", exit_code=1)
            return CommandResult(stdout=content.decode(), stderr="", exit_code=0)

        if "which bun" in script:
            if self.bun_installed:
                return CommandResult(stdout="/home/.bun/bin/bun\n", stderr="", exit_code=0)
            return CommandResult(stdout="", stderr="", exit_code=1)

        if "bun.sh/install" in script:
            if self.install_exit == 0:
                self.bun_installed = True
                return CommandResult(stdout="bun was installed", stderr="", exit_code=0)
            return CommandResult(stdout="", stderr="curl: (6) Could not resolve host", exit_code=self.install_exit)

        if "bun --version" in script:
            return CommandResult(stdout="1.1.0\n", stderr="", exit_code=0)

        if "bun build" in script:
            if self.build_exit == 0:
                self.files[ARTIFACT_PATH] = self.bundle.encode()
            return FakeDetachedCommand(self.build_lines, self.build_exit)

        if "bun -e" in script:
            return FakeDetachedCommand(self.run_lines, self.run_exit)

        return CommandResult(stdout="", stderr="", exit_code=0)

    async def snapshot(self) -> str:
        if self.snapshot_fails:
            raise SandboxError("snapshot failed")
        snapshot_id = f"snap_{self._sandbox_id}"
        await self.stop()
        return snapshot_id

    async def stop(self) -> None:
        if self.stopped:
            raise SandboxNotFoundError(f"Sandbox not found: {self._sandbox_id}")
        self.stopped = True
        self._backend.handles.pop(self._sandbox_id, None)


class FakeSandboxBackend:
    """Sandbox backend that hands out FakeSandboxHandles.

    ``handle_options`` are passed to every new handle.
    """

    def __init__(self, **handle_options: Any) -> None:
        self.handle_options = handle_options
        self.handles: dict[str, FakeSandboxHandle] = {}
        self.created: list[dict[str, Any]] = []
        self.create_error: Exception | None = None

    async def create(
        self,
        runtime: str | None = None,
        snapshot_id: str | None = None,
        timeout_seconds: int | None = None,
    ) -> FakeSandboxHandle:
        if self.create_error is not None:
            raise self.create_error
        self.created.append(
            {"runtime": runtime, "snapshot_id": snapshot_id, "timeout_seconds": timeout_seconds}
        )
        handle = FakeSandboxHandle(self, f"sbx_{len(self.created)}", **self.handle_options)
        self.handles[handle.sandbox_id] = handle
        return handle

    async def get(self, sandbox_id: str) -> FakeSandboxHandle:
        handle = self.handles.get(sandbox_id)
        if handle is None:
            raise SandboxNotFoundError(f"Sandbox not found: {sandbox_id}")
        return handle


class FakeDeploymentBackend:
    """Deployment backend with a scripted sequence of ready states."""

    def __init__(
        self,
        initial_state: str = "READY",
        states: list[str] | None = None,
        regions: list[str] | None = None,
    ) -> None:
        self.initial_state = initial_state
        self.states = list(states or [])
        self.regions = list(regions or [])
        self.uploads: list[bytes] = []
        self.created: list[dict[str, Any]] = []
        self.deleted: list[str] = []
        self.status_calls = 0
        self.delete_error: Exception | None = None
        self.status_error: Exception | None = None
        self.log_entries: list[dict[str, Any]] = []
        self.log_error: Exception | None = None
        self.create_delay = 0.0

    async def upload_file(self, content: bytes) -> str:
        self.uploads.append(content)
        return f"sha{len(self.uploads)}"

    async def create_deployment(
        self,
        files: list[UploadedFile],
        function_name: str,
        regions: list[str] | None = None,
    ) -> RemoteDeployment:
        deployment_id = f"dpl_{len(self.created) + 1}"
        self.created.append({"files": files, "function_name": function_name, "regions": regions})
        if self.create_delay:
            await asyncio.sleep(self.create_delay)
        return RemoteDeployment(
            id=deployment_id,
            url=f"https://{deployment_id}.example.app",
            status=self.initial_state,
            regions=self.regions,
        )

    async def get_deployment_status(self, deployment_id: str) -> RemoteDeployment:
        self.status_calls += 1
        if self.status_error is not None:
            raise self.status_error
        state = self.states.pop(0) if self.states else "BUILDING"
        return RemoteDeployment(
            id=deployment_id,
            url=f"https://{deployment_id}.example.app",
            status=state,
            regions=self.regions,
            error_message="boom" if state == "ERROR" else None,
        )

    async def delete_deployment(self, deployment_id: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(deployment_id)

    async def stream_logs(self, deployment_id: str) -> AsyncIterator[dict[str, Any]]:
        if deployment_id.startswith("missing"):
            raise DeploymentNotFoundError(deployment_id)
        for entry in self.log_entries:
            yield entry
        if self.log_error is not None:
            raise self.log_error


@pytest.fixture
def clock() -> FakeClock:
    """Create a settable clock."""
    return FakeClock()


@pytest.fixture
def sandbox_backend() -> FakeSandboxBackend:
    """Create a fake sandbox backend."""
    return FakeSandboxBackend()


@pytest.fixture
def deploy_backend() -> FakeDeploymentBackend:
    """Create a fake deployment backend."""
    return FakeDeploymentBackend()


@pytest.fixture
def kv_store() -> MemoryKVStore:
    """Create a memory KV store."""
    return MemoryKVStore()


@pytest.fixture
def playground(
    sample_config_dict,
    sandbox_backend: FakeSandboxBackend,
    deploy_backend: FakeDeploymentBackend,
    kv_store: MemoryKVStore,
    clock: FakeClock,
) -> Playground:
    """Create a playground wired to fake backends."""
    return Playground(
        Config.from_dict(sample_config_dict),
        sandbox_backend=sandbox_backend,
        deploy_backend=deploy_backend,
        kv=kv_store,
        clock=clock,
    )
