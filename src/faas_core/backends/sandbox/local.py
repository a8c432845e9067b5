"""Local subprocess-based sandbox for development."""

import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, AsyncIterator
from uuid import uuid4

from faas_core.exceptions import SandboxError, SandboxNotFoundError
from faas_core.protocols.sandbox import CommandResult, LogLine, SandboxFile


class LocalDetachedCommand:
    """A background subprocess whose stdout and stderr are merged line by line."""

    def __init__(self, command_id: str, process: asyncio.subprocess.Process) -> None:
        self._command_id = command_id
        self._process = process

    @property
    def command_id(self) -> str:
        return self._command_id

    async def logs(self) -> AsyncIterator[LogLine]:
        """Yield output lines in arrival order until both pipes close."""
        queue: asyncio.Queue[LogLine | None] = asyncio.Queue()

        async def pump(stream: asyncio.StreamReader | None, name: str) -> None:
            try:
                if stream is not None:
                    async for raw in stream:
                        await queue.put(LogLine(stream=name, data=raw.decode(errors="replace")))
            finally:
                await queue.put(None)

        tasks = [
            asyncio.create_task(pump(self._process.stdout, "stdout")),
            asyncio.create_task(pump(self._process.stderr, "stderr")),
        ]
        remaining = len(tasks)
        try:
            while remaining:
                item = await queue.get()
                if item is None:
                    remaining -= 1
                    continue
                yield item
        finally:
            for task in tasks:
                task.cancel()

    async def wait(self) -> int:
        return await self._process.wait()


class LocalSandboxHandle:
    """A sandbox backed by a private directory on the host.

    Absolute paths under ``/tmp`` (in written files and in command arguments)
    are mapped into the sandbox directory, and ``HOME`` points inside it, so
    toolchains installed into one sandbox are invisible to the others.
    """

    def __init__(self, backend: "LocalSandboxBackend", sandbox_id: str) -> None:
        self._backend = backend
        self._sandbox_id = sandbox_id

    @property
    def sandbox_id(self) -> str:
        return self._sandbox_id

    @property
    def root(self) -> Path:
        return self._backend.sandbox_dir(self._sandbox_id)

    def _check_alive(self) -> None:
        if not self.root.exists():
            raise SandboxNotFoundError(f"Sandbox not found: {self._sandbox_id}")

    def _map(self, value: str) -> str:
        return value.replace("/tmp", str(self.root / "tmp"))

    def _env(self) -> dict[str, str]:
        home = self.root / "home"
        home.mkdir(parents=True, exist_ok=True)
        return {
            "HOME": str(home),
            "PATH": self._backend.host_path,
        }

    async def write_files(self, files: list[SandboxFile]) -> None:
        self._check_alive()
        for item in files:
            target = self.root / item.path.lstrip("/")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(item.content)

    async def run_command(
        self,
        cmd: str,
        args: list[str] | None = None,
        detached: bool = False,
    ) -> CommandResult | LocalDetachedCommand:
        self._check_alive()
        (self.root / "tmp").mkdir(parents=True, exist_ok=True)
        argv = [self._map(a) for a in (args or [])]

        process = await asyncio.create_subprocess_exec(
            cmd,
            *argv,
            cwd=self.root / "tmp",
            env=self._env(),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        self._backend.track(self._sandbox_id, process)

        if detached:
            return LocalDetachedCommand(uuid4().hex, process)

        stdout, stderr = await process.communicate()
        return CommandResult(
            stdout=stdout.decode(errors="replace") if stdout else "",
            stderr=stderr.decode(errors="replace") if stderr else "",
            exit_code=process.returncode or 0,
        )

    async def snapshot(self) -> str:
        self._check_alive()
        snapshot_id = f"snap_{uuid4().hex[:12]}"
        await self._backend.kill_processes(self._sandbox_id)
        shutil.copytree(self.root, self._backend.snapshot_dir(snapshot_id))
        await self.stop()
        return snapshot_id

    async def stop(self) -> None:
        self._check_alive()
        await self._backend.kill_processes(self._sandbox_id)
        shutil.rmtree(self.root, ignore_errors=True)


class LocalSandboxBackend:
    """Subprocess-based sandbox backend for local development.

    WARNING: NOT for production use. Provides no security isolation.
    """

    def __init__(self, workdir: str | None = None, **kwargs: Any) -> None:
        """Initialize local sandbox backend.

        Args:
            workdir: Directory holding sandboxes and snapshots (temp dir if unset)
            **kwargs: Ignored (for compatibility with other backends)
        """
        self.workdir = Path(workdir) if workdir else Path(tempfile.mkdtemp(prefix="faas-sandbox-"))
        self.host_path = os.environ.get("PATH", "/usr/local/bin:/usr/bin:/bin")
        self._processes: dict[str, list[asyncio.subprocess.Process]] = {}

    def sandbox_dir(self, sandbox_id: str) -> Path:
        return self.workdir / "sandboxes" / sandbox_id

    def snapshot_dir(self, snapshot_id: str) -> Path:
        return self.workdir / "snapshots" / snapshot_id

    def track(self, sandbox_id: str, process: asyncio.subprocess.Process) -> None:
        self._processes.setdefault(sandbox_id, []).append(process)

    async def kill_processes(self, sandbox_id: str) -> None:
        for process in self._processes.pop(sandbox_id, []):
            if process.returncode is None:
                process.kill()
                await process.wait()

    async def create(
        self,
        runtime: str | None = None,
        snapshot_id: str | None = None,
        timeout_seconds: int | None = None,
    ) -> LocalSandboxHandle:
        """Create a sandbox directory, optionally seeded from a snapshot."""
        sandbox_id = f"sbx_{uuid4().hex[:12]}"
        target = self.sandbox_dir(sandbox_id)

        if snapshot_id:
            source = self.snapshot_dir(snapshot_id)
            if not source.exists():
                raise SandboxError(f"Snapshot not found: {snapshot_id}")
            shutil.copytree(source, target)
        else:
            (target / "tmp").mkdir(parents=True)

        return LocalSandboxHandle(self, sandbox_id)

    async def get(self, sandbox_id: str) -> LocalSandboxHandle:
        """Attach to an existing sandbox directory."""
        if not self.sandbox_dir(sandbox_id).exists():
            raise SandboxNotFoundError(f"Sandbox not found: {sandbox_id}")
        return LocalSandboxHandle(self, sandbox_id)
