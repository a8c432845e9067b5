"""Sandbox protocol for remote code execution backends."""

from dataclasses import dataclass
from typing import AsyncIterator, Protocol, runtime_checkable


@dataclass
class CommandResult:
    """Result of a command that ran to completion."""

    stdout: str
    stderr: str
    exit_code: int


@dataclass
class LogLine:
    """One chunk of output from a detached command."""

    stream: str  # "stdout" | "stderr"
    data: str


@dataclass
class SandboxFile:
    """A file to write into a sandbox."""

    path: str
    content: bytes


@runtime_checkable
class DetachedCommand(Protocol):
    """A command started in the background inside a sandbox."""

    @property
    def command_id(self) -> str:
        ...

    def logs(self) -> AsyncIterator[LogLine]:
        """Iterate over output lines in arrival order until the command exits."""
        ...

    async def wait(self) -> int:
        """Wait for the command to finish and return its exit code."""
        ...


@runtime_checkable
class SandboxHandle(Protocol):
    """Live connection to one sandbox."""

    @property
    def sandbox_id(self) -> str:
        ...

    async def write_files(self, files: list[SandboxFile]) -> None:
        """Write files into the sandbox, creating parent directories."""
        ...

    async def run_command(
        self,
        cmd: str,
        args: list[str] | None = None,
        detached: bool = False,
    ) -> "CommandResult | DetachedCommand":
        """Run a command.

        Returns a CommandResult when ``detached`` is False, otherwise a
        DetachedCommand that can be drained with ``logs()`` and ``wait()``.
        """
        ...

    async def snapshot(self) -> str:
        """Snapshot the sandbox filesystem and return the snapshot ID.

        The sandbox is stopped as a side effect.
        """
        ...

    async def stop(self) -> None:
        """Stop the sandbox and release its resources."""
        ...


@runtime_checkable
class SandboxBackend(Protocol):
    """Protocol for sandbox backends (Vercel Sandbox, local subprocess)."""

    async def create(
        self,
        runtime: str | None = None,
        snapshot_id: str | None = None,
        timeout_seconds: int | None = None,
    ) -> SandboxHandle:
        """Create a sandbox from a runtime image or from a snapshot."""
        ...

    async def get(self, sandbox_id: str) -> SandboxHandle:
        """Attach to an existing sandbox.

        Raises:
            SandboxNotFoundError: If the sandbox no longer exists
        """
        ...
