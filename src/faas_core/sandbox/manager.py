"""Ownership of the single live sandbox handle."""

from faas_core.exceptions import SandboxNotFoundError
from faas_core.observability import Timer, emit_counter, emit_timer, get_logger
from faas_core.protocols.sandbox import SandboxBackend, SandboxHandle
from faas_core.sandbox.toolchain import Toolchain

logger = get_logger(__name__)


class SandboxManager:
    """Holds the one live sandbox handle and drives its lifecycle.

    A single instance is shared by every request. The stored handle is a cache:
    operations that receive a sandbox id reconnect through the backend when
    the cached handle belongs to a different sandbox. Concurrent requests are
    not serialized; the last writer wins.
    """

    def __init__(
        self,
        backend: SandboxBackend,
        runtime: str = "node24",
        timeout_seconds: int | None = None,
        toolchain: Toolchain | None = None,
    ) -> None:
        self.backend = backend
        self.runtime = runtime
        self.timeout_seconds = timeout_seconds
        self.toolchain = toolchain or Toolchain()
        self._active: SandboxHandle | None = None

    @property
    def active(self) -> SandboxHandle | None:
        """The cached live handle, if any."""
        return self._active

    async def create(self, snapshot_id: str | None = None) -> SandboxHandle:
        """Create a sandbox, fresh or from a snapshot, replacing the cached one.

        The previous sandbox is stopped first on a best-effort basis.

        Raises:
            SandboxError: If the backend cannot create the sandbox
        """
        if self._active is not None:
            previous = self._active
            self._active = None
            try:
                await previous.stop()
            except Exception as e:
                logger.warning(
                    "Failed to stop previous sandbox",
                    context={"sandbox_id": previous.sandbox_id},
                    error=e,
                )
            self.toolchain.forget(previous.sandbox_id)

        with Timer() as timer:
            if snapshot_id:
                handle = await self.backend.create(
                    snapshot_id=snapshot_id,
                    timeout_seconds=self.timeout_seconds,
                )
            else:
                handle = await self.backend.create(
                    runtime=self.runtime,
                    timeout_seconds=self.timeout_seconds,
                )

        self._active = handle
        emit_counter("sandbox.created", {"from_snapshot": bool(snapshot_id)})
        emit_timer("sandbox.create_ms", timer.duration_ms)
        logger.info(
            "Sandbox created",
            context={"sandbox_id": handle.sandbox_id, "snapshot_id": snapshot_id},
            duration_ms=timer.duration_ms,
        )
        return handle

    async def reconnect(self, sandbox_id: str) -> SandboxHandle:
        """Return the handle for ``sandbox_id``, attaching via the backend if needed.

        Raises:
            SandboxNotFoundError: If the sandbox no longer exists
        """
        if self._active is not None and self._active.sandbox_id == sandbox_id:
            return self._active

        handle = await self.backend.get(sandbox_id)
        self._active = handle
        logger.debug("Reconnected to sandbox", context={"sandbox_id": sandbox_id})
        return handle

    async def stop(self, sandbox_id: str | None = None) -> None:
        """Stop a sandbox (the cached one if no id is given) and clear the cache.

        A sandbox that is already gone is treated as stopped.
        """
        try:
            if sandbox_id:
                handle = await self.reconnect(sandbox_id)
            elif self._active is not None:
                handle = self._active
            else:
                return
            await handle.stop()
        except SandboxNotFoundError:
            logger.info("Sandbox already gone", context={"sandbox_id": sandbox_id})
        finally:
            self._active = None

        if sandbox_id:
            self.toolchain.forget(sandbox_id)
        emit_counter("sandbox.stopped")

    async def snapshot(self, sandbox_id: str) -> str:
        """Snapshot a sandbox, which stops it, and return the snapshot id.

        Raises:
            SandboxError: If reconnecting or snapshotting fails
        """
        handle = await self.reconnect(sandbox_id)
        with Timer() as timer:
            snapshot_id = await handle.snapshot()
        self._active = None
        self.toolchain.forget(sandbox_id)

        emit_timer("sandbox.snapshot_ms", timer.duration_ms)
        logger.info(
            "Sandbox snapshotted",
            context={"sandbox_id": sandbox_id, "snapshot_id": snapshot_id},
            duration_ms=timer.duration_ms,
        )
        return snapshot_id
