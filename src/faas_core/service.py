"""Main Playground class for faas-core."""

import asyncio
import time
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any, Callable

from faas_core.config import Config
from faas_core.constants import CRON_PRESETS, DEFAULT_CODE, DEFAULT_FUNCTION_NAME, REGION_OPTIONS
from faas_core.deployments import Deployment, DeploymentOrchestrator, DeploymentStore, PollRegistry
from faas_core.events import EventChannel, StreamEvent, stream_from
from faas_core.exceptions import BuildError, NoActiveSessionError, NoSnapshotError
from faas_core.observability import (
    Timer,
    emit_counter,
    emit_timer,
    get_logger,
)
from faas_core.plugins import create_deployment_backend, create_kv_store, create_sandbox_backend
from faas_core.protocols import DeploymentBackend, KVStore, SandboxBackend
from faas_core.sandbox import SandboxManager, build_code, execute_streaming, read_bundled_code
from faas_core.sessions import Session, SessionStatus, SessionStore, validate_active_session
from faas_core.utils.validation import (
    validate_code,
    validate_cron_schedule,
    validate_function_name,
    validate_regions,
)

logger = get_logger(__name__)


class Playground:
    """Session, execution and deployment operations behind the HTTP API.

    Example usage:
        # Load from config file
        playground = Playground.from_config("config.yaml")

        # Start HTTP server
        playground.serve(port=8080)

        # Or use directly
        session = await playground.create_session()
        async for event in await playground.run("console.log('hi')"):
            print(event.type, event.data)
    """

    def __init__(
        self,
        config: Config,
        sandbox_backend: SandboxBackend | None = None,
        deploy_backend: DeploymentBackend | None = None,
        kv: KVStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the playground with configuration.

        Backends not passed in are created from config on first use.
        Use `Playground.from_config()` for convenience.
        """
        self.config = config
        self.clock = clock
        self.sessions = SessionStore()
        self.polls = PollRegistry()
        self._sandbox_backend = sandbox_backend
        self._deploy_backend = deploy_backend
        self._kv = kv
        self._sandboxes: SandboxManager | None = None
        self._deployments: DeploymentOrchestrator | None = None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, path: str | Path) -> "Playground":
        """Create a Playground from a YAML or JSON configuration file."""
        return cls(Config.from_file(path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "Playground":
        """Create a Playground from a configuration dictionary."""
        return cls(Config.from_dict(config_dict))

    async def _ensure_initialized(self) -> None:
        """Lazily initialize backends on first use.

        Uses lock to prevent concurrent initialization.
        """
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return
            await self._do_initialize()

    async def _do_initialize(self) -> None:
        """Perform actual initialization (called under lock)."""
        with Timer() as timer:
            logger.info("Initializing playground backends")

            sandbox_config = self.config.sandbox
            if self._sandbox_backend is None:
                self._sandbox_backend = create_sandbox_backend(
                    sandbox_config.backend,
                    api_token=sandbox_config.api_token,
                    team_id=sandbox_config.team_id,
                    project_id=sandbox_config.project_id,
                    workdir=sandbox_config.workdir,
                )

            deploy_config = self.config.deploy
            if self._deploy_backend is None:
                self._deploy_backend = create_deployment_backend(
                    deploy_config.backend,
                    api_token=deploy_config.api_token,
                    team_id=deploy_config.team_id,
                    project_id=deploy_config.project_id,
                    output_path=deploy_config.output_path,
                )

            kv_config = self.config.storage.kv
            if self._kv is None:
                self._kv = create_kv_store(kv_config.backend, redis_url=kv_config.redis_url)

            self._sandboxes = SandboxManager(
                self._sandbox_backend,
                runtime=sandbox_config.runtime,
                timeout_seconds=sandbox_config.session_timeout_seconds,
            )
            self._deployments = DeploymentOrchestrator(
                self._deploy_backend,
                DeploymentStore(self._kv, key_prefix=kv_config.key_prefix),
                registry=self.polls,
                runtime=deploy_config.runtime,
                launcher_type=deploy_config.launcher_type,
                wrap_handler=deploy_config.wrap_handler,
                poll_interval_seconds=deploy_config.poll_interval_seconds,
                poll_max_attempts=deploy_config.poll_max_attempts,
            )

            self._initialized = True

        logger.info("Playground backends initialized", duration_ms=timer.duration_ms)
        emit_timer("playground.init", timer.duration_ms)

    @property
    def sandboxes(self) -> SandboxManager:
        """Get the sandbox lifecycle manager."""
        if self._sandboxes is None:
            raise RuntimeError("Playground not initialized. Use async context manager or call an operation first.")
        return self._sandboxes

    @property
    def deployments(self) -> DeploymentOrchestrator:
        """Get the deployment orchestrator."""
        if self._deployments is None:
            raise RuntimeError("Playground not initialized. Use async context manager or call an operation first.")
        return self._deployments

    # Sessions

    def _new_session(self, sandbox_id: str) -> Session:
        now = self.clock()
        return Session(
            sandbox_id=sandbox_id,
            status=SessionStatus.RUNNING,
            timeout_at=now + self.config.sandbox.session_timeout_seconds,
            created_at=now,
        )

    def _extend_session(self, sandbox_id: str) -> None:
        """Push the session expiry out by the grace window."""
        session = self.sessions.get()
        if session is None or session.sandbox_id != sandbox_id:
            return
        self.sessions.update(timeout_at=session.timeout_at + self.config.sandbox.grace_seconds)

    async def create_session(self) -> Session:
        """Start a new session on a fresh sandbox, stopping any previous one.

        Raises:
            SandboxError: If the sandbox cannot be created
        """
        await self._ensure_initialized()

        existing = self.sessions.get()
        if existing is not None and existing.sandbox_id:
            try:
                await self.sandboxes.stop(existing.sandbox_id)
            except Exception as e:
                logger.warning(
                    "Failed to stop previous sandbox",
                    context={"sandbox_id": existing.sandbox_id},
                    error=e,
                )

        handle = await self.sandboxes.create()
        session = self._new_session(handle.sandbox_id)
        self.sessions.set(session)
        emit_counter("session.created")
        return session

    def session_status(self) -> Session | None:
        """Current session; a running session past its timeout is marked stopped."""
        session = self.sessions.get()
        if session is None:
            return None
        if session.status == SessionStatus.RUNNING and session.is_expired(self.clock()):
            session = self.sessions.update(status=SessionStatus.STOPPED)
        return session

    async def delete_session(self) -> None:
        """Stop the sandbox and clear the session. Never fails."""
        await self._ensure_initialized()

        session = self.sessions.get()
        try:
            if session is not None and session.sandbox_id:
                await self.sandboxes.stop(session.sandbox_id)
        except Exception as e:
            logger.warning("Failed to stop session sandbox", error=e)
        finally:
            self.sessions.clear()

    async def snapshot(self) -> str:
        """Snapshot the session's sandbox and pause the session.

        Raises:
            NoActiveSessionError: If there is no session
            SandboxError: If the snapshot fails
        """
        await self._ensure_initialized()

        session = self.sessions.get()
        if session is None or not session.sandbox_id:
            raise NoActiveSessionError("No active session")

        snapshot_id = await self.sandboxes.snapshot(session.sandbox_id)
        self.sessions.update(snapshot_id=snapshot_id, status=SessionStatus.PAUSED)
        emit_counter("session.paused")
        return snapshot_id

    async def restore(self, snapshot_id: str | None = None) -> Session:
        """Resume from a snapshot into a new sandbox.

        Falls back to the current session's snapshot when none is given.

        Raises:
            NoSnapshotError: If there is nothing to restore from
            SandboxError: If the sandbox cannot be created
        """
        if not snapshot_id:
            current = self.sessions.get()
            snapshot_id = current.snapshot_id if current is not None else None
        if not snapshot_id:
            raise NoSnapshotError()

        await self._ensure_initialized()

        handle = await self.sandboxes.create(snapshot_id=snapshot_id)
        session = self._new_session(handle.sandbox_id)
        self.sessions.set(session)
        emit_counter("session.restored")
        return session

    async def stop(self) -> None:
        """Stop the sandbox without a snapshot and clear the session.

        Raises:
            NoActiveSessionError: If there is no session
            SandboxError: If the sandbox cannot be stopped
        """
        await self._ensure_initialized()

        session = self.sessions.get()
        if session is None or not session.sandbox_id:
            raise NoActiveSessionError("No active session")

        await self.sandboxes.stop(session.sandbox_id)
        self.sessions.clear()

    # Streams

    async def run(self, code: Any) -> AsyncIterator[StreamEvent]:
        """Validate, then return the event stream of running ``code``.

        Raises:
            ValidationError: If code is missing
            SessionError: If the session cannot execute code
        """
        code = validate_code(code)
        session = validate_active_session(self.sessions, self.clock())
        await self._ensure_initialized()
        return self._run_stream(code, session.sandbox_id)

    async def _run_stream(self, code: str, sandbox_id: str) -> AsyncIterator[StreamEvent]:
        emit_counter("run.started")
        terminal: str | None = None
        async for event in execute_streaming(self.sandboxes, code, sandbox_id):
            terminal = event.type
            yield event
        if terminal == "exit":
            self._extend_session(sandbox_id)

    async def build(self, code: Any) -> AsyncIterator[StreamEvent]:
        """Validate, then return the event stream of bundling ``code``.

        Raises:
            ValidationError: If code is missing
            SessionError: If the session cannot execute code
        """
        code = validate_code(code)
        session = validate_active_session(self.sessions, self.clock())
        await self._ensure_initialized()
        return self._build_stream(code, session.sandbox_id)

    async def _build_stream(self, code: str, sandbox_id: str) -> AsyncIterator[StreamEvent]:
        emit_counter("build.started")
        succeeded = False
        async for event in build_code(self.sandboxes, code, sandbox_id):
            succeeded = succeeded or event.type == "done"
            yield event
        if succeeded:
            self._extend_session(sandbox_id)

    async def deploy(
        self,
        partition_key: str,
        code: Any,
        function_name: Any = None,
        cron_schedule: Any = None,
        regions: Any = None,
    ) -> AsyncIterator[StreamEvent]:
        """Validate, then return the event stream of building and deploying ``code``.

        Stream order: ``phase`` build, build logs, ``build_done``, ``phase``
        deploy, deploy logs, ``deploy_done``, then ``snapshot`` if the sandbox
        was paused. Any failure ends the stream with one ``error``.

        Raises:
            ValidationError: If an input is missing or malformed
            SessionError: If the session cannot execute code
        """
        code = validate_code(code)
        function_name = validate_function_name(function_name)
        cron_schedule = validate_cron_schedule(cron_schedule)
        regions = validate_regions(regions)
        session = validate_active_session(self.sessions, self.clock())
        await self._ensure_initialized()

        sandbox_id = session.sandbox_id

        async def produce(channel: EventChannel) -> None:
            emit_counter("deploy.started")
            try:
                await channel.send("phase", "build")
                built = False
                async for event in build_code(self.sandboxes, code, sandbox_id):
                    if event.type == "done":
                        built = True
                        await channel.send("build_done", event.data)
                    else:
                        await channel.send(event.type, event.data)

                if not built:
                    await channel.send("error", "Build failed")
                    return

                try:
                    bundled_code = await read_bundled_code(self.sandboxes, sandbox_id)
                except BuildError:
                    await channel.send("error", "Failed to read bundled code")
                    return

                await channel.send("phase", "deploy")
                await channel.send("log", "Creating deployment...")

                deployment = await self.deployments.deploy(
                    partition_key,
                    bundled_code,
                    function_name,
                    cron_schedule=cron_schedule,
                    regions=regions,
                )

                await channel.send("log", f"Deployment started: {deployment.id}")
                done: dict[str, Any] = {
                    "id": deployment.id,
                    "url": deployment.url,
                    "functionName": deployment.function_name,
                    "status": deployment.status.value,
                    "functionUrl": deployment.function_url,
                }
                if deployment.cron_schedule:
                    done["cronSchedule"] = deployment.cron_schedule
                await channel.send("deploy_done", done)

                try:
                    snapshot_id = await self.sandboxes.snapshot(sandbox_id)
                except Exception as e:
                    logger.warning("Failed to create snapshot after deployment", error=e)
                    await channel.send("log", "Warning: Failed to create snapshot after deployment")
                else:
                    self.sessions.update(snapshot_id=snapshot_id, status=SessionStatus.PAUSED)
                    await channel.send("snapshot", {"id": snapshot_id})
                    await channel.send("log", f"Sandbox paused. Snapshot: {snapshot_id}")

                self._extend_session(sandbox_id)
            except Exception as e:
                logger.error("Deploy failed", error=e)
                emit_counter("deploy.failed")
                await channel.send("error", str(e) or "Deployment failed")

        # The pipeline runs to completion even if the client disconnects
        return stream_from(produce, cancel_on_close=False)

    # Deployments

    async def list_deployments(self, partition_key: str) -> list[Deployment]:
        await self._ensure_initialized()
        return await self.deployments.list(partition_key)

    async def get_deployment(self, partition_key: str, deployment_id: str) -> Deployment:
        """Raises DeploymentNotFoundError if the caller has no such deployment."""
        await self._ensure_initialized()
        return await self.deployments.get(partition_key, deployment_id)

    async def delete_deployment(self, partition_key: str, deployment_id: str) -> None:
        await self._ensure_initialized()
        await self.deployments.delete(partition_key, deployment_id)

    async def stream_deployment_logs(
        self,
        partition_key: str,
        deployment_id: str,
    ) -> AsyncIterator[StreamEvent]:
        await self._ensure_initialized()
        return await self.deployments.stream_logs(partition_key, deployment_id)

    def options(self) -> dict[str, Any]:
        """Cron presets, region choices and starter code for deploy forms."""
        return {
            "defaultCode": DEFAULT_CODE,
            "defaultFunctionName": DEFAULT_FUNCTION_NAME,
            "cronPresets": [p.to_dict() for p in CRON_PRESETS],
            "regions": [r.to_dict() for r in REGION_OPTIONS],
        }

    def serve(
        self,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        """Start the HTTP server.

        Args:
            host: Host to bind to (defaults to config value)
            port: Port to bind to (defaults to config value)
        """
        import uvicorn

        from faas_core.server.app import create_app

        app = create_app(self)
        uvicorn.run(
            app,
            host=host or self.config.server.host,
            port=port or self.config.server.port,
        )

    async def close(self) -> None:
        """Cancel background polls and release storage connections."""
        await self.polls.cancel_all()
        close = getattr(self._kv, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "Playground":
        """Async context manager entry."""
        await self._ensure_initialized()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit - cleanup resources."""
        await self.close()
