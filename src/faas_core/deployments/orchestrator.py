"""Deployment pipeline: manifest, upload, create, persist, reconcile."""

import asyncio
from typing import AsyncIterator, Awaitable, Callable

from faas_core.deployments.manifest import generate_build_output
from faas_core.deployments.models import Deployment, map_ready_state
from faas_core.deployments.store import DeploymentStore
from faas_core.events import EventChannel, StreamEvent, stream_from
from faas_core.exceptions import DeploymentNotFoundError
from faas_core.observability import (
    Timer,
    deployment_id_var,
    emit_counter,
    emit_timer,
    get_logger,
)
from faas_core.protocols.deploy import DeploymentBackend, UploadedFile

logger = get_logger(__name__)


class PollRegistry:
    """Background status polls, keyed by deployment id.

    At most one poll runs per deployment. Finished tasks remove themselves.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def start(
        self,
        deployment_id: str,
        factory: Callable[[], Awaitable[None]],
    ) -> asyncio.Task[None]:
        """Start a poll unless one is already running for this id.

        Returns:
            The running task for this deployment
        """
        existing = self._tasks.get(deployment_id)
        if existing is not None and not existing.done():
            return existing

        task = asyncio.create_task(factory(), name=f"poll:{deployment_id}")
        self._tasks[deployment_id] = task

        def _done(t: asyncio.Task[None]) -> None:
            if self._tasks.get(deployment_id) is t:
                del self._tasks[deployment_id]

        task.add_done_callback(_done)
        return task

    def is_polling(self, deployment_id: str) -> bool:
        task = self._tasks.get(deployment_id)
        return task is not None and not task.done()

    def active(self) -> list[str]:
        """Ids of deployments currently being polled."""
        return [k for k, t in self._tasks.items() if not t.done()]

    def get(self, deployment_id: str) -> asyncio.Task[None] | None:
        return self._tasks.get(deployment_id)

    async def cancel_all(self) -> None:
        """Cancel every running poll and wait for them to finish."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


class DeploymentOrchestrator:
    """Promotes a built artifact to a hosted deployment and tracks it."""

    def __init__(
        self,
        backend: DeploymentBackend,
        store: DeploymentStore,
        registry: PollRegistry | None = None,
        runtime: str = "nodejs24.x",
        launcher_type: str | None = "Nodejs",
        wrap_handler: bool = True,
        poll_interval_seconds: float = 5.0,
        poll_max_attempts: int = 60,
    ) -> None:
        self.backend = backend
        self.store = store
        self.registry = registry or PollRegistry()
        self.runtime = runtime
        self.launcher_type = launcher_type
        self.wrap_handler = wrap_handler
        self.poll_interval_seconds = poll_interval_seconds
        self.poll_max_attempts = poll_max_attempts

    async def deploy(
        self,
        partition_key: str,
        bundled_code: str,
        function_name: str,
        cron_schedule: str | None = None,
        regions: list[str] | None = None,
    ) -> Deployment:
        """Upload the function's files, create the deployment and record it.

        A background poll is started when the deployment is not yet terminal.

        Raises:
            UploadError: If a file upload fails
            DeploymentError: If the backend rejects the deployment
        """
        files = generate_build_output(
            bundled_code,
            function_name,
            cron_schedule,
            runtime=self.runtime,
            launcher_type=self.launcher_type,
            wrap_handler=self.wrap_handler,
        )

        with Timer() as timer:
            uploaded: list[UploadedFile] = []
            for item in files:
                sha = await self.backend.upload_file(item.data)
                uploaded.append(UploadedFile(file=item.file, sha=sha, size=len(item.data)))

            remote = await self.backend.create_deployment(uploaded, function_name, regions)

        deployment = Deployment(
            id=remote.id,
            url=remote.url,
            function_name=function_name,
            status=map_ready_state(remote.status),
            cron_schedule=cron_schedule,
            regions=list(regions or remote.regions),
            error_message=remote.error_message,
        )
        await self.store.add(partition_key, deployment)

        emit_counter("deploy.created", {"status": deployment.status.value})
        emit_timer("deploy.create_ms", timer.duration_ms)
        logger.info(
            "Deployment created",
            context={
                "deployment_id": deployment.id,
                "function_name": function_name,
                "status": deployment.status.value,
            },
            duration_ms=timer.duration_ms,
        )

        if not deployment.status.is_terminal:
            self.start_polling(partition_key, deployment.id)

        return deployment

    def start_polling(self, partition_key: str, deployment_id: str) -> asyncio.Task[None]:
        """Track a background poll for the deployment in the registry."""
        return self.registry.start(
            deployment_id,
            lambda: self.poll_status(partition_key, deployment_id),
        )

    async def refresh(self, partition_key: str, deployment_id: str) -> Deployment | None:
        """Fetch remote status once and write it back.

        Records already in a terminal status are returned unchanged.
        """
        current = await self.store.get(partition_key, deployment_id)
        if current is None or current.status.is_terminal:
            return current

        remote = await self.backend.get_deployment_status(deployment_id)
        changes: dict = {
            "status": map_ready_state(remote.status),
            "url": remote.url,
            "error_message": remote.error_message,
        }
        if remote.regions:
            changes["regions"] = list(remote.regions)
        return await self.store.update(partition_key, deployment_id, **changes)

    async def poll_status(self, partition_key: str, deployment_id: str) -> None:
        """Poll until the deployment is terminal or attempts run out.

        Errors are logged and the next attempt proceeds. When attempts run
        out the record keeps its last non-terminal status.
        """
        deployment_id_var.set(deployment_id)

        for attempt in range(1, self.poll_max_attempts + 1):
            await asyncio.sleep(self.poll_interval_seconds)
            try:
                updated = await self.refresh(partition_key, deployment_id)
            except Exception as e:
                logger.warning("Deployment status poll failed", context={"attempt": attempt}, error=e)
                emit_counter("deploy.poll_failed")
                continue

            if updated is None:
                logger.info("Deployment removed while polling")
                return
            if updated.status.is_terminal:
                logger.info(
                    "Deployment reached terminal status",
                    context={"status": updated.status.value, "attempt": attempt},
                )
                emit_counter("deploy.settled", {"status": updated.status.value})
                return

        logger.warning(
            "Gave up polling deployment status",
            context={"attempts": self.poll_max_attempts},
        )
        emit_counter("deploy.poll_exhausted")

    async def list(self, partition_key: str) -> list[Deployment]:
        return await self.store.list(partition_key)

    async def get(self, partition_key: str, deployment_id: str) -> Deployment:
        """Raises DeploymentNotFoundError if the caller has no such deployment."""
        deployment = await self.store.get(partition_key, deployment_id)
        if deployment is None:
            raise DeploymentNotFoundError("Deployment not found")
        return deployment

    async def delete(self, partition_key: str, deployment_id: str) -> None:
        """Delete remotely (best effort), then locally.

        Raises:
            DeploymentNotFoundError: If the caller has no such deployment
        """
        await self.get(partition_key, deployment_id)

        try:
            await self.backend.delete_deployment(deployment_id)
        except Exception as e:
            logger.warning(
                "Failed to delete remote deployment",
                context={"deployment_id": deployment_id},
                error=e,
            )

        task = self.registry.get(deployment_id)
        if task is not None and not task.done():
            task.cancel()

        await self.store.delete(partition_key, deployment_id)
        emit_counter("deploy.deleted")

    async def stream_logs(
        self,
        partition_key: str,
        deployment_id: str,
    ) -> AsyncIterator[StreamEvent]:
        """Runtime log events: ``connected``, one ``log`` per entry, then ``done``.

        A failure while streaming ends the stream with ``error`` instead.

        Raises:
            DeploymentNotFoundError: If the caller has no such deployment
        """
        await self.get(partition_key, deployment_id)

        async def produce(channel: EventChannel) -> None:
            await channel.send("connected")
            try:
                async for entry in self.backend.stream_logs(deployment_id):
                    await channel.send("log", entry)
            except Exception as e:
                logger.error(
                    "Log stream error",
                    context={"deployment_id": deployment_id},
                    error=e,
                )
                await channel.send("error", str(e) or "Unknown error")
                return
            await channel.send("done")

        return stream_from(produce)
