"""Bundling user code into a deployable artifact inside the sandbox."""

from typing import AsyncIterator, cast

from faas_core.events import EventChannel, StreamEvent, stream_from
from faas_core.exceptions import BuildError
from faas_core.observability import Timer, emit_counter, emit_timer, get_logger
from faas_core.protocols.sandbox import CommandResult, DetachedCommand, SandboxFile
from faas_core.sandbox.execution import SOURCE_DIR, SOURCE_PATH
from faas_core.sandbox.manager import SandboxManager
from faas_core.sandbox.toolchain import BUN_PATH_PREFIX

logger = get_logger(__name__)

DIST_DIR = "/tmp/dist"
ARTIFACT_PATH = f"{DIST_DIR}/index.js"
BUILD_SCRIPT = (
    f"{BUN_PATH_PREFIX} && bun build {SOURCE_PATH} --outfile={ARTIFACT_PATH} "
    "--target=node --format=cjs"
)


def build_code(
    manager: SandboxManager,
    code: str,
    sandbox_id: str,
) -> AsyncIterator[StreamEvent]:
    """Bundle ``code`` to :data:`ARTIFACT_PATH`, streaming progress.

    Emits ``log`` events for each step and for bundler stdout, ``error`` for
    bundler stderr (non-fatal), and ends with ``done`` carrying the artifact
    path on success, or a final ``error`` on failure.
    """

    async def produce(channel: EventChannel) -> None:
        try:
            await channel.send("log", "Connecting to sandbox...")
            handle = await manager.reconnect(sandbox_id)

            await channel.send("log", "Creating build directories...")
            await handle.run_command("mkdir", ["-p", SOURCE_DIR, DIST_DIR])

            await channel.send("log", "Setting up @faas/sdk...")
            await manager.toolchain.ensure_sdk(handle)
            await channel.send("log", "SDK ready")

            await channel.send("log", "Writing source code...")
            await handle.write_files([SandboxFile(path=SOURCE_PATH, content=code.encode())])
            await channel.send("log", f"Source code written to {SOURCE_PATH}")

            await channel.send("log", "Checking Bun runtime...")
            install = await manager.toolchain.install_bun(handle)
            for line in install.logs:
                await channel.send("log", line)
            if not install.success:
                await channel.send("error", "Failed to install Bun")
                return

            await channel.send("log", "Running bun build...")
            with Timer() as timer:
                command = cast(
                    DetachedCommand,
                    await handle.run_command("sh", ["-c", BUILD_SCRIPT], detached=True),
                )
                async for line in command.logs():
                    await channel.send("error" if line.stream == "stderr" else "log", line.data)
                exit_code = await command.wait()
        except Exception as e:
            logger.error("Build failed", context={"sandbox_id": sandbox_id}, error=e)
            emit_counter("build.failed")
            await channel.send("error", str(e) or "Build failed")
            return

        emit_timer("build.duration_ms", timer.duration_ms, {"exit_code": exit_code})
        if exit_code != 0:
            logger.info(
                "Bundler exited non-zero",
                context={"sandbox_id": sandbox_id, "exit_code": exit_code},
            )
            emit_counter("build.failed")
            await channel.send("error", f"Build failed with exit code {exit_code}")
            return

        await channel.send("log", "Build completed successfully!")
        await channel.send("done", ARTIFACT_PATH)

    return stream_from(produce)


async def read_bundled_code(manager: SandboxManager, sandbox_id: str) -> str:
    """Read the built artifact back out of the sandbox.

    Raises:
        BuildError: If the artifact does not exist
    """
    handle = await manager.reconnect(sandbox_id)
    result = cast(CommandResult, await handle.run_command("cat", [ARTIFACT_PATH]))
    if result.exit_code != 0:
        raise BuildError("Bundled code not found. Run build first.")
    return result.stdout
