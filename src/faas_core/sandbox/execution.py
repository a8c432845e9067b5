"""Streaming execution of user code inside the sandbox."""

from typing import AsyncIterator, cast

from faas_core.events import EventChannel, StreamEvent, stream_from
from faas_core.observability import Timer, emit_counter, emit_timer, get_logger
from faas_core.protocols.sandbox import DetachedCommand, SandboxFile
from faas_core.sandbox.manager import SandboxManager
from faas_core.sandbox.toolchain import BUN_PATH_PREFIX

logger = get_logger(__name__)

SOURCE_DIR = "/tmp/src"
SOURCE_PATH = f"{SOURCE_DIR}/handler.ts"
# Importing the module runs its top level without starting Bun's auto-server
RUN_SCRIPT = f"{BUN_PATH_PREFIX} && cd /tmp && bun -e \"await import('./src/handler.ts')\""


def execute_streaming(
    manager: SandboxManager,
    code: str,
    sandbox_id: str,
) -> AsyncIterator[StreamEvent]:
    """Run ``code`` in the sandbox and stream its output.

    Yields ``stdout``/``stderr`` events in arrival order, then exactly one
    terminal event: ``exit`` with the exit code as a string, or ``error``
    with a message if anything fails along the way.
    """

    async def produce(channel: EventChannel) -> None:
        try:
            handle = await manager.reconnect(sandbox_id)

            install = await manager.toolchain.install_bun(handle)
            if not install.success:
                await channel.send("stderr", "Failed to install Bun runtime")
                await channel.send("exit", "1")
                return

            await manager.toolchain.ensure_sdk(handle)
            await handle.run_command("mkdir", ["-p", SOURCE_DIR])
            await handle.write_files([SandboxFile(path=SOURCE_PATH, content=code.encode())])

            with Timer() as timer:
                command = cast(
                    DetachedCommand,
                    await handle.run_command("sh", ["-c", RUN_SCRIPT], detached=True),
                )
                async for line in command.logs():
                    await channel.send(line.stream, line.data)
                exit_code = await command.wait()
        except Exception as e:
            logger.error("Execution failed", context={"sandbox_id": sandbox_id}, error=e)
            emit_counter("run.failed")
            await channel.send("error", str(e) or "Execution failed")
            return

        emit_timer("run.duration_ms", timer.duration_ms, {"exit_code": exit_code})
        logger.info(
            "Execution finished",
            context={"sandbox_id": sandbox_id, "exit_code": exit_code},
            duration_ms=timer.duration_ms,
        )
        await channel.send("exit", str(exit_code))

    return stream_from(produce)
