"""Per-sandbox installation of the Bun toolchain and the @faas/sdk package.

Both installs are remembered per sandbox id, so repeated runs and builds in
the same sandbox skip the shell work.
"""

from dataclasses import dataclass, field
from typing import cast

from faas_core.observability import Timer, emit_counter, emit_timer, get_logger
from faas_core.protocols.sandbox import CommandResult, SandboxFile, SandboxHandle
from faas_core.sandbox.sdk_bundle import SDK_BUNDLE, SDK_PACKAGE_JSON, SDK_ROOT, SDK_TYPES

logger = get_logger(__name__)

BUN_PATH_PREFIX = 'export PATH="$HOME/.bun/bin:$PATH"'
BUN_CHECK_SCRIPT = f"{BUN_PATH_PREFIX} && which bun"
BUN_INSTALL_SCRIPT = "curl -fsSL https://bun.sh/install | bash"
BUN_VERSION_SCRIPT = f"{BUN_PATH_PREFIX} && bun --version"


@dataclass
class InstallResult:
    """Outcome of a toolchain install, with the log lines to show the user."""

    success: bool
    logs: list[str] = field(default_factory=list)


async def _sh(handle: SandboxHandle, script: str) -> CommandResult:
    return cast(CommandResult, await handle.run_command("sh", ["-c", script]))


class Toolchain:
    """Tracks which sandboxes already have Bun and the SDK installed."""

    def __init__(self) -> None:
        self._bun_ready: set[str] = set()
        self._sdk_ready: set[str] = set()

    def has_bun(self, sandbox_id: str) -> bool:
        return sandbox_id in self._bun_ready

    def has_sdk(self, sandbox_id: str) -> bool:
        return sandbox_id in self._sdk_ready

    def forget(self, sandbox_id: str) -> None:
        """Drop install state for a sandbox that no longer exists."""
        self._bun_ready.discard(sandbox_id)
        self._sdk_ready.discard(sandbox_id)

    async def install_bun(self, handle: SandboxHandle) -> InstallResult:
        """Install Bun with the official install script unless already present.

        Never raises on a failed install; the result carries ``success=False``
        and the installer's output instead.
        """
        sandbox_id = handle.sandbox_id
        if sandbox_id in self._bun_ready:
            return InstallResult(success=True, logs=["Bun already installed"])

        logs = ["Checking for existing Bun installation..."]
        check = await _sh(handle, BUN_CHECK_SCRIPT)
        if check.exit_code == 0:
            logs.append(f"Bun already installed at {check.stdout.strip()}")
            self._bun_ready.add(sandbox_id)
            return InstallResult(success=True, logs=logs)

        logs.append("Bun not found, installing via curl (this may take a moment)...")
        with Timer() as timer:
            install = await _sh(handle, BUN_INSTALL_SCRIPT)
        emit_timer("toolchain.bun_install_ms", timer.duration_ms)

        if install.stdout:
            logs.append(install.stdout)
        if install.stderr:
            logs.append(install.stderr)

        if install.exit_code != 0:
            logs.append(f"Bun installation failed with exit code {install.exit_code}")
            logger.warning(
                "Bun installation failed",
                context={"sandbox_id": sandbox_id, "exit_code": install.exit_code},
            )
            emit_counter("toolchain.bun_install_failed")
            return InstallResult(success=False, logs=logs)

        logs.append("Verifying Bun installation...")
        verify = await _sh(handle, BUN_VERSION_SCRIPT)
        if verify.exit_code == 0:
            logs.append(f"Bun {verify.stdout.strip()} installed successfully")

        self._bun_ready.add(sandbox_id)
        logger.info(
            "Bun installed",
            context={"sandbox_id": sandbox_id},
            duration_ms=timer.duration_ms,
        )
        return InstallResult(success=True, logs=logs)

    async def ensure_sdk(self, handle: SandboxHandle) -> None:
        """Write the @faas/sdk package into the sandbox's node_modules."""
        sandbox_id = handle.sandbox_id
        if sandbox_id in self._sdk_ready:
            return

        await handle.run_command("mkdir", ["-p", f"{SDK_ROOT}/dist"])
        await handle.write_files([
            SandboxFile(path=f"{SDK_ROOT}/dist/index.js", content=SDK_BUNDLE.encode()),
            SandboxFile(path=f"{SDK_ROOT}/dist/index.d.ts", content=SDK_TYPES.encode()),
            SandboxFile(path=f"{SDK_ROOT}/package.json", content=SDK_PACKAGE_JSON.encode()),
        ])

        self._sdk_ready.add(sandbox_id)
        logger.debug("SDK installed", context={"sandbox_id": sandbox_id})
