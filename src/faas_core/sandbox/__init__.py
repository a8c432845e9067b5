"""Sandbox lifecycle, toolchain setup, execution and bundling."""

from faas_core.sandbox.build import ARTIFACT_PATH, build_code, read_bundled_code
from faas_core.sandbox.execution import SOURCE_PATH, execute_streaming
from faas_core.sandbox.manager import SandboxManager
from faas_core.sandbox.toolchain import InstallResult, Toolchain

__all__ = [
    "ARTIFACT_PATH",
    "InstallResult",
    "SOURCE_PATH",
    "SandboxManager",
    "Toolchain",
    "build_code",
    "execute_streaming",
    "read_bundled_code",
]
