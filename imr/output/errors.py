"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from imr.core.errors import ErrorCode
from imr.output.console import Style
from imr.services.build_errors import (
    ArtifactInvalid,
    BuildError,
    CompileFailed,
    IconEmbedFailed,
    OutputMissing,
    PlatformMismatch,
    PrereqMissing,
    TargetInvalid,
    TargetQueryFailed,
    ToolchainFailed,
    ToolDownloadFailed,
    ToolMissing,
    UnknownRunner,
)
from imr.services.release.errors import ReleaseError

if TYPE_CHECKING:
    from imr.output.console import ConsoleProtocol

__all__ = [
    "build_error_message",
    "print_build_error",
    "build_error_exit_code",
    "print_release_error",
    "release_error_exit_code",
]


def build_error_message(error: BuildError) -> str:
    """One-line description of a build error."""
    match error:
        case UnknownRunner(runner=runner):
            return f"unknown runner: {runner}"
        case PlatformMismatch(runner=runner, expected=expected, actual=actual):
            return f"runner {runner} builds {expected}, this host is {actual}"
        case ToolMissing(tool_id=tool_id):
            return f"{tool_id}: missing"
        case PrereqMissing(name=name):
            return f"system library {name}: missing"
        case ToolchainFailed(toolchain=toolchain, returncode=rc):
            return f"rustup override set {toolchain} failed (exit {rc})"
        case CompileFailed(returncode=rc):
            return f"build failed (exit {rc})"
        case OutputMissing(path=path):
            return f"output not found: {path}"
        case TargetQueryFailed(binary=binary, returncode=rc):
            return f"{binary.name} did not report its target (exit {rc})"
        case TargetInvalid(value=value, reason=reason):
            return f"target identifier {value!r} {reason}"
        case ToolDownloadFailed(tool_id=tool_id, message=message):
            return f"{tool_id} download failed: {message}"
        case IconEmbedFailed(message=message):
            return f"icon embedding failed: {message}"
        case ArtifactInvalid(name=name, reason=reason):
            return f"artifact {name}: {reason}"


def print_build_error(error: BuildError, console: ConsoleProtocol) -> None:
    """Print build error to console with appropriate formatting."""
    console.error(build_error_message(error))
    match error:
        case UnknownRunner(available=available) if available:
            console.print(f"Available: {', '.join(available)}", Style.DIM)
        case ToolMissing(hint=hint) | PrereqMissing(hint=hint):
            console.print(f"hint: {hint}", Style.DIM)
        case TargetQueryFailed(stderr=stderr) if stderr.strip():
            console.print(stderr.strip(), Style.DIM)
        case _:
            pass


def build_error_exit_code(error: BuildError) -> int:
    match error:
        case UnknownRunner() | PlatformMismatch():
            return int(ErrorCode.USER_ERROR)
        case ToolMissing() | PrereqMissing() | ToolchainFailed():
            return int(ErrorCode.ENV_ERROR)
        case CompileFailed() | TargetQueryFailed() | TargetInvalid() | IconEmbedFailed():
            return int(ErrorCode.BUILD_ERROR)
        case ToolDownloadFailed():
            return int(ErrorCode.NETWORK_ERROR)
        case OutputMissing() | ArtifactInvalid():
            return int(ErrorCode.IO_ERROR)


def print_release_error(error: ReleaseError, console: ConsoleProtocol) -> None:
    console.error(error.message)
    if error.hint:
        for line in error.hint.splitlines():
            console.print(f"hint: {line}", Style.DIM)


def release_error_exit_code(error: ReleaseError) -> int:
    match error.kind:
        case "invalid_input" | "invalid_state" | "duplicate_asset":
            return int(ErrorCode.USER_ERROR)
        case "gh_missing" | "gh_auth_required":
            return int(ErrorCode.ENV_ERROR)
        case "artifact_missing" | "artifact_invalid":
            return int(ErrorCode.IO_ERROR)
        case "create_failed" | "upload_failed" | "publish_failed":
            return int(ErrorCode.NETWORK_ERROR)
