from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class UnknownRunner:
    runner: str
    available: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class PlatformMismatch:
    runner: str
    expected: str
    actual: str


@dataclass(frozen=True, slots=True)
class ToolMissing:
    tool_id: str
    hint: str


@dataclass(frozen=True, slots=True)
class PrereqMissing:
    name: str
    hint: str


@dataclass(frozen=True, slots=True)
class ToolchainFailed:
    toolchain: str
    returncode: int


@dataclass(frozen=True, slots=True)
class CompileFailed:
    returncode: int


@dataclass(frozen=True, slots=True)
class OutputMissing:
    path: Path


@dataclass(frozen=True, slots=True)
class TargetQueryFailed:
    binary: Path
    returncode: int
    stderr: str


@dataclass(frozen=True, slots=True)
class TargetInvalid:
    value: str
    reason: str


@dataclass(frozen=True, slots=True)
class ToolDownloadFailed:
    tool_id: str
    message: str


@dataclass(frozen=True, slots=True)
class IconEmbedFailed:
    message: str


@dataclass(frozen=True, slots=True)
class ArtifactInvalid:
    name: str
    reason: str


BuildError = (
    UnknownRunner
    | PlatformMismatch
    | ToolMissing
    | PrereqMissing
    | ToolchainFailed
    | CompileFailed
    | OutputMissing
    | TargetQueryFailed
    | TargetInvalid
    | ToolDownloadFailed
    | IconEmbedFailed
    | ArtifactInvalid
)
