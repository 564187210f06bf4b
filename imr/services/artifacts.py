"""Per-platform build artifacts and the store that carries them between stages.

An artifact is a directory named ``artifact-<runner>`` holding exactly two
files: the executable and ``TARGET``, the identifier the binary reported for
itself. The release stage trusts nothing else about the directory.
"""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from imr.core.result import Err, Ok, Result

__all__ = [
    "TARGET_FILE",
    "Artifact",
    "ArtifactError",
    "LocalArtifactStore",
    "read_artifact",
    "validate_target_id",
]

TARGET_FILE = "TARGET"

# Target triples: x86_64-unknown-linux-gnu, aarch64-apple-darwin, ...
_TARGET_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")


@dataclass(frozen=True, slots=True)
class Artifact:
    name: str
    path: Path
    executable: Path
    target_id: str


@dataclass(frozen=True, slots=True)
class ArtifactError:
    kind: Literal["missing", "empty", "invalid"]
    name: str
    message: str


def validate_target_id(value: str) -> str | None:
    """Return why ``value`` cannot name a release asset, or None if it can."""
    if not value:
        return "is empty"
    if len(value.splitlines()) > 1:
        return "spans more than one line"
    if not _TARGET_ID_RE.match(value):
        return "contains characters not allowed in a file name"
    return None


def _files_in(path: Path) -> list[Path]:
    return sorted(p for p in path.rglob("*") if p.is_file())


def read_artifact(path: Path, *, name: str, exe_name: str) -> Result[Artifact, ArtifactError]:
    """Load and validate an artifact directory."""
    if not path.is_dir():
        return Err(ArtifactError(kind="missing", name=name, message=f"not found: {path}"))

    files = _files_in(path)
    if not files:
        return Err(ArtifactError(kind="empty", name=name, message=f"no files in {path}"))

    target_file = path / TARGET_FILE
    exe = path / exe_name
    if not target_file.is_file():
        return Err(ArtifactError(kind="invalid", name=name, message=f"missing {TARGET_FILE}"))
    if not exe.is_file():
        return Err(ArtifactError(kind="invalid", name=name, message=f"missing {exe_name}"))

    extra = [p.relative_to(path).as_posix() for p in files if p not in (target_file, exe)]
    if extra:
        return Err(
            ArtifactError(
                kind="invalid",
                name=name,
                message=f"unexpected files: {', '.join(extra)}",
            )
        )

    try:
        target_id = target_file.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        return Err(ArtifactError(kind="invalid", name=name, message=f"unreadable {TARGET_FILE}: {e}"))

    reason = validate_target_id(target_id)
    if reason is not None:
        return Err(
            ArtifactError(
                kind="invalid",
                name=name,
                message=f"{TARGET_FILE} {reason}",
            )
        )

    return Ok(Artifact(name=name, path=path, executable=exe, target_id=target_id))


@dataclass(frozen=True, slots=True)
class LocalArtifactStore:
    """Artifacts kept as directories under ``root``.

    On CI the hosting platform's artifact actions move the directories
    between jobs, and the store reads them where they were downloaded.
    """

    root: Path

    def path_for(self, name: str) -> Path:
        return self.root / name

    def upload(self, source: Path, name: str) -> Result[Path, ArtifactError]:
        """Store the directory ``source`` under ``name``.

        An artifact without files is an error, never an empty upload.
        """
        if not source.is_dir():
            return Err(ArtifactError(kind="missing", name=name, message=f"not found: {source}"))
        if not _files_in(source):
            return Err(ArtifactError(kind="empty", name=name, message=f"no files in {source}"))

        dest = self.path_for(name)
        if dest.resolve() == source.resolve():
            return Ok(dest)

        try:
            if dest.exists():
                shutil.rmtree(dest)
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, dest)
        except OSError as e:
            return Err(ArtifactError(kind="invalid", name=name, message=f"upload failed: {e}"))
        return Ok(dest)

    def download(self, name: str, *, exe_name: str) -> Result[Artifact, ArtifactError]:
        return read_artifact(self.path_for(name), name=name, exe_name=exe_name)
