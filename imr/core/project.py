"""Project detection and paths.

The project is the checkout of the application being released. It is
identified by a ``Cargo.toml`` or an ``imr.toml`` in the directory, searched
upward from the current directory unless ``IMR_PROJECT_ROOT`` is set.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .result import Err, Ok, Result

__all__ = [
    "Project",
    "ProjectError",
    "PROJECT_ROOT_ENV",
    "detect_project",
    "is_project_root",
]

PROJECT_ROOT_ENV = "IMR_PROJECT_ROOT"
_MARKERS = ("imr.toml", "Cargo.toml")


@dataclass(frozen=True, slots=True)
class ProjectError:
    """Error when the project root cannot be found."""

    message: str
    searched_from: Path | None = None


@dataclass(frozen=True, slots=True)
class Project:
    """A detected application checkout."""

    root: Path

    @property
    def config_path(self) -> Path:
        return self.root / "imr.toml"

    @property
    def cargo_manifest(self) -> Path:
        return self.root / "Cargo.toml"

    def target_dir(self, profile: str) -> Path:
        """Cargo output directory for a profile (target/release)."""
        return self.root / "target" / profile

    @property
    def state_dir(self) -> Path:
        """Local state (.imr/), gitignored."""
        return self.root / ".imr"

    @property
    def tools_cache_dir(self) -> Path:
        """Downloaded helper tools (rcedit)."""
        return self.state_dir / "cache" / "tools"

    def __str__(self) -> str:
        return str(self.root)


def is_project_root(path: Path) -> bool:
    return any((path / marker).is_file() for marker in _MARKERS)


def detect_project(start: Path | None = None) -> Result[Project, ProjectError]:
    """Find the project root.

    Order: ``IMR_PROJECT_ROOT``, then ``start`` (default: cwd) and its parents.
    """
    env = os.environ.get(PROJECT_ROOT_ENV)
    if env:
        root = Path(env).expanduser().resolve()
        if root.is_dir():
            return Ok(Project(root=root))
        return Err(ProjectError(f"{PROJECT_ROOT_ENV} is not a directory: {root}", root))

    origin = (start or Path.cwd()).resolve()
    for candidate in (origin, *origin.parents):
        if is_project_root(candidate):
            return Ok(Project(root=candidate))

    return Err(
        ProjectError(
            "No project found (expected Cargo.toml or imr.toml in this or a parent directory)",
            searched_from=origin,
        )
    )
