from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class ReleaseStage(Enum):
    """Release orchestrator states, in the only order they can occur."""

    NOT_STARTED = "not_started"
    ARTIFACTS_COLLECTED = "artifacts_collected"
    DRAFT_CREATED = "draft_created"
    ASSETS_ATTACHED = "assets_attached"
    PUBLISHED = "published"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class PlannedAsset:
    """A platform binary and the name it will carry in the release."""

    runner: str
    platform: str
    path: Path
    name: str
    content_type: str


@dataclass(frozen=True, slots=True)
class GhRelease:
    id: int
    tag: str
    name: str
    draft: bool
    prerelease: bool
    upload_url: str
    html_url: str | None


@dataclass(frozen=True, slots=True)
class GhAsset:
    id: int
    name: str
    size: int


def asset_name(app_name: str, target_id: str, exe_suffix: str) -> str:
    """Release asset name: ``<app>-<target>`` plus the executable suffix.

    Example: asset_name("initiative_manager", "x86_64-pc-windows-msvc", ".exe")
    -> "initiative_manager-x86_64-pc-windows-msvc.exe"
    """
    return f"{app_name}-{target_id}{exe_suffix}"
