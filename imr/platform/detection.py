"""Platform detection.

Build jobs need to know which OS they run on to pick the executable suffix,
the system-library checks and the Windows-only icon step.
"""

from __future__ import annotations

import sys as _sys
from dataclasses import dataclass
from enum import Enum, auto
from functools import lru_cache

__all__ = [
    "Platform",
    "PlatformInfo",
    "detect",
    "detect_platform",
    "parse_platform",
]


class Platform(Enum):
    """Operating system platform."""

    LINUX = auto()
    MACOS = auto()
    WINDOWS = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def exe_suffix(self) -> str:
        """Executable file suffix for this platform."""
        return ".exe" if self == Platform.WINDOWS else ""

    def exe_name(self, name: str) -> str:
        """Executable name with platform-appropriate suffix.

        Example: exe_name("initiative_manager") -> "initiative_manager.exe" on Windows.
        """
        return f"{name}{self.exe_suffix}"


@dataclass(frozen=True, slots=True)
class PlatformInfo:
    """Detected platform information. Use `detect()` to get an instance."""

    platform: Platform

    @property
    def is_windows(self) -> bool:
        return self.platform == Platform.WINDOWS

    @property
    def is_linux(self) -> bool:
        return self.platform == Platform.LINUX


def parse_platform(value: str) -> Platform:
    """Parse a platform key from config or the RUNNER_OS variable."""
    key = value.strip().lower()
    if key in ("linux", "ubuntu"):
        return Platform.LINUX
    if key in ("macos", "darwin", "osx"):
        return Platform.MACOS
    if key in ("windows", "win32", "win"):
        return Platform.WINDOWS
    return Platform.UNKNOWN


@lru_cache(maxsize=1)
def detect_platform() -> Platform:
    """Detect the current operating system (cached)."""
    system = _sys.platform.lower()
    if system.startswith("linux"):
        return Platform.LINUX
    if system.startswith("darwin"):
        return Platform.MACOS
    if system.startswith(("win32", "cygwin", "msys")):
        return Platform.WINDOWS
    return Platform.UNKNOWN


def detect() -> PlatformInfo:
    return PlatformInfo(platform=detect_platform())
