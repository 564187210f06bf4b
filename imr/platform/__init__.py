"""Platform abstraction layer."""

from .detection import Platform, PlatformInfo, detect, parse_platform
from .process import ProcessError, run, run_silent

__all__ = [
    # detection
    "Platform",
    "PlatformInfo",
    "detect",
    "parse_platform",
    # process
    "ProcessError",
    "run",
    "run_silent",
]
