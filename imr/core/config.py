"""Typed configuration loading and access.

The pipeline reads an optional ``imr.toml`` at the project root. Every value
has a default matching the released pipeline, so a project without the file
builds and publishes exactly as before.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "AppConfig",
    "BuildConfig",
    "CiConfig",
    "Config",
    "ConfigError",
    "ReleaseConfig",
    "RunnerConfig",
    "WindowsConfig",
    "load_config",
    "load_config_or_default",
    "DEFAULT_TAG",
    "DEFAULT_TITLE",
    "DEFAULT_CONTENT_TYPE",
    "RCEDIT_URL",
]

DEFAULT_APP_NAME = "initiative_manager"
DEFAULT_TARGET_ARG = "TARGET"

DEFAULT_TAG = "v1.2.4"
DEFAULT_TITLE = "v1.2.4 Added concentration display & more discrete hideable stats (WIP)"
# Applied to every asset; it is a label, not a description of the raw binaries.
DEFAULT_CONTENT_TYPE = "application/zip"

RCEDIT_URL = "https://github.com/electron/rcedit/releases/download/v1.1.1/rcedit-x64.exe"
DEFAULT_ICON = "resources/logo.ico"

DEFAULT_BRANCH = "master"
# The tool is vendored into the application repository; "imr" on PyPI is an
# unrelated project.
DEFAULT_TOOL_SPEC = "./tools/imr"

DEFAULT_TOOLCHAIN = "nightly"
DEFAULT_PKG_CONFIG = ("xkbcommon",)
DEFAULT_APT_PACKAGES = ("libxkbcommon-dev",)


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class AppConfig:
    """The application being built."""

    name: str = DEFAULT_APP_NAME
    # Argument that makes the binary print its target triple and exit.
    target_arg: str = DEFAULT_TARGET_ARG


@dataclass(frozen=True, slots=True)
class BuildConfig:
    """Compile step configuration."""

    cargo: str = "cargo"
    profile: str = "release"
    toolchain: str | None = DEFAULT_TOOLCHAIN
    # pkg-config modules that must resolve on Linux before compiling.
    pkg_config: tuple[str, ...] = DEFAULT_PKG_CONFIG
    # apt packages providing them (used for hints and the CI install step).
    apt_packages: tuple[str, ...] = DEFAULT_APT_PACKAGES


@dataclass(frozen=True, slots=True)
class WindowsConfig:
    """Windows-only packaging: icon embedding."""

    icon: str = DEFAULT_ICON
    rcedit_url: str = RCEDIT_URL


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Release entity configuration.

    Tag and title are fixed per release and edited by hand; they are never
    derived from git state.
    """

    tag: str = DEFAULT_TAG
    title: str = DEFAULT_TITLE
    prerelease: bool = False
    content_type: str = DEFAULT_CONTENT_TYPE
    repo: str | None = None  # owner/name; falls back to GITHUB_REPOSITORY


@dataclass(frozen=True, slots=True)
class RunnerConfig:
    """One build platform and the CI runner that builds it."""

    platform: str
    runner: str

    @property
    def artifact_name(self) -> str:
        return f"artifact-{self.runner}"


def _default_runners() -> tuple[RunnerConfig, ...]:
    # Order is the asset attachment order.
    return (
        RunnerConfig(platform="linux", runner="ubuntu-latest"),
        RunnerConfig(platform="macos", runner="macos-latest"),
        RunnerConfig(platform="windows", runner="windows-latest"),
    )


@dataclass(frozen=True, slots=True)
class CiConfig:
    """Pipeline trigger and matrix."""

    branch: str = DEFAULT_BRANCH
    runners: tuple[RunnerConfig, ...] = field(default_factory=_default_runners)
    # pip requirement that installs this tool on the CI runners (path, VCS URL, ...)
    tool_spec: str = DEFAULT_TOOL_SPEC

    def runner_for(self, label: str) -> RunnerConfig | None:
        for r in self.runners:
            if r.runner == label:
                return r
        return None

    def runner_for_platform(self, platform: str) -> RunnerConfig | None:
        for r in self.runners:
            if r.platform == platform:
                return r
        return None


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    app: AppConfig = field(default_factory=AppConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    windows: WindowsConfig = field(default_factory=WindowsConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    ci: CiConfig = field(default_factory=CiConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: If the runner table is malformed.
        """
        app: StrDict = get_table(data, "app") or {}
        build: StrDict = get_table(data, "build") or {}
        windows: StrDict = get_table(data, "windows") or {}
        release: StrDict = get_table(data, "release") or {}
        ci: StrDict = get_table(data, "ci") or {}

        toolchain: str | None = DEFAULT_TOOLCHAIN
        if "toolchain" in build:
            # An empty string disables the override.
            toolchain = get_str(build, "toolchain")

        pkg_config = get_str_list(build, "pkg_config")
        apt_packages = get_str_list(build, "apt_packages")
        prerelease = get_bool(release, "prerelease")

        return cls(
            app=AppConfig(
                name=get_str(app, "name") or DEFAULT_APP_NAME,
                target_arg=get_str(app, "target_arg") or DEFAULT_TARGET_ARG,
            ),
            build=BuildConfig(
                cargo=get_str(build, "cargo") or "cargo",
                profile=get_str(build, "profile") or "release",
                toolchain=toolchain,
                pkg_config=tuple(pkg_config) if pkg_config is not None else DEFAULT_PKG_CONFIG,
                apt_packages=(
                    tuple(apt_packages) if apt_packages is not None else DEFAULT_APT_PACKAGES
                ),
            ),
            windows=WindowsConfig(
                icon=get_str(windows, "icon") or DEFAULT_ICON,
                rcedit_url=get_str(windows, "rcedit_url") or RCEDIT_URL,
            ),
            release=ReleaseConfig(
                tag=get_str(release, "tag") or DEFAULT_TAG,
                title=get_str(release, "title") or DEFAULT_TITLE,
                prerelease=prerelease if prerelease is not None else False,
                content_type=get_str(release, "content_type") or DEFAULT_CONTENT_TYPE,
                repo=get_str(release, "repo"),
            ),
            ci=CiConfig(
                branch=get_str(ci, "branch") or DEFAULT_BRANCH,
                runners=_parse_runners(ci.get("runners")),
                tool_spec=get_str(ci, "tool_spec") or DEFAULT_TOOL_SPEC,
            ),
        )


def _parse_runners(obj: object) -> tuple[RunnerConfig, ...]:
    if obj is None:
        return _default_runners()
    if not isinstance(obj, list):
        raise ValueError("ci.runners must be an array of tables")

    out: list[RunnerConfig] = []
    seen: set[str] = set()
    for item in obj:
        tbl = as_str_dict(item)
        if tbl is None:
            raise ValueError("ci.runners entries must be tables")
        platform = get_str(tbl, "platform")
        runner = get_str(tbl, "runner")
        if platform is None or runner is None:
            raise ValueError("ci.runners entries need 'platform' and 'runner'")
        if platform in seen:
            raise ValueError(f"ci.runners: duplicate platform '{platform}'")
        seen.add(platform)
        out.append(RunnerConfig(platform=platform, runner=runner))

    if not out:
        raise ValueError("ci.runners must not be empty")
    return tuple(out)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Like `load_config`, but a missing file yields the defaults.

    A file that exists and is broken is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
