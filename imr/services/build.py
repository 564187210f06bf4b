"""Build stage: compile, self-describe, package.

One build job runs per platform runner:
- Compile the application with cargo in the release profile
- Ask the fresh binary for its target triple (``<exe> TARGET``)
- Package ``artifact-<runner>/`` with the executable and a ``TARGET`` file
- Windows only: embed the application icon with rcedit

Jobs share nothing, so a failure here never affects another platform.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from ..core.config import Config, RunnerConfig
from ..core.project import Project
from ..core.result import Err, Ok, Result
from ..output.console import ConsoleProtocol, Style
from ..platform.detection import PlatformInfo, parse_platform
from ..platform.files import atomic_write_text
from ..platform.process import run as run_process
from ..platform.process import run_silent
from ..tools.http import HttpClient
from ..tools.rcedit import Rcedit
from .artifacts import TARGET_FILE, LocalArtifactStore, read_artifact, validate_target_id
from .build_errors import (
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

_COMPILE_TIMEOUT_SECONDS = 60 * 60.0
_TOOLCHAIN_TIMEOUT_SECONDS = 10 * 60.0
_TARGET_QUERY_TIMEOUT_SECONDS = 60.0
_PKG_CONFIG_TIMEOUT_SECONDS = 30.0

DRY_RUN_TARGET_ID = "dry-run"


@dataclass(frozen=True, slots=True)
class BuildJob:
    """Outcome of one platform's build."""

    runner: RunnerConfig
    binary: Path
    target_id: str
    artifact_dir: Path


class BuildService:
    """Build stage for the current platform."""

    def __init__(
        self,
        *,
        project: Project,
        platform: PlatformInfo,
        config: Config,
        console: ConsoleProtocol,
        http: HttpClient,
    ) -> None:
        self._project = project
        self._platform = platform
        self._config = config
        self._console = console
        self._http = http

    # -------------------------------------------------------------------------
    # Stage entry point
    # -------------------------------------------------------------------------

    def run(
        self,
        *,
        runner_label: str | None = None,
        store: LocalArtifactStore | None = None,
        dry_run: bool = False,
    ) -> Result[BuildJob, BuildError]:
        """Run the whole build job and upload its artifact.

        Args:
            runner_label: CI runner this job represents (default: the runner
                configured for the current platform).
            store: Artifact store; defaults to the project root, where the CI
                upload step picks the directory up.
            dry_run: Print commands without running them.
        """
        runner = self.resolve_runner(runner_label)
        if isinstance(runner, Err):
            return runner

        self._console.header(f"build {self._config.app.name} ({runner.value.runner})")

        binary = self.compile(dry_run=dry_run)
        if isinstance(binary, Err):
            return binary

        target_id = self.derive_target(binary.value, dry_run=dry_run)
        if isinstance(target_id, Err):
            return target_id

        job = self.package(
            runner=runner.value,
            binary=binary.value,
            target_id=target_id.value,
            dry_run=dry_run,
        )
        if isinstance(job, Err) or dry_run:
            return job

        verified = self.verify(job.value)
        if isinstance(verified, Err):
            return verified

        target_store = store or LocalArtifactStore(self._project.root)
        uploaded = target_store.upload(job.value.artifact_dir, runner.value.artifact_name)
        if isinstance(uploaded, Err):
            return Err(ArtifactInvalid(name=uploaded.error.name, reason=uploaded.error.message))

        return Ok(
            BuildJob(
                runner=job.value.runner,
                binary=job.value.binary,
                target_id=job.value.target_id,
                artifact_dir=uploaded.value,
            )
        )

    def resolve_runner(self, runner_label: str | None) -> Result[RunnerConfig, BuildError]:
        ci = self._config.ci
        available = tuple(r.runner for r in ci.runners)
        current = str(self._platform.platform)

        if runner_label is None:
            runner = ci.runner_for_platform(current)
            if runner is None:
                return Err(UnknownRunner(runner=f"({current})", available=available))
            return Ok(runner)

        runner = ci.runner_for(runner_label)
        if runner is None:
            return Err(UnknownRunner(runner=runner_label, available=available))
        if parse_platform(runner.platform) != self._platform.platform:
            return Err(PlatformMismatch(runner=runner.runner, expected=runner.platform, actual=current))
        return Ok(runner)

    # -------------------------------------------------------------------------
    # Operation 1: compile
    # -------------------------------------------------------------------------

    def compile(self, *, dry_run: bool = False) -> Result[Path, BuildError]:
        """Compile the application and return the built executable."""
        build = self._config.build

        cargo = self._which(build.cargo, dry_run=dry_run)
        if cargo is None:
            return Err(ToolMissing(tool_id=build.cargo, hint="Install Rust: https://rustup.rs/"))

        if self._platform.is_linux:
            prereq = self._check_system_libraries(dry_run=dry_run)
            if isinstance(prereq, Err):
                return prereq

        if build.toolchain:
            toolchain = self._set_toolchain(build.toolchain, dry_run=dry_run)
            if isinstance(toolchain, Err):
                return toolchain

        cmd = [cargo, "build", *self._profile_args()]
        self._console.print(" ".join(cmd), Style.DIM)
        if not dry_run:
            result = run_silent(cmd, cwd=self._project.root, timeout=_COMPILE_TIMEOUT_SECONDS)
            if isinstance(result, Err):
                return Err(CompileFailed(returncode=result.error.returncode))

        exe = self._built_binary()
        if not dry_run and not exe.is_file():
            return Err(OutputMissing(path=exe))
        return Ok(exe)

    # -------------------------------------------------------------------------
    # Operation 2: derive target identifier
    # -------------------------------------------------------------------------

    def derive_target(self, binary: Path, *, dry_run: bool = False) -> Result[str, BuildError]:
        """Run the binary in its self-describing mode and capture the triple."""
        cmd = [str(binary), self._config.app.target_arg]
        self._console.print(" ".join(cmd), Style.DIM)
        if dry_run:
            return Ok(DRY_RUN_TARGET_ID)

        result = run_process(cmd, cwd=self._project.root, timeout=_TARGET_QUERY_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            e = result.error
            return Err(TargetQueryFailed(binary=binary, returncode=e.returncode, stderr=e.stderr))

        target_id = result.value.strip()
        reason = validate_target_id(target_id)
        if reason is not None:
            return Err(TargetInvalid(value=target_id, reason=reason))

        self._console.print(f"target: {target_id}", Style.INFO)
        return Ok(target_id)

    # -------------------------------------------------------------------------
    # Operation 3: package
    # -------------------------------------------------------------------------

    def package(
        self,
        *,
        runner: RunnerConfig,
        binary: Path,
        target_id: str,
        dry_run: bool = False,
    ) -> Result[BuildJob, BuildError]:
        """Create a fresh artifact directory with the executable and TARGET file."""
        out_dir = self._project.root / runner.artifact_name
        dest = out_dir / self._exe_name()
        job = BuildJob(runner=runner, binary=dest, target_id=target_id, artifact_dir=out_dir)

        self._console.print(f"package: {binary} -> {dest}", Style.DIM)
        if dry_run:
            if self._platform.is_windows:
                self._console.print(f"rcedit: {self._config.windows.rcedit_url}", Style.DIM)
            return Ok(job)

        try:
            if out_dir.exists():
                self._console.print(f"removing stale {out_dir.name}/", Style.DIM)
                shutil.rmtree(out_dir)
            out_dir.mkdir(parents=True)
            atomic_write_text(out_dir / TARGET_FILE, target_id + "\n")
            shutil.move(str(binary), str(dest))
        except OSError as e:
            return Err(ArtifactInvalid(name=runner.artifact_name, reason=str(e)))

        if self._platform.is_windows:
            embedded = self.embed_icon(dest)
            if isinstance(embedded, Err):
                return embedded

        return Ok(job)

    def embed_icon(self, exe: Path) -> Result[None, BuildError]:
        """Windows only: set the application icon on ``exe``."""
        windows = self._config.windows
        rcedit = Rcedit(url=windows.rcedit_url, cache_dir=self._project.tools_cache_dir)

        self._console.print(f"download: {windows.rcedit_url}", Style.DIM)
        tool = rcedit.ensure(self._http)
        if isinstance(tool, Err):
            return Err(ToolDownloadFailed(tool_id="rcedit", message=tool.error.message))

        icon = self._project.root / windows.icon
        self._console.print(f"rcedit {exe.name} --set-icon {windows.icon}", Style.DIM)
        embedded = rcedit.set_icon(exe=tool.value, target=exe, icon=icon, cwd=self._project.root)
        if isinstance(embedded, Err):
            return Err(IconEmbedFailed(message=embedded.error.message))
        return Ok(None)

    def verify(self, job: BuildJob) -> Result[None, BuildError]:
        """Check the packaged directory before it leaves the runner."""
        result = read_artifact(
            job.artifact_dir,
            name=job.runner.artifact_name,
            exe_name=self._exe_name(),
        )
        if isinstance(result, Err):
            return Err(ArtifactInvalid(name=result.error.name, reason=result.error.message))
        if result.value.target_id != job.target_id:
            return Err(
                ArtifactInvalid(
                    name=job.runner.artifact_name,
                    reason=f"{TARGET_FILE} does not match '{job.target_id}'",
                )
            )
        return Ok(None)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _exe_name(self) -> str:
        return self._platform.platform.exe_name(self._config.app.name)

    def _profile_args(self) -> list[str]:
        profile = self._config.build.profile
        if profile == "release":
            return ["--release"]
        return ["--profile", profile]

    def _built_binary(self) -> Path:
        profile = self._config.build.profile
        # cargo writes the "dev" profile to target/debug
        out_dir = "debug" if profile == "dev" else profile
        return self._project.target_dir(out_dir) / self._exe_name()

    def _which(self, tool: str, *, dry_run: bool = False) -> str | None:
        """Resolve a tool; a dry run prints the bare name when it is not installed."""
        if os.path.sep in tool or (os.path.altsep and os.path.altsep in tool):
            found = tool if Path(tool).is_file() else None
        else:
            found = shutil.which(tool)
        if found is None and dry_run:
            return tool
        return found

    def _check_system_libraries(self, *, dry_run: bool) -> Result[None, BuildError]:
        """Linux: every configured pkg-config module must resolve."""
        build = self._config.build
        if not build.pkg_config:
            return Ok(None)

        install_hint = (
            f"sudo apt install {' '.join(build.apt_packages)}"
            if build.apt_packages
            else "Install the development packages for: " + ", ".join(build.pkg_config)
        )

        pkg_config = self._which("pkg-config", dry_run=dry_run)
        if pkg_config is None:
            return Err(ToolMissing(tool_id="pkg-config", hint="sudo apt install pkg-config"))

        for module in build.pkg_config:
            cmd = [pkg_config, "--exists", module]
            self._console.print(" ".join(cmd), Style.DIM)
            if dry_run:
                continue
            result = run_process(cmd, cwd=self._project.root, timeout=_PKG_CONFIG_TIMEOUT_SECONDS)
            if isinstance(result, Err):
                return Err(PrereqMissing(name=module, hint=install_hint))
        return Ok(None)

    def _set_toolchain(self, toolchain: str, *, dry_run: bool) -> Result[None, BuildError]:
        rustup = self._which("rustup", dry_run=dry_run)
        if rustup is None:
            return Err(ToolMissing(tool_id="rustup", hint="Install Rust: https://rustup.rs/"))

        cmd = [rustup, "override", "set", toolchain]
        self._console.print(" ".join(cmd), Style.DIM)
        if dry_run:
            return Ok(None)
        result = run_silent(cmd, cwd=self._project.root, timeout=_TOOLCHAIN_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(ToolchainFailed(toolchain=toolchain, returncode=result.error.returncode))
        return Ok(None)
