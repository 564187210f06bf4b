"""Tests for the build stage (imr.services.build)."""

from __future__ import annotations

from pathlib import Path

import pytest

import imr.services.build as build_mod
import imr.tools.rcedit as rcedit_mod
from imr.core.config import RCEDIT_URL, Config
from imr.core.project import Project
from imr.core.result import Err, Ok, Result
from imr.output.console import MockConsole
from imr.platform.detection import Platform, PlatformInfo
from imr.platform.process import ProcessError
from imr.services.artifacts import LocalArtifactStore
from imr.services.build import BuildService
from imr.services.build_errors import (
    CompileFailed,
    IconEmbedFailed,
    PlatformMismatch,
    PrereqMissing,
    TargetInvalid,
    TargetQueryFailed,
    ToolchainFailed,
    ToolDownloadFailed,
    ToolMissing,
    UnknownRunner,
)
from imr.tools.http import MockHttpClient

TRIPLES = {
    Platform.LINUX: "x86_64-unknown-linux-gnu",
    Platform.MACOS: "x86_64-apple-darwin",
    Platform.WINDOWS: "x86_64-pc-windows-msvc",
}


class FakeToolchain:
    """Stands in for cargo and the freshly built binary."""

    def __init__(self, root: Path, exe_name: str, target_output: str) -> None:
        self.root = root
        self.exe_name = exe_name
        self.target_output = target_output
        self.compile_returncode = 0
        self.toolchain_returncode = 0
        self.target_error: ProcessError | None = None
        self.silent_calls: list[list[str]] = []
        self.calls: list[list[str]] = []

    def run_silent(
        self, cmd: list[str], cwd: Path, env: dict[str, str] | None = None, *, timeout: float | None = None
    ) -> Result[None, ProcessError]:
        self.silent_calls.append(cmd)
        if cmd[1:3] == ["override", "set"] and self.toolchain_returncode:
            return Err(ProcessError(tuple(cmd), self.toolchain_returncode, "", ""))
        if cmd[1:2] == ["build"]:
            if self.compile_returncode:
                return Err(ProcessError(tuple(cmd), self.compile_returncode, "", ""))
            exe = self.root / "target" / "release" / self.exe_name
            exe.parent.mkdir(parents=True, exist_ok=True)
            exe.write_bytes(b"binary")
        return Ok(None)

    def run(
        self, cmd: list[str], cwd: Path, env: dict[str, str] | None = None, *, timeout: float | None = None
    ) -> Result[str, ProcessError]:
        self.calls.append(cmd)
        if self.target_error is not None:
            return Err(self.target_error)
        return Ok(self.target_output)


def _setup(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    platform: Platform = Platform.LINUX,
    *,
    build: dict[str, object] | None = None,
    target_output: str | None = None,
) -> tuple[BuildService, FakeToolchain, MockConsole, MockHttpClient, Project]:
    root = tmp_path / "app"
    root.mkdir()
    cargo = tmp_path / "bin" / "cargo"
    cargo.parent.mkdir()
    cargo.write_text("", encoding="utf-8")

    build_table: dict[str, object] = {"cargo": str(cargo), "toolchain": "", "pkg_config": []}
    build_table.update(build or {})
    config = Config.from_dict({"build": build_table})

    project = Project(root=root)
    exe_name = platform.exe_name(config.app.name)
    output = target_output if target_output is not None else TRIPLES[platform] + "\n"
    fake = FakeToolchain(root, exe_name, output)
    monkeypatch.setattr(build_mod, "run_silent", fake.run_silent)
    monkeypatch.setattr(build_mod, "run_process", fake.run)

    console = MockConsole()
    http = MockHttpClient()
    service = BuildService(
        project=project,
        platform=PlatformInfo(platform=platform),
        config=config,
        console=console,
        http=http,
    )
    return service, fake, console, http, project


class TestRunLinux:
    def test_artifact_holds_exe_and_target(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, fake, _, http, project = _setup(tmp_path, monkeypatch)

        result = service.run()

        assert isinstance(result, Ok)
        job = result.value
        assert job.runner.runner == "ubuntu-latest"
        assert job.target_id == "x86_64-unknown-linux-gnu"
        assert job.artifact_dir == project.root / "artifact-ubuntu-latest"
        assert sorted(p.name for p in job.artifact_dir.iterdir()) == ["TARGET", "initiative_manager"]
        assert (job.artifact_dir / "TARGET").read_text(encoding="utf-8") == "x86_64-unknown-linux-gnu\n"
        # moved, not copied
        assert not (project.root / "target" / "release" / "initiative_manager").exists()
        assert http.calls == []

    def test_commands(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, fake, _, _, project = _setup(tmp_path, monkeypatch)

        service.run()

        assert fake.silent_calls == [[str(tmp_path / "bin" / "cargo"), "build", "--release"]]
        assert fake.calls == [[str(project.root / "target" / "release" / "initiative_manager"), "TARGET"]]

    def test_replaces_stale_artifact(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, _, _, _, project = _setup(tmp_path, monkeypatch)
        stale = project.root / "artifact-ubuntu-latest"
        stale.mkdir()
        (stale / "initiative_manager-old").write_bytes(b"old")

        result = service.run()

        assert isinstance(result, Ok)
        assert sorted(p.name for p in stale.iterdir()) == ["TARGET", "initiative_manager"]

    def test_copies_into_store(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, _, _, _, _ = _setup(tmp_path, monkeypatch)
        store = LocalArtifactStore(tmp_path / "store")

        result = service.run(store=store)

        assert isinstance(result, Ok)
        assert result.value.artifact_dir == tmp_path / "store" / "artifact-ubuntu-latest"
        assert (result.value.artifact_dir / "TARGET").is_file()

    def test_empty_target_fails_before_packaging(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, _, _, _, project = _setup(tmp_path, monkeypatch, target_output="\n")

        result = service.run()

        assert result == Err(TargetInvalid(value="", reason="is empty"))
        assert not (project.root / "artifact-ubuntu-latest").exists()

    def test_multiline_target_fails(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, _, _, _, _ = _setup(tmp_path, monkeypatch, target_output="a\nb\n")
        result = service.run()
        assert isinstance(result, Err)
        assert isinstance(result.error, TargetInvalid)

    def test_target_query_failure(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, fake, _, _, project = _setup(tmp_path, monkeypatch)
        binary = project.root / "target" / "release" / "initiative_manager"
        fake.target_error = ProcessError((str(binary), "TARGET"), 101, "", "thread main panicked")

        result = service.run()

        assert result == Err(TargetQueryFailed(binary=binary, returncode=101, stderr="thread main panicked"))
        assert not (project.root / "artifact-ubuntu-latest").exists()

    def test_binary_that_cannot_run(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, fake, _, _, project = _setup(tmp_path, monkeypatch)
        binary = project.root / "target" / "release" / "initiative_manager"
        fake.target_error = ProcessError((str(binary), "TARGET"), -1, "", "Exec format error")

        result = service.run()

        assert isinstance(result, Err)
        assert isinstance(result.error, TargetQueryFailed)
        assert result.error.returncode == -1
        assert not (project.root / "artifact-ubuntu-latest").exists()

    def test_compile_failure(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, fake, _, _, project = _setup(tmp_path, monkeypatch)
        fake.compile_returncode = 101

        result = service.run()

        assert result == Err(CompileFailed(returncode=101))
        assert fake.calls == []
        assert not (project.root / "artifact-ubuntu-latest").exists()

    def test_dry_run_touches_nothing(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, fake, console, _, project = _setup(tmp_path, monkeypatch)

        result = service.run(dry_run=True)

        assert isinstance(result, Ok)
        assert fake.silent_calls == []
        assert fake.calls == []
        assert not (project.root / "artifact-ubuntu-latest").exists()
        assert console.find("build --release")


class TestPrerequisites:
    def test_missing_system_library(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, fake, _, _, _ = _setup(tmp_path, monkeypatch, build={"pkg_config": ["xkbcommon"]})
        monkeypatch.setattr(build_mod.shutil, "which", lambda tool: f"/usr/bin/{tool}")

        def missing(cmd: list[str], cwd: Path, env: object = None, *, timeout: float | None = None) -> Result[str, ProcessError]:
            return Err(ProcessError(tuple(cmd), 1, "", ""))

        monkeypatch.setattr(build_mod, "run_process", missing)

        result = service.run()

        assert result == Err(PrereqMissing(name="xkbcommon", hint="sudo apt install libxkbcommon-dev"))
        assert fake.silent_calls == []

    def test_toolchain_override_runs_first(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, fake, _, _, _ = _setup(tmp_path, monkeypatch, build={"toolchain": "nightly"})
        monkeypatch.setattr(build_mod.shutil, "which", lambda tool: f"/usr/bin/{tool}")

        result = service.run()

        assert isinstance(result, Ok)
        assert fake.silent_calls[0] == ["/usr/bin/rustup", "override", "set", "nightly"]
        assert fake.silent_calls[1][1:] == ["build", "--release"]

    def test_toolchain_failure_stops_before_compile(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, fake, _, _, project = _setup(tmp_path, monkeypatch, build={"toolchain": "nightly"})
        monkeypatch.setattr(build_mod.shutil, "which", lambda tool: f"/usr/bin/{tool}")
        fake.toolchain_returncode = 1

        result = service.run()

        assert result == Err(ToolchainFailed(toolchain="nightly", returncode=1))
        assert len(fake.silent_calls) == 1
        assert fake.calls == []
        assert not (project.root / "artifact-ubuntu-latest").exists()

    def test_dry_run_without_installed_tools(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, fake, console, _, _ = _setup(
            tmp_path,
            monkeypatch,
            build={"cargo": "cargo", "toolchain": "nightly", "pkg_config": ["xkbcommon"]},
        )
        monkeypatch.setattr(build_mod.shutil, "which", lambda tool: None)

        result = service.run(dry_run=True)

        assert isinstance(result, Ok)
        assert fake.silent_calls == []
        assert console.find("pkg-config --exists xkbcommon")
        assert console.find("rustup override set nightly")
        assert console.find("cargo build --release")

    def test_missing_cargo(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, _, _, _, _ = _setup(tmp_path, monkeypatch, build={"cargo": "cargo"})
        monkeypatch.setattr(build_mod.shutil, "which", lambda tool: None)

        result = service.run()

        assert result == Err(ToolMissing(tool_id="cargo", hint="Install Rust: https://rustup.rs/"))


class TestRunners:
    def test_unknown_runner(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, _, _, _, _ = _setup(tmp_path, monkeypatch)
        result = service.run(runner_label="self-hosted")
        assert isinstance(result, Err)
        assert isinstance(result.error, UnknownRunner)
        assert result.error.available == ("ubuntu-latest", "macos-latest", "windows-latest")

    def test_platform_mismatch(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, _, _, _, _ = _setup(tmp_path, monkeypatch)
        result = service.run(runner_label="windows-latest")
        assert result == Err(PlatformMismatch(runner="windows-latest", expected="windows", actual="linux"))

    def test_macos(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, _, _, _, project = _setup(tmp_path, monkeypatch, Platform.MACOS)
        result = service.run(runner_label="macos-latest")
        assert isinstance(result, Ok)
        assert result.value.artifact_dir == project.root / "artifact-macos-latest"
        assert result.value.target_id == "x86_64-apple-darwin"


class TestWindows:
    def test_embeds_icon(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, _, _, http, project = _setup(tmp_path, monkeypatch, Platform.WINDOWS)
        http.set_download(RCEDIT_URL, b"MZ")
        icon = project.root / "resources" / "logo.ico"
        icon.parent.mkdir()
        icon.write_bytes(b"ico")
        rcedit_calls: list[list[str]] = []

        def fake_rcedit(cmd: list[str], *, cwd: Path, timeout: float | None = None) -> Result[str, ProcessError]:
            rcedit_calls.append(cmd)
            return Ok("")

        monkeypatch.setattr(rcedit_mod, "run_process", fake_rcedit)

        result = service.run()

        assert isinstance(result, Ok)
        artifact = project.root / "artifact-windows-latest"
        assert sorted(p.name for p in artifact.iterdir()) == ["TARGET", "initiative_manager.exe"]
        assert http.calls == [RCEDIT_URL]
        assert rcedit_calls == [
            [
                str(project.tools_cache_dir / "rcedit-x64.exe"),
                str(artifact / "initiative_manager.exe"),
                "--set-icon",
                str(icon),
            ]
        ]

    def test_rcedit_download_failure_fails_the_job(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, _, _, http, _ = _setup(tmp_path, monkeypatch, Platform.WINDOWS)

        result = service.run()

        assert isinstance(result, Err)
        assert isinstance(result.error, ToolDownloadFailed)
        assert result.error.tool_id == "rcedit"
        # single attempt
        assert http.calls == [RCEDIT_URL]

    def test_missing_icon(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, _, _, http, _ = _setup(tmp_path, monkeypatch, Platform.WINDOWS)
        http.set_download(RCEDIT_URL, b"MZ")

        result = service.run()

        assert isinstance(result, Err)
        assert isinstance(result.error, IconEmbedFailed)

    def test_linux_never_downloads_rcedit(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service, _, _, http, _ = _setup(tmp_path, monkeypatch, Platform.LINUX)
        service.run()
        assert http.calls == []
