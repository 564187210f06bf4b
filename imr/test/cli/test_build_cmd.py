from __future__ import annotations

from pathlib import Path

import pytest
import typer

from imr.cli.context import CLIContext
from imr.core.config import Config, RunnerConfig
from imr.core.errors import ErrorCode
from imr.core.project import Project
from imr.core.result import Err, Ok, Result
from imr.output.console import MockConsole
from imr.platform.detection import Platform, PlatformInfo
from imr.services.build import BuildJob
from imr.services.build_errors import BuildError, ToolDownloadFailed


def _ctx(tmp_path: Path) -> CLIContext:
    return CLIContext(
        project=Project(root=tmp_path),
        platform=PlatformInfo(platform=Platform.WINDOWS),
        config=Config(),
        console=MockConsole(),
    )


def _patch_service(monkeypatch: pytest.MonkeyPatch, result: Result[BuildJob, BuildError]) -> list[dict[str, object]]:
    import imr.cli.commands.build_cmd as build_cmd

    runs: list[dict[str, object]] = []

    class FakeBuildService:
        def __init__(self, **_: object) -> None:
            pass

        def run(self, **kwargs: object) -> Result[BuildJob, BuildError]:
            runs.append(kwargs)
            return result

    monkeypatch.setattr(build_cmd, "BuildService", FakeBuildService)
    return runs


def test_build_success_writes_step_outputs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import imr.cli.commands.build_cmd as build_cmd

    ctx = _ctx(tmp_path)
    monkeypatch.setattr(build_cmd, "build_context", lambda: ctx)
    runner = RunnerConfig(platform="windows", runner="windows-latest")
    job = BuildJob(
        runner=runner,
        binary=tmp_path / "artifact-windows-latest" / "initiative_manager.exe",
        target_id="x86_64-pc-windows-msvc",
        artifact_dir=tmp_path / "artifact-windows-latest",
    )
    runs = _patch_service(monkeypatch, Ok(job))
    output = tmp_path / "github_output"
    monkeypatch.setenv("GITHUB_OUTPUT", str(output))

    build_cmd.build(runner="windows-latest", store=None, dry_run=False)

    assert runs == [{"runner_label": "windows-latest", "store": None, "dry_run": False}]
    assert output.read_text(encoding="utf-8") == (
        "artifact=artifact-windows-latest\ntarget=x86_64-pc-windows-msvc\n"
    )
    assert isinstance(ctx.console, MockConsole)
    assert not ctx.console.has_error()


def test_build_failure_exits_with_network_code(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    import imr.cli.commands.build_cmd as build_cmd

    ctx = _ctx(tmp_path)
    monkeypatch.setattr(build_cmd, "build_context", lambda: ctx)
    _patch_service(monkeypatch, Err(ToolDownloadFailed(tool_id="rcedit", message="HTTP 404")))
    monkeypatch.setenv("GITHUB_ACTIONS", "true")

    with pytest.raises(typer.Exit) as exc:
        build_cmd.build(runner=None, store=None, dry_run=False)

    assert exc.value.exit_code == int(ErrorCode.NETWORK_ERROR)
    assert isinstance(ctx.console, MockConsole)
    assert ctx.console.messages == ["error: rcedit download failed: HTTP 404"]
    assert "::error title=Build failure::rcedit download failed: HTTP 404" in capsys.readouterr().err
