from __future__ import annotations

from pathlib import Path

import typer

from imr.cli.commands._helpers import exit_on_error, resolve_dir
from imr.cli.context import build_context
from imr.core.errors import ErrorCode
from imr.core.result import Err, Ok
from imr.platform.detection import Platform, parse_platform
from imr.services.artifacts import LocalArtifactStore

artifact_app = typer.Typer(add_completion=False, no_args_is_help=True)


@artifact_app.command("verify")
def verify_cmd(
    name: str = typer.Argument(..., help="Artifact name, e.g. artifact-ubuntu-latest"),
    artifacts: Path | None = typer.Option(
        None, "--artifacts", help="Directory holding the artifact directories."
    ),
) -> None:
    """Check that an artifact holds exactly one executable and a non-empty TARGET."""
    ctx = build_context()

    runner = next((r for r in ctx.config.ci.runners if r.artifact_name == name), None)
    if runner is None:
        available = ", ".join(r.artifact_name for r in ctx.config.ci.runners)
        ctx.console.error(f"unknown artifact: {name}")
        ctx.console.print(f"Available: {available}")
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    platform = parse_platform(runner.platform)
    if platform == Platform.UNKNOWN:
        ctx.console.error(f"unknown platform '{runner.platform}' for {runner.runner}")
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    store = LocalArtifactStore(resolve_dir(ctx, artifacts))
    result = store.download(name, exe_name=platform.exe_name(ctx.config.app.name))
    if isinstance(result, Err):
        exit_on_error(
            Err(f"{result.error.name}: {result.error.message}"), ctx, ErrorCode.IO_ERROR
        )
    elif isinstance(result, Ok):
        ctx.console.success(f"{name}: {result.value.executable.name} ({result.value.target_id})")
