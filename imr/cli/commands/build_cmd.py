from __future__ import annotations

from pathlib import Path

import typer

from imr.cli.commands._helpers import exit_with_code, resolve_dir
from imr.cli.context import build_context
from imr.core.result import Err, Ok
from imr.output.errors import build_error_exit_code, build_error_message, print_build_error
from imr.output.github import annotate_error, set_outputs
from imr.services.artifacts import LocalArtifactStore
from imr.services.build import BuildService
from imr.tools.http import RealHttpClient


def build(
    runner: str | None = typer.Option(
        None,
        "--runner",
        help="CI runner label this job builds for (default: the current platform's runner).",
    ),
    store: Path | None = typer.Option(
        None,
        "--store",
        help="Copy the artifact into this directory (default: leave it in the project root).",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print actions without running them."),
) -> None:
    """Compile, derive the target identifier and package this platform's artifact."""
    ctx = build_context()
    service = BuildService(
        project=ctx.project,
        platform=ctx.platform,
        config=ctx.config,
        console=ctx.console,
        http=RealHttpClient(),
    )

    artifact_store = LocalArtifactStore(resolve_dir(ctx, store)) if store is not None else None
    result = service.run(runner_label=runner, store=artifact_store, dry_run=dry_run)

    match result:
        case Ok(job):
            if not dry_run:
                set_outputs({"artifact": job.runner.artifact_name, "target": job.target_id})
            ctx.console.success(f"{job.artifact_dir} ({job.target_id})")
        case Err(error):
            print_build_error(error, ctx.console)
            annotate_error("Build failure", build_error_message(error))
            exit_with_code(build_error_exit_code(error))
