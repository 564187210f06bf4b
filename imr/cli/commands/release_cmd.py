from __future__ import annotations

import os
from pathlib import Path
from typing import NoReturn

import typer

from imr.cli.commands._helpers import exit_with_code, resolve_dir
from imr.cli.context import build_context
from imr.core.result import Err, Ok
from imr.output.console import ConsoleProtocol, Style
from imr.output.errors import print_release_error, release_error_exit_code
from imr.output.github import annotate_error, set_outputs
from imr.services.artifacts import LocalArtifactStore
from imr.services.release.errors import ReleaseError
from imr.services.release.gh import (
    GhReleaseClient,
    ensure_gh_auth,
    ensure_gh_available,
    resolve_repo,
)
from imr.services.release.orchestrator import ReleaseOrchestrator


def _fail(error: ReleaseError, console: ConsoleProtocol) -> NoReturn:
    print_release_error(error, console)
    annotate_error("Release failure", error.message)
    exit_with_code(release_error_exit_code(error))


def release(
    artifacts: Path | None = typer.Option(
        None,
        "--artifacts",
        help="Directory holding the downloaded artifact-<runner> directories.",
    ),
    repo: str | None = typer.Option(None, "--repo", help="GitHub repository (owner/name)."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print actions without running them."),
) -> None:
    """Create the draft release, attach every platform binary, publish."""
    ctx = build_context()

    if not dry_run:
        for check in (ensure_gh_available(), ensure_gh_auth(workspace_root=ctx.project.root)):
            if isinstance(check, Err):
                _fail(check.error, ctx.console)

    slug = resolve_repo(
        workspace_root=ctx.project.root,
        configured=repo or ctx.config.release.repo,
    )
    if isinstance(slug, Err):
        _fail(slug.error, ctx.console)

    client = GhReleaseClient(
        workspace_root=ctx.project.root,
        repo=slug.value,
        console=ctx.console,
        dry_run=dry_run,
    )
    orchestrator = ReleaseOrchestrator(
        config=ctx.config,
        store=LocalArtifactStore(resolve_dir(ctx, artifacts)),
        client=client,
        console=ctx.console,
        target_commitish=os.environ.get("GITHUB_SHA") or None,
    )

    ctx.console.print(f"repo: {slug.value}", Style.DIM)
    match orchestrator.run():
        case Ok(published):
            for asset in orchestrator.assets:
                ctx.console.print(f"  {asset.name}", Style.DIM)
            if not dry_run and published.html_url:
                set_outputs({"release_url": published.html_url})
            ctx.console.success(f"published {published.tag} ({published.html_url or published.id})")
        case Err(error):
            _fail(error, ctx.console)
