from __future__ import annotations

from pathlib import Path

import typer

from imr.cli.context import build_context
from imr.services.workflow import render_workflow, write_workflow

ci_app = typer.Typer(add_completion=False, no_args_is_help=True)


@ci_app.command("workflow")
def workflow_cmd(
    out: Path | None = typer.Option(
        None, "--out", help="Output path (default: .github/workflows/main.yml)"
    ),
    stdout: bool = typer.Option(False, "--stdout", help="Print instead of writing the file."),
) -> None:
    """Render the GitHub Actions pipeline that runs `imr build` and `imr release`."""
    ctx = build_context()
    if stdout:
        typer.echo(render_workflow(ctx.config), nl=False)
        return
    path = write_workflow(ctx.config, ctx.project.root, out)
    ctx.console.success(str(path))
