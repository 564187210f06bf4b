from __future__ import annotations

import os
from pathlib import Path

import typer

from imr import __version__
from imr.cli.commands.artifact_cmd import artifact_app
from imr.cli.commands.build_cmd import build
from imr.cli.commands.ci_cmd import ci_app
from imr.cli.commands.release_cmd import release
from imr.core.errors import ErrorCode
from imr.core.project import PROJECT_ROOT_ENV

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Commands
app.command()(build)
app.command()(release)

# Sub-apps
app.add_typer(artifact_app, name="artifact", help="Inspect build artifacts.")
app.add_typer(ci_app, name="ci", help="CI pipeline definition.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    project: Path | None = typer.Option(
        None,
        "--project",
        help="Project root (overrides auto detection)",
    ),
) -> None:
    """Build and release initiative_manager for Linux, macOS and Windows."""
    del version
    if project is not None:
        try:
            root = project.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --project: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        if not root.is_dir():
            typer.echo(f"error: --project '{root}' is not a directory", err=True)
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

        os.environ[PROJECT_ROOT_ENV] = str(root)


def main() -> None:
    app()
