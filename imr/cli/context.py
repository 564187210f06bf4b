from __future__ import annotations

from dataclasses import dataclass

import typer

from imr.core.config import Config, load_config_or_default
from imr.core.errors import ErrorCode
from imr.core.project import Project, detect_project
from imr.core.result import Err
from imr.output.console import ConsoleProtocol, RichConsole
from imr.platform.detection import PlatformInfo, detect


@dataclass(frozen=True, slots=True)
class CLIContext:
    project: Project
    platform: PlatformInfo
    config: Config
    console: ConsoleProtocol


def build_context() -> CLIContext:
    project_result = detect_project()
    if isinstance(project_result, Err):
        typer.echo(f"error: {project_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    project = project_result.value

    # A broken imr.toml must not silently fall back to defaults: the tag and
    # title it carries end up in a public release.
    config_result = load_config_or_default(project.config_path)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(
        project=project,
        platform=detect(),
        config=config_result.value,
        console=RichConsole(),
    )
