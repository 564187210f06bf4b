"""GitHub Actions definition for the build-and-release pipeline.

The rendered workflow is the scheduler: it runs one build job per runner in
parallel (fail-fast off, so platforms never cancel each other), moves the
artifact directories with the hosting platform's artifact actions, and
starts the release job only after the whole build matrix has finished.
"""

from __future__ import annotations

from pathlib import Path

from imr.core.config import Config
from imr.platform.files import atomic_write_text

__all__ = ["WORKFLOW_PATH", "render_workflow", "write_workflow"]

WORKFLOW_PATH = Path(".github") / "workflows" / "main.yml"

_PYTHON_VERSION = "3.12"
_CHECKOUT = "actions/checkout@v4"
_SETUP_PYTHON = "actions/setup-python@v5"
_UPLOAD_ARTIFACT = "actions/upload-artifact@v4"
_DOWNLOAD_ARTIFACT = "actions/download-artifact@v4"
_RELEASE_RUNNER = "ubuntu-latest"


def _expr(inner: str) -> str:
    """A GitHub expression, ``${{ inner }}``."""
    return "${{ " + inner + " }}"


def _setup_steps(config: Config) -> list[str]:
    return [
        f"      - uses: {_CHECKOUT}",
        f"      - uses: {_SETUP_PYTHON}",
        "        with:",
        f'          python-version: "{_PYTHON_VERSION}"',
        f"      - run: python -m pip install {config.ci.tool_spec}",
    ]


def render_workflow(config: Config) -> str:
    """Return the workflow YAML for ``config``."""
    ci = config.ci
    matrix_os = _expr("matrix.os")
    labels = ", ".join(r.runner for r in ci.runners)

    lines: list[str] = [
        "name: Build & Release",
        "",
        "on:",
        "  push:",
        f"    branches: [ {ci.branch} ]",
        "  pull_request:",
        f"    branches: [ {ci.branch} ]",
        "",
        "env:",
        "  CARGO_TERM_COLOR: always",
        "",
        "jobs:",
        "  build:",
        "    strategy:",
        "      fail-fast: false",
        "      matrix:",
        f"        os: [ {labels} ]",
        f"    runs-on: {matrix_os}",
        "    steps:",
        *_setup_steps(config),
    ]

    linux = ci.runner_for_platform("linux")
    if linux is not None and config.build.apt_packages:
        lines += [
            f"      - run: sudo apt-get install -y {' '.join(config.build.apt_packages)}",
            f"        if: matrix.os == '{linux.runner}'",
        ]

    lines += [
        "      - name: Build",
        f"        run: imr build --runner {matrix_os}",
        f"      - uses: {_UPLOAD_ARTIFACT}",
        "        with:",
        f"          name: artifact-{matrix_os}",
        f"          path: artifact-{matrix_os}",
        "          if-no-files-found: error",
        "",
        "  release:",
        "    needs: [ build ]",
        f"    runs-on: {_RELEASE_RUNNER}",
        "    permissions:",
        "      contents: write",
        "    steps:",
        *_setup_steps(config),
    ]

    for runner in ci.runners:
        lines += [
            f"      - uses: {_DOWNLOAD_ARTIFACT}",
            "        with:",
            f"          name: {runner.artifact_name}",
            f"          path: {runner.artifact_name}",
        ]

    lines += [
        "      - name: Release",
        "        run: imr release --artifacts .",
        "        env:",
        f"          GITHUB_TOKEN: {_expr('secrets.GITHUB_TOKEN')}",
    ]

    return "\n".join(lines) + "\n"


def write_workflow(config: Config, project_root: Path, out: Path | None = None) -> Path:
    """Render the workflow into the project (default ``.github/workflows/main.yml``)."""
    path = out if out is not None else project_root / WORKFLOW_PATH
    if not path.is_absolute():
        path = project_root / path
    atomic_write_text(path, render_workflow(config))
    return path
