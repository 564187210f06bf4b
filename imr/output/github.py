"""GitHub Actions integration: step outputs and workflow annotations.

Outside of Actions (no ``GITHUB_ACTIONS``/``GITHUB_OUTPUT``) every function
is a no-op, so local runs print nothing extra.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from pathlib import Path

from imr.platform.files import append_text

__all__ = ["in_github_actions", "set_outputs", "annotate_error"]


def in_github_actions(env: Mapping[str, str] | None = None) -> bool:
    env = os.environ if env is None else env
    return env.get("GITHUB_ACTIONS") == "true"


def set_outputs(values: Mapping[str, str], env: Mapping[str, str] | None = None) -> bool:
    """Append ``name=value`` lines to the step output file.

    Returns True if the outputs were written.

    Raises:
        ValueError: If a value spans several lines (the short form cannot hold it).
    """
    env = os.environ if env is None else env
    output = env.get("GITHUB_OUTPUT")
    if not output:
        return False

    lines: list[str] = []
    for name, value in values.items():
        if "\n" in value or "\r" in value:
            raise ValueError(f"step output '{name}' must be a single line")
        lines.append(f"{name}={value}\n")

    append_text(Path(output), "".join(lines))
    return True


def _escape(data: str) -> str:
    return data.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def annotate_error(title: str, message: str, env: Mapping[str, str] | None = None) -> None:
    """Emit an ``::error`` workflow command so the failure shows on the run page."""
    if not in_github_actions(env):
        return
    title_esc = _escape(title).replace(":", "%3A").replace(",", "%2C")
    print(f"::error title={title_esc}::{_escape(message)}", file=sys.stderr)
