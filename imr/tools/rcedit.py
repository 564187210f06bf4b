"""rcedit: Windows resource editor used to embed the application icon.

The executable is fetched from its GitHub release on every clean runner and
cached under the project state directory.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from imr.core.result import Err, Ok, Result
from imr.platform.process import run as run_process
from imr.tools.http import HttpClient

__all__ = ["Rcedit", "RceditError"]

_RCEDIT_TIMEOUT_SECONDS = 120.0


@dataclass(frozen=True, slots=True)
class RceditError:
    stage: str  # "download" | "embed"
    message: str


@dataclass(frozen=True, slots=True)
class Rcedit:
    url: str
    cache_dir: Path

    @property
    def exe_path(self) -> Path:
        name = Path(urlparse(self.url).path).name or "rcedit.exe"
        return self.cache_dir / name

    def ensure(self, http: HttpClient) -> Result[Path, RceditError]:
        """Download rcedit unless already cached."""
        exe = self.exe_path
        if exe.is_file() and exe.stat().st_size > 0:
            return Ok(exe)

        result = http.download(self.url, exe)
        if isinstance(result, Err):
            return Err(RceditError(stage="download", message=str(result.error)))
        return Ok(result.value)

    def set_icon(self, *, exe: Path, target: Path, icon: Path, cwd: Path) -> Result[None, RceditError]:
        """Embed ``icon`` into the ``target`` executable in place."""
        if not icon.is_file():
            return Err(RceditError(stage="embed", message=f"icon not found: {icon}"))

        cmd = [str(exe), str(target), "--set-icon", str(icon)]
        result = run_process(cmd, cwd=cwd, timeout=_RCEDIT_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            detail = result.error.stderr.strip() or str(result.error)
            if exe == self.exe_path:
                detail += f" (cached tool {exe}; delete it to download again)"
            return Err(RceditError(stage="embed", message=detail))
        return Ok(None)
