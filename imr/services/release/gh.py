from __future__ import annotations

import json
import os
import shutil
from collections.abc import Mapping
from pathlib import Path
from time import sleep
from urllib.parse import quote

from imr.core.result import Err, Ok, Result
from imr.core.structured import as_str_dict, get_int, get_str
from imr.output.console import ConsoleProtocol, Style
from imr.platform.process import ProcessError
from imr.platform.process import run as run_process
from imr.services.release.errors import ReleaseError, ReleaseErrorKind
from imr.services.release.model import GhAsset, GhRelease
from imr.services.release.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
    GH_UPLOAD_TIMEOUT_SECONDS,
)

_TOKEN_ENV_VARS = ("GH_TOKEN", "GITHUB_TOKEN")


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    return any(marker in text for marker in markers)


def run_gh_read(
    *,
    workspace_root: Path,
    cmd: list[str],
    kind: ReleaseErrorKind,
    message: str,
    hint: str | None = None,
    timeout: float = GH_TIMEOUT_SECONDS,
    retry_attempts: int = GH_READ_RETRY_ATTEMPTS,
) -> Result[str, ReleaseError]:
    """Run an idempotent gh query, retrying transient failures."""
    attempts = max(1, retry_attempts)
    for attempt in range(attempts):
        result = run_process(cmd, cwd=workspace_root, timeout=timeout)
        if isinstance(result, Ok):
            return result

        error = result.error
        if attempt < attempts - 1 and _is_transient_gh_error(error):
            sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1))
            continue

        return Err(ReleaseError(kind=kind, message=message, hint=error.stderr.strip() or hint))

    return Err(ReleaseError(kind=kind, message=message, hint=hint))


def run_gh_write(
    *,
    workspace_root: Path,
    cmd: list[str],
    kind: ReleaseErrorKind,
    message: str,
    timeout: float = GH_TIMEOUT_SECONDS,
) -> Result[object, ReleaseError]:
    """Run a gh mutation once and parse its JSON response."""
    result = run_process(cmd, cwd=workspace_root, timeout=timeout)
    if isinstance(result, Err):
        e = result.error
        detail = e.stderr.strip() or e.stdout.strip() or str(e)
        return Err(ReleaseError(kind=kind, message=message, hint=detail))

    try:
        obj: object = json.loads(result.value)
    except json.JSONDecodeError as e:
        return Err(ReleaseError(kind=kind, message=f"{message}: invalid JSON response ({e})"))
    return Ok(obj)


def ensure_gh_available() -> Result[None, ReleaseError]:
    if shutil.which("gh") is None:
        return Err(
            ReleaseError(
                kind="gh_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


def ensure_gh_auth(
    *, workspace_root: Path, env: Mapping[str, str] | None = None
) -> Result[None, ReleaseError]:
    env = os.environ if env is None else env
    # On CI the job token is passed through the environment.
    if any(env.get(name) for name in _TOKEN_ENV_VARS):
        return Ok(None)

    result = run_process(["gh", "auth", "status"], cwd=workspace_root, timeout=GH_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="gh_auth_required",
                message="gh auth required",
                hint="Run: gh auth login (or set GITHUB_TOKEN)",
            )
        )
    return Ok(None)


def resolve_repo(
    *,
    workspace_root: Path,
    configured: str | None,
    env: Mapping[str, str] | None = None,
) -> Result[str, ReleaseError]:
    """Repository slug (owner/name): config, then GITHUB_REPOSITORY, then gh."""
    env = os.environ if env is None else env
    if configured:
        return Ok(configured)

    from_env = (env.get("GITHUB_REPOSITORY") or "").strip()
    if from_env:
        return Ok(from_env)

    result = run_gh_read(
        workspace_root=workspace_root,
        cmd=["gh", "repo", "view", "--json", "nameWithOwner"],
        kind="invalid_input",
        message="failed to determine the GitHub repository",
        hint="Set release.repo in imr.toml or pass --repo",
    )
    if isinstance(result, Err):
        return result

    try:
        obj: object = json.loads(result.value)
    except json.JSONDecodeError as e:
        return Err(ReleaseError(kind="invalid_input", message=f"invalid JSON from gh repo view: {e}"))

    data = as_str_dict(obj)
    slug = get_str(data, "nameWithOwner") if data is not None else None
    if slug is None:
        return Err(ReleaseError(kind="invalid_input", message="missing nameWithOwner"))
    return Ok(slug)


def parse_release(obj: object) -> GhRelease | None:
    data = as_str_dict(obj)
    if data is None:
        return None

    release_id = get_int(data, "id")
    tag = get_str(data, "tag_name")
    upload_url = get_str(data, "upload_url")
    draft = data.get("draft")
    prerelease = data.get("prerelease")
    if release_id is None or tag is None or upload_url is None:
        return None
    if not isinstance(draft, bool) or not isinstance(prerelease, bool):
        return None

    return GhRelease(
        id=release_id,
        tag=tag,
        name=get_str(data, "name") or "",
        draft=draft,
        prerelease=prerelease,
        upload_url=upload_url,
        html_url=get_str(data, "html_url"),
    )


def parse_asset(obj: object) -> GhAsset | None:
    data = as_str_dict(obj)
    if data is None:
        return None
    asset_id = get_int(data, "id")
    name = get_str(data, "name")
    if asset_id is None or name is None:
        return None
    return GhAsset(id=asset_id, name=name, size=get_int(data, "size") or 0)


def expand_upload_url(upload_url: str, name: str) -> str:
    """Fill the ``{?name,label}`` template of a release upload URL."""
    base = upload_url.split("{", 1)[0]
    return f"{base}?name={quote(name, safe='')}"


class GhReleaseClient:
    """Release API calls through the GitHub CLI (``gh api``).

    None of the mutations is retried: a failed call ends the release stage
    and whatever was created stays for manual inspection.
    """

    def __init__(
        self,
        *,
        workspace_root: Path,
        repo: str,
        console: ConsoleProtocol,
        dry_run: bool = False,
    ) -> None:
        self._root = workspace_root
        self._repo = repo
        self._console = console
        self._dry_run = dry_run

    @property
    def repo(self) -> str:
        return self._repo

    def create_release(
        self,
        *,
        tag: str,
        title: str,
        draft: bool,
        prerelease: bool,
        target_commitish: str | None = None,
    ) -> Result[GhRelease, ReleaseError]:
        cmd = [
            "gh",
            "api",
            "--method",
            "POST",
            f"repos/{self._repo}/releases",
            "-f",
            f"tag_name={tag}",
            "-f",
            f"name={title}",
            "-F",
            f"draft={str(draft).lower()}",
            "-F",
            f"prerelease={str(prerelease).lower()}",
        ]
        if target_commitish:
            cmd.extend(["-f", f"target_commitish={target_commitish}"])

        self._console.print(" ".join(cmd[:5]) + " ...", Style.DIM)
        if self._dry_run:
            return Ok(
                GhRelease(
                    id=0,
                    tag=tag,
                    name=title,
                    draft=draft,
                    prerelease=prerelease,
                    upload_url=f"https://uploads.github.com/repos/{self._repo}/releases/0/assets{{?name,label}}",
                    html_url="(dry-run)",
                )
            )

        obj = run_gh_write(
            workspace_root=self._root,
            cmd=cmd,
            kind="create_failed",
            message=f"failed to create release {tag}",
        )
        if isinstance(obj, Err):
            return obj

        release = parse_release(obj.value)
        if release is None:
            return Err(
                ReleaseError(kind="create_failed", message="unexpected payload from release create")
            )
        return Ok(release)

    def upload_asset(
        self,
        *,
        release: GhRelease,
        path: Path,
        name: str,
        content_type: str,
    ) -> Result[GhAsset, ReleaseError]:
        url = expand_upload_url(release.upload_url, name)
        cmd = [
            "gh",
            "api",
            "--method",
            "POST",
            url,
            "-H",
            f"Content-Type: {content_type}",
            "--input",
            str(path),
        ]

        self._console.print(f"upload: {path} -> {name}", Style.DIM)
        if self._dry_run:
            size = path.stat().st_size if path.exists() else 0
            return Ok(GhAsset(id=0, name=name, size=size))

        obj = run_gh_write(
            workspace_root=self._root,
            cmd=cmd,
            kind="upload_failed",
            message=f"failed to upload asset {name}",
            timeout=GH_UPLOAD_TIMEOUT_SECONDS,
        )
        if isinstance(obj, Err):
            return obj

        asset = parse_asset(obj.value)
        if asset is None:
            return Err(ReleaseError(kind="upload_failed", message=f"unexpected payload for {name}"))
        if asset.name != name:
            # GitHub renames assets with unsupported characters.
            return Err(
                ReleaseError(
                    kind="upload_failed",
                    message=f"asset stored as '{asset.name}', expected '{name}'",
                )
            )
        return Ok(asset)

    def publish_release(self, *, release: GhRelease) -> Result[GhRelease, ReleaseError]:
        cmd = [
            "gh",
            "api",
            "--method",
            "PATCH",
            f"repos/{self._repo}/releases/{release.id}",
            "-F",
            "draft=false",
        ]

        self._console.print(" ".join(cmd[:5]), Style.DIM)
        if self._dry_run:
            return Ok(
                GhRelease(
                    id=release.id,
                    tag=release.tag,
                    name=release.name,
                    draft=False,
                    prerelease=release.prerelease,
                    upload_url=release.upload_url,
                    html_url=release.html_url,
                )
            )

        obj = run_gh_write(
            workspace_root=self._root,
            cmd=cmd,
            kind="publish_failed",
            message=f"failed to publish release {release.tag}",
        )
        if isinstance(obj, Err):
            return obj

        published = parse_release(obj.value)
        if published is None:
            return Err(
                ReleaseError(kind="publish_failed", message="unexpected payload from release update")
            )
        if published.draft:
            return Err(
                ReleaseError(kind="publish_failed", message=f"release {release.tag} is still a draft")
            )
        return Ok(published)
