"""Release stage state machine.

NOT_STARTED -> ARTIFACTS_COLLECTED -> DRAFT_CREATED -> ASSETS_ATTACHED -> PUBLISHED

Each transition runs once and only from the state before it. A failed step
leaves the state unchanged and nothing is rolled back: a draft that was
already created keeps whatever assets made it, for manual cleanup.

Known limitation: the tag is fixed, so re-running against a repository that
already has the release conflicts at draft creation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from imr.core.config import Config
from imr.core.result import Err, Ok, Result
from imr.output.console import ConsoleProtocol, Style
from imr.platform.detection import Platform, parse_platform
from imr.services.artifacts import LocalArtifactStore
from imr.services.release.errors import ReleaseError
from imr.services.release.model import (
    GhAsset,
    GhRelease,
    PlannedAsset,
    ReleaseStage,
    asset_name,
)


class ReleaseClient(Protocol):
    def create_release(
        self,
        *,
        tag: str,
        title: str,
        draft: bool,
        prerelease: bool,
        target_commitish: str | None = None,
    ) -> Result[GhRelease, ReleaseError]: ...

    def upload_asset(
        self,
        *,
        release: GhRelease,
        path: Path,
        name: str,
        content_type: str,
    ) -> Result[GhAsset, ReleaseError]: ...

    def publish_release(self, *, release: GhRelease) -> Result[GhRelease, ReleaseError]: ...


class ReleaseOrchestrator:
    def __init__(
        self,
        *,
        config: Config,
        store: LocalArtifactStore,
        client: ReleaseClient,
        console: ConsoleProtocol,
        target_commitish: str | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._client = client
        self._console = console
        self._target_commitish = target_commitish

        self._stage = ReleaseStage.NOT_STARTED
        self._plan: tuple[PlannedAsset, ...] = ()
        self._release: GhRelease | None = None
        self._assets: list[GhAsset] = []

    @property
    def stage(self) -> ReleaseStage:
        return self._stage

    @property
    def plan(self) -> tuple[PlannedAsset, ...]:
        return self._plan

    @property
    def release(self) -> GhRelease | None:
        return self._release

    @property
    def assets(self) -> tuple[GhAsset, ...]:
        return tuple(self._assets)

    def run(self) -> Result[GhRelease, ReleaseError]:
        """Run every remaining transition in order, stopping at the first failure."""
        if self._stage == ReleaseStage.NOT_STARTED:
            collected = self.collect()
            if isinstance(collected, Err):
                return collected
        if self._stage == ReleaseStage.ARTIFACTS_COLLECTED:
            draft = self.create_draft()
            if isinstance(draft, Err):
                return draft
        if self._stage == ReleaseStage.DRAFT_CREATED:
            attached = self.attach_assets()
            if isinstance(attached, Err):
                return attached
        if self._stage == ReleaseStage.ASSETS_ATTACHED:
            return self.publish()
        return Err(
            ReleaseError(kind="invalid_state", message=f"release already {self._stage}")
        )

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def collect(self) -> Result[tuple[PlannedAsset, ...], ReleaseError]:
        """Load every platform artifact and plan the asset names."""
        ready = self._require(ReleaseStage.NOT_STARTED, "collect artifacts")
        if isinstance(ready, Err):
            return ready

        self._console.header("collect artifacts")
        app = self._config.app.name
        content_type = self._config.release.content_type

        missing: list[str] = []
        plan: list[PlannedAsset] = []
        for runner in self._config.ci.runners:
            platform = parse_platform(runner.platform)
            if platform == Platform.UNKNOWN:
                return Err(
                    ReleaseError(
                        kind="invalid_input",
                        message=f"unknown platform '{runner.platform}' for {runner.runner}",
                    )
                )

            result = self._store.download(
                runner.artifact_name, exe_name=platform.exe_name(app)
            )
            if isinstance(result, Err):
                error = result.error
                if error.kind == "missing":
                    missing.append(runner.artifact_name)
                    continue
                return Err(
                    ReleaseError(
                        kind="artifact_invalid",
                        message=f"{error.name}: {error.message}",
                    )
                )

            artifact = result.value
            self._console.print(f"{artifact.name}: {artifact.target_id}", Style.DIM)
            plan.append(
                PlannedAsset(
                    runner=runner.runner,
                    platform=runner.platform,
                    path=artifact.executable,
                    name=asset_name(app, artifact.target_id, platform.exe_suffix),
                    content_type=content_type,
                )
            )

        if missing:
            return Err(
                ReleaseError(
                    kind="artifact_missing",
                    message=f"missing artifacts: {', '.join(missing)}",
                    hint=f"looked in {self._store.root}",
                )
            )

        seen: dict[str, str] = {}
        for asset in plan:
            other = seen.get(asset.name)
            if other is not None:
                return Err(
                    ReleaseError(
                        kind="duplicate_asset",
                        message=f"asset name '{asset.name}' used by {other} and {asset.runner}",
                        hint="each platform binary must report a distinct target",
                    )
                )
            seen[asset.name] = asset.runner

        self._plan = tuple(plan)
        self._stage = ReleaseStage.ARTIFACTS_COLLECTED
        return Ok(self._plan)

    def create_draft(self) -> Result[GhRelease, ReleaseError]:
        ready = self._require(ReleaseStage.ARTIFACTS_COLLECTED, "create the draft")
        if isinstance(ready, Err):
            return ready

        release_cfg = self._config.release
        self._console.header(f"create draft {release_cfg.tag}")
        result = self._client.create_release(
            tag=release_cfg.tag,
            title=release_cfg.title,
            draft=True,
            prerelease=release_cfg.prerelease,
            target_commitish=self._target_commitish,
        )
        if isinstance(result, Err):
            error = result.error
            return Err(
                ReleaseError(
                    kind=error.kind,
                    message=error.message,
                    hint=error.hint or f"does tag {release_cfg.tag} already exist?",
                )
            )

        if not result.value.draft:
            return Err(
                ReleaseError(
                    kind="create_failed",
                    message=f"release {release_cfg.tag} was created public, expected a draft",
                    hint=result.value.html_url,
                )
            )

        self._release = result.value
        self._stage = ReleaseStage.DRAFT_CREATED
        return Ok(result.value)

    def attach_assets(self) -> Result[tuple[GhAsset, ...], ReleaseError]:
        ready = self._require(ReleaseStage.DRAFT_CREATED, "attach assets")
        if isinstance(ready, Err):
            return ready
        release = self._release
        assert release is not None

        self._console.header("attach assets")
        for planned in self._plan:
            result = self._client.upload_asset(
                release=release,
                path=planned.path,
                name=planned.name,
                content_type=planned.content_type,
            )
            if isinstance(result, Err):
                return Err(self._left_behind(result.error))
            self._assets.append(result.value)
            self._console.print(f"attached {result.value.name}", Style.DIM)

        self._stage = ReleaseStage.ASSETS_ATTACHED
        return Ok(tuple(self._assets))

    def publish(self) -> Result[GhRelease, ReleaseError]:
        ready = self._require(ReleaseStage.ASSETS_ATTACHED, "publish")
        if isinstance(ready, Err):
            return ready
        release = self._release
        assert release is not None

        self._console.header(f"publish {release.tag}")
        result = self._client.publish_release(release=release)
        if isinstance(result, Err):
            return Err(self._left_behind(result.error))

        self._release = result.value
        self._stage = ReleaseStage.PUBLISHED
        return Ok(result.value)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _require(self, expected: ReleaseStage, action: str) -> Result[None, ReleaseError]:
        if self._stage != expected:
            return Err(
                ReleaseError(
                    kind="invalid_state",
                    message=f"cannot {action} in state {self._stage}",
                    hint=f"expected state {expected}",
                )
            )
        return Ok(None)

    def _left_behind(self, error: ReleaseError) -> ReleaseError:
        """Point at the draft that stays behind after a failed step."""
        release = self._release
        if release is None:
            return error
        where = release.html_url or f"release id {release.id}"
        attached = ", ".join(a.name for a in self._assets) or "none"
        note = f"draft left at {where} (attached: {attached})"
        hint = f"{error.hint}\n{note}" if error.hint else note
        return ReleaseError(kind=error.kind, message=error.message, hint=hint)
