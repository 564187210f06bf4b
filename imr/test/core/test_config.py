"""Tests for imr.core.config module."""

from __future__ import annotations

from pathlib import Path

import pytest

from imr.core.config import (
    DEFAULT_CONTENT_TYPE,
    DEFAULT_TAG,
    DEFAULT_TITLE,
    RCEDIT_URL,
    Config,
    RunnerConfig,
    load_config,
    load_config_or_default,
)
from imr.core.result import Err, Ok


class TestDefaults:
    def test_release_literals(self) -> None:
        config = Config()
        assert config.release.tag == "v1.2.4"
        assert config.release.title == (
            "v1.2.4 Added concentration display & more discrete hideable stats (WIP)"
        )
        assert config.release.prerelease is False
        assert config.release.content_type == "application/zip"
        assert DEFAULT_TAG == config.release.tag
        assert DEFAULT_TITLE == config.release.title
        assert DEFAULT_CONTENT_TYPE == config.release.content_type

    def test_app(self) -> None:
        config = Config()
        assert config.app.name == "initiative_manager"
        assert config.app.target_arg == "TARGET"

    def test_runners_in_attachment_order(self) -> None:
        config = Config()
        assert [r.runner for r in config.ci.runners] == [
            "ubuntu-latest",
            "macos-latest",
            "windows-latest",
        ]
        assert config.ci.branch == "master"

    def test_windows(self) -> None:
        config = Config()
        assert config.windows.icon == "resources/logo.ico"
        assert config.windows.rcedit_url == RCEDIT_URL
        assert RCEDIT_URL.endswith("/v1.1.1/rcedit-x64.exe")

    def test_build(self) -> None:
        config = Config()
        assert config.build.profile == "release"
        assert config.build.toolchain == "nightly"
        assert config.build.pkg_config == ("xkbcommon",)
        assert config.build.apt_packages == ("libxkbcommon-dev",)

    def test_frozen(self) -> None:
        config = Config()
        with pytest.raises(AttributeError):
            config.release.tag = "v9"  # type: ignore[misc]


class TestRunnerConfig:
    def test_artifact_name(self) -> None:
        assert RunnerConfig("windows", "windows-latest").artifact_name == "artifact-windows-latest"

    def test_lookup(self) -> None:
        ci = Config().ci
        runner = ci.runner_for("macos-latest")
        assert runner is not None and runner.platform == "macos"
        assert ci.runner_for_platform("windows") == RunnerConfig("windows", "windows-latest")
        assert ci.runner_for("self-hosted") is None


class TestFromDict:
    def test_empty_is_default(self) -> None:
        assert Config.from_dict({}) == Config()

    def test_overrides(self) -> None:
        config = Config.from_dict(
            {
                "app": {"name": "other_app"},
                "release": {"tag": "v2.0.0", "title": "v2.0.0", "prerelease": True},
                "build": {"toolchain": "", "pkg_config": [], "apt_packages": []},
                "ci": {"branch": "main", "runners": [{"platform": "linux", "runner": "ubuntu-22.04"}]},
            }
        )
        assert config.app.name == "other_app"
        assert config.release.tag == "v2.0.0"
        assert config.release.prerelease is True
        assert config.build.toolchain is None
        assert config.build.pkg_config == ()
        assert config.ci.branch == "main"
        assert config.ci.runners == (RunnerConfig("linux", "ubuntu-22.04"),)

    def test_duplicate_platform_rejected(self) -> None:
        with pytest.raises(ValueError, match="duplicate platform"):
            Config.from_dict(
                {
                    "ci": {
                        "runners": [
                            {"platform": "linux", "runner": "ubuntu-latest"},
                            {"platform": "linux", "runner": "ubuntu-22.04"},
                        ]
                    }
                }
            )


class TestLoadConfig:
    def test_valid_file(self, tmp_path: Path) -> None:
        path = tmp_path / "imr.toml"
        path.write_text('[release]\ntag = "v1.3.0"\n', encoding="utf-8")

        result = load_config(path)

        assert isinstance(result, Ok)
        assert result.value.release.tag == "v1.3.0"
        assert result.value.release.title == DEFAULT_TITLE

    def test_missing_file(self, tmp_path: Path) -> None:
        result = load_config(tmp_path / "imr.toml")
        assert isinstance(result, Err)
        assert "not found" in result.error.message

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "imr.toml"
        path.write_text("[release\n", encoding="utf-8")
        result = load_config(path)
        assert isinstance(result, Err)
        assert "Invalid TOML" in result.error.message

    def test_invalid_structure(self, tmp_path: Path) -> None:
        path = tmp_path / "imr.toml"
        path.write_text('[ci]\nrunners = "ubuntu-latest"\n', encoding="utf-8")
        result = load_config(path)
        assert isinstance(result, Err)
        assert "Invalid config structure" in result.error.message

    def test_or_default_without_file(self, tmp_path: Path) -> None:
        result = load_config_or_default(tmp_path / "imr.toml")
        assert result == Ok(Config())

    def test_or_default_keeps_errors(self, tmp_path: Path) -> None:
        path = tmp_path / "imr.toml"
        path.write_text("not toml at all [", encoding="utf-8")
        assert isinstance(load_config_or_default(path), Err)


def test_default_tool_spec_is_a_path() -> None:
    # a bare name would resolve to an unrelated package on the index
    assert Config().ci.tool_spec == "./tools/imr"
