"""Tests for imr.services.artifacts module."""

from __future__ import annotations

from pathlib import Path

import pytest

from imr.core.result import Err, Ok
from imr.services.artifacts import LocalArtifactStore, read_artifact, validate_target_id


def make_artifact(root: Path, name: str, exe_name: str, target: str = "x86_64-unknown-linux-gnu\n") -> Path:
    path = root / name
    path.mkdir(parents=True)
    (path / exe_name).write_bytes(b"\x7fELF")
    (path / "TARGET").write_text(target, encoding="utf-8")
    return path


class TestValidateTargetId:
    @pytest.mark.parametrize(
        "value",
        ["x86_64-unknown-linux-gnu", "x86_64-apple-darwin", "x86_64-pc-windows-msvc", "aarch64-apple-darwin"],
    )
    def test_accepts_triples(self, value: str) -> None:
        assert validate_target_id(value) is None

    @pytest.mark.parametrize(
        ("value", "reason"),
        [
            ("", "is empty"),
            ("a\nb", "spans more than one line"),
            ("x86_64 linux", "contains characters not allowed in a file name"),
            ("../etc", "contains characters not allowed in a file name"),
            ("a\\b", "contains characters not allowed in a file name"),
        ],
    )
    def test_rejects(self, value: str, reason: str) -> None:
        assert validate_target_id(value) == reason


class TestReadArtifact:
    def test_valid(self, tmp_path: Path) -> None:
        path = make_artifact(tmp_path, "artifact-ubuntu-latest", "initiative_manager")

        result = read_artifact(path, name="artifact-ubuntu-latest", exe_name="initiative_manager")

        assert isinstance(result, Ok)
        assert result.value.target_id == "x86_64-unknown-linux-gnu"
        assert result.value.executable == path / "initiative_manager"

    def test_missing_directory(self, tmp_path: Path) -> None:
        result = read_artifact(tmp_path / "nope", name="nope", exe_name="initiative_manager")
        assert isinstance(result, Err)
        assert result.error.kind == "missing"

    def test_empty_directory(self, tmp_path: Path) -> None:
        (tmp_path / "artifact-macos-latest").mkdir()
        result = read_artifact(tmp_path / "artifact-macos-latest", name="a", exe_name="initiative_manager")
        assert isinstance(result, Err)
        assert result.error.kind == "empty"

    def test_empty_target(self, tmp_path: Path) -> None:
        path = make_artifact(tmp_path, "a", "initiative_manager", target="  \n")
        result = read_artifact(path, name="a", exe_name="initiative_manager")
        assert isinstance(result, Err)
        assert result.error.message == "TARGET is empty"

    def test_missing_executable(self, tmp_path: Path) -> None:
        path = make_artifact(tmp_path, "a", "initiative_manager")
        result = read_artifact(path, name="a", exe_name="initiative_manager.exe")
        assert isinstance(result, Err)
        assert result.error.message == "missing initiative_manager.exe"

    def test_extra_files(self, tmp_path: Path) -> None:
        path = make_artifact(tmp_path, "a", "initiative_manager")
        (path / "initiative_manager.d").write_text("deps", encoding="utf-8")
        result = read_artifact(path, name="a", exe_name="initiative_manager")
        assert isinstance(result, Err)
        assert "initiative_manager.d" in result.error.message


class TestLocalArtifactStore:
    def test_upload_then_download(self, tmp_path: Path) -> None:
        source = make_artifact(tmp_path / "build", "artifact-ubuntu-latest", "initiative_manager")
        store = LocalArtifactStore(tmp_path / "store")

        uploaded = store.upload(source, "artifact-ubuntu-latest")
        assert uploaded == Ok(tmp_path / "store" / "artifact-ubuntu-latest")

        downloaded = store.download("artifact-ubuntu-latest", exe_name="initiative_manager")
        assert isinstance(downloaded, Ok)
        assert downloaded.value.target_id == "x86_64-unknown-linux-gnu"

    def test_upload_in_place(self, tmp_path: Path) -> None:
        source = make_artifact(tmp_path, "artifact-ubuntu-latest", "initiative_manager")
        store = LocalArtifactStore(tmp_path)
        assert store.upload(source, "artifact-ubuntu-latest") == Ok(source)
        assert (source / "TARGET").is_file()

    def test_upload_empty_is_error(self, tmp_path: Path) -> None:
        source = tmp_path / "artifact-windows-latest"
        source.mkdir()
        result = LocalArtifactStore(tmp_path / "store").upload(source, "artifact-windows-latest")
        assert isinstance(result, Err)
        assert result.error.kind == "empty"
        assert not (tmp_path / "store" / "artifact-windows-latest").exists()

    def test_upload_replaces_stale(self, tmp_path: Path) -> None:
        store = LocalArtifactStore(tmp_path / "store")
        stale = store.path_for("artifact-ubuntu-latest")
        stale.mkdir(parents=True)
        (stale / "old").write_text("old", encoding="utf-8")
        source = make_artifact(tmp_path / "build", "artifact-ubuntu-latest", "initiative_manager")

        store.upload(source, "artifact-ubuntu-latest")

        assert sorted(p.name for p in stale.iterdir()) == ["TARGET", "initiative_manager"]
