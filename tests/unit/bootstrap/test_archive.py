"""Tests for flowstrap.bootstrap.archive."""

from __future__ import annotations

import shutil
import subprocess
import tarfile
from pathlib import Path
from unittest.mock import patch

import pytest

from flowstrap.bootstrap.archive import ArchiveExpander, _validate_member
from flowstrap.errors import ExtractionError

requires_tar = pytest.mark.skipif(shutil.which("tar") is None, reason="tar not installed")


def _make_tar(path: Path, members: dict) -> Path:
    source = path.parent / "source"
    for name, content in members.items():
        target = source / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
    with tarfile.open(path, "w") as tar:
        for name in members:
            tar.add(source / name, arcname=name)
    return path


class TestValidateMember:
    """Tests for member path validation."""

    @pytest.mark.parametrize("name", ["../evil.so", "/etc/passwd", "lib/../../x", "C:\\evil.dll"])
    def test_rejects_unsafe(self, name: str) -> None:
        with pytest.raises(ExtractionError, match="Path traversal"):
            _validate_member(name)

    @pytest.mark.parametrize("name", ["lib/libBoardController.so", "./lib/", "a..b.so"])
    def test_accepts_safe(self, name: str) -> None:
        _validate_member(name)


class TestArchiveExpander:
    """Tests for ArchiveExpander.expand."""

    def test_missing_tar_command(self, tmp_path: Path) -> None:
        with patch("flowstrap.bootstrap.archive.shutil.which", return_value=None):
            with pytest.raises(ExtractionError, match="'tar' command is not available"):
                ArchiveExpander().expand(tmp_path / "a.tar", tmp_path / "out")

    def test_missing_archive(self, tmp_path: Path) -> None:
        with patch("flowstrap.bootstrap.archive.shutil.which", return_value="/bin/tar"):
            with pytest.raises(ExtractionError, match="Archive not found"):
                ArchiveExpander().expand(tmp_path / "a.tar", tmp_path / "out")

    def test_timeout_surfaces_as_extraction_error(self, tmp_path: Path) -> None:
        archive = tmp_path / "a.tar"
        archive.write_bytes(b"x")
        with patch("flowstrap.bootstrap.archive.shutil.which", return_value="/bin/tar"), \
             patch(
                 "flowstrap.bootstrap.archive.subprocess.run",
                 side_effect=subprocess.TimeoutExpired("tar", 1),
             ):
            with pytest.raises(ExtractionError, match="timed out"):
                ArchiveExpander(timeout=1).expand(archive, tmp_path / "out")

    def test_nonzero_exit(self, tmp_path: Path) -> None:
        archive = tmp_path / "a.tar"
        archive.write_bytes(b"x")
        failed = subprocess.CompletedProcess(["tar"], 2, stdout="", stderr="not a tar")
        with patch("flowstrap.bootstrap.archive.shutil.which", return_value="/bin/tar"), \
             patch("flowstrap.bootstrap.archive.subprocess.run", return_value=failed):
            with pytest.raises(ExtractionError, match="exit code: 2"):
                ArchiveExpander().expand(archive, tmp_path / "out")

    @requires_tar
    def test_expands_into_destination(self, tmp_path: Path) -> None:
        archive = _make_tar(tmp_path / "compiled_libs.tar", {
            "lib/libBoardController.so": b"elf",
            "lib/libDataHandler.so": b"elf",
        })
        dest = tmp_path / "out"

        ArchiveExpander().expand(archive, dest)

        assert (dest / "lib" / "libBoardController.so").read_bytes() == b"elf"
        assert (dest / "lib" / "libDataHandler.so").exists()
        assert [p.name for p in tmp_path.iterdir() if p.name.startswith(".out-")] == []

    @requires_tar
    def test_replaces_previous_contents(self, tmp_path: Path) -> None:
        archive = _make_tar(tmp_path / "compiled_libs.tar", {"lib/new.so": b"new"})
        dest = tmp_path / "out"
        (dest / "lib").mkdir(parents=True)
        (dest / "lib" / "stale.so").write_bytes(b"old")

        ArchiveExpander().expand(archive, dest)

        assert (dest / "lib" / "new.so").exists()
        assert not (dest / "lib" / "stale.so").exists()

    @requires_tar
    def test_corrupt_archive_leaves_destination_untouched(self, tmp_path: Path) -> None:
        archive = tmp_path / "compiled_libs.tar"
        archive.write_bytes(b"definitely not a tar archive" * 10)
        dest = tmp_path / "out"

        with pytest.raises(ExtractionError):
            ArchiveExpander().expand(archive, dest)

        assert not dest.exists()
