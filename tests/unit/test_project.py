"""Tests for flowstrap.project."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from flowstrap.bootstrap.paths import FlowstrapPaths
from flowstrap.config.loader import load_config
from flowstrap.errors import ConfigError
from flowstrap.project import LOCAL_CONFIG_NAME, write_local_config


@pytest.fixture
def artifacts(tmp_path: Path):
    archive = tmp_path / "cache" / "brainflow-python.zip"
    native_dir = tmp_path / "cache" / "natives" / "linux-x86-64"
    return archive, native_dir


class TestWriteLocalConfig:
    """Tests for write_local_config."""

    def test_fresh_project(self, tmp_path: Path, artifacts) -> None:
        project = tmp_path / "project"
        project.mkdir()
        archive, native_dir = artifacts

        update = write_local_config(project, archive, native_dir)

        local = yaml.safe_load((project / LOCAL_CONFIG_NAME).read_text())
        assert local == {"local": {
            "native_dir": str(native_dir.resolve()),
            "managed_archive": str(archive.resolve()),
        }}
        assert yaml.safe_load((project / "flowstrap.yml").read_text()) == {
            "local_config": LOCAL_CONFIG_NAME
        }
        assert (project / ".gitignore").read_text() == f"{LOCAL_CONFIG_NAME}\n"
        assert update.project_config_changed
        assert update.gitignore_changed

    def test_round_trip_through_loader(self, tmp_path: Path, artifacts) -> None:
        archive, native_dir = artifacts
        write_local_config(tmp_path, archive, native_dir)

        config = load_config(tmp_path, paths=FlowstrapPaths(tmp_path / "home"))

        assert config.local.managed_archive == archive.resolve()
        assert config.local.native_dir == native_dir.resolve()

    def test_preserves_existing_project_config(self, tmp_path: Path, artifacts) -> None:
        (tmp_path / "flowstrap.yml").write_text("# pinned release\nartifacts:\n  version: '5.16.0'")
        (tmp_path / ".gitignore").write_text("*.pyc")

        write_local_config(tmp_path, *artifacts)

        text = (tmp_path / "flowstrap.yml").read_text()
        assert text.startswith("# pinned release\n")
        assert yaml.safe_load(text) == {
            "artifacts": {"version": "5.16.0"},
            "local_config": LOCAL_CONFIG_NAME,
        }
        assert (tmp_path / ".gitignore").read_text() == f"*.pyc\n{LOCAL_CONFIG_NAME}\n"

    def test_second_run_changes_nothing(self, tmp_path: Path, artifacts) -> None:
        write_local_config(tmp_path, *artifacts)
        update = write_local_config(tmp_path, *artifacts)
        assert not update.project_config_changed
        assert not update.gitignore_changed
        assert (tmp_path / ".gitignore").read_text().count(LOCAL_CONFIG_NAME) == 1

    def test_replaces_other_local_config(self, tmp_path: Path, artifacts) -> None:
        (tmp_path / ".flowstrap.yml").write_text("local_config: old.yml\n")

        update = write_local_config(tmp_path, *artifacts)

        assert update.project_config == tmp_path / ".flowstrap.yml"
        assert yaml.safe_load((tmp_path / ".flowstrap.yml").read_text()) == {
            "local_config": LOCAL_CONFIG_NAME
        }

    def test_without_managed_archive(self, tmp_path: Path, artifacts) -> None:
        _archive, native_dir = artifacts
        write_local_config(tmp_path, None, native_dir)
        local = yaml.safe_load((tmp_path / LOCAL_CONFIG_NAME).read_text())
        assert list(local["local"]) == ["native_dir"]

    def test_invalid_project_config(self, tmp_path: Path, artifacts) -> None:
        (tmp_path / "flowstrap.yml").write_text("- not\n- a mapping\n")
        with pytest.raises(ConfigError, match="mapping"):
            write_local_config(tmp_path, *artifacts)
