"""Tests for flowstrap.config.loader."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from flowstrap.bootstrap.paths import FlowstrapPaths
from flowstrap.config.loader import (
    dict_to_config,
    expand_env_vars,
    find_project_config,
    load_config,
    load_yaml_file,
    merge_configs,
)
from flowstrap.config.models import DEFAULT_REMOTE_BASE, FlowstrapConfig
from flowstrap.errors import ConfigError


class TestExpandEnvVars:
    """Tests for expand_env_vars function."""

    def test_expands_simple_env_var(self) -> None:
        with patch.dict(os.environ, {"MY_VAR": "test_value"}):
            assert expand_env_vars("${MY_VAR}") == "test_value"

    def test_expands_env_var_with_default(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            assert expand_env_vars("${UNSET_VAR:-default}") == "default"

    def test_returns_empty_for_unset_without_default(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            assert expand_env_vars("${UNSET_VAR}") == ""

    def test_expands_nested(self) -> None:
        with patch.dict(os.environ, {"MIRROR": "https://mirror.example.com"}):
            data = {"artifacts": {"remote_base": "${MIRROR}/brainflow"}, "entry_points": ["${MIRROR}"]}
            assert expand_env_vars(data) == {
                "artifacts": {"remote_base": "https://mirror.example.com/brainflow"},
                "entry_points": ["https://mirror.example.com"],
            }

    def test_leaves_non_strings(self) -> None:
        assert expand_env_vars({"timeout": 5, "flag": True}) == {"timeout": 5, "flag": True}


class TestMergeConfigs:
    """Tests for merge_configs function."""

    def test_deep_merge(self) -> None:
        base = {"artifacts": {"version": "1.0", "remote_base": "https://a"}, "entry_points": ["x:y"]}
        overlay = {"artifacts": {"version": "2.0"}, "entry_points": ["z:w"]}
        assert merge_configs(base, overlay) == {
            "artifacts": {"version": "2.0", "remote_base": "https://a"},
            "entry_points": ["z:w"],
        }

    def test_does_not_mutate_base(self) -> None:
        base = {"timeouts": {"download": 10}}
        merge_configs(base, {"timeouts": {"download": 20}})
        assert base == {"timeouts": {"download": 10}}


class TestLoadYamlFile:
    """Tests for load_yaml_file."""

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "flowstrap.yml"
        path.write_text("")
        assert load_yaml_file(path) == {}

    def test_non_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "flowstrap.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_yaml_file(path)


class TestFindProjectConfig:
    """Tests for find_project_config."""

    def test_prefers_flowstrap_yml(self, tmp_path: Path) -> None:
        (tmp_path / ".flowstrap.yml").write_text("")
        (tmp_path / "flowstrap.yml").write_text("")
        assert find_project_config(tmp_path) == tmp_path / "flowstrap.yml"

    def test_hidden_variant(self, tmp_path: Path) -> None:
        (tmp_path / ".flowstrap.yaml").write_text("")
        assert find_project_config(tmp_path) == tmp_path / ".flowstrap.yaml"

    def test_none(self, tmp_path: Path) -> None:
        assert find_project_config(tmp_path) is None


class TestDictToConfig:
    """Tests for dict_to_config."""

    def test_defaults(self) -> None:
        config = dict_to_config({})
        assert isinstance(config, FlowstrapConfig)
        assert config.artifacts.version == "5.16.0"
        assert config.artifacts.remote_base == DEFAULT_REMOTE_BASE
        assert config.artifacts.managed_min_bytes == 100_000
        assert config.artifacts.native_min_bytes == 1_000_000
        assert config.timeouts.download == 300.0
        assert config.timeouts.extraction == 1800.0
        assert config.check_prerequisites is True
        assert not config.local.is_set()
        assert len(config.entry_points) == 3

    def test_values(self) -> None:
        config = dict_to_config({
            "artifacts": {"version": "5.15.0", "native_min_bytes": 10},
            "timeouts": {"download": 60},
            "selection": {"inspect_headers": True},
            "local": {"managed_archive": "/opt/brainflow.zip"},
            "entry_points": ["brainflow.board_shim:BoardShim"],
            "check_prerequisites": False,
            "local_config": "flowstrap-local.yml",
        })
        assert config.artifacts.version == "5.15.0"
        assert config.artifacts.native_min_bytes == 10
        assert config.timeouts.download == 60.0
        assert config.selection.inspect_headers is True
        assert config.local.managed_archive == Path("/opt/brainflow.zip")
        assert config.local.native_dir is None
        assert config.entry_points == ["brainflow.board_shim:BoardShim"]
        assert config.check_prerequisites is False
        assert config.local_config == "flowstrap-local.yml"

    def test_wrong_types_fall_back(self) -> None:
        config = dict_to_config({
            "artifacts": {"managed_min_bytes": "big"},
            "timeouts": {"download": True},
            "selection": "yes",
            "entry_points": "brainflow",
        })
        assert config.artifacts.managed_min_bytes == 100_000
        assert config.timeouts.download == 300.0
        assert config.selection.inspect_headers is False
        assert len(config.entry_points) == 3


class TestLoadConfig:
    """Tests for layered load_config."""

    def test_no_files(self, tmp_path: Path) -> None:
        config = load_config(tmp_path, paths=FlowstrapPaths(tmp_path / "home"))
        assert config.sources == []

    def test_precedence(self, tmp_path: Path) -> None:
        home = tmp_path / "home"
        home.mkdir()
        (home / "config.yml").write_text(
            "artifacts:\n  version: '1.0'\n  remote_base: https://global\ntimeouts:\n  download: 10\n"
        )
        project = tmp_path / "project"
        project.mkdir()
        (project / "flowstrap.yml").write_text("artifacts:\n  version: '2.0'\n")

        config = load_config(
            project,
            cli_overrides={"timeouts": {"download": 99}},
            paths=FlowstrapPaths(home),
        )

        assert config.artifacts.version == "2.0"
        assert config.artifacts.remote_base == "https://global"
        assert config.timeouts.download == 99.0
        assert [s.split(":")[0] for s in config.sources] == ["global", "project", "cli"]

    def test_local_config_layer(self, tmp_path: Path) -> None:
        (tmp_path / "flowstrap.yml").write_text("local_config: flowstrap-local.yml\n")
        (tmp_path / "flowstrap-local.yml").write_text(
            "local:\n  managed_archive: /cache/brainflow-python.zip\n  native_dir: /cache/natives\n"
        )

        config = load_config(tmp_path, paths=FlowstrapPaths(tmp_path / "home"))

        assert config.local.managed_archive == Path("/cache/brainflow-python.zip")
        assert config.local.native_dir == Path("/cache/natives")
        assert config.sources[-1].startswith("local:")

    def test_missing_local_config_is_tolerated(self, tmp_path: Path) -> None:
        (tmp_path / "flowstrap.yml").write_text("local_config: gone.yml\n")
        config = load_config(tmp_path, paths=FlowstrapPaths(tmp_path / "home"))
        assert not config.local.is_set()

    def test_custom_config_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path, cli_config_path=tmp_path / "nope.yml", paths=FlowstrapPaths(tmp_path))

    def test_invalid_project_yaml(self, tmp_path: Path) -> None:
        (tmp_path / "flowstrap.yml").write_text("artifacts: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(tmp_path, paths=FlowstrapPaths(tmp_path / "home"))

    def test_broken_global_config_is_skipped(self, tmp_path: Path) -> None:
        home = tmp_path / "home"
        home.mkdir()
        (home / "config.yml").write_text("artifacts: [unclosed\n")
        config = load_config(tmp_path, paths=FlowstrapPaths(home))
        assert config.sources == []
