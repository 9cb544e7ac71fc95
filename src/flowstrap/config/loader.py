"""Configuration file loading and merging.

Handles loading configuration from YAML files with:
- Global config (~/.flowstrap/config.yml)
- Project config (flowstrap.yml)
- Local artifact paths referenced by ``local_config`` (flowstrap-local.yml)
- Environment variable expansion (${VAR})
- Config merging with proper precedence
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from flowstrap.bootstrap.paths import FlowstrapPaths
from flowstrap.config.models import (
    ArtifactsConfig,
    FlowstrapConfig,
    LocalPathsConfig,
    SelectionConfig,
    TimeoutsConfig,
)
from flowstrap.config.validation import validate_config
from flowstrap.core.logging import get_logger
from flowstrap.errors import ConfigError

LOGGER = get_logger(__name__)

PROJECT_CONFIG_NAMES = ["flowstrap.yml", "flowstrap.yaml", ".flowstrap.yml", ".flowstrap.yaml"]

# Environment variable pattern: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def load_config(
    project_root: Path,
    cli_config_path: Optional[Path] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    paths: Optional[FlowstrapPaths] = None,
) -> FlowstrapConfig:
    """Load configuration with proper precedence.

    Precedence (highest to lowest):
    1. CLI flags (cli_overrides)
    2. Local artifact config referenced by ``local_config``
    3. Custom config file (cli_config_path) OR project config (flowstrap.yml)
    4. Global config (~/.flowstrap/config.yml)
    5. Built-in defaults

    Raises:
        ConfigError: If a specified config file doesn't exist or has parse errors.
    """
    paths = paths or FlowstrapPaths.default()
    sources: List[str] = []
    merged: Dict[str, Any] = {}

    # Layer 1: Global config
    global_path = paths.global_config
    if global_path.exists():
        try:
            global_dict = load_yaml_file(global_path)
            validate_config(global_dict, source=str(global_path))
            merged = merge_configs(merged, global_dict)
            sources.append(f"global:{global_path}")
            LOGGER.debug(f"Loaded global config from {global_path}")
        except (ConfigError, yaml.YAMLError, OSError) as e:
            LOGGER.warning(f"Failed to load global config: {e}")

    # Layer 2: Project or custom config
    project_path: Optional[Path]
    if cli_config_path:
        if not cli_config_path.exists():
            raise ConfigError(f"Config file not found: {cli_config_path}")
        project_path = cli_config_path
        label = "custom"
    else:
        project_path = find_project_config(project_root)
        label = "project"

    if project_path is not None:
        project_dict = _load_layer(project_path)
        merged = merge_configs(merged, project_dict)
        sources.append(f"{label}:{project_path}")
        LOGGER.debug(f"Loaded {label} config from {project_path}")

    # Layer 3: Local artifact paths written after a successful self-test
    local_name = merged.get("local_config")
    if isinstance(local_name, str) and local_name:
        base = project_path.parent if project_path is not None else project_root
        local_path = Path(local_name)
        if not local_path.is_absolute():
            local_path = base / local_path
        if local_path.exists():
            merged = merge_configs(merged, _load_layer(local_path))
            sources.append(f"local:{local_path}")
            LOGGER.debug(f"Loaded local artifact config from {local_path}")
        else:
            LOGGER.warning(f"Local config {local_path} referenced but not found")

    # Layer 4: CLI overrides
    if cli_overrides:
        merged = merge_configs(merged, cli_overrides)
        sources.append("cli")
        LOGGER.debug("Applied CLI overrides")

    config = dict_to_config(merged)
    config._config_sources = sources

    LOGGER.debug(f"Config loaded from sources: {sources}")
    return config


def _load_layer(path: Path) -> Dict[str, Any]:
    try:
        data = load_yaml_file(path)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    validate_config(data, source=str(path))
    return data


def find_project_config(project_root: Path) -> Optional[Path]:
    """Find a config file in the project root.

    Returns:
        Path to config file if found, None otherwise.
    """
    for name in PROJECT_CONFIG_NAMES:
        config_path = project_root / name
        if config_path.exists():
            return config_path
    return None


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML config file.

    Performs environment variable expansion on string values.

    Raises:
        yaml.YAMLError: If YAML parsing fails.
        ConfigError: If the document is not a mapping.
    """
    with open(path, "r", encoding="utf-8") as f:
        content = f.read()

    data = yaml.safe_load(content)

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(data).__name__}")

    return expand_env_vars(data)


def expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in config values.

    Supports ${VAR} and ${VAR:-default} syntax.
    """
    if isinstance(data, dict):
        return {k: expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        return ENV_VAR_PATTERN.sub(_env_var_replacer, data)
    else:
        return data


def _env_var_replacer(match: re.Match[str]) -> str:
    var_name = match.group(1)
    default_value = match.group(2)

    value = os.environ.get(var_name)
    if value is not None:
        return value
    if default_value is not None:
        return default_value

    LOGGER.warning(f"Environment variable ${var_name} is not set and has no default")
    return ""


def merge_configs(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two config dicts, with overlay taking precedence.

    Rules:
    - Scalar values: overlay replaces base
    - Lists: overlay replaces base (no merging)
    - Dicts: recursive merge
    """
    result = base.copy()

    for key, overlay_value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(overlay_value, dict):
            result[key] = merge_configs(result[key], overlay_value)
        else:
            result[key] = overlay_value

    return result


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def _optional_path(value: Any) -> Optional[Path]:
    if isinstance(value, str) and value:
        return Path(value).expanduser()
    return None


def dict_to_config(data: Dict[str, Any]) -> FlowstrapConfig:
    """Convert a merged dict to a typed FlowstrapConfig.

    Values of the wrong type fall back to their defaults (validation has
    already warned about them).
    """
    defaults = ArtifactsConfig()
    artifacts_data = _section(data, "artifacts")
    artifacts = ArtifactsConfig(
        version=str(artifacts_data.get("version") or defaults.version),
        remote_base=str(artifacts_data.get("remote_base") or defaults.remote_base),
        managed_archive=str(artifacts_data.get("managed_archive") or defaults.managed_archive),
        native_archive=str(artifacts_data.get("native_archive") or defaults.native_archive),
        managed_min_bytes=_int(artifacts_data.get("managed_min_bytes"), defaults.managed_min_bytes),
        native_min_bytes=_int(artifacts_data.get("native_min_bytes"), defaults.native_min_bytes),
    )

    timeout_defaults = TimeoutsConfig()
    timeouts_data = _section(data, "timeouts")
    timeouts = TimeoutsConfig(
        download=_float(timeouts_data.get("download"), timeout_defaults.download),
        extraction=_float(timeouts_data.get("extraction"), timeout_defaults.extraction),
    )

    inspect_headers = _section(data, "selection").get("inspect_headers")
    selection = SelectionConfig(inspect_headers=inspect_headers is True)

    local_data = _section(data, "local")
    local = LocalPathsConfig(
        managed_archive=_optional_path(local_data.get("managed_archive")),
        native_dir=_optional_path(local_data.get("native_dir")),
    )

    config = FlowstrapConfig(
        artifacts=artifacts,
        timeouts=timeouts,
        selection=selection,
        local=local,
        check_prerequisites=data.get("check_prerequisites") is not False,
        local_config=data.get("local_config") if isinstance(data.get("local_config"), str) else None,
    )

    entry_points = data.get("entry_points")
    if isinstance(entry_points, list) and entry_points and all(
        isinstance(item, str) for item in entry_points
    ):
        config.entry_points = list(entry_points)

    return config


def _int(value: Any, default: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return default


def _float(value: Any, default: float) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return default
