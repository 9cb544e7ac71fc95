"""Project metadata rewriting.

After a successful self-test the cached artifact locations are recorded in
a machine-specific ``flowstrap-local.yml`` and the project's
``flowstrap.yml`` is pointed at it through ``local_config``, so later runs
load straight from those paths. The local file is added to ``.gitignore``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from flowstrap.config.loader import find_project_config, load_yaml_file
from flowstrap.core.logging import get_logger
from flowstrap.errors import ConfigError

LOGGER = get_logger(__name__)

LOCAL_CONFIG_NAME = "flowstrap-local.yml"
DEFAULT_PROJECT_CONFIG_NAME = "flowstrap.yml"

_LOCAL_HEADER = (
    "# Generated by flowstrap after a successful self-test.\n"
    "# Machine-specific artifact locations; do not commit.\n"
)


@dataclass(frozen=True)
class ProjectUpdate:
    """Files touched by :func:`write_local_config`."""

    local_config: Path
    project_config: Path
    project_config_changed: bool
    gitignore_changed: bool


def write_local_config(
    project_root: Path,
    managed_archive: Optional[Path],
    native_dir: Path,
) -> ProjectUpdate:
    """Record artifact locations for a project.

    Args:
        project_root: Directory holding (or to hold) ``flowstrap.yml``.
        managed_archive: Managed archive in use, None when BrainFlow was
            importable without one.
        native_dir: Directory of the installed native libraries.

    Raises:
        ConfigError: If a file cannot be written or does not parse back.
    """
    local_path = project_root / LOCAL_CONFIG_NAME
    local: Dict[str, Any] = {"native_dir": str(native_dir.resolve())}
    if managed_archive is not None:
        local["managed_archive"] = str(managed_archive.resolve())

    content = _LOCAL_HEADER + yaml.safe_dump({"local": local}, sort_keys=False)
    _write(local_path, content)
    LOGGER.info(f"Wrote {local_path}")

    project_path = find_project_config(project_root) or project_root / DEFAULT_PROJECT_CONFIG_NAME
    changed = _point_at_local_config(project_path)

    # Both files must parse back before the project is considered updated
    for path in (local_path, project_path):
        _verify(path)

    gitignore_changed = _ensure_gitignored(project_root / ".gitignore", LOCAL_CONFIG_NAME)

    return ProjectUpdate(
        local_config=local_path,
        project_config=project_path,
        project_config_changed=changed,
        gitignore_changed=gitignore_changed,
    )


def _point_at_local_config(project_path: Path) -> bool:
    """Set ``local_config`` in the project config, keeping other content."""
    if not project_path.exists():
        _write(project_path, f"local_config: {LOCAL_CONFIG_NAME}\n")
        LOGGER.info(f"Created {project_path}")
        return True

    data = _read_mapping(project_path)
    current = data.get("local_config")
    if current == LOCAL_CONFIG_NAME:
        return False

    if current is None:
        # Appending keeps the user's comments and ordering intact
        text = project_path.read_text(encoding="utf-8")
        if text and not text.endswith("\n"):
            text += "\n"
        _write(project_path, f"{text}local_config: {LOCAL_CONFIG_NAME}\n")
    else:
        data["local_config"] = LOCAL_CONFIG_NAME
        _write(project_path, yaml.safe_dump(data, sort_keys=False))
    LOGGER.info(f"Updated local_config in {project_path}")
    return True


def _ensure_gitignored(gitignore: Path, entry: str) -> bool:
    existing = ""
    if gitignore.exists():
        existing = gitignore.read_text(encoding="utf-8")
        if entry in (line.strip() for line in existing.splitlines()):
            return False

    if existing and not existing.endswith("\n"):
        existing += "\n"
    _write(gitignore, f"{existing}{entry}\n")
    LOGGER.debug(f"Added {entry} to {gitignore}")
    return True


def _read_mapping(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must be a YAML mapping, got {type(data).__name__}")
    return data


def _verify(path: Path) -> None:
    try:
        load_yaml_file(path)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"{path} is not valid after update: {e}") from e


def _write(path: Path, content: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Error writing {path}: {e}") from e
