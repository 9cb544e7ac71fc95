"""Centralized artifact version management.

Reads artifact versions from pyproject.toml [tool.flowstrap.artifacts].
This is the single source of truth for the BrainFlow release flowstrap pins.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


# Hardcoded fallback versions (kept in sync with pyproject.toml)
# Used when pyproject.toml is not shipped with an installed package
_FALLBACK_VERSIONS: Dict[str, str] = {
    "brainflow": "5.16.0",
}


@lru_cache(maxsize=1)
def _load_pyproject_versions() -> Dict[str, str]:
    """Load artifact versions from flowstrap's pyproject.toml.

    Returns:
        Dictionary mapping artifact names to versions.
    """
    # Structure: src/flowstrap/bootstrap/versions.py -> ../../../pyproject.toml
    pyproject_path = Path(__file__).parent.parent.parent.parent / "pyproject.toml"

    if not pyproject_path.exists():
        return _FALLBACK_VERSIONS.copy()

    try:
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return _FALLBACK_VERSIONS.copy()

    versions = dict(data.get("tool", {}).get("flowstrap", {}).get("artifacts", {}))
    for name, version in _FALLBACK_VERSIONS.items():
        versions.setdefault(name, version)
    return versions


def get_artifact_version(name: str, default: Optional[str] = None) -> str:
    """Get the pinned version for an artifact.

    Args:
        name: Artifact name (e.g. 'brainflow').
        default: Optional default version if the artifact is not pinned.

    Raises:
        KeyError: If the artifact is unknown and no default was given.
    """
    versions = _load_pyproject_versions()

    if name in versions:
        return versions[name]

    if default is not None:
        return default

    raise KeyError(f"Unknown artifact: {name}. Available: {list(versions.keys())}")


def get_all_versions() -> Dict[str, str]:
    """Get all pinned artifact versions."""
    return _load_pyproject_versions().copy()
