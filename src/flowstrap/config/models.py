"""Configuration data models for flowstrap.

Defines typed configuration classes that represent flowstrap.yml structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from flowstrap.bootstrap.versions import get_artifact_version
from flowstrap.bootstrap.verifier import DEFAULT_ENTRY_POINTS

DEFAULT_REMOTE_BASE = "https://github.com/brainflow-dev/brainflow/releases/download"
DEFAULT_MANAGED_ARCHIVE = "brainflow-python.zip"
DEFAULT_NATIVE_ARCHIVE = "compiled_libs.tar"


@dataclass
class ArtifactsConfig:
    """Which release to provision and where to fetch it from."""

    version: str = field(default_factory=lambda: get_artifact_version("brainflow"))
    remote_base: str = DEFAULT_REMOTE_BASE
    managed_archive: str = DEFAULT_MANAGED_ARCHIVE
    native_archive: str = DEFAULT_NATIVE_ARCHIVE
    # Anything smaller is treated as a partial download
    managed_min_bytes: int = 100_000
    native_min_bytes: int = 1_000_000


@dataclass
class TimeoutsConfig:
    """Timeouts in seconds for blocking steps."""

    download: float = 300.0
    extraction: float = 1800.0


@dataclass
class SelectionConfig:
    """Native library selection options."""

    inspect_headers: bool = False


@dataclass
class LocalPathsConfig:
    """Artifacts already on disk, written by a successful self-test.

    When set and valid, they are used instead of downloading.
    """

    managed_archive: Optional[Path] = None
    native_dir: Optional[Path] = None

    def is_set(self) -> bool:
        return self.managed_archive is not None or self.native_dir is not None


@dataclass
class FlowstrapConfig:
    """Complete flowstrap configuration."""

    artifacts: ArtifactsConfig = field(default_factory=ArtifactsConfig)
    timeouts: TimeoutsConfig = field(default_factory=TimeoutsConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    local: LocalPathsConfig = field(default_factory=LocalPathsConfig)
    entry_points: List[str] = field(default_factory=lambda: list(DEFAULT_ENTRY_POINTS))
    check_prerequisites: bool = True
    local_config: Optional[str] = None

    # Files the configuration was merged from, for diagnostics
    _config_sources: List[str] = field(default_factory=list, repr=False)

    @property
    def sources(self) -> List[str]:
        return list(self._config_sources)
