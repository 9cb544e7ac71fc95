"""Versioned local artifact cache.

Artifacts for a release live under ``<home>/<version>/``. A cached file is
trusted when it exists, is a regular file and is larger than a minimum
plausible size; this guards against partial downloads, not tampering.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from flowstrap.bootstrap.paths import FlowstrapPaths
from flowstrap.core.logging import get_logger

LOGGER = get_logger(__name__)


class ArtifactKind(str, Enum):
    """Kind of downloadable artifact."""

    MANAGED_LIBRARY = "managed_library"
    NATIVE_ARCHIVE = "native_archive"


@dataclass(frozen=True)
class ArtifactDescriptor:
    """Everything needed to fetch and validate one artifact."""

    version: str
    platform_triple: str
    kind: ArtifactKind
    remote_url: str
    local_cache_filename: str
    minimum_valid_size_bytes: int

    @classmethod
    def build(
        cls,
        *,
        remote_base: str,
        version: str,
        platform_triple: str,
        kind: ArtifactKind,
        filename: str,
        minimum_valid_size_bytes: int,
    ) -> "ArtifactDescriptor":
        """Create a descriptor for ``<remote_base>/<version>/<filename>``."""
        return cls(
            version=version,
            platform_triple=platform_triple,
            kind=kind,
            remote_url=f"{remote_base.rstrip('/')}/{version}/{filename}",
            local_cache_filename=filename,
            minimum_valid_size_bytes=minimum_valid_size_bytes,
        )


class ArtifactCache:
    """Per-user, per-version artifact storage."""

    def __init__(self, paths: Optional[FlowstrapPaths] = None):
        self._paths = paths or FlowstrapPaths.default()

    @property
    def paths(self) -> FlowstrapPaths:
        return self._paths

    def cache_dir(self, version: str) -> Path:
        """Return the version directory, creating it if needed."""
        directory = self._paths.version_dir(version)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def artifact_path(self, descriptor: ArtifactDescriptor) -> Path:
        """Local path of an artifact inside its version directory."""
        return self.cache_dir(descriptor.version) / descriptor.local_cache_filename

    def natives_dir(self, version: str, platform_triple: str) -> Path:
        """Return the natives directory of a platform (not created)."""
        return self._paths.natives_dir(version, platform_triple)

    @staticmethod
    def is_valid(path: Path, min_bytes: int) -> bool:
        """Check that ``path`` is a regular file strictly larger than ``min_bytes``."""
        try:
            return path.is_file() and path.stat().st_size > min_bytes
        except OSError:
            return False

    def is_artifact_valid(self, descriptor: ArtifactDescriptor) -> bool:
        return self.is_valid(
            self.artifact_path(descriptor), descriptor.minimum_valid_size_bytes
        )

    @staticmethod
    def has_natives(directory: Path, extensions: Iterable[str]) -> bool:
        """Check whether ``directory`` holds at least one native library."""
        if not directory.is_dir():
            return False
        suffixes = tuple(extensions)
        for path in directory.rglob("*"):
            if path.is_file() and path.name.endswith(suffixes):
                return True
        return False

    def clear(self, version: str) -> int:
        """Remove every cached file of ``version``.

        Files are removed depth-first, then the directories they leave
        empty, then the version directory itself.

        Returns:
            Number of files removed.
        """
        root = self._paths.version_dir(version)
        if not root.exists():
            LOGGER.debug(f"Nothing cached for version {version}")
            return 0

        removed = 0
        for dirpath, dirnames, filenames in os.walk(root, topdown=False):
            for filename in filenames:
                Path(dirpath, filename).unlink()
                removed += 1
            for dirname in dirnames:
                subdir = Path(dirpath, dirname)
                if subdir.is_symlink():
                    subdir.unlink()
                else:
                    subdir.rmdir()
        root.rmdir()

        LOGGER.info(f"Cleared {removed} cached file(s) from {root}")
        return removed
