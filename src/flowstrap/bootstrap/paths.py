"""Path management for the flowstrap artifact cache.

Handles the ~/.flowstrap directory structure and path resolution.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

# Default directory name under user home
DEFAULT_HOME_DIR_NAME = ".flowstrap"

# Environment variable to override home directory
FLOWSTRAP_HOME_ENV = "FLOWSTRAP_HOME"


def get_flowstrap_home() -> Path:
    """Get the flowstrap home directory path.

    Resolution order:
    1. FLOWSTRAP_HOME environment variable (if set)
    2. ~/.flowstrap (default)
    """
    env_home = os.environ.get(FLOWSTRAP_HOME_ENV)
    if env_home:
        return Path(env_home)
    return Path.home() / DEFAULT_HOME_DIR_NAME


@dataclass
class FlowstrapPaths:
    """Manages paths within the flowstrap home directory.

    Directory structure:
        ~/.flowstrap/
            config.yml                      - Global configuration
            {version}/
                brainflow-python.zip        - Managed archive
                brainflow-python/           - Extracted managed archive (fallback)
                compiled_libs.tar           - Native archive (removed after expansion)
                natives/{platform-triple}/  - Selected native libraries
    """

    home: Path

    _NATIVES_DIR: ClassVar[str] = "natives"
    _CONFIG_FILE: ClassVar[str] = "config.yml"

    @classmethod
    def default(cls) -> "FlowstrapPaths":
        """Create paths from the default flowstrap home."""
        return cls(get_flowstrap_home())

    @property
    def global_config(self) -> Path:
        """Global configuration file."""
        return self.home / self._CONFIG_FILE

    def version_dir(self, version: str) -> Path:
        """Directory holding every artifact of one release."""
        return self.home / version

    def natives_dir(self, version: str, platform_triple: str) -> Path:
        """Directory holding the selected native libraries of one platform."""
        return self.version_dir(version) / self._NATIVES_DIR / platform_triple
