"""Bootstrap: platform probing, artifact caching and runtime injection.

The initialization gate lives in :mod:`flowstrap.bootstrap.gate`; it is not
imported here because configuration models depend on this package.
"""

from __future__ import annotations

from flowstrap.bootstrap.paths import FlowstrapPaths, get_flowstrap_home
from flowstrap.bootstrap.platform import (
    CpuArch,
    OSFamily,
    PlatformIdentity,
    PlatformProbe,
    get_platform_identity,
)
from flowstrap.bootstrap.versions import get_artifact_version

__all__ = [
    "CpuArch",
    "FlowstrapPaths",
    "OSFamily",
    "PlatformIdentity",
    "PlatformProbe",
    "get_artifact_version",
    "get_flowstrap_home",
    "get_platform_identity",
]
