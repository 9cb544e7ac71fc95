"""Configuration loading for flowstrap."""

from flowstrap.config.models import (
    ArtifactsConfig,
    FlowstrapConfig,
    LocalPathsConfig,
    SelectionConfig,
    TimeoutsConfig,
)
from flowstrap.config.loader import load_config, find_project_config

__all__ = [
    "ArtifactsConfig",
    "FlowstrapConfig",
    "LocalPathsConfig",
    "SelectionConfig",
    "TimeoutsConfig",
    "load_config",
    "find_project_config",
]
