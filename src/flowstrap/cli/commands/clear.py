"""Clear command implementation."""

from __future__ import annotations

from argparse import Namespace
from typing import Callable, Optional

from flowstrap.bootstrap.cache import ArtifactCache
from flowstrap.cli.commands import Command
from flowstrap.cli.exit_codes import EXIT_BOOTSTRAP_FAILURE, EXIT_SUCCESS
from flowstrap.config.models import FlowstrapConfig
from flowstrap.core.logging import get_logger

LOGGER = get_logger(__name__)


class ClearCommand(Command):
    """Deletes the cached artifacts of the configured BrainFlow version."""

    def __init__(self, cache_factory: Callable[[], ArtifactCache] = ArtifactCache):
        self._cache_factory = cache_factory

    @property
    def name(self) -> str:
        return "clear"

    def execute(self, args: Namespace, config: Optional[FlowstrapConfig] = None) -> int:
        config = config or FlowstrapConfig()
        cache = self._cache_factory()
        version = config.artifacts.version
        try:
            removed = cache.clear(version)
        except OSError as e:
            LOGGER.error(f"Failed to clear cache: {e}")
            return EXIT_BOOTSTRAP_FAILURE

        print(f"Removed {removed} cached file(s) for BrainFlow {version}")
        print(f"Cache directory: {cache.paths.version_dir(version)}")
        return EXIT_SUCCESS
