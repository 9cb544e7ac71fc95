"""Status command implementation."""

from __future__ import annotations

from argparse import Namespace
from typing import Callable, Optional

from flowstrap.bootstrap.cache import ArtifactCache
from flowstrap.bootstrap.platform import OSFamily, PlatformProbe, get_platform_identity
from flowstrap.cli.commands import Command
from flowstrap.cli.exit_codes import EXIT_SUCCESS
from flowstrap.config.models import FlowstrapConfig


class StatusCommand(Command):
    """Shows platform detection results and cache state."""

    def __init__(
        self,
        probe_factory: Optional[Callable[[], PlatformProbe]] = None,
        cache_factory: Callable[[], ArtifactCache] = ArtifactCache,
    ):
        self._probe_factory = probe_factory
        self._cache_factory = cache_factory

    @property
    def name(self) -> str:
        return "status"

    def execute(self, args: Namespace, config: Optional[FlowstrapConfig] = None) -> int:
        """Print what flowstrap would provision on this host.

        Unsupported platforms are reported, not treated as errors.
        """
        from flowstrap.cli.runner import get_version

        config = config or FlowstrapConfig()
        if self._probe_factory is None:
            identity = get_platform_identity(strict=False)
        else:
            identity = self._probe_factory().detect()
        cache = self._cache_factory()
        version = config.artifacts.version

        print(f"flowstrap version: {get_version()}")
        print(f"BrainFlow version: {version}")
        print(f"OS: {identity.os_name} ({identity.os_family.value})")
        print(f"Machine: {identity.machine} ({identity.cpu_arch.value})")
        print(f"Interpreter: {identity.runtime_bits}-bit")

        if identity.os_family == OSFamily.UNKNOWN:
            print("Platform: unsupported")
            return EXIT_SUCCESS

        version_dir = cache.paths.version_dir(version)
        native_dir = cache.natives_dir(version, identity.triple)
        managed = version_dir / config.artifacts.managed_archive
        has_managed = cache.is_valid(managed, config.artifacts.managed_min_bytes)
        has_natives = cache.has_natives(native_dir, identity.platform_extensions)

        print(f"Platform: {identity.triple}")
        print(f"Cache: {version_dir}")
        print(f"  managed archive: {'cached' if has_managed else 'not downloaded'}")
        print(f"  native libraries: {'installed' if has_natives else 'not installed'}")

        if config.local.is_set():
            print("Local paths:")
            if config.local.managed_archive:
                print(f"  managed archive: {config.local.managed_archive}")
            if config.local.native_dir:
                print(f"  native libraries: {config.local.native_dir}")

        if config.sources:
            print("Config sources:")
            for source in config.sources:
                print(f"  {source}")

        print()
        print("Artifacts are downloaded automatically on first use.")
        return EXIT_SUCCESS
