"""One-time BrainFlow initialization.

:class:`InitGate` sequences probe, prerequisites, download, expansion,
selection, injection and verification exactly once per gate. Concurrent
callers block on the gate's lock and then observe the memoized outcome:
success returns immediately, a failure is re-raised without retrying until
the cache is cleared.
"""

from __future__ import annotations

import contextlib
import functools
import shutil
import tempfile
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Optional, TypeVar

from flowstrap.bootstrap.archive import ArchiveExpander
from flowstrap.bootstrap.cache import ArtifactCache, ArtifactDescriptor, ArtifactKind
from flowstrap.bootstrap.download import Downloader
from flowstrap.bootstrap.injector import Injector, NativeLoadReport
from flowstrap.bootstrap.platform import PlatformIdentity, PlatformProbe, get_platform_identity
from flowstrap.bootstrap.selector import LibrarySelector, install_selection, search_roots
from flowstrap.bootstrap.verifier import Verifier
from flowstrap.config.models import FlowstrapConfig
from flowstrap.core.logging import get_logger
from flowstrap.errors import (
    ArchitectureMismatchError,
    CacheError,
    InjectionError,
    PrerequisiteError,
    RepeatedInitializationError,
)
from flowstrap.prerequisites import PrerequisiteChecker

LOGGER = get_logger(__name__)

F = TypeVar("F", bound=Callable)


class InitState(str, Enum):
    """Lifecycle of a gate."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ProvisionResult:
    """What a successful initialization produced.

    ``managed_archive`` is None when the entry points were importable
    before anything was downloaded.
    """

    identity: PlatformIdentity
    managed_archive: Optional[Path]
    native_dir: Path
    native_report: NativeLoadReport


class InitGate:
    """Lock-protected, run-once provisioning state machine."""

    def __init__(
        self,
        config: Optional[FlowstrapConfig] = None,
        *,
        probe: Optional[PlatformProbe] = None,
        cache: Optional[ArtifactCache] = None,
        downloader: Optional[Downloader] = None,
        expander: Optional[ArchiveExpander] = None,
        selector: Optional[LibrarySelector] = None,
        injector: Optional[Injector] = None,
        verifier: Optional[Verifier] = None,
        prerequisites: Optional[PrerequisiteChecker] = None,
    ):
        self._config = config or FlowstrapConfig()
        self._probe = probe
        self._cache = cache or ArtifactCache()
        self._downloader = downloader or Downloader(timeout=self._config.timeouts.download)
        self._expander = expander or ArchiveExpander(timeout=self._config.timeouts.extraction)
        self._selector = selector or LibrarySelector(
            inspect_headers=self._config.selection.inspect_headers
        )
        self._injector = injector
        self._verifier = verifier
        self._prerequisites = prerequisites or PrerequisiteChecker()

        self._lock = threading.Lock()
        self._state = InitState.UNINITIALIZED
        self._error: Optional[Exception] = None
        self._result: Optional[ProvisionResult] = None
        self._identity: Optional[PlatformIdentity] = None

    @property
    def config(self) -> FlowstrapConfig:
        return self._config

    @property
    def state(self) -> InitState:
        return self._state

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    @property
    def result(self) -> Optional[ProvisionResult]:
        return self._result

    @property
    def is_ready(self) -> bool:
        return self._state == InitState.READY

    @property
    def identity(self) -> PlatformIdentity:
        """Platform identity of this process, probed once.

        Without an explicit probe the process-wide host identity is used.
        """
        if self._identity is None:
            if self._probe is None:
                self._identity = get_platform_identity()
            else:
                self._identity = self._probe.identify()
        return self._identity

    @property
    def injector(self) -> Injector:
        if self._injector is None:
            self._injector = Injector(os_family=self.identity.os_family)
        return self._injector

    @property
    def verifier(self) -> Verifier:
        if self._verifier is None:
            self._verifier = Verifier(self.injector)
        return self._verifier

    def ensure_initialized(self) -> ProvisionResult:
        """Provision BrainFlow once; later calls return the memoized outcome.

        Raises:
            RepeatedInitializationError: If an earlier attempt failed.
            FlowstrapError: The cause of a failure in this attempt.
        """
        result = self._result
        if self._state == InitState.READY and result is not None:
            return result

        with self._lock:
            if self._state == InitState.READY and self._result is not None:
                return self._result
            if self._state == InitState.FAILED and self._error is not None:
                raise RepeatedInitializationError(self._error) from self._error

            self._state = InitState.INITIALIZING
            LOGGER.info("Initializing BrainFlow...")
            try:
                result = self._provision()
            except Exception as e:
                self._error = e
                self._state = InitState.FAILED
                LOGGER.error(f"BrainFlow initialization failed: {e}")
                raise
            except BaseException:
                # Interrupted, not failed: the next call starts over
                self._state = InitState.UNINITIALIZED
                raise

            self._result = result
            self._state = InitState.READY
            LOGGER.info("BrainFlow initialization complete!")
            return result

    def reset(self) -> None:
        """Forget the memoized outcome so the next call runs again."""
        with self._lock:
            self._forget()

    def _forget(self) -> None:
        self._state = InitState.UNINITIALIZED
        self._error = None
        self._result = None

    def clear_cache(self) -> int:
        """Remove this version's cached artifacts and reset the gate.

        Returns:
            Number of files removed.
        """
        with self._lock:
            removed = self._cache.clear(self._config.artifacts.version)
            self._forget()
        return removed

    # --- Steps ---------------------------------------------------------------

    def _provision(self) -> ProvisionResult:
        identity = self.identity
        LOGGER.info(f"Platform: {identity.triple} ({identity.runtime_bits}-bit interpreter)")

        if self._config.check_prerequisites:
            if not self._prerequisites.ensure_prerequisites(identity):
                raise PrerequisiteError(self._prerequisites.missing_required())

        managed_archive: Optional[Path] = None
        if self.verifier.all_resolvable(self._config.entry_points):
            LOGGER.info("BrainFlow modules already available")
        else:
            with self._cache_writes():
                managed_archive = self._provide_managed_archive(identity)
            if not self.injector.inject_managed_code(managed_archive):
                raise InjectionError(
                    "Failed to make the BrainFlow archive importable.",
                    archive=managed_archive,
                )

        with self._cache_writes():
            native_dir = self._provide_natives(identity)
        selection = self._selector.select_native_libraries(
            [native_dir], identity.platform_extensions, identity.runtime_bits
        )
        if not selection:
            raise ArchitectureMismatchError(
                identity.triple,
                identity.runtime_bits,
                [candidate.path for candidate in selection.rejected],
            )

        report = self.injector.inject_native_libraries(native_dir, selection)
        if report.loaded == 0:
            details = "; ".join(
                f"{failure.name}: {failure.error}" for failure in report.failures()
            )
            raise InjectionError(f"No native library could be loaded ({details})")

        self.verifier.verify(self._config.entry_points)

        return ProvisionResult(
            identity=identity,
            managed_archive=managed_archive,
            native_dir=native_dir,
            native_report=report,
        )

    @contextlib.contextmanager
    def _cache_writes(self) -> Iterator[None]:
        """Turn filesystem failures while populating the cache into CacheError."""
        try:
            yield
        except OSError as e:
            path = Path(e.filename) if e.filename else self._cache.paths.home
            raise CacheError(path, e) from e

    def _descriptor(self, identity: PlatformIdentity, kind: ArtifactKind) -> ArtifactDescriptor:
        artifacts = self._config.artifacts
        if kind == ArtifactKind.MANAGED_LIBRARY:
            filename, min_bytes = artifacts.managed_archive, artifacts.managed_min_bytes
        else:
            filename, min_bytes = artifacts.native_archive, artifacts.native_min_bytes
        return ArtifactDescriptor.build(
            remote_base=artifacts.remote_base,
            version=artifacts.version,
            platform_triple=identity.triple,
            kind=kind,
            filename=filename,
            minimum_valid_size_bytes=min_bytes,
        )

    def _provide_managed_archive(self, identity: PlatformIdentity) -> Path:
        descriptor = self._descriptor(identity, ArtifactKind.MANAGED_LIBRARY)

        local = self._config.local.managed_archive
        if local is not None and self._cache.is_valid(local, descriptor.minimum_valid_size_bytes):
            LOGGER.info(f"Using local BrainFlow archive {local}")
            return local

        archive = self._cache.artifact_path(descriptor)
        if not self._cache.is_valid(archive, descriptor.minimum_valid_size_bytes):
            LOGGER.info("Downloading BrainFlow Python library...")
            self._downloader.fetch(descriptor.remote_url, archive)
        return archive

    def _provide_natives(self, identity: PlatformIdentity) -> Path:
        extensions = identity.platform_extensions

        local = self._config.local.native_dir
        if local is not None and self._cache.has_natives(local, extensions):
            LOGGER.info(f"Using local native libraries in {local}")
            return local

        version = self._config.artifacts.version
        native_dir = self._cache.natives_dir(version, identity.triple)
        if self._cache.has_natives(native_dir, extensions):
            LOGGER.debug(f"Native libraries already cached in {native_dir}")
            return native_dir

        LOGGER.info(
            f"Setting up BrainFlow native libraries for {identity.triple} "
            f"({identity.runtime_bits}-bit interpreter)..."
        )
        descriptor = self._descriptor(identity, ArtifactKind.NATIVE_ARCHIVE)
        archive = self._cache.artifact_path(descriptor)
        if not self._cache.is_valid(archive, descriptor.minimum_valid_size_bytes):
            self._downloader.fetch(descriptor.remote_url, archive)

        version_dir = self._cache.cache_dir(version)
        staging_parent = Path(tempfile.mkdtemp(prefix=".staging-", dir=version_dir))
        try:
            staging = staging_parent / "archive"
            self._expander.expand(archive, staging)
            selection = self._selector.select_native_libraries(
                search_roots(staging, identity.triple),
                extensions,
                identity.runtime_bits,
            )
            if not selection:
                raise ArchitectureMismatchError(
                    identity.triple,
                    identity.runtime_bits,
                    [candidate.path for candidate in selection.rejected],
                )
            install_selection(selection.selected, native_dir)
        finally:
            shutil.rmtree(staging_parent, ignore_errors=True)

        # The archive is only needed again if the natives directory is removed
        archive.unlink(missing_ok=True)
        return native_dir


_default_gate: Optional[InitGate] = None
_default_gate_lock = threading.Lock()


def get_default_gate() -> InitGate:
    """The process-wide gate used by the convenience functions."""
    global _default_gate
    with _default_gate_lock:
        if _default_gate is None:
            from flowstrap.config.loader import load_config

            _default_gate = InitGate(load_config(Path.cwd()))
        return _default_gate


def set_default_gate(gate: Optional[InitGate]) -> None:
    """Replace the process-wide gate (None recreates it lazily)."""
    global _default_gate
    with _default_gate_lock:
        _default_gate = gate


def ensure_loaded() -> ProvisionResult:
    """Provision BrainFlow through the default gate."""
    return get_default_gate().ensure_initialized()


def is_initialized() -> bool:
    return _default_gate is not None and _default_gate.is_ready


def requires_brainflow(func: F) -> F:
    """Decorator initializing BrainFlow before the wrapped call."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        ensure_loaded()
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]
