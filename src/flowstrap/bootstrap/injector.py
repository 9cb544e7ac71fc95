"""Runtime injection of downloaded code into the current process.

Two things are injected:

- the managed archive (pure-Python packages), made importable through
  ``sys.path`` or a ``sys.meta_path`` finder;
- the native libraries, loaded directly with ``ctypes`` and appended to
  the process-wide library search path for indirect loads.
"""

from __future__ import annotations

import ctypes
import importlib
import os
import shutil
import sys
import tempfile
import zipfile
import zipimport
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from importlib.machinery import EXTENSION_SUFFIXES
from pathlib import Path
from typing import Callable, Dict, List, Optional

from flowstrap.bootstrap.platform import OSFamily
from flowstrap.bootstrap.resolvers import ArchiveFinder, ArchiveResolver, ModuleResolver
from flowstrap.bootstrap.selector import SelectionResult
from flowstrap.core.logging import get_logger

LOGGER = get_logger(__name__)

# Process-wide search path variable per OS family
SEARCH_PATH_VARIABLES: Dict[OSFamily, str] = {
    OSFamily.WINDOWS: "PATH",
    OSFamily.MACOS: "DYLD_LIBRARY_PATH",
    OSFamily.LINUX: "LD_LIBRARY_PATH",
}

_BINARY_SUFFIXES = tuple(set(EXTENSION_SUFFIXES) | {".so", ".dylib", ".dll", ".pyd"})

_ARCH_MISMATCH_PATTERNS = (
    "wrong elf class",
    "incompatible architecture",
    "mach-o, but wrong architecture",
    "not a valid win32 application",
    "can't load ia 32-bit",
    "winerror 193",
)

_MISSING_DEPENDENCY_PATTERNS = (
    "cannot open shared object file",
    "library not loaded",
    "dependent libraries",
    "undefined symbol",
    "symbol not found",
    "winerror 126",
)


class ExecutionContext(str, Enum):
    """How the host process is being run."""

    INTERACTIVE = "interactive"
    BATCH = "batch"


def detect_execution_context() -> ExecutionContext:
    """Detect a REPL, ``python -i`` or IPython session."""
    if hasattr(sys, "ps1") or sys.flags.interactive:
        return ExecutionContext.INTERACTIVE

    ipython = sys.modules.get("IPython")
    get_ipython = getattr(ipython, "get_ipython", None)
    if get_ipython is not None and get_ipython() is not None:
        return ExecutionContext.INTERACTIVE

    return ExecutionContext.BATCH


def default_os_family() -> OSFamily:
    if sys.platform.startswith("win"):
        return OSFamily.WINDOWS
    if sys.platform == "darwin":
        return OSFamily.MACOS
    return OSFamily.LINUX


# --- Managed code -----------------------------------------------------------


class InjectionStrategy(ABC):
    """One way of making an archive importable."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy identifier."""

    @abstractmethod
    def inject(self, archive: Path) -> Optional[ModuleResolver]:
        """Make ``archive`` importable.

        Returns:
            A resolver bound to the injected location, or None if this
            strategy cannot handle the archive.
        """


class PathEntryStrategy(InjectionStrategy):
    """Adds the archive itself to ``sys.path`` (served by zipimport).

    zipimport cannot load binaries, so archives that carry extension
    modules or shared libraries are refused.
    """

    def __init__(self, prepend: bool):
        self._prepend = prepend

    @property
    def name(self) -> str:
        return "sys.path (prepend)" if self._prepend else "sys.path (append)"

    def inject(self, archive: Path) -> Optional[ModuleResolver]:
        entry = str(archive)
        try:
            zipimport.zipimporter(entry)
        except zipimport.ZipImportError as e:
            LOGGER.debug(f"zipimport cannot serve {archive}: {e}")
            return None

        if _archive_has_binaries(archive):
            LOGGER.debug(f"{archive.name} contains binaries, not importable from zip")
            return None

        if entry not in sys.path:
            if self._prepend:
                sys.path.insert(0, entry)
            else:
                sys.path.append(entry)
        sys.path_importer_cache.pop(entry, None)
        importlib.invalidate_caches()
        return ArchiveResolver(archive)


class ExtractedArchiveStrategy(InjectionStrategy):
    """Extracts the archive and serves it through a meta path finder."""

    def __init__(self, extract_dir: Path):
        self._extract_dir = extract_dir

    @property
    def name(self) -> str:
        return "meta path finder"

    def inject(self, archive: Path) -> Optional[ModuleResolver]:
        if not zipfile.is_zipfile(archive):
            LOGGER.debug(f"{archive} is not a zip archive")
            return None

        marker = self._extract_dir / ".complete"
        if not marker.exists():
            _extract_zip(archive, self._extract_dir)
            marker.touch()

        root = self._extract_dir
        if not any(
            isinstance(finder, ArchiveFinder) and finder.root == root
            for finder in sys.meta_path
        ):
            sys.meta_path.append(ArchiveFinder(root))
        importlib.invalidate_caches()
        return ArchiveResolver(root)


def _archive_has_binaries(archive: Path) -> bool:
    try:
        with zipfile.ZipFile(archive) as zf:
            return any(name.endswith(_BINARY_SUFFIXES) for name in zf.namelist())
    except zipfile.BadZipFile:
        return False


def _extract_zip(archive: Path, dest_dir: Path) -> None:
    """Extract a zip safely (prevent path traversal) via a temporary sibling."""
    dest_dir.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{dest_dir.name}-", dir=dest_dir.parent))

    try:
        with zipfile.ZipFile(archive, "r") as zf:
            for zip_member in zf.namelist():
                member_path = (staging / zip_member).resolve()
                if not member_path.is_relative_to(staging.resolve()):
                    raise ValueError(f"Path traversal detected: {zip_member}")
            zf.extractall(staging)
        if dest_dir.exists():
            shutil.rmtree(dest_dir)
        os.replace(staging, dest_dir)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise


# --- Native libraries -------------------------------------------------------


class LoadFailureKind(str, Enum):
    """Why a native library failed to load."""

    ARCHITECTURE_MISMATCH = "architecture_mismatch"
    MISSING_DEPENDENCY = "missing_dependency"
    NOT_FOUND = "not_found"
    GENERIC = "generic"


_FAILURE_DESCRIPTIONS = {
    LoadFailureKind.ARCHITECTURE_MISMATCH: "32-bit/64-bit architecture mismatch",
    LoadFailureKind.MISSING_DEPENDENCY: "Missing dependencies",
    LoadFailureKind.NOT_FOUND: "File not found",
    LoadFailureKind.GENERIC: "Native library error",
}


def classify_load_error(message: str) -> LoadFailureKind:
    """Classify a loader error message."""
    text = message.lower()
    if any(pattern in text for pattern in _ARCH_MISMATCH_PATTERNS):
        return LoadFailureKind.ARCHITECTURE_MISMATCH
    if any(pattern in text for pattern in _MISSING_DEPENDENCY_PATTERNS):
        return LoadFailureKind.MISSING_DEPENDENCY
    return LoadFailureKind.GENERIC


@dataclass
class NativeLoadResult:
    """Outcome of loading one native library."""

    name: str
    path: Path
    success: bool
    kind: Optional[LoadFailureKind] = None
    error: Optional[str] = None


@dataclass
class NativeLoadReport:
    """Outcome of loading a whole selection."""

    results: List[NativeLoadResult] = field(default_factory=list)

    @property
    def loaded(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.success)

    def failures(self) -> List[NativeLoadResult]:
        return [result for result in self.results if not result.success]


def _ctypes_loader(path: str) -> object:
    return ctypes.CDLL(path, mode=ctypes.RTLD_GLOBAL)


class Injector:
    """Makes downloaded managed code and native libraries usable."""

    def __init__(
        self,
        *,
        os_family: Optional[OSFamily] = None,
        library_loader: Callable[[str], object] = _ctypes_loader,
        context: Optional[ExecutionContext] = None,
    ):
        """Initialize Injector.

        Args:
            os_family: OS family deciding the search path variable.
            library_loader: Callable loading one shared library by path.
            context: Force an execution context instead of detecting it.
        """
        self._os_family = os_family or default_os_family()
        self._library_loader = library_loader
        self._context = context
        self._handles: Dict[str, object] = {}
        self._dll_directories: Dict[str, object] = {}
        self.active_resolver: Optional[ModuleResolver] = None

    @property
    def loaded_libraries(self) -> Dict[str, object]:
        return dict(self._handles)

    def strategies_for(self, archive: Path, context: ExecutionContext) -> List[InjectionStrategy]:
        """Strategies to try, in order, for ``context``."""
        extract_dir = archive.with_name(archive.stem)
        if context == ExecutionContext.INTERACTIVE:
            return [PathEntryStrategy(prepend=False), ExtractedArchiveStrategy(extract_dir)]
        return [PathEntryStrategy(prepend=True), ExtractedArchiveStrategy(extract_dir)]

    def inject_managed_code(self, archive: Path) -> bool:
        """Make the managed archive importable.

        Success means reachable, not usable; the verifier decides the latter.
        """
        context = self._context or detect_execution_context()
        LOGGER.info(f"Execution context: {context.value}")

        for strategy in self.strategies_for(archive, context):
            try:
                resolver = strategy.inject(archive)
            except Exception as e:
                LOGGER.warning(f"{strategy.name} injection failed: {e}")
                continue
            if resolver is not None:
                LOGGER.info(f"Added {archive.name} via {strategy.name}")
                self.active_resolver = resolver
                return True
            LOGGER.debug(f"{strategy.name} cannot handle {archive.name}")

        return False

    def search_path_variable(self) -> str:
        return SEARCH_PATH_VARIABLES.get(self._os_family, "LD_LIBRARY_PATH")

    def append_native_search_path(self, directory: Path) -> bool:
        """Append ``directory`` to the native library search path.

        Existing entries are preserved and an entry is never added twice.
        On Linux and macOS the dynamic loader reads ``LD_LIBRARY_PATH`` and
        ``DYLD_LIBRARY_PATH`` at process start, so the change only reaches
        child processes; dependencies between the libraries resolve through
        the ``RTLD_GLOBAL`` loads in :meth:`inject_native_libraries`. On
        Windows ``os.add_dll_directory`` does affect this process.

        Returns:
            True if the search path changed.
        """
        variable = self.search_path_variable()
        entry = str(directory)
        current = os.environ.get(variable, "")
        entries = [part for part in current.split(os.pathsep) if part]

        added = False
        if entry not in entries:
            entries.append(entry)
            os.environ[variable] = os.pathsep.join(entries)
            added = True
            LOGGER.debug(f"Appended {entry} to {variable}")

        add_dll_directory = getattr(os, "add_dll_directory", None)
        if (
            self._os_family == OSFamily.WINDOWS
            and add_dll_directory is not None
            and entry not in self._dll_directories
        ):
            self._dll_directories[entry] = add_dll_directory(entry)

        return added

    def inject_native_libraries(
        self,
        native_dir: Path,
        selection: SelectionResult,
    ) -> NativeLoadReport:
        """Load every selected library, continuing past failures.

        Libraries that failed for a missing dependency are retried once at
        the end, since a sibling loaded later may provide it.
        """
        self.append_native_search_path(native_dir)
        report = NativeLoadReport()

        if not native_dir.is_dir():
            LOGGER.error(f"Native library directory does not exist: {native_dir}")
            report.results.append(NativeLoadResult(
                name=native_dir.name,
                path=native_dir,
                success=False,
                kind=LoadFailureKind.NOT_FOUND,
                error="Directory not found",
            ))
            return report

        LOGGER.info("Loading native libraries...")
        for candidate in selection.selected:
            report.results.append(self._load(candidate.path))

        if report.loaded:
            for index, result in enumerate(report.results):
                if result.kind == LoadFailureKind.MISSING_DEPENDENCY:
                    retried = self._load(result.path)
                    if retried.success:
                        report.results[index] = retried

        LOGGER.info("Library loading summary:")
        LOGGER.info(f"  Successfully loaded: {report.loaded}")
        LOGGER.info(f"  Failed to load: {report.failed}")
        if report.failed:
            LOGGER.warning(
                "Some libraries failed to load; BrainFlow functionality may be limited."
            )
        return report

    def _load(self, path: Path) -> NativeLoadResult:
        name = path.name
        LOGGER.debug(f"Loading: {name}")

        if not path.exists():
            LOGGER.warning(f"File not found: {path}")
            return NativeLoadResult(
                name, path, False, LoadFailureKind.NOT_FOUND, "File not found"
            )

        try:
            handle = self._library_loader(str(path))
        except OSError as e:
            message = str(e)
            kind = classify_load_error(message)
            LOGGER.warning(f"Failed to load {name}: {_FAILURE_DESCRIPTIONS[kind]}")
            LOGGER.debug(f"  Error details: {message}")
            return NativeLoadResult(name, path, False, kind, message)
        except Exception as e:
            LOGGER.warning(f"Unexpected error loading {name}: {e}")
            return NativeLoadResult(name, path, False, LoadFailureKind.GENERIC, str(e))

        self._handles[name] = handle
        LOGGER.debug(f"Successfully loaded: {name}")
        return NativeLoadResult(name, path, True)
