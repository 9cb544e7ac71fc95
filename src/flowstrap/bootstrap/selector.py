"""Native library selection.

Release archives contain libraries for every platform and architecture.
Candidates are recognised by file extension; their architecture is read
from tokens in the filename. Names without any architecture token are
treated as compatible, since release artifacts only tag the ambiguous ones.
"""

from __future__ import annotations

import os
import shutil
import struct
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from flowstrap.core.logging import get_logger

LOGGER = get_logger(__name__)

ARCH_TOKENS = ("32", "64", "x86", "x64", "amd64")


@dataclass(frozen=True)
class CandidateLibraryFile:
    """A shared library found while scanning an archive tree."""

    path: Path
    platform_extension: str
    arch_signals: FrozenSet[str] = frozenset()

    @property
    def name(self) -> str:
        return self.path.name


@dataclass
class SelectionResult:
    """Libraries accepted for the live process, and the ones refused."""

    selected: List[CandidateLibraryFile] = field(default_factory=list)
    rejected: List[CandidateLibraryFile] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.selected)

    @property
    def selected_names(self) -> List[str]:
        return [candidate.name for candidate in self.selected]


def search_roots(archive_root: Path, platform_triple: str) -> List[Path]:
    """Directories of an expanded archive that may hold native libraries."""
    return [
        archive_root / "lib",
        archive_root / "libs",
        archive_root / platform_triple,
        archive_root / f"native-{platform_triple}",
        archive_root,
    ]


def arch_signals(filename: str) -> FrozenSet[str]:
    """Architecture tokens present in a filename."""
    name = filename.lower()
    return frozenset(token for token in ARCH_TOKENS if token in name)


def matches_architecture(filename: str, target_bits: int) -> bool:
    """Decide from its name whether a library suits ``target_bits``."""
    name = filename.lower()
    if target_bits == 32:
        return (
            "32" in name
            or "x86" in name
            or ("64" not in name and "x64" not in name and "amd64" not in name)
        )
    if target_bits == 64:
        return (
            "64" in name
            or "x64" in name
            or "amd64" in name
            or ("32" not in name and "x86" not in name)
        )
    return False


def read_binary_bits(path: Path) -> Optional[int]:
    """Read the word size from an ELF, PE or Mach-O header.

    Returns:
        32 or 64, or None when the format is unknown or ambiguous
        (e.g. universal Mach-O binaries).
    """
    try:
        with open(path, "rb") as f:
            head = f.read(64)
            if head[:4] == b"\x7fELF" and len(head) > 4:
                return {1: 32, 2: 64}.get(head[4])

            if head[:4] in (b"\xfe\xed\xfa\xce", b"\xce\xfa\xed\xfe"):
                return 32
            if head[:4] in (b"\xfe\xed\xfa\xcf", b"\xcf\xfa\xed\xfe"):
                return 64

            if head[:2] == b"MZ" and len(head) >= 0x40:
                (pe_offset,) = struct.unpack_from("<I", head, 0x3C)
                f.seek(pe_offset)
                pe_header = f.read(6)
                if len(pe_header) == 6 and pe_header[:4] == b"PE\x00\x00":
                    (machine,) = struct.unpack_from("<H", pe_header, 4)
                    return {0x014C: 32, 0x8664: 64, 0xAA64: 64}.get(machine)
    except (OSError, struct.error):
        return None
    return None


class LibrarySelector:
    """Picks the native libraries matching the running interpreter."""

    def __init__(self, inspect_headers: bool = False):
        """Initialize LibrarySelector.

        Args:
            inspect_headers: Also reject files whose binary header declares
                a different word size than the target.
        """
        self._inspect_headers = inspect_headers

    def scan(
        self,
        roots: Sequence[Path],
        extensions: Sequence[str],
    ) -> List[CandidateLibraryFile]:
        """List candidate libraries under ``roots``, de-duplicated by path."""
        suffixes = tuple(extensions)
        seen: Dict[Path, CandidateLibraryFile] = {}

        for root in roots:
            if not root.is_dir():
                continue
            LOGGER.debug(f"Searching in: {root}")
            for path in sorted(root.rglob("*")):
                if not path.is_file():
                    continue
                extension = next((s for s in suffixes if path.name.endswith(s)), None)
                if extension is None:
                    continue
                key = path.resolve()
                if key not in seen:
                    seen[key] = CandidateLibraryFile(
                        path=path,
                        platform_extension=extension,
                        arch_signals=arch_signals(path.name),
                    )
        return list(seen.values())

    def select_native_libraries(
        self,
        roots: Sequence[Path],
        extensions: Sequence[str],
        runtime_bits: int,
    ) -> SelectionResult:
        """Split the candidates under ``roots`` into selected and rejected.

        An empty ``selected`` list is the failure signal; the caller decides
        whether it is fatal.
        """
        LOGGER.debug(f"Searching for {runtime_bits}-bit libraries...")
        result = SelectionResult()

        for candidate in self.scan(roots, extensions):
            if self._accepts(candidate, runtime_bits):
                LOGGER.debug(f"Found matching library: {candidate.name}")
                result.selected.append(candidate)
            else:
                result.rejected.append(candidate)

        if not result.selected:
            LOGGER.warning(f"No {runtime_bits}-bit native libraries found")
            for line in describe_rejections(result, runtime_bits):
                LOGGER.warning(line)
        return result

    def _accepts(self, candidate: CandidateLibraryFile, runtime_bits: int) -> bool:
        if not matches_architecture(candidate.name, runtime_bits):
            return False
        if self._inspect_headers:
            header_bits = read_binary_bits(candidate.path)
            if header_bits is not None and header_bits != runtime_bits:
                LOGGER.debug(
                    f"Header of {candidate.name} declares {header_bits}-bit, skipping"
                )
                return False
        return True


def describe_rejections(result: SelectionResult, runtime_bits: int) -> List[str]:
    """Human-readable listing of every candidate and its verdict."""
    lines = [f"Library architecture analysis (target: {runtime_bits}-bit):"]
    for candidate in result.selected:
        lines.append(f"  + {candidate.name} - matches")
    for candidate in result.rejected:
        signals = ", ".join(sorted(candidate.arch_signals)) or "none"
        lines.append(f"  - {candidate.name} - wrong architecture (tokens: {signals})")
    if not result.selected and not result.rejected:
        lines.append("  (no libraries with a matching extension)")
    return lines


def install_selection(candidates: Iterable[CandidateLibraryFile], dest_dir: Path) -> List[str]:
    """Copy the selected libraries into ``dest_dir``.

    The copies are assembled in a temporary sibling directory which then
    replaces ``dest_dir``. When two candidates share a filename the first
    one wins.

    Returns:
        Names of the installed files.
    """
    dest_dir.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{dest_dir.name}-", dir=dest_dir.parent))
    installed: List[str] = []

    try:
        for candidate in candidates:
            target = staging / candidate.name
            if target.exists():
                LOGGER.debug(f"Skipping duplicate library name: {candidate.path}")
                continue
            shutil.copy2(candidate.path, target)
            installed.append(candidate.name)

        if dest_dir.exists():
            shutil.rmtree(dest_dir)
        os.replace(staging, dest_dir)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    LOGGER.info(f"Installed {len(installed)} native libraries: {', '.join(installed)}")
    return installed
