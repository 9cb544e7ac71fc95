"""Error taxonomy for flowstrap.

Every error carries a message meant for end users: what was attempted,
what was found and what to do about it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional


class FlowstrapError(Exception):
    """Base class for all flowstrap errors."""


class ConfigError(FlowstrapError):
    """Configuration loading or parsing error."""


class UnsupportedPlatformError(FlowstrapError):
    """The host OS or architecture has no published artifacts."""

    def __init__(self, os_name: str, machine: str, bits: Optional[int] = None):
        self.os_name = os_name
        self.machine = machine
        self.bits = bits
        bits_text = f" {bits}-bit" if bits else ""
        super().__init__(
            f"Unsupported platform: {os_name} {machine}{bits_text}. "
            "BrainFlow publishes binaries for Windows, macOS and Linux only."
        )


class DownloadError(FlowstrapError):
    """Fetching an artifact failed; the partial file has been removed."""

    def __init__(self, url: str, cause: object):
        self.url = url
        self.cause = cause
        super().__init__(
            f"Failed to download {url}: {cause}. "
            "Check your network connection and retry; run `flowstrap clear` "
            "if the cache looks corrupted."
        )


class ExtractionError(FlowstrapError):
    """The native archive could not be expanded."""


class ArchitectureMismatchError(FlowstrapError):
    """No native library in the archive matches the running interpreter."""

    def __init__(self, platform_triple: str, bits: int, rejected: Iterable[Path] = ()):
        self.platform_triple = platform_triple
        self.bits = bits
        self.rejected: List[Path] = list(rejected)
        lines = [
            f"No suitable {bits}-bit native libraries found for platform {platform_triple}."
        ]
        if self.rejected:
            lines.append("Libraries present in the archive but rejected:")
            lines.extend(f"  - {path.name}" for path in self.rejected)
        else:
            lines.append("The archive contains no libraries for this platform at all.")
        lines.append(
            "If you are running a 32-bit interpreter on a 64-bit system, install a "
            "64-bit Python; otherwise run `flowstrap clear` and retry."
        )
        super().__init__("\n".join(lines))


class InjectionError(FlowstrapError):
    """Downloaded code could not be made reachable from this process."""

    def __init__(self, message: str, archive: Optional[Path] = None):
        self.archive = archive
        if archive is not None:
            message = (
                f"{message}\n"
                f"Archive downloaded to: {archive}\n"
                "Solutions:\n"
                f"  1. Add it to the import path: PYTHONPATH=\"{archive}\"\n"
                "  2. Point flowstrap at it in flowstrap.yml:\n"
                f"       local:\n         managed_archive: {archive}\n"
                "  3. Run from an interactive session instead"
            )
        super().__init__(message)


class VerificationError(FlowstrapError):
    """An entry point did not resolve after injection."""

    def __init__(self, entry_point: str, cause: Optional[BaseException] = None):
        self.entry_point = entry_point
        self.cause = cause
        detail = f" ({cause})" if cause is not None else ""
        super().__init__(
            f"BrainFlow entry point not found: {entry_point}{detail}. "
            "This usually means a corrupted cache or a partial download; "
            "run `flowstrap clear` and retry."
        )


class PrerequisiteError(FlowstrapError):
    """Required host packages are missing."""

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(
            "Missing system dependencies; cannot proceed: "
            + ", ".join(self.missing)
        )


class RepeatedInitializationError(FlowstrapError):
    """Initialization failed earlier in this process and is not retried."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(
            f"BrainFlow initialization previously failed: {cause}. "
            "Call clear_cache() (or run `flowstrap clear`) to retry."
        )


class CacheError(FlowstrapError):
    """The artifact cache could not be written."""

    def __init__(self, path: Path, cause: object):
        self.path = path
        self.cause = cause
        super().__init__(
            f"Cannot write to the flowstrap cache at {path}: {cause}. "
            "Make sure the directory is writable, or set FLOWSTRAP_HOME to a "
            "writable directory."
        )
