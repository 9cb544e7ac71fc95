"""Platform and interpreter bitness detection.

The bitness that matters is the one of the running interpreter, not the
one the OS reports: a 32-bit Python runs happily on a 64-bit Windows and
must be given 32-bit libraries.
"""

from __future__ import annotations

import platform
import struct
import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from flowstrap.core.logging import get_logger
from flowstrap.errors import UnsupportedPlatformError

LOGGER = get_logger(__name__)


class OSFamily(str, Enum):
    """Operating system family."""

    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"
    UNKNOWN = "unknown"


class CpuArch(str, Enum):
    """CPU architecture of the running interpreter."""

    X86 = "x86"
    X64 = "x64"
    ARM64 = "arm64"
    UNKNOWN = "unknown"


# Release directory prefix per OS family
_TRIPLE_PREFIX = {
    OSFamily.LINUX: "linux",
    OSFamily.MACOS: "darwin",
    OSFamily.WINDOWS: "win32",
}

_EXTENSIONS = {
    OSFamily.LINUX: [".so"],
    OSFamily.MACOS: [".dylib"],
    OSFamily.WINDOWS: [".dll"],
}

_ARM_PATTERNS = ("aarch64", "arm64")
_X86_PATTERNS = ("x86", "i386", "i486", "i586", "i686", "amd64")


@dataclass(frozen=True)
class PlatformEnvironment:
    """Raw signals the probe works from.

    Attributes:
        os_name: OS name as reported by the interpreter (e.g. ``Linux``).
        machine: Architecture string reported by the OS (e.g. ``x86_64``).
        data_model: Declared bitness of the interpreter executable
            (``"64"``, ``"32"`` or empty when unknown).
        pointer_bits: Pointer width measured in-process, if available.
    """

    os_name: str
    machine: str
    data_model: str = ""
    pointer_bits: Optional[int] = None

    @classmethod
    def from_host(cls) -> "PlatformEnvironment":
        """Read the signals of the current process."""
        bits_text, _linkage = platform.architecture()
        try:
            pointer_bits: Optional[int] = struct.calcsize("P") * 8
        except struct.error:
            pointer_bits = None
        return cls(
            os_name=platform.system(),
            machine=platform.machine(),
            data_model="".join(ch for ch in bits_text if ch.isdigit()),
            pointer_bits=pointer_bits,
        )


@dataclass(frozen=True)
class PlatformIdentity:
    """Resolved platform of the running process."""

    os_family: OSFamily
    cpu_arch: CpuArch
    runtime_bits: int
    os_name: str = ""
    machine: str = ""

    @property
    def is_arm(self) -> bool:
        return self.cpu_arch == CpuArch.ARM64

    @property
    def triple(self) -> str:
        """Canonical platform identifier, e.g. ``linux-x86-64``.

        Raises:
            UnsupportedPlatformError: If the OS family is unknown.
        """
        prefix = _TRIPLE_PREFIX.get(self.os_family)
        if prefix is None:
            raise UnsupportedPlatformError(self.os_name, self.machine, self.runtime_bits)

        if self.runtime_bits != 64:
            return f"{prefix}-x86"
        # Windows releases ship x86-64 builds only
        if self.is_arm and self.os_family != OSFamily.WINDOWS:
            return f"{prefix}-aarch64"
        return f"{prefix}-x86-64"

    @property
    def platform_extensions(self) -> List[str]:
        """Shared-library file extensions for this OS family."""
        return list(_EXTENSIONS.get(self.os_family, []))


def resolve_os_family(os_name: str) -> OSFamily:
    """Map an OS name to its family."""
    name = os_name.lower()
    if "windows" in name or name.startswith("win32"):
        return OSFamily.WINDOWS
    if "mac" in name or "darwin" in name:
        return OSFamily.MACOS
    if "linux" in name:
        return OSFamily.LINUX
    return OSFamily.UNKNOWN


def resolve_runtime_bits(
    data_model: str,
    pointer_bits: Optional[int],
    machine: str,
) -> int:
    """Determine the bitness of the running interpreter.

    Precedence:
    1. Declared data model if it is 32 or 64
    2. Measured pointer size if it is 32 or 64
    3. ``64``/``amd64``/``x86_64`` in the machine string, else 32

    Args:
        data_model: Declared data model string.
        pointer_bits: Measured pointer width, or None.
        machine: OS-reported architecture string.

    Returns:
        32 or 64.
    """
    if data_model == "64":
        return 64
    if data_model == "32":
        return 32
    if pointer_bits in (32, 64):
        return pointer_bits
    arch = machine.lower()
    if "64" in arch or "amd64" in arch or "x86_64" in arch:
        return 64
    return 32


def resolve_cpu_arch(machine: str, bits: int) -> CpuArch:
    """Classify the CPU architecture for the given interpreter bitness."""
    arch = machine.lower()
    if any(pattern in arch for pattern in _ARM_PATTERNS):
        return CpuArch.ARM64 if bits == 64 else CpuArch.UNKNOWN
    if any(pattern in arch for pattern in _X86_PATTERNS):
        return CpuArch.X64 if bits == 64 else CpuArch.X86
    return CpuArch.UNKNOWN


class PlatformProbe:
    """Determines the :class:`PlatformIdentity` of a process."""

    def __init__(self, environment: Optional[PlatformEnvironment] = None):
        self._environment = environment

    @property
    def environment(self) -> PlatformEnvironment:
        if self._environment is None:
            self._environment = PlatformEnvironment.from_host()
        return self._environment

    def detect(self) -> PlatformIdentity:
        """Detect the platform without rejecting unknown systems."""
        env = self.environment
        bits = resolve_runtime_bits(env.data_model, env.pointer_bits, env.machine)

        LOGGER.debug("Bitness detection:")
        LOGGER.debug(f"  data model: {env.data_model or 'n/a'}")
        if env.pointer_bits:
            LOGGER.debug(f"  pointer size: {env.pointer_bits}-bit")
        LOGGER.debug(f"  machine: {env.machine}")

        identity = PlatformIdentity(
            os_family=resolve_os_family(env.os_name),
            cpu_arch=resolve_cpu_arch(env.machine, bits),
            runtime_bits=bits,
            os_name=env.os_name,
            machine=env.machine,
        )
        LOGGER.debug(
            f"Detected interpreter: {bits}-bit, OS: {env.os_name}, Arch: {env.machine}"
        )
        return identity

    def identify(self) -> PlatformIdentity:
        """Detect the platform and reject unsupported systems.

        Raises:
            UnsupportedPlatformError: If the OS family is unknown.
        """
        identity = self.detect()
        if identity.os_family == OSFamily.UNKNOWN:
            raise UnsupportedPlatformError(
                identity.os_name, identity.machine, identity.runtime_bits
            )
        return identity


_host_identity: Optional[PlatformIdentity] = None
_host_lock = threading.Lock()


def get_platform_identity(strict: bool = True) -> PlatformIdentity:
    """Return the host identity, detected once per process.

    Args:
        strict: Raise for an unknown OS family instead of returning it.

    Raises:
        UnsupportedPlatformError: If ``strict`` and the OS family is unknown.
    """
    global _host_identity
    with _host_lock:
        if _host_identity is None:
            _host_identity = PlatformProbe().detect()
        identity = _host_identity

    if strict and identity.os_family == OSFamily.UNKNOWN:
        raise UnsupportedPlatformError(identity.os_name, identity.machine, identity.runtime_bits)
    return identity
