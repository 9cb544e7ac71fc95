"""Host prerequisite checks.

BrainFlow's native libraries depend on a few system components (the
Visual C++ runtime on Windows, libusb elsewhere). flowstrap checks for
them before downloading anything and explains how to install what is
missing; it never installs system packages itself.
"""

from __future__ import annotations

import ctypes.util
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from flowstrap.bootstrap.platform import OSFamily, PlatformIdentity
from flowstrap.core.logging import get_logger

LOGGER = get_logger(__name__)

VC_REDIST_URLS = {
    64: "https://aka.ms/vs/17/release/vc_redist.x64.exe",
    32: "https://aka.ms/vs/17/release/vc_redist.x86.exe",
}

WINDOWS_RUNTIME_DLLS = [
    "VCRUNTIME140.dll",
    "MSVCP140.dll",
    "api-ms-win-crt-runtime-l1-1-0.dll",
]


class InstallMechanism(str, Enum):
    """How a missing prerequisite gets installed."""

    PACKAGE_MANAGER = "package_manager"
    DOWNLOAD_AND_RUN = "download_and_run"
    COMMAND = "command"


@dataclass(frozen=True)
class Prerequisite:
    """A system component BrainFlow needs.

    Attributes:
        name: Display name.
        required: Whether a missing component aborts initialization.
        mechanism: How it is installed.
        priority: Lower values are checked (and listed) first.
        check: Returns True when the component is present.
        remedy: Manual installation instructions.
    """

    name: str
    required: bool
    mechanism: InstallMechanism
    priority: int
    check: Callable[[], bool]
    remedy: str


def _system32() -> Path:
    return Path(os.environ.get("WINDIR", r"C:\Windows")) / "System32"


def _dll_present(dll: str) -> Callable[[], bool]:
    return lambda: (_system32() / dll).exists()


def _library_present(name: str) -> Callable[[], bool]:
    return lambda: ctypes.util.find_library(name) is not None


def prerequisites_for(identity: PlatformIdentity) -> List[Prerequisite]:
    """Prerequisites of one platform, sorted by priority."""
    items: List[Prerequisite] = []

    if identity.os_family == OSFamily.WINDOWS:
        url = VC_REDIST_URLS.get(identity.runtime_bits, VC_REDIST_URLS[64])
        remedy = (
            f"Download {url}, run the installer, then restart your Python session."
        )
        for priority, dll in enumerate(WINDOWS_RUNTIME_DLLS):
            items.append(Prerequisite(
                name=dll,
                required=True,
                mechanism=InstallMechanism.DOWNLOAD_AND_RUN,
                priority=priority,
                check=_dll_present(dll),
                remedy=remedy,
            ))
    elif identity.os_family == OSFamily.LINUX:
        items.append(Prerequisite(
            name="libusb-1.0",
            required=False,
            mechanism=InstallMechanism.PACKAGE_MANAGER,
            priority=10,
            check=_library_present("usb-1.0"),
            remedy="sudo apt-get install libusb-1.0-0 (or your distribution's equivalent)",
        ))
    elif identity.os_family == OSFamily.MACOS:
        items.append(Prerequisite(
            name="libusb",
            required=False,
            mechanism=InstallMechanism.COMMAND,
            priority=10,
            check=_library_present("usb-1.0"),
            remedy="brew install libusb",
        ))

    return sorted(items, key=lambda item: item.priority)


class PrerequisiteChecker:
    """Checks host prerequisites before native libraries are injected."""

    def __init__(self, catalog: Optional[Dict[OSFamily, List[Prerequisite]]] = None):
        """Initialize PrerequisiteChecker.

        Args:
            catalog: Replace the built-in descriptor lists per OS family.
        """
        self._catalog = catalog
        self.missing: List[Prerequisite] = []

    def prerequisites(self, identity: PlatformIdentity) -> List[Prerequisite]:
        if self._catalog is not None:
            return sorted(
                self._catalog.get(identity.os_family, []), key=lambda item: item.priority
            )
        return prerequisites_for(identity)

    def ensure_prerequisites(self, identity: PlatformIdentity) -> bool:
        """Check every prerequisite of the platform.

        Missing optional components are logged; missing required ones make
        the result False.
        """
        LOGGER.info("Checking system dependencies...")
        self.missing = []
        ok = True

        for item in self.prerequisites(identity):
            try:
                present = item.check()
            except OSError as e:
                LOGGER.debug(f"Check for {item.name} failed: {e}")
                present = False

            if present:
                LOGGER.debug(f"Found {item.name}")
                continue

            self.missing.append(item)
            if item.required:
                ok = False
                LOGGER.error(f"Missing required dependency: {item.name}")
                LOGGER.error(f"  Manual installation: {item.remedy}")
            else:
                LOGGER.warning(f"Optional dependency not found: {item.name}")
                LOGGER.warning(f"  To install: {item.remedy}")

        return ok

    def missing_required(self) -> List[str]:
        return [item.name for item in self.missing if item.required]
