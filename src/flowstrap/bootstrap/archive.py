"""Native archive expansion through the system ``tar`` tool."""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from pathlib import Path, PurePosixPath
from typing import List

from flowstrap.core.logging import get_logger
from flowstrap.errors import ExtractionError

LOGGER = get_logger(__name__)

DEFAULT_TIMEOUT = 1800.0


class ArchiveExpander:
    """Expands a tar archive into a directory, all or nothing."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, tar_command: str = "tar"):
        self._timeout = timeout
        self._tar_command = tar_command

    def expand(self, archive: Path, dest_dir: Path) -> None:
        """Extract ``archive`` into ``dest_dir``.

        The archive is unpacked into a temporary sibling of ``dest_dir``
        which replaces ``dest_dir`` only once extraction succeeded.

        Raises:
            ExtractionError: If tar is unavailable, fails, times out or the
                archive contains unsafe member paths.
        """
        tar = shutil.which(self._tar_command)
        if tar is None:
            raise ExtractionError(
                "Failed to extract native libraries: the 'tar' command is not "
                "available. Install tar and retry."
            )
        if not archive.is_file():
            raise ExtractionError(f"Archive not found: {archive}")

        LOGGER.info("Extracting native libraries...")

        members = self._list_members(tar, archive)
        for member in members:
            _validate_member(member)

        dest_dir.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{dest_dir.name}-", dir=dest_dir.parent))
        try:
            self._run(tar, ["-xf", str(archive), "-C", str(staging)])
            if dest_dir.exists():
                shutil.rmtree(dest_dir)
            os.replace(staging, dest_dir)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        LOGGER.debug(f"Extracted {len(members)} member(s) into {dest_dir}")

    def _list_members(self, tar: str, archive: Path) -> List[str]:
        result = self._run(tar, ["-tf", str(archive)])
        return [line for line in result.stdout.splitlines() if line.strip()]

    def _run(self, tar: str, args: List[str]) -> subprocess.CompletedProcess:
        cmd = [tar, *args]
        LOGGER.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise ExtractionError(
                f"tar extraction timed out after {self._timeout:.0f} seconds"
            ) from e
        except OSError as e:
            raise ExtractionError(
                f"Failed to extract tar file. Please ensure 'tar' command is available: {e}"
            ) from e

        if result.returncode != 0:
            detail = result.stderr.strip()
            raise ExtractionError(
                f"tar extraction failed with exit code: {result.returncode}"
                + (f" ({detail})" if detail else "")
            )
        return result


def _validate_member(name: str) -> None:
    """Reject absolute member names and names escaping the destination."""
    member = PurePosixPath(name.replace("\\", "/"))
    if member.is_absolute() or ".." in member.parts or (
        len(name) > 1 and name[1] == ":"
    ):
        raise ExtractionError(f"Path traversal detected: {name}")
