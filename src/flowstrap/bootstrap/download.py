"""Streaming artifact downloads.

Downloads go to ``<dest>.part`` and are renamed onto the destination only
once complete, so a concurrent reader never sees a half-written artifact
under its final name.
"""

from __future__ import annotations

import os
import ssl
import time
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from flowstrap.core.logging import get_logger
from flowstrap.errors import DownloadError

LOGGER = get_logger(__name__)

DEFAULT_TIMEOUT = 300.0
DEFAULT_CHUNK_SIZE = 8192
_MEGABYTE = 1024 * 1024

ProgressCallback = Callable[[int, Optional[int]], None]


def secure_urlopen(url: str, timeout: float = DEFAULT_TIMEOUT):
    """Open an HTTPS URL with certificate verification.

    Raises:
        ValueError: If the URL is not https.
    """
    if urlparse(url).scheme != "https":
        raise ValueError(f"Refusing non-https download URL: {url}")
    request = Request(url, headers={"User-Agent": "flowstrap"})
    context = ssl.create_default_context()
    return urlopen(request, timeout=timeout, context=context)  # nosec B310


class Downloader:
    """Fetches artifacts into local files."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress: Optional[ProgressCallback] = None,
    ):
        """Initialize Downloader.

        Args:
            timeout: Upper bound in seconds for the whole transfer.
            chunk_size: Bytes read per iteration.
            progress: Optional callback receiving (bytes_so_far, total).
        """
        self._timeout = timeout
        self._chunk_size = chunk_size
        self._progress = progress

    @property
    def timeout(self) -> float:
        return self._timeout

    def fetch(self, url: str, dest: Path) -> None:
        """Download ``url`` to ``dest``.

        Raises:
            DownloadError: On any failure; no partial file is left behind.
        """
        part = dest.with_name(dest.name + ".part")

        LOGGER.info(f"Downloading {dest.name}...")
        LOGGER.debug(f"Downloading from {url}")

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            received = self._stream(url, part)
            os.replace(part, dest)
        except Exception as e:
            if part.exists():
                part.unlink(missing_ok=True)
            raise DownloadError(url, e) from e

        LOGGER.info(f"Download complete: {dest.name} ({received} bytes)")

    def _stream(self, url: str, part: Path) -> int:
        deadline = time.monotonic() + self._timeout
        received = 0
        reported_mb = 0

        with secure_urlopen(url, timeout=self._timeout) as response:
            total = _content_length(response)
            with open(part, "wb") as out:
                while True:
                    if time.monotonic() > deadline:
                        raise TimeoutError(
                            f"transfer did not complete within {self._timeout:.0f} seconds"
                        )
                    chunk = response.read(self._chunk_size)
                    if not chunk:
                        break
                    out.write(chunk)
                    received += len(chunk)

                    if received // _MEGABYTE > reported_mb:
                        reported_mb = received // _MEGABYTE
                        LOGGER.info(f"  Downloaded {reported_mb} MB...")
                    if self._progress is not None:
                        self._progress(received, total)

        if total is not None and received != total:
            raise IOError(f"expected {total} bytes, received {received}")
        return received


def _content_length(response) -> Optional[int]:
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    value = headers.get("Content-Length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None
