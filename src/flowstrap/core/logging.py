"""Logging configuration for flowstrap.

All modules obtain their logger through :func:`get_logger` so that a single
call to :func:`configure_logging` controls the whole package.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

ROOT_LOGGER_NAME = "flowstrap"

_FORMAT = "%(levelname)s [%(name)s] %(message)s"
_DEBUG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(lineno)d] %(message)s"

_handler: Optional[logging.Handler] = None


def configure_logging(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
) -> None:
    """Configure the flowstrap logger hierarchy.

    Precedence: ``debug`` > ``quiet`` > ``verbose`` > default (warnings).

    Args:
        debug: Emit debug messages with source locations.
        verbose: Emit info-level progress messages.
        quiet: Only emit errors.
    """
    global _handler

    if debug:
        level = logging.DEBUG
        fmt = _DEBUG_FORMAT
    elif quiet:
        level = logging.ERROR
        fmt = _FORMAT
    elif verbose:
        level = logging.INFO
        fmt = _FORMAT
    else:
        level = logging.WARNING
        fmt = _FORMAT

    root = logging.getLogger(ROOT_LOGGER_NAME)
    if _handler is not None:
        root.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(_handler)
    root.setLevel(level)
    root.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Return a logger below the ``flowstrap`` namespace.

    Args:
        name: Usually ``__name__`` of the calling module.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
