"""Shared fixtures for flowstrap tests."""

from __future__ import annotations

import importlib
import logging
import os
import sys
import zipfile
from pathlib import Path
from typing import Dict, Iterator

import pytest

from flowstrap.bootstrap import gate as gate_module
from flowstrap.core.logging import ROOT_LOGGER_NAME

BOARD_SHIM_SOURCE = '''
class BrainFlowInputParams:
    pass


class BoardIds:
    SYNTHETIC_BOARD = -1


class BoardShim:
    def __init__(self, board_id, params):
        self.board_id = board_id
        self.params = params
'''


def make_package_zip(path: Path, files: Dict[str, str], padding: int = 0) -> Path:
    """Write a zip of Python sources, optionally padded with a data file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, source in files.items():
            zf.writestr(name, source)
        if padding:
            zf.writestr("padding.bin", b"\x00" * padding)
    return path


@pytest.fixture
def isolated_imports() -> Iterator[None]:
    """Restore sys.path, sys.meta_path and sys.modules after a test."""
    saved_path = list(sys.path)
    saved_meta_path = list(sys.meta_path)
    saved_modules = set(sys.modules)
    try:
        yield
    finally:
        sys.path[:] = saved_path
        sys.meta_path[:] = saved_meta_path
        for name in set(sys.modules) - saved_modules:
            del sys.modules[name]
        importlib.invalidate_caches()


@pytest.fixture
def isolated_env() -> Iterator[None]:
    """Restore os.environ after a test."""
    saved = dict(os.environ)
    try:
        yield
    finally:
        os.environ.clear()
        os.environ.update(saved)


@pytest.fixture(autouse=True)
def reset_default_gate() -> Iterator[None]:
    gate_module.set_default_gate(None)
    yield
    gate_module.set_default_gate(None)


@pytest.fixture(autouse=True)
def restore_flowstrap_logger() -> Iterator[None]:
    """Undo handler and level changes made by configure_logging."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def flowstrap_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "flowstrap-home"
    monkeypatch.setenv("FLOWSTRAP_HOME", str(home))
    return home


@pytest.fixture
def package_zip():
    """Factory writing zip archives of Python sources."""
    return make_package_zip


@pytest.fixture
def board_shim_source() -> str:
    return BOARD_SHIM_SOURCE
