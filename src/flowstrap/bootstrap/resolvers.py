"""Module resolution mechanisms.

A resolver turns a dotted module name into a module object. The default
resolver is the regular import system; archive resolvers load from one
specific archive or directory and win over stale copies of the same
package imported from elsewhere.
"""

from __future__ import annotations

import importlib
import importlib.abc
import importlib.util
import os
import sys
from abc import ABC, abstractmethod
from importlib.machinery import ModuleSpec, PathFinder
from pathlib import Path
from types import ModuleType
from typing import Optional, Sequence


class ModuleResolver(ABC):
    """Resolves module names to modules."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short description used in diagnostics."""

    @abstractmethod
    def resolve(self, module_name: str) -> ModuleType:
        """Import ``module_name``.

        Raises:
            ImportError: If the module cannot be found or loaded.
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class DefaultResolver(ModuleResolver):
    """The interpreter's regular import machinery."""

    @property
    def name(self) -> str:
        return "default import system"

    def resolve(self, module_name: str) -> ModuleType:
        return importlib.import_module(module_name)


class ArchiveResolver(ModuleResolver):
    """Loads modules from a single path entry (zip archive or directory)."""

    def __init__(self, root: Path):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def name(self) -> str:
        return str(self._root)

    def owns(self, module: ModuleType) -> bool:
        """Whether ``module`` was loaded from this resolver's root."""
        origin = getattr(module, "__file__", None)
        if not origin:
            return False
        root = str(self._root)
        return origin == root or origin.startswith(root.rstrip(os.sep) + os.sep)

    def resolve(self, module_name: str) -> ModuleType:
        parts = module_name.split(".")
        search: Sequence[str] = [str(self._root)]
        module: Optional[ModuleType] = None

        for index in range(len(parts)):
            name = ".".join(parts[: index + 1])
            current = sys.modules.get(name)
            if current is None or not self.owns(current):
                current = self._load(name, search)
                if index:
                    setattr(sys.modules[".".join(parts[:index])], parts[index], current)
            search = list(getattr(current, "__path__", None) or [])
            module = current

        if module is None:
            raise ModuleNotFoundError(f"Empty module name for {self._root}", name=module_name)
        return module

    def _load(self, name: str, search: Sequence[str]) -> ModuleType:
        spec = PathFinder.find_spec(name, list(search))
        if spec is None or spec.loader is None:
            raise ModuleNotFoundError(f"No module named {name!r} in {self._root}", name=name)

        module = importlib.util.module_from_spec(spec)
        previous = sys.modules.get(name)
        sys.modules[name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            if previous is not None:
                sys.modules[name] = previous
            else:
                sys.modules.pop(name, None)
            raise
        return module


class ArchiveFinder(importlib.abc.MetaPathFinder):
    """Meta path finder serving top-level packages from one directory.

    Installed behind the existing finders, so anything the interpreter can
    already import keeps resolving the usual way.
    """

    def __init__(self, root: Path):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def find_spec(self, fullname, path=None, target=None) -> Optional[ModuleSpec]:
        if path is not None:
            # Submodules are found through their parent package's __path__
            return None
        return PathFinder.find_spec(fullname, [str(self._root)], target)

    def invalidate_caches(self) -> None:
        PathFinder.invalidate_caches()

    def __repr__(self) -> str:
        return f"ArchiveFinder({str(self._root)!r})"
