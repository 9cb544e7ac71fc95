"""Entry point verification.

Entry points are ``"module:attribute"`` strings (a bare module name is
accepted too). Verification proves that injected code is resolvable and
remembers which resolver worked so later lookups go straight to it.
"""

from __future__ import annotations

import threading
from typing import Any, Iterable, List, Optional, Tuple

from flowstrap.bootstrap.injector import Injector
from flowstrap.bootstrap.resolvers import DefaultResolver, ModuleResolver
from flowstrap.core.logging import get_logger
from flowstrap.errors import VerificationError

LOGGER = get_logger(__name__)

DEFAULT_ENTRY_POINTS: Tuple[str, ...] = (
    "brainflow.board_shim:BoardShim",
    "brainflow.board_shim:BrainFlowInputParams",
    "brainflow.board_shim:BoardIds",
)


def split_entry_point(entry_point: str) -> Tuple[str, Optional[str]]:
    """Split ``"pkg.module:Attr.sub"`` into module and attribute path."""
    module, sep, attribute = entry_point.partition(":")
    if not module or (sep and not attribute):
        raise ValueError(f"Invalid entry point: {entry_point!r}")
    return module, attribute or None


def _resolve_with(resolver: ModuleResolver, entry_point: str) -> Any:
    module_name, attribute = split_entry_point(entry_point)
    target: Any = resolver.resolve(module_name)
    if attribute:
        for part in attribute.split("."):
            target = getattr(target, part)
    return target


class Verifier:
    """Resolves entry points through the available resolvers."""

    def __init__(self, injector: Optional[Injector] = None):
        self._injector = injector
        self._default = DefaultResolver()
        self._cached: Optional[ModuleResolver] = None
        self._lock = threading.Lock()

    @property
    def cached_resolver(self) -> Optional[ModuleResolver]:
        return self._cached

    def _candidates(self) -> List[ModuleResolver]:
        resolvers: List[ModuleResolver] = [self._default]
        active = self._injector.active_resolver if self._injector else None
        for resolver in (active, self._cached):
            if resolver is not None and resolver not in resolvers:
                resolvers.append(resolver)
        return resolvers

    def _resolve(self, entry_point: str) -> Tuple[Any, ModuleResolver]:
        last_error: Optional[BaseException] = None
        for resolver in self._candidates():
            try:
                return _resolve_with(resolver, entry_point), resolver
            except Exception as e:
                LOGGER.debug(f"{resolver.name} could not resolve {entry_point}: {e}")
                last_error = e
        raise VerificationError(entry_point, last_error)

    def verify(self, entry_points: Iterable[str]) -> None:
        """Resolve every entry point, failing on the first that does not.

        Raises:
            VerificationError: Naming the first unresolved entry point.
        """
        LOGGER.info("Verifying BrainFlow entry points are available...")
        for entry_point in entry_points:
            try:
                _value, resolver = self._resolve(entry_point)
            except VerificationError:
                LOGGER.error(f"Missing entry point: {entry_point}")
                raise
            LOGGER.info(f"Found entry point: {entry_point}")
            with self._lock:
                if self._cached is None:
                    self._cached = resolver

    def all_resolvable(self, entry_points: Iterable[str]) -> bool:
        """Whether every entry point already resolves, without raising."""
        for entry_point in entry_points:
            try:
                _value, resolver = self._resolve(entry_point)
            except VerificationError:
                return False
            with self._lock:
                if self._cached is None:
                    self._cached = resolver
        return True

    def load_entry_point(self, entry_point: str) -> Any:
        """Resolve an entry point, preferring the resolver that worked before.

        Raises:
            VerificationError: If no resolver can provide it.
        """
        cached = self._cached
        if cached is not None:
            try:
                return _resolve_with(cached, entry_point)
            except Exception as e:
                LOGGER.debug(f"Cached resolver failed for {entry_point}: {e}")
        value, _resolver = self._resolve(entry_point)
        return value
