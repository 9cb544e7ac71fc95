"""flowstrap - on-demand installer and loader for the BrainFlow library.

Typical use::

    import flowstrap

    flowstrap.ensure_loaded()
    BoardShim = flowstrap.load_entry_point("brainflow.board_shim:BoardShim")
"""

from __future__ import annotations

from typing import Any

from flowstrap.bootstrap.gate import (
    InitGate,
    InitState,
    ProvisionResult,
    ensure_loaded,
    get_default_gate,
    is_initialized,
    requires_brainflow,
)
from flowstrap.errors import FlowstrapError

__version__ = "0.3.0"


def load_entry_point(entry_point: str) -> Any:
    """Initialize BrainFlow if needed and resolve ``"module:attribute"``."""
    gate = get_default_gate()
    gate.ensure_initialized()
    return gate.verifier.load_entry_point(entry_point)


def clear_cache() -> int:
    """Delete cached artifacts of the pinned version and reset initialization."""
    return get_default_gate().clear_cache()


__all__ = [
    "FlowstrapError",
    "InitGate",
    "InitState",
    "ProvisionResult",
    "__version__",
    "clear_cache",
    "ensure_loaded",
    "get_default_gate",
    "is_initialized",
    "load_entry_point",
    "requires_brainflow",
]
