"""Synthetic board self-test.

Streams a couple of seconds from BrainFlow's synthetic board to prove the
managed code and native libraries work together end to end.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from flowstrap.bootstrap.gate import InitGate, get_default_gate
from flowstrap.core.logging import get_logger

LOGGER = get_logger(__name__)

SYNTHETIC_BOARD_ID = -1
DEFAULT_STREAM_SECONDS = 2.0


@dataclass(frozen=True)
class SessionReport:
    """Shape of the data returned by the board."""

    channels: int
    samples: int

    @property
    def has_data(self) -> bool:
        return self.channels > 0 and self.samples > 0


def _shape(data: Any) -> SessionReport:
    shape = getattr(data, "shape", None)
    if shape is not None and len(shape) == 2:
        return SessionReport(channels=int(shape[0]), samples=int(shape[1]))
    rows = list(data)
    return SessionReport(channels=len(rows), samples=len(rows[0]) if rows else 0)


def run_synthetic_session(
    gate: Optional[InitGate] = None,
    stream_seconds: float = DEFAULT_STREAM_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> SessionReport:
    """Initialize BrainFlow and stream from the synthetic board.

    Args:
        gate: Gate to initialize through (defaults to the process-wide one).
        stream_seconds: How long to stream before reading the buffer.
        sleep: Sleep function, replaceable in tests.

    Returns:
        The number of channels and samples read.

    Raises:
        FlowstrapError: If BrainFlow cannot be initialized.
        Exception: Whatever BrainFlow raises while the session runs.
    """
    gate = gate or get_default_gate()
    gate.ensure_initialized()

    verifier = gate.verifier
    board_shim_cls = verifier.load_entry_point("brainflow.board_shim:BoardShim")
    params_cls = verifier.load_entry_point("brainflow.board_shim:BrainFlowInputParams")

    LOGGER.info("Creating synthetic board session...")
    board = board_shim_cls(SYNTHETIC_BOARD_ID, params_cls())
    board.prepare_session()
    try:
        LOGGER.info("Starting stream...")
        board.start_stream()
        sleep(stream_seconds)
        board.stop_stream()
        data = board.get_board_data()
    finally:
        board.release_session()

    report = _shape(data)
    LOGGER.info(f"Received {report.channels} channels x {report.samples} samples")
    return report
