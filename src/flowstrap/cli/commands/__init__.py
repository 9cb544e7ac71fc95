"""CLI commands package.

This module provides the base Command class and exports all command implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from argparse import Namespace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flowstrap.config.models import FlowstrapConfig


class Command(ABC):
    """Base class for CLI commands.

    All CLI commands should inherit from this class and implement
    the execute method.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Command identifier."""

    @abstractmethod
    def execute(self, args: Namespace, config: "FlowstrapConfig | None" = None) -> int:
        """Execute the command.

        Args:
            args: Parsed command-line arguments.
            config: Loaded flowstrap configuration.

        Returns:
            Exit code (0 for success, non-zero for error).
        """


# Import command implementations for convenience
# ruff: noqa: E402
from flowstrap.cli.commands.selftest import SelfTestCommand
from flowstrap.cli.commands.status import StatusCommand
from flowstrap.cli.commands.clear import ClearCommand

__all__ = [
    "Command",
    "SelfTestCommand",
    "StatusCommand",
    "ClearCommand",
]
