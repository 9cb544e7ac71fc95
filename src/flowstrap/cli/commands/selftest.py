"""Self-test command implementation.

Provisions BrainFlow, streams from the synthetic board and, when the test
passes, offers to record the artifact locations in the project.
"""

from __future__ import annotations

import sys
from argparse import Namespace
from pathlib import Path
from typing import Callable, Optional

import questionary
from questionary import Style

from flowstrap.bootstrap.gate import InitGate, ProvisionResult
from flowstrap.cli.commands import Command
from flowstrap.cli.exit_codes import (
    EXIT_BOOTSTRAP_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_SUCCESS,
    EXIT_TEST_FAILED,
)
from flowstrap.config.models import FlowstrapConfig
from flowstrap.core.logging import get_logger
from flowstrap.errors import ConfigError, FlowstrapError
from flowstrap.project import write_local_config
from flowstrap.session import run_synthetic_session

LOGGER = get_logger(__name__)

# Custom questionary style
STYLE = Style([
    ("qmark", "fg:cyan bold"),
    ("question", "bold"),
    ("answer", "fg:cyan"),
    ("instruction", "fg:gray"),
])


class SelfTestCommand(Command):
    """Runs the synthetic board self-test."""

    def __init__(self, gate_factory: Callable[[FlowstrapConfig], InitGate] = InitGate):
        self._gate_factory = gate_factory

    @property
    def name(self) -> str:
        return "selftest"

    def execute(self, args: Namespace, config: Optional[FlowstrapConfig] = None) -> int:
        """Execute the self-test.

        Returns:
            EXIT_SUCCESS if data was streamed, EXIT_BOOTSTRAP_FAILURE if
            BrainFlow could not be provisioned, EXIT_TEST_FAILED if the
            session itself failed.
        """
        config = config or FlowstrapConfig()
        gate = self._gate_factory(config)

        print("Testing BrainFlow with the synthetic board...")
        try:
            result = gate.ensure_initialized()
        except FlowstrapError as e:
            print(f"BrainFlow could not be initialized: {e}")
            return EXIT_BOOTSTRAP_FAILURE

        try:
            report = run_synthetic_session(gate, stream_seconds=args.stream_seconds)
        except Exception as e:
            LOGGER.error(f"Synthetic board session failed: {e}")
            if args.debug:
                import traceback
                traceback.print_exc()
            print("BrainFlow self-test FAILED")
            return EXIT_TEST_FAILED

        if not report.has_data:
            print("BrainFlow self-test FAILED: the board returned no data")
            return EXIT_TEST_FAILED

        print(f"Got data: {report.channels} channels x {report.samples} samples")
        print("BrainFlow self-test PASSED")

        return self._update_project(args, result)

    def _update_project(self, args: Namespace, result: ProvisionResult) -> int:
        if args.no_project_update:
            return EXIT_SUCCESS

        project_root = Path(args.project).resolve()
        if not args.yes:
            if not sys.stdin.isatty():
                LOGGER.info("Not a terminal; leaving project files unchanged (use --yes)")
                return EXIT_SUCCESS
            proceed = questionary.confirm(
                f"Record the BrainFlow artifact paths in {project_root}?",
                default=True,
                style=STYLE,
            ).ask()
            if not proceed:
                print("Project files left unchanged.")
                return EXIT_SUCCESS

        try:
            update = write_local_config(
                project_root, result.managed_archive, result.native_dir
            )
        except ConfigError as e:
            LOGGER.error(str(e))
            return EXIT_INVALID_USAGE

        print(f"Wrote {update.local_config}")
        if update.project_config_changed:
            print(f"Updated {update.project_config}")
        if update.gitignore_changed:
            print(f"Added {update.local_config.name} to .gitignore")
        return EXIT_SUCCESS
