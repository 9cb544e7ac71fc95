"""Argument parser for the flowstrap CLI."""

from __future__ import annotations

import argparse
from pathlib import Path

COMMANDS = ("selftest", "status", "clear")
DEFAULT_COMMAND = "selftest"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowstrap",
        description="flowstrap - download, load and self-test the BrainFlow library.",
    )

    # Global options
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show flowstrap version and exit.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (info-level) logging.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Reduce logging output to errors only.",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        type=Path,
        help="Path to config file (default: flowstrap.yml in the project root).",
    )
    parser.add_argument(
        "--project",
        metavar="DIR",
        type=Path,
        default=Path("."),
        help="Project root (default: current directory).",
    )

    # Self-test options
    parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Update project files after a passing self-test without asking.",
    )
    parser.add_argument(
        "--no-project-update",
        action="store_true",
        help="Never write flowstrap-local.yml or touch flowstrap.yml.",
    )
    parser.add_argument(
        "--stream-seconds",
        type=float,
        default=2.0,
        metavar="SECONDS",
        help="How long the self-test streams from the synthetic board (default: 2).",
    )

    parser.add_argument(
        "command",
        nargs="?",
        choices=COMMANDS,
        default=DEFAULT_COMMAND,
        help="selftest (default): provision BrainFlow and stream from the synthetic board; "
        "status: show platform and cache state; clear: delete cached artifacts.",
    )

    return parser
