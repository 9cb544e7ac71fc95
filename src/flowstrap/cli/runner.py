"""CLI runner: parses arguments, loads configuration and dispatches commands."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from typing import Dict, Iterable, Optional

from flowstrap.cli.arguments import build_parser
from flowstrap.cli.commands import ClearCommand, Command, SelfTestCommand, StatusCommand
from flowstrap.cli.exit_codes import EXIT_INVALID_USAGE, EXIT_SUCCESS
from flowstrap.config import load_config
from flowstrap.core.logging import configure_logging, get_logger
from flowstrap.errors import ConfigError

LOGGER = get_logger(__name__)


def get_version() -> str:
    try:
        return version("flowstrap")
    except PackageNotFoundError:
        # Fallback for editable installs that have not yet built metadata.
        from flowstrap import __version__

        return __version__


class CLIRunner:
    """Runs one invocation of the flowstrap CLI."""

    def __init__(self, commands: Optional[Iterable[Command]] = None):
        if commands is None:
            commands = [SelfTestCommand(), StatusCommand(), ClearCommand()]
        self._commands: Dict[str, Command] = {command.name: command for command in commands}

    def run(self, argv: Optional[Iterable[str]] = None) -> int:
        parser = build_parser()
        args = parser.parse_args(list(argv) if argv is not None else None)

        # Configure logging as early as possible.
        configure_logging(debug=args.debug, verbose=args.verbose, quiet=args.quiet)

        if args.version:
            print(get_version())
            return EXIT_SUCCESS

        project_root = args.project.resolve()
        try:
            config = load_config(project_root=project_root, cli_config_path=args.config)
        except ConfigError as e:
            LOGGER.error(str(e))
            return EXIT_INVALID_USAGE

        command = self._commands.get(args.command)
        if command is None:
            LOGGER.error(f"Unknown command: {args.command}")
            return EXIT_INVALID_USAGE

        return command.execute(args, config)
