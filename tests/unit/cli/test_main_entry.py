"""Tests for the flowstrap.cli entry point."""

from __future__ import annotations

from unittest.mock import patch


class TestMainEntry:
    """Tests for main()."""

    @patch("flowstrap.cli.CLIRunner")
    def test_main_creates_runner(self, mock_runner_cls) -> None:
        """Verify main() creates CLIRunner and calls run."""
        mock_runner = mock_runner_cls.return_value
        mock_runner.run.return_value = 0

        from flowstrap.cli import main
        result = main()

        assert result == 0
        mock_runner.run.assert_called_once_with(None)

    @patch("flowstrap.cli.CLIRunner")
    def test_main_passes_argv(self, mock_runner_cls) -> None:
        """Verify main() passes argv to runner."""
        mock_runner = mock_runner_cls.return_value
        mock_runner.run.return_value = 4

        from flowstrap.cli import main
        result = main(["status"])

        assert result == 4
        mock_runner.run.assert_called_once_with(["status"])
