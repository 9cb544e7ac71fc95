"""Exit codes for the flowstrap CLI.

- 0: Success (self-test passed, command completed)
- 1: Self-test failed after BrainFlow was initialized
- 3: Invalid usage (bad arguments, unreadable config)
- 4: Bootstrap failure (download, extraction, injection or verification)
"""

from __future__ import annotations

EXIT_SUCCESS = 0
EXIT_TEST_FAILED = 1
EXIT_INVALID_USAGE = 3
EXIT_BOOTSTRAP_FAILURE = 4
