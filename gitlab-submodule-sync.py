#!/usr/bin/env python3
"""
GitLab Submodule Sync - keep a GitLab project's submodule pointer in sync
with a branch of an external (GitHub) repository.

`sync-branch` rewrites the sync branch '<submodule>/<branch>' so it carries a
single commit pinning the submodule, and creates or updates its merge request.
`merge-mr` checks that merge request and merges it.
"""

from __future__ import annotations

import signal
import sys
from typing import NoReturn

from argument_parser import parse_arguments
from sync_orchestrator import SyncOrchestrator

# Exit codes
EXIT_EXECUTION_ERROR = 1
EXIT_TERMINATED = 143


def _handle_termination(signum, frame) -> NoReturn:
    # Raising unwinds the stack so the workspace context manager cleans up
    raise SystemExit(EXIT_TERMINATED)


def main() -> NoReturn:
    if __name__ != "__main__":
        sys.exit(EXIT_EXECUTION_ERROR)

    signal.signal(signal.SIGTERM, _handle_termination)
    cfg = parse_arguments()
    orchestrator = SyncOrchestrator(cfg)
    sys.exit(orchestrator.run())


if __name__ == "__main__":
    main()
