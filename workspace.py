#!/usr/bin/env python3
"""Ephemeral working directory for one reconciliation run."""

from __future__ import annotations

import os
import shutil
import tempfile
import time
from types import TracebackType
from typing import Optional, Type

from errors import WorkspaceNotEmpty
from logging_utils import Logger

WORKSPACE_BASE_DIR_ENV = "TMP_GITLAB_REPOSITORY_WORKING_DIR"


def default_workspace_base_dir() -> str:
    """Return the workspace base from the environment or the platform temp dir."""
    return os.getenv(WORKSPACE_BASE_DIR_ENV) or tempfile.gettempdir()


class EphemeralWorkspace:
    """A uniquely named, initially empty directory removed when the run ends.

    Use as a context manager so the directory is released on every exit path::

        with EphemeralWorkspace(base_dir) as workspace:
            clone_into(workspace.path)
    """

    def __init__(self, base_dir: str) -> None:
        self.path = os.path.join(
            base_dir, f"gitlab-sync-{int(time.time() * 1000)}-{os.getpid()}"
        )
        os.makedirs(self.path, mode=0o700, exist_ok=True)
        os.chmod(self.path, 0o700)

        if os.listdir(self.path):
            Logger.security_event(
                "WORKSPACE_NOT_EMPTY", f"refusing to reuse {self.path}"
            )
            raise WorkspaceNotEmpty(self.path)

        Logger.debug(f"created workspace: {self.path}")

    def __enter__(self) -> EphemeralWorkspace:
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        """Remove the workspace directory and everything in it."""
        if not os.path.exists(self.path):
            return
        try:
            # git marks pack files read-only; chmod follows links, so skip them
            for root, dirs, files in os.walk(self.path):
                for d in dirs:
                    entry = os.path.join(root, d)
                    if not os.path.islink(entry):
                        os.chmod(entry, 0o700)
                for f in files:
                    entry = os.path.join(root, f)
                    if not os.path.islink(entry):
                        os.chmod(entry, 0o600)
            shutil.rmtree(self.path)
            Logger.debug("cleaned up workspace")
            Logger.security_event("CLEANUP_SUCCESS", f"removed {self.path}")
        except OSError as error:
            Logger.security_event("CLEANUP_FAILED", f"failed to remove {self.path}")
            shutil.rmtree(self.path, ignore_errors=True)
            Logger.warn(f"failed to clean up workspace, attempted force removal: {error}")
