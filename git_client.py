#!/usr/bin/env python3
"""Thin wrapper around the git command line for a single working copy."""

from __future__ import annotations

import os
import subprocess
from typing import Iterable, List, Optional

from config import DEFAULT_GIT_TIMEOUT_S
from errors import (CloneFailure, CommitFailure, FetchFailure,
                    GitOperationError, IdentityConfigFailure, LogFailure,
                    PushFailure, RemoteHeadsFailure, ResetFailure,
                    SubmoduleInitFailure)
from logging_utils import Logger


class GitRepository:
    """Runs git commands in ``path``.

    Every failure is raised as a :class:`GitOperationError` built by the
    caller. The git output is dropped on purpose: it can echo the remote URL
    and with it the access token used for cloning.
    """

    def __init__(self, path: str, timeout_s: float = DEFAULT_GIT_TIMEOUT_S) -> None:
        self.path = path
        self.timeout_s = timeout_s

    def _env(self) -> dict:
        env = os.environ.copy()
        env.update({"GIT_TERMINAL_PROMPT": "0", "LC_ALL": "C"})
        return env

    def _run(
        self,
        args: List[str],
        failure: GitOperationError,
        event: str,
        ok_returncodes: Iterable[int] = (0,),
    ) -> Optional[str]:
        try:
            completed = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=True,
                text=True,
                timeout=self.timeout_s,
                env=self._env(),
            )
        except subprocess.TimeoutExpired:
            Logger.security_event(f"GIT_{event}_TIMEOUT", f"git {args[0]} timed out")
            raise failure from None
        except OSError:
            Logger.security_event(f"GIT_{event}_FAILED", "git could not be executed")
            raise failure from None

        if completed.returncode == 0:
            return completed.stdout
        if completed.returncode in ok_returncodes:
            return None
        Logger.security_event(
            f"GIT_{event}_FAILED",
            f"git {args[0]} exited with status {completed.returncode}",
        )
        raise failure from None

    def clone(self, url: str) -> None:
        self._run(
            ["clone", "--quiet", url, "."],
            CloneFailure("failed to clone GitLab repository"),
            "CLONE",
        )
        Logger.security_event("GIT_CLONE_SUCCESS", "repository cloned")

    def configure_identity(self, name: str, email: str) -> None:
        self._run(
            ["config", "user.email", email],
            IdentityConfigFailure("failed to set user email in git config"),
            "CONFIG",
        )
        self._run(
            ["config", "user.name", name],
            IdentityConfigFailure("failed to set user name in git config"),
            "CONFIG",
        )

    def fetch(self, ref: str, failure: Optional[GitOperationError] = None) -> None:
        self._run(
            ["fetch", "--quiet", "origin", ref],
            failure or FetchFailure(f"failed to fetch '{ref}' from origin", ref),
            "FETCH",
        )

    def checkout_new_branch(
        self, branch: str, start_point: str, failure: GitOperationError
    ) -> None:
        """Create ``branch`` at ``start_point`` (``git checkout -b``)."""
        self._run(["checkout", "--quiet", "-b", branch, start_point], failure, "CHECKOUT")

    def reset_branch(
        self, branch: str, start_point: str, failure: GitOperationError
    ) -> None:
        """Create or move ``branch`` to ``start_point`` (``git checkout -B``)."""
        self._run(["checkout", "--quiet", "-B", branch, start_point], failure, "CHECKOUT")

    def checkout(self, ref: str, failure: GitOperationError) -> None:
        self._run(["checkout", "--quiet", ref], failure, "CHECKOUT")

    def reset_hard(self, ref: str) -> None:
        self._run(
            ["reset", "--hard", "--quiet", ref],
            ResetFailure(f"failed to reset hard to '{ref}'"),
            "RESET",
        )

    def add(self, path: str, failure: GitOperationError) -> None:
        self._run(["add", "--", path], failure, "ADD")

    def commit(self, message: str, failure: Optional[GitOperationError] = None) -> None:
        # Hooks are skipped: the change is reviewed through the merge request
        self._run(
            ["commit", "--quiet", "--no-verify", "-m", message],
            failure or CommitFailure("failed to commit"),
            "COMMIT",
        )

    def force_push(self, branch: str) -> None:
        self._run(
            ["push", "--quiet", "--force", "--no-verify", "origin",
             f"refs/heads/{branch}:refs/heads/{branch}"],
            PushFailure(f"failed to push branch '{branch}' to origin"),
            "PUSH",
        )
        Logger.security_event("GIT_PUSH_SUCCESS", f"pushed branch {branch}")

    def submodule_init(self, path: str) -> None:
        self._run(
            ["submodule", "update", "--init", "--", path],
            SubmoduleInitFailure(f"failed to initialize submodule at '{path}'"),
            "SUBMODULE",
        )

    def config_value(self, key: str, config_file: Optional[str] = None) -> Optional[str]:
        """Return a git config value, or None when the key is not set."""
        args = ["config"]
        if config_file:
            args.append(f"--file={config_file}")
        args += ["--get", key]
        value = self._run(
            args,
            GitOperationError(f"failed to read git config key '{key}'"),
            "CONFIG",
            ok_returncodes=(1,),
        )
        return value.strip() if value is not None else None

    def rev_parse(self, ref: str, failure: GitOperationError) -> str:
        return (self._run(["rev-parse", ref], failure, "REV_PARSE") or "").strip()

    def list_remote_heads(self, branch: str) -> str:
        return self._run(
            ["ls-remote", "--heads", "origin", f"refs/heads/{branch}"],
            RemoteHeadsFailure(f"failed to list remote heads for '{branch}'"),
            "LS_REMOTE",
        ) or ""

    def log_subjects(self, from_ref: str, to_ref: str) -> List[str]:
        """Return commit subjects reachable from ``to_ref`` but not ``from_ref``."""
        output = self._run(
            ["log", "--format=%H%x00%s", f"{from_ref}..{to_ref}", "--"],
            LogFailure("failed to get log from git"),
            "LOG",
        ) or ""
        # One line per commit, so commits with an empty subject are kept
        return [line.partition("\x00")[2] for line in output.splitlines() if line]
