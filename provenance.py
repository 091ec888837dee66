#!/usr/bin/env python3
"""Guards the sync branch against commits not produced by this tool."""

from __future__ import annotations

from errors import DriftDetected
from git_client import GitRepository
from logging_utils import Logger
from utils import has_commit_message_salt


class ProvenanceValidator:
    """Checks that every commit between the target tip and the sync branch
    tip carries the commit message salt.

    The sync branch is force-rewritten on every run, so a commit without the
    salt was added by someone else and would be lost by the reset.
    """

    def __init__(self, repo: GitRepository, salt: str) -> None:
        self.repo = repo
        self.salt = salt

    def validate(self, target_branch: str, sync_branch: str) -> None:
        self.repo.fetch(target_branch)
        subjects = self.repo.log_subjects(f"origin/{target_branch}", sync_branch)

        foreign = [s for s in subjects if not has_commit_message_salt(s, self.salt)]
        if foreign:
            Logger.error(
                f"branch '{sync_branch}' has commits without '{self.salt}' "
                "in the commit message, the sync cannot proceed"
            )
            Logger.warn(
                f"to resolve this, delete the origin branch '{sync_branch}' "
                "and run the job again"
            )
            raise DriftDetected(sync_branch, self.salt, len(foreign))

        Logger.debug(
            f"branch '{sync_branch}' has {len(subjects)} auto-sync commit(s) "
            f"on top of '{target_branch}'"
        )
