#!/usr/bin/env python3
"""Exception hierarchy for gitlab-submodule-sync.

Git failures never carry the underlying git output: it may echo a remote URL
with an embedded access token. Each exception maps to a process exit code.
"""

from __future__ import annotations

from typing import Optional

# Exit codes
EXIT_EXECUTION_ERROR = 1
EXIT_GIT_ERROR = 20
EXIT_GITLAB_ERROR = 30
EXIT_AUTH_ERROR = 40
EXIT_DRIFT_ERROR = 50
EXIT_MERGE_REQUEST_ERROR = 60
EXIT_WORKSPACE_ERROR = 70


class SubmoduleSyncError(Exception):
    """Base class for every terminal fault of a run."""

    exit_code = EXIT_EXECUTION_ERROR


class WorkspaceNotEmpty(SubmoduleSyncError):
    exit_code = EXIT_WORKSPACE_ERROR

    def __init__(self, path: str) -> None:
        super().__init__(
            f"the directory '{path}' is not empty, an empty directory is required"
        )
        self.path = path


class GitLabAuthenticationFailure(SubmoduleSyncError):
    exit_code = EXIT_AUTH_ERROR


class IdentityLookupFailure(SubmoduleSyncError):
    """The authenticated GitLab user could not be resolved."""

    exit_code = EXIT_GITLAB_ERROR


class GitOperationError(SubmoduleSyncError):
    """A sanitized git failure."""

    exit_code = EXIT_GIT_ERROR


class CloneFailure(GitOperationError):
    pass


class IdentityConfigFailure(GitOperationError):
    pass


class CheckoutFailure(GitOperationError):
    """Branch preparation failed.

    ``fallback`` is True when the failing ref was the target branch used to
    create a missing sync branch.
    """

    def __init__(self, message: str, ref: str, fallback: bool = False) -> None:
        super().__init__(message)
        self.ref = ref
        self.fallback = fallback


class FetchFailure(CheckoutFailure):
    pass


class LogFailure(GitOperationError):
    pass


class ResetFailure(GitOperationError):
    pass


class SubmodulePathNotFound(GitOperationError):
    pass


class SubmoduleInitFailure(GitOperationError):
    pass


class RemoteHeadsFailure(GitOperationError):
    pass


class SubmoduleCheckoutFailure(GitOperationError):
    pass


class SubmoduleSHAMismatch(GitOperationError):
    def __init__(self, branch: str, expected: str, actual: str) -> None:
        super().__init__(
            f"failed to checkout submodule branch '{branch}', submodule HEAD "
            f"is '{actual}' instead of '{expected}'"
        )
        self.expected = expected
        self.actual = actual


class CommitFailure(GitOperationError):
    pass


class PushFailure(GitOperationError):
    pass


class DriftDetected(SubmoduleSyncError):
    """The sync branch carries commits that were not produced by this tool."""

    exit_code = EXIT_DRIFT_ERROR

    def __init__(self, branch: str, salt: str, foreign_commits: int) -> None:
        super().__init__(
            f"branch '{branch}' has {foreign_commits} commit(s) without "
            f"'{salt}' in the commit message"
        )
        self.branch = branch
        self.salt = salt
        self.foreign_commits = foreign_commits


class MergeRequestError(SubmoduleSyncError):
    exit_code = EXIT_MERGE_REQUEST_ERROR


class MultipleOpenMRs(MergeRequestError):
    def __init__(self, source_branch: str, target_branch: str, count: int) -> None:
        super().__init__(
            f"found {count} open merge requests for '{source_branch}' -> "
            f"'{target_branch}', close the duplicates and run again"
        )
        self.source_branch = source_branch
        self.target_branch = target_branch
        self.count = count


class MRNotFound(MergeRequestError):
    pass


class MergeRequestNotCreated(MergeRequestError):
    pass


class MRHasConflicts(MergeRequestError):
    def __init__(self, iid: int) -> None:
        super().__init__(
            f"merge request !{iid} has conflicts, resolve them and run again"
        )
        self.iid = iid


class MRDiffMissingExpectedSHA(MergeRequestError):
    def __init__(self, iid: int, sha: str, branch: str) -> None:
        super().__init__(
            f"merge request !{iid} does not contain submodule SHA '{sha}' "
            f"for the branch '{branch}'"
        )
        self.iid = iid
        self.sha = sha


class MergeNotCompleted(MergeRequestError):
    def __init__(self, iid: int, pipeline_status: Optional[str]) -> None:
        if pipeline_status in ("canceled", "failed"):
            reason = f"pipeline status '{pipeline_status}'"
        else:
            reason = "unknown reason"
        super().__init__(f"merge request !{iid} has not been merged due to {reason}")
        self.iid = iid
        self.pipeline_status = pipeline_status
