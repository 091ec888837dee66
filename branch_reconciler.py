#!/usr/bin/env python3
"""Rewrites a sync branch so it holds exactly one submodule update commit."""

from __future__ import annotations

from enum import Enum

from config import BehaviorConfig, SyncTargetConfig
from errors import CheckoutFailure, CommitFailure, FetchFailure
from git_client import GitRepository
from gitlab_client import GitLabProject
from logging_utils import Logger
from provenance import ProvenanceValidator
from submodule import SubmodulePinner, SubmodulePointer
from utils import build_sync_commit_message
from workspace import EphemeralWorkspace


class ReconcileState(Enum):
    """Steps of a reconciliation run, in order."""
    STARTED = "started"
    CLONED = "cloned"
    SOURCE_BRANCH_READY = "source-branch-ready"
    PROVENANCE_VALIDATED = "provenance-validated"
    RESET = "reset"
    SUBMODULE_PINNED = "submodule-pinned"
    COMMITTED = "committed"
    PUSHED = "pushed"


class BranchReconciler:
    """Upserts the sync branch of one external branch.

    A run clones the project into a fresh workspace, checks out the sync
    branch (or creates it from the target branch), refuses to continue if
    someone else committed to it, resets it to the target branch, pins the
    submodule and force-pushes a single commit. Any failure aborts the run;
    the next run starts over from a new workspace.
    """

    def __init__(
        self,
        gitlab_project: GitLabProject,
        target: SyncTargetConfig,
        behavior: BehaviorConfig,
    ) -> None:
        self.gitlab = gitlab_project
        self.target = target
        self.behavior = behavior
        self.state = ReconcileState.STARTED

    def _advance(self, state: ReconcileState) -> None:
        self.state = state
        Logger.debug(f"reconcile state: {state.value}")

    def upsert(self, source_branch: str) -> SubmodulePointer:
        """Run the whole protocol and return the pinned submodule pointer."""
        self.state = ReconcileState.STARTED
        with EphemeralWorkspace(self.behavior.workspace_base_dir) as workspace:
            repo = GitRepository(workspace.path, self.behavior.git_timeout_s)

            self._clone(repo)
            self._advance(ReconcileState.CLONED)

            self._checkout_source_branch(repo, source_branch)
            self._advance(ReconcileState.SOURCE_BRANCH_READY)

            ProvenanceValidator(repo, self.behavior.commit_message_salt).validate(
                self.target.target_branch, source_branch
            )
            self._advance(ReconcileState.PROVENANCE_VALIDATED)

            Logger.warn(
                f"resetting branch '{source_branch}' to the state of the branch "
                f"'{self.target.target_branch}'"
            )
            repo.reset_hard(f"origin/{self.target.target_branch}")
            self._advance(ReconcileState.RESET)

            pinner = SubmodulePinner(repo, self.target.submodule_name)
            pointer = pinner.pin(self.target.external_sha, self.target.external_branch)
            self._advance(ReconcileState.SUBMODULE_PINNED)

            self._commit(repo, pointer)
            self._advance(ReconcileState.COMMITTED)

            Logger.info(f"pushing changes to branch '{source_branch}'")
            repo.force_push(source_branch)
            self._advance(ReconcileState.PUSHED)

        Logger.success(f"changes pushed to the origin branch '{source_branch}'")
        return pointer

    def _clone(self, repo: GitRepository) -> None:
        identity = self.gitlab.current_user()
        Logger.debug(f"getting project path for project with ID {self.target.project_id}")
        project_path = self.gitlab.path_with_namespace()
        Logger.info(f"cloning GitLab project: {project_path}")
        repo.clone(self.gitlab.clone_url(identity))
        repo.configure_identity(identity.username, identity.email)

    def _checkout_source_branch(self, repo: GitRepository, source_branch: str) -> None:
        """Check out the sync branch, creating it from the target if missing."""
        try:
            repo.fetch(source_branch)
            repo.checkout_new_branch(
                source_branch,
                f"origin/{source_branch}",
                CheckoutFailure(
                    f"failed to checkout branch '{source_branch}' from origin",
                    source_branch,
                ),
            )
            Logger.info(f"checked out existing branch '{source_branch}'")
            return
        except CheckoutFailure as error:
            Logger.warn(
                f"branch '{source_branch}' not found in the GitLab repository "
                f"({error}), creating it from '{self.target.target_branch}'"
            )

        target_branch = self.target.target_branch
        repo.fetch(
            target_branch,
            FetchFailure(
                f"failed to fetch '{target_branch}' branch from origin",
                target_branch,
                fallback=True,
            ),
        )
        repo.checkout_new_branch(
            source_branch,
            f"origin/{target_branch}",
            CheckoutFailure(
                f"failed to checkout '{target_branch}' branch from origin",
                target_branch,
                fallback=True,
            ),
        )

    def _commit(self, repo: GitRepository, pointer: SubmodulePointer) -> None:
        name = self.target.submodule_name
        Logger.info(
            f"committing submodule '{name}' to branch related to "
            f"'{self.target.external_branch}'"
        )
        repo.add(pointer.path, CommitFailure(f"failed to add submodule '{name}'"))
        repo.commit(
            build_sync_commit_message(
                name, self.target.external_branch, self.behavior.commit_message_salt
            )
        )

