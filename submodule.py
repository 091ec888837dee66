#!/usr/bin/env python3
"""Resolves and pins the submodule to an exact external commit."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Set

from errors import (GitOperationError, RemoteHeadsFailure,
                    SubmoduleCheckoutFailure, SubmodulePathNotFound,
                    SubmoduleSHAMismatch)
from git_client import GitRepository
from logging_utils import Logger


@dataclass
class SubmodulePointer:
    """Where the submodule lives in the outer repository and what it pins."""
    path: str
    sha: str


class SubmodulePinner:
    """Operates on one submodule of the working copy in ``repo``."""

    def __init__(self, repo: GitRepository, name: str) -> None:
        self.repo = repo
        self.name = name
        self._initialized: Set[str] = set()

    def _submodule_repo(self, path: str) -> GitRepository:
        return GitRepository(os.path.join(self.repo.path, path), self.repo.timeout_s)

    def resolve_submodule_path(self) -> str:
        try:
            path = self.repo.config_value(
                f"submodule.{self.name}.path", config_file=".gitmodules"
            )
        except GitOperationError:
            raise SubmodulePathNotFound(
                f"failed to get path of submodule '{self.name}'"
            ) from None
        if not path:
            raise SubmodulePathNotFound(f"submodule '{self.name}' path not found")
        return path

    def initialize(self, path: str) -> None:
        if path in self._initialized:
            return
        Logger.info(f"initializing submodule '{self.name}'")
        self.repo.submodule_init(path)
        self._initialized.add(path)

    def resolve_desired_sha(
        self, explicit_sha: Optional[str], external_branch: str, path: str
    ) -> str:
        """Use ``explicit_sha`` verbatim, else the remote head of the branch."""
        if explicit_sha:
            return explicit_sha

        Logger.debug("submodule SHA is not set, fetching from remote")
        self.initialize(path)
        output = self._submodule_repo(path).list_remote_heads(external_branch)
        # Example: 'a2f6c4e2a11d0a7b8b994363bc6b8a6db60027f8\trefs/heads/my-branch'
        # ls-remote matches ref name tails, so 'x' also lists 'feature/x'
        expected_ref = f"refs/heads/{external_branch}"
        for line in output.splitlines():
            tokens = line.split()
            if len(tokens) == 2 and tokens[1] == expected_ref:
                return tokens[0]
        raise RemoteHeadsFailure(
            f"branch '{external_branch}' not found on submodule remote"
        )

    def pin_and_verify(self, path: str, desired_sha: str, external_branch: str) -> None:
        self.initialize(path)
        submodule = self._submodule_repo(path)

        Logger.info(f"updating submodule to {desired_sha}")
        Logger.debug(f"fetching submodule origin branch '{external_branch}'")
        submodule.fetch(
            external_branch,
            SubmoduleCheckoutFailure(
                f"failed to fetch submodule origin branch '{external_branch}'"
            ),
        )

        Logger.debug(f"checking out submodule branch '{external_branch}'")
        submodule.reset_branch(
            external_branch,
            f"origin/{external_branch}",
            SubmoduleCheckoutFailure(
                f"failed to checkout submodule branch '{external_branch}'"
            ),
        )

        Logger.debug(f"checking out submodule SHA '{desired_sha}'")
        submodule.checkout(
            desired_sha,
            SubmoduleCheckoutFailure(f"failed to checkout submodule SHA '{desired_sha}'"),
        )

        head = submodule.rev_parse(
            "HEAD",
            SubmoduleCheckoutFailure(
                f"failed to validate submodule branch '{external_branch}' "
                f"HEAD is '{desired_sha}'"
            ),
        )
        if head != desired_sha:
            raise SubmoduleSHAMismatch(external_branch, desired_sha, head)

    def pin(self, explicit_sha: Optional[str], external_branch: str) -> SubmodulePointer:
        path = self.resolve_submodule_path()
        sha = self.resolve_desired_sha(explicit_sha, external_branch, path)
        Logger.success(f"SHA for submodule is {sha}")
        self.pin_and_verify(path, sha, external_branch)
        return SubmodulePointer(path=path, sha=sha)
