#!/usr/bin/env python3
"""Validates and merges the merge request of a sync branch."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from errors import (MergeNotCompleted, MRDiffMissingExpectedSHA,
                    MRHasConflicts, MRNotFound)
from gitlab_client import GitLabProject
from logging_utils import Logger
from merge_request_manager import find_open_merge_request
from utils import (build_merge_commit_message, create_source_branch_name,
                   parse_gitmodules)

FAILED_PIPELINE_STATUSES = ("canceled", "failed")


class MergeOutcome(Enum):
    MERGED = "merged"
    # Merge scheduled for when the pipeline succeeds; call again to observe it
    PENDING = "pending"


class MergeExecutor:
    def __init__(
        self, gitlab_project: GitLabProject, merge_when_pipeline_succeeds: bool = False
    ) -> None:
        self.gitlab = gitlab_project
        self.merge_when_pipeline_succeeds = merge_when_pipeline_succeeds

    def merge(
        self, submodule_name: str, external_branch: str, target_branch: str, sha: str
    ) -> MergeOutcome:
        source_branch = create_source_branch_name(submodule_name, external_branch)

        mr = find_open_merge_request(self.gitlab, source_branch, target_branch)
        if mr is None:
            raise MRNotFound(
                f"merge request not found for branch '{source_branch}' and "
                f"target branch '{target_branch}'"
            )
        Logger.info(
            f"merge request !{mr.iid} found for '{source_branch}' and target "
            f"branch '{target_branch}'"
        )

        if getattr(mr, "has_conflicts", False):
            raise MRHasConflicts(mr.iid)
        Logger.debug("- merge request has no conflicts")

        submodule_path = self._submodule_path(submodule_name, source_branch)
        if submodule_path is None:
            Logger.warn(
                f"submodule '{submodule_name}' not found in .gitmodules on "
                f"'{source_branch}', the diff cannot carry its commit"
            )
            raise MRDiffMissingExpectedSHA(mr.iid, sha, external_branch)
        diffs = self.gitlab.merge_request_diffs(mr.iid)
        if not self._contains_submodule_sha(diffs, submodule_path, sha):
            raise MRDiffMissingExpectedSHA(mr.iid, sha, external_branch)
        Logger.debug(f"- merge request contains submodule SHA '{sha}'")

        result = self.gitlab.merge_merge_request(
            mr,
            build_merge_commit_message(
                submodule_name, external_branch, target_branch, sha
            ),
            self.merge_when_pipeline_succeeds,
        )
        return self._classify(mr.iid, target_branch, result)

    def _submodule_path(self, submodule_name: str, ref: str) -> Optional[str]:
        content = self.gitlab.read_file(".gitmodules", ref)
        return parse_gitmodules(content or "").get(submodule_name) or None

    @staticmethod
    def _contains_submodule_sha(
        diffs: List[Dict[str, Any]], submodule_path: str, sha: str
    ) -> bool:
        expected = f"+Subproject commit {sha}\n"
        return any(
            diff.get("old_path") == submodule_path
            and diff.get("new_path") == submodule_path
            and expected in (diff.get("diff") or "")
            for diff in diffs
        )

    @staticmethod
    def _classify(iid: int, target_branch: str, result: Dict[str, Any]) -> MergeOutcome:
        if result.get("state") == "merged":
            Logger.success(
                f"merge request !{iid} has been successfully merged into the "
                f"target branch '{target_branch}'"
            )
            return MergeOutcome.MERGED

        pipeline_status = (result.get("pipeline") or {}).get("status")
        if pipeline_status in FAILED_PIPELINE_STATUSES or pipeline_status == "success":
            raise MergeNotCompleted(iid, pipeline_status)

        Logger.warn(
            f"merge request !{iid} is not merged yet (pipeline status "
            f"'{pipeline_status}'), run the action again to confirm the merge"
        )
        return MergeOutcome.PENDING
