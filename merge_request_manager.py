#!/usr/bin/env python3
"""Creates or updates the merge request of a sync branch."""

from __future__ import annotations

from typing import Optional

from gitlab.v4.objects import ProjectMergeRequest

from errors import MultipleOpenMRs
from gitlab_client import GitLabProject
from logging_utils import Logger


def find_open_merge_request(
    gitlab_project: GitLabProject, source_branch: str, target_branch: str
) -> Optional[ProjectMergeRequest]:
    """Return the single open MR for the branch pair, None if there is none.

    More than one open MR is a consistency fault that needs an operator.
    """
    mrs = gitlab_project.list_open_merge_requests(source_branch, target_branch)
    if len(mrs) > 1:
        raise MultipleOpenMRs(source_branch, target_branch, len(mrs))
    return mrs[0] if mrs else None


class MergeRequestManager:
    def __init__(self, gitlab_project: GitLabProject) -> None:
        self.gitlab = gitlab_project

    def upsert(
        self, source_branch: str, target_branch: str, title: str, description: str
    ) -> int:
        """Edit the open MR for the branch pair in place, or create one.

        Returns the MR iid.
        """
        Logger.info(
            f"checking if merge request already exists for '{source_branch}' "
            f"and target branch '{target_branch}'"
        )
        existing = find_open_merge_request(self.gitlab, source_branch, target_branch)

        if existing is not None:
            Logger.success(
                f"merge request !{existing.iid} found for '{source_branch}', "
                "updating it"
            )
            self.gitlab.edit_merge_request(existing.iid, title, description)
            return existing.iid

        Logger.info(
            f"creating merge request for '{source_branch}' and target branch "
            f"'{target_branch}'"
        )
        mr = self.gitlab.create_merge_request(
            source_branch, target_branch, title, description
        )
        Logger.success(f"merge request !{mr.iid} created for '{source_branch}'")
        return mr.iid
