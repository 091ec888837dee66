#!/usr/bin/env python3
"""GitLab API wrapper for the project holding the submodule."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlparse

import gitlab
from gitlab.v4.objects import Project, ProjectMergeRequest

from config import GitLabConfig
from errors import (GitLabAuthenticationFailure, IdentityLookupFailure,
                    MergeRequestNotCreated)
from logging_utils import Logger


@dataclass
class BotIdentity:
    """The GitLab user the token belongs to, used for cloning and commits."""
    username: str
    email: str


class GitLabProject:
    """Wrapper around the GitLab API scoped to a single project."""

    def __init__(self, config: GitLabConfig, project_id: str) -> None:
        self.config = config
        self.project_id = project_id
        self.api: Optional[gitlab.Gitlab] = None
        self._project: Optional[Project] = None

    def connect(self) -> None:
        Logger.info(f"init gitlab API: {self.config.url}")
        self.api = gitlab.Gitlab(url=self.config.url, private_token=self.config.token)
        try:
            self.api.auth()
        except gitlab.exceptions.GitlabAuthenticationError as e:
            raise GitLabAuthenticationFailure(
                f"authentication error (gitlab): {e.error_message}"
            ) from None

    @property
    def project(self) -> Project:
        if self.api is None:
            raise RuntimeError("gitlab API not initialized")
        if self._project is None:
            Logger.debug(f"getting project with ID {self.project_id}")
            self._project = self.api.projects.get(self.project_id)
        return self._project

    def current_user(self) -> BotIdentity:
        if self.api is None:
            raise RuntimeError("gitlab API not initialized")
        user = self.api.user
        if user is None:
            self.api.auth()
            user = self.api.user
        username = getattr(user, "username", None)
        email = getattr(user, "commit_email", None) or getattr(user, "email", None)
        if not username or not email:
            raise IdentityLookupFailure("failed to get user data from GitLab API")
        return BotIdentity(username=username, email=email)

    def path_with_namespace(self) -> str:
        return self.project.path_with_namespace

    def clone_url(self, identity: BotIdentity) -> str:
        """HTTPS clone URL with the username and token embedded.

        Never log the return value.
        """
        parsed = urlparse(self.config.url)
        base_path = parsed.path.rstrip("/")
        username = quote(identity.username, safe="")
        token = quote(self.config.token, safe="")
        return (
            f"{parsed.scheme}://{username}:{token}@{parsed.netloc}"
            f"{base_path}/{self.path_with_namespace()}.git"
        )

    def list_open_merge_requests(
        self, source_branch: str, target_branch: str
    ) -> List[ProjectMergeRequest]:
        return self.project.mergerequests.list(
            source_branch=source_branch,
            target_branch=target_branch,
            state="opened",
            get_all=True,
        )

    def create_merge_request(
        self, source_branch: str, target_branch: str, title: str, description: str
    ) -> ProjectMergeRequest:
        mr = self.project.mergerequests.create(
            {
                "source_branch": source_branch,
                "target_branch": target_branch,
                "title": title,
                "description": description,
                "remove_source_branch": True,
            }
        )
        if not getattr(mr, "iid", None):
            raise MergeRequestNotCreated("merge request not created")
        return mr

    def edit_merge_request(self, iid: int, title: str, description: str) -> None:
        self.project.mergerequests.update(
            iid,
            {
                "title": title,
                "description": description,
                "remove_source_branch": True,
            },
        )

    def merge_request_diffs(self, iid: int) -> List[Dict[str, Any]]:
        """All file diffs of a merge request (``GET .../merge_requests/:iid/diffs``)."""
        if self.api is None:
            raise RuntimeError("gitlab API not initialized")
        path = f"/projects/{self.project.encoded_id}/merge_requests/{iid}/diffs"
        return list(self.api.http_list(path, get_all=True))

    def merge_merge_request(
        self,
        mr: ProjectMergeRequest,
        merge_commit_message: str,
        merge_when_pipeline_succeeds: bool,
    ) -> Dict[str, Any]:
        # ``sha`` makes GitLab refuse the merge if the head moved since the checks
        return mr.merge(
            merge_commit_message=merge_commit_message,
            merge_when_pipeline_succeeds=merge_when_pipeline_succeeds,
            sha=mr.sha,
        )

    def read_file(self, file_path: str, ref: str) -> Optional[str]:
        """Return a repository file's text at ``ref``, or None if it is missing."""
        try:
            content = self.project.files.raw(file_path=file_path, ref=ref)
        except gitlab.exceptions.GitlabGetError as e:
            if e.response_code == 404:
                return None
            raise
        if isinstance(content, bytes):
            return content.decode("utf-8", errors="replace")
        return content
