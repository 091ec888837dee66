#!/usr/bin/env python3
"""Configuration dataclasses for gitlab-submodule-sync."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

DEFAULT_COMMIT_MESSAGE_SALT = "submodule-auto-sync"
DEFAULT_GIT_TIMEOUT_S = 300.0


class Command(Enum):
    """Enumeration for the supported subcommands."""
    SYNC_BRANCH = "sync-branch"
    MERGE_MR = "merge-mr"


@dataclass
class GitLabConfig:
    """GitLab API connection configuration."""
    url: str
    token: str


@dataclass
class SyncTargetConfig:
    """Identifiers of the sync branch and its merge request."""
    project_id: str
    target_branch: str
    external_branch: str
    submodule_name: str
    external_sha: Optional[str] = None


@dataclass
class BehaviorConfig:
    """Run behavior configuration."""
    workspace_base_dir: str
    merge_when_pipeline_succeeds: bool = False
    pull_request_url: Optional[str] = None
    commit_message_salt: str = DEFAULT_COMMIT_MESSAGE_SALT
    git_timeout_s: float = DEFAULT_GIT_TIMEOUT_S


@dataclass
class Config:
    """Main configuration for a single sync or merge run."""
    command: Command
    gitlab: GitLabConfig
    target: SyncTargetConfig
    behavior: BehaviorConfig
