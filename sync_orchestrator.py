#!/usr/bin/env python3
"""Main orchestrator for the sync-branch and merge-mr commands."""

from __future__ import annotations

import json

import gitlab
import requests

from branch_reconciler import BranchReconciler
from config import Command, Config
from errors import (EXIT_EXECUTION_ERROR, EXIT_GITLAB_ERROR,
                    SubmoduleSyncError)
from gitlab_client import GitLabProject
from logging_utils import Logger
from merge_executor import MergeExecutor
from merge_request_manager import MergeRequestManager
from utils import build_merge_request_info, create_source_branch_name

# Exit codes
EXIT_SUCCESS = 0


class SyncOrchestrator:
    def __init__(self, cfg: Config) -> None:
        self.cfg = cfg
        self.gl = GitLabProject(cfg.gitlab, cfg.target.project_id)

    def run(self) -> int:
        try:
            self.gl.connect()
            if self.cfg.command == Command.SYNC_BRANCH:
                self.sync_branch()
            else:
                self.merge_mr()
            return EXIT_SUCCESS
        except SubmoduleSyncError as e:
            Logger.error(str(e))
            return e.exit_code
        except gitlab.exceptions.GitlabError as e:
            Logger.error(f"gitlab request error ({e.response_code})")
            Logger.error(json.dumps(e.error_message, default=str))
            return EXIT_GITLAB_ERROR
        except requests.RequestException as e:
            Logger.error(f"failed to contact gitlab api: {e}")
            return EXIT_GITLAB_ERROR
        except SystemExit as e:
            return int(e.code) if isinstance(e.code, int) else EXIT_EXECUTION_ERROR
        except Exception as e:
            Logger.error(f"unexpected error: {e}")
            return EXIT_EXECUTION_ERROR

    def sync_branch(self) -> None:
        target = self.cfg.target
        source_branch = create_source_branch_name(
            target.submodule_name, target.external_branch
        )
        Logger.info(
            f"sync: {target.submodule_name}@{target.external_branch} -> "
            f"{source_branch} (target '{target.target_branch}')"
        )

        pointer = BranchReconciler(self.gl, target, self.cfg.behavior).upsert(
            source_branch
        )

        title, description = build_merge_request_info(
            target.submodule_name,
            target.external_branch,
            pointer.sha,
            self.cfg.behavior.pull_request_url,
        )
        MergeRequestManager(self.gl).upsert(
            source_branch, target.target_branch, title, description
        )

    def merge_mr(self) -> None:
        target = self.cfg.target
        if not target.external_sha:
            raise SubmoduleSyncError("a submodule SHA is required to merge")

        MergeExecutor(self.gl, self.cfg.behavior.merge_when_pipeline_succeeds).merge(
            target.submodule_name,
            target.external_branch,
            target.target_branch,
            target.external_sha,
        )
