#!/usr/bin/env python3
"""Command line argument parsing and configuration building."""

from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from config import (DEFAULT_COMMIT_MESSAGE_SALT, DEFAULT_GIT_TIMEOUT_S,
                    BehaviorConfig, Command, Config, GitLabConfig,
                    SyncTargetConfig)
from errors import EXIT_AUTH_ERROR
from logging_utils import Logger
from security import SecurityValidator
from utils import parse_boolean_env_var, resolve_pull_request_url
from workspace import default_workspace_base_dir

# Exit codes
EXIT_MISSING_ARGUMENTS = 2


def _create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        description="Sync a GitLab project's submodule with a GitHub branch "
        "through merge requests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  GITLAB_TOKEN, GITLAB_HOST (required), GITLAB_MERGE_WHEN_PIPELINE_SUCCEEDS,
  GITHUB_PR_URL, TMP_GITLAB_REPOSITORY_WORKING_DIR

Examples:
  %(prog)s sync-branch -p 123 -b feature/x -m my-sdk --gitlab-target-branch main
  %(prog)s sync-branch -p group/project -b feature/x -m my-sdk \\
           --gitlab-target-branch main --sha 3f2c1e0
  %(prog)s merge-mr -p 123 -b feature/x -m my-sdk --gitlab-target-branch main \\
           --sha a2f6c4e2a11d0a7b8b994363bc6b8a6db60027f8
        """,
    )
    return parser


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the arguments shared by every subcommand."""
    parser.add_argument(
        "-p",
        "--gitlab-project-id",
        dest="gitlab_project_id",
        required=True,
        help="GitLab project ID. Example: `123` or `group/project`",
    )
    parser.add_argument(
        "-b",
        "--branch",
        dest="branch",
        required=True,
        help="GitHub branch name, used to name the sync branch in GitLab",
    )
    parser.add_argument(
        "--gitlab-target-branch",
        dest="gitlab_target_branch",
        required=True,
        help="Target branch name in GitLab to merge the MR into",
    )
    parser.add_argument(
        "-m",
        "--submodule-name",
        dest="submodule_name",
        required=True,
        help="Name of the submodule in .gitmodules, e.g. `my-sdk`",
    )
    parser.add_argument(
        "--commit-message-salt",
        dest="commit_message_salt",
        default=DEFAULT_COMMIT_MESSAGE_SALT,
        help="Token marking commits made by this tool "
        f"(default: {DEFAULT_COMMIT_MESSAGE_SALT})",
    )
    parser.add_argument(
        "--git-timeout",
        dest="git_timeout_s",
        type=float,
        default=DEFAULT_GIT_TIMEOUT_S,
        help=f"Timeout in seconds for each git command (default: {DEFAULT_GIT_TIMEOUT_S})",
    )


def _add_subcommands(parser: argparse.ArgumentParser) -> None:
    """Add the sync-branch and merge-mr subcommands."""
    subparsers = parser.add_subparsers(dest="command", metavar="command")
    subparsers.required = True

    sync = subparsers.add_parser(
        Command.SYNC_BRANCH.value,
        help="Upsert the sync branch and its merge request",
    )
    _add_common_arguments(sync)
    sync.add_argument(
        "-s",
        "--sha",
        dest="sha",
        help="SHA of the submodule commit. If not provided, the latest commit "
        "of --branch is used. Pass the full SHA: the pinned HEAD is compared "
        "exactly",
    )

    merge = subparsers.add_parser(
        Command.MERGE_MR.value,
        help="Validate and merge the merge request of the sync branch",
    )
    _add_common_arguments(merge)
    merge.add_argument(
        "-s",
        "--sha",
        dest="sha",
        required=True,
        help="Full SHA of the submodule commit the merge request must contain",
    )


def _load_environment_files() -> None:
    """Load .env.local then .env without overriding the real environment."""
    load_dotenv(".env.local", override=False)
    load_dotenv(".env", override=False)


def _validate_parsed_arguments(args) -> Tuple[str, str, str, str, Optional[str]]:
    """Validate and sanitize parsed arguments for security."""
    try:
        validated_project_id = SecurityValidator.validate_project_id(
            args.gitlab_project_id
        )
        validated_branch = SecurityValidator.validate_branch_name(args.branch)
        validated_target_branch = SecurityValidator.validate_branch_name(
            args.gitlab_target_branch
        )
        validated_submodule = SecurityValidator.validate_submodule_name(
            args.submodule_name
        )
        validated_sha = SecurityValidator.validate_sha(args.sha) if args.sha else None

        if args.git_timeout_s <= 0 or args.git_timeout_s > 3600:
            raise ValueError("git timeout must be between 0 and 3600 seconds")

        if not args.commit_message_salt.strip() or any(
            c.isspace() for c in args.commit_message_salt
        ):
            raise ValueError("commit message salt must be a single non-empty token")

        Logger.security_event(
            "CONFIG_VALIDATION", "successfully validated all configuration inputs"
        )
        return (
            validated_project_id,
            validated_branch,
            validated_target_branch,
            validated_submodule,
            validated_sha,
        )

    except ValueError as e:
        Logger.security_event(
            "CONFIG_VALIDATION_FAILED", f"configuration validation failed: {e}"
        )
        Logger.error(f"configuration validation error: {e}")
        sys.exit(EXIT_MISSING_ARGUMENTS)


def _get_gitlab_config() -> GitLabConfig:
    """Get and validate the GitLab host and token from the environment."""
    token = os.getenv("GITLAB_TOKEN")
    if not token:
        Logger.error("`GITLAB_TOKEN` environment variable is required")
        Logger.debug("you can add it to a `.env.local` file")
        sys.exit(EXIT_AUTH_ERROR)

    host = os.getenv("GITLAB_HOST")
    if not host:
        Logger.error("`GITLAB_HOST` environment variable is not set")
        sys.exit(EXIT_MISSING_ARGUMENTS)

    try:
        validated_host = SecurityValidator.validate_url(host, ["https", "http"])
    except ValueError as e:
        Logger.security_event("HOST_VALIDATION_FAILED", f"GITLAB_HOST rejected: {e}")
        Logger.error(f"configuration validation error: {e}")
        sys.exit(EXIT_MISSING_ARGUMENTS)

    return GitLabConfig(url=validated_host.rstrip("/"), token=token)


def _get_behavior_config(args) -> BehaviorConfig:
    """Build behavior configuration from arguments and environment."""
    try:
        workspace_base_dir = SecurityValidator.validate_file_path(
            default_workspace_base_dir()
        )
    except ValueError as e:
        Logger.error(f"workspace directory validation error: {e}")
        sys.exit(EXIT_MISSING_ARGUMENTS)

    raw_pr_url = os.getenv("GITHUB_PR_URL")
    pull_request_url = resolve_pull_request_url(raw_pr_url)
    if raw_pr_url and not pull_request_url:
        Logger.warn("GITHUB_PR_URL is not a pull request URL, ignoring it")

    return BehaviorConfig(
        workspace_base_dir=workspace_base_dir,
        merge_when_pipeline_succeeds=parse_boolean_env_var(
            os.getenv("GITLAB_MERGE_WHEN_PIPELINE_SUCCEEDS")
        ),
        pull_request_url=pull_request_url,
        commit_message_salt=args.commit_message_salt,
        git_timeout_s=float(args.git_timeout_s),
    )


def parse_arguments(argv: Optional[List[str]] = None) -> Config:
    """Parse command line arguments and return configuration object."""
    parser = _create_argument_parser()
    _add_subcommands(parser)

    args = parser.parse_args(argv)

    _load_environment_files()

    (
        validated_project_id,
        validated_branch,
        validated_target_branch,
        validated_submodule,
        validated_sha,
    ) = _validate_parsed_arguments(args)

    return Config(
        command=Command(args.command),
        gitlab=_get_gitlab_config(),
        target=SyncTargetConfig(
            project_id=validated_project_id,
            target_branch=validated_target_branch,
            external_branch=validated_branch,
            submodule_name=validated_submodule,
            external_sha=validated_sha,
        ),
        behavior=_get_behavior_config(args),
    )
