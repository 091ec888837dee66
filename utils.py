#!/usr/bin/env python3
"""Utility functions for gitlab-submodule-sync."""

import re
from typing import Dict, Optional, Tuple
from urllib.parse import urlparse

TRUTHY_ENV_VALUES = ("true", "1")
MERGE_COMMIT_FOOTER = "* This MR was merged automatically by gitlab-submodule-sync."

_GITMODULES_SECTION = re.compile(r'^\s*\[submodule\s+"(?P<name>[^"]+)"\s*\]\s*$')
_GITMODULES_PATH = re.compile(r"^\s*path\s*=\s*(?P<path>.*?)\s*$")


def create_source_branch_name(submodule_name: str, external_branch: str) -> str:
    """Return the GitLab sync branch for an external branch.

    Example: ('my-sdk', 'feature/x') -> 'my-sdk/feature/x'
    """
    return f"{submodule_name}/{external_branch}"


def parse_boolean_env_var(value: Optional[str]) -> bool:
    """Interpret 'true' and '1' (any case) as True, everything else as False."""
    return (value or "").strip().lower() in TRUTHY_ENV_VALUES


def resolve_pull_request_url(value: Optional[str]) -> Optional[str]:
    """Return the pull request URL if it is absolute and ends with a number."""
    if not value:
        return None
    parsed = urlparse(value.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    url = parsed.geturl()
    if not re.search(r"\d+$", url):
        return None
    return url


def build_merge_request_info(
    submodule_name: str,
    external_branch: str,
    external_sha: str,
    pull_request_url: Optional[str] = None,
) -> Tuple[str, str]:
    """Return the (title, description) of the sync merge request."""
    if pull_request_url:
        branch_markdown = f"[`{external_branch}`]({pull_request_url})"
    else:
        branch_markdown = f"`{external_branch}`"

    title = f"chore({submodule_name}): update submodule to '{external_branch}'"
    description = (
        f"This MR updates the `{submodule_name}` submodule to the SHA commit "
        f"`{external_sha}` on the {branch_markdown} branch."
    )
    return title, description


def build_sync_commit_message(
    submodule_name: str, external_branch: str, salt: str
) -> str:
    return f"chore: update '{submodule_name}' submodule to '{external_branch}' `{salt}`"


def build_merge_commit_message(
    submodule_name: str, external_branch: str, target_branch: str, sha: str
) -> str:
    return "\n".join(
        [
            f"Merge branch '{external_branch}' into '{target_branch}' with "
            f"'{submodule_name}' submodule commit '{sha}'",
            "",
            MERGE_COMMIT_FOOTER,
        ]
    )


def has_commit_message_salt(message: str, salt: str) -> bool:
    """Check that the salt appears in the message as a standalone token."""
    return re.search(rf"(?<![\w-]){re.escape(salt)}(?![\w-])", message) is not None


def parse_gitmodules(content: str) -> Dict[str, str]:
    """Map submodule logical names to their paths from .gitmodules text."""
    paths: Dict[str, str] = {}
    current: Optional[str] = None
    for line in content.splitlines():
        section = _GITMODULES_SECTION.match(line)
        if section:
            current = section.group("name")
            continue
        if line.strip().startswith("["):
            current = None
            continue
        path = _GITMODULES_PATH.match(line)
        if current is not None and path and path.group("path"):
            paths[current] = path.group("path")
    return paths
