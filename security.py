#!/usr/bin/env python3
"""Security validation utilities for gitlab-submodule-sync."""

import os
import re
from typing import List, Optional


class SecurityValidator:
    """Security validation utilities for input sanitization and validation."""

    MAX_URL_LENGTH = 2048
    MAX_PROJECT_ID_LENGTH = 255
    MAX_BRANCH_NAME_LENGTH = 255
    MAX_SUBMODULE_NAME_LENGTH = 255
    MAX_PATH_LENGTH = 500

    SAFE_PROJECT_PATH_PATTERN = re.compile(r"^[A-Za-z0-9._/-]+$")
    SAFE_SUBMODULE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._/-]+$")
    SHA_PATTERN = re.compile(r"^[0-9a-fA-F]{4,64}$")
    # Characters git refuses in ref names (see git-check-ref-format)
    FORBIDDEN_REF_CHARS = re.compile(r"[\x00-\x20\x7f~^:?*\[\\]")

    @staticmethod
    def _has_control_chars(value: str) -> bool:
        return "\x00" in value or any(ord(c) < 32 for c in value)

    @classmethod
    def validate_url(cls, url: str, allowed_schemes: Optional[List[str]] = None) -> str:
        """Validate URL for security."""
        if not url or not isinstance(url, str):
            raise ValueError("URL must be a non-empty string")

        if len(url) > cls.MAX_URL_LENGTH:
            raise ValueError(f"URL exceeds maximum length of {cls.MAX_URL_LENGTH}")

        if cls._has_control_chars(url):
            raise ValueError("URL contains null bytes or control characters")

        if not url.startswith(("http://", "https://")):
            raise ValueError("URL must use http or https scheme")

        if allowed_schemes:
            scheme = url.split("://")[0].lower()
            if scheme not in allowed_schemes:
                raise ValueError(
                    f"URL scheme '{scheme}' not in allowed schemes: {allowed_schemes}"
                )

        # Credentials belong in GITLAB_TOKEN, never in the host URL
        if "@" in url.split("://", 1)[1].split("/", 1)[0]:
            raise ValueError("URL must not contain embedded credentials")

        return url

    @classmethod
    def validate_project_id(cls, project_id: str) -> str:
        """Validate a GitLab project id (numeric or ``group/project`` path)."""
        if not project_id or not isinstance(project_id, str):
            raise ValueError("Project id must be a non-empty string")

        if len(project_id) > cls.MAX_PROJECT_ID_LENGTH:
            raise ValueError(
                f"Project id exceeds maximum length of {cls.MAX_PROJECT_ID_LENGTH}"
            )

        if ".." in project_id:
            raise ValueError("Project id contains path traversal sequences")

        if not cls.SAFE_PROJECT_PATH_PATTERN.match(project_id):
            raise ValueError("Project id contains invalid characters")

        return project_id

    @classmethod
    def validate_branch_name(cls, branch: str) -> str:
        """Validate a branch name against git ref naming rules."""
        if not branch or not isinstance(branch, str):
            raise ValueError("Branch name must be a non-empty string")

        if len(branch) > cls.MAX_BRANCH_NAME_LENGTH:
            raise ValueError(
                f"Branch name exceeds maximum length of {cls.MAX_BRANCH_NAME_LENGTH}"
            )

        if cls.FORBIDDEN_REF_CHARS.search(branch):
            raise ValueError("Branch name contains forbidden characters")

        # A leading dash would be parsed as an option by git
        if branch.startswith(("-", "/")) or branch.endswith(("/", ".", ".lock")):
            raise ValueError("Branch name has an invalid prefix or suffix")

        if ".." in branch or "//" in branch or "@{" in branch or branch == "@":
            raise ValueError("Branch name contains invalid sequences")

        return branch

    @classmethod
    def validate_submodule_name(cls, name: str) -> str:
        """Validate a submodule logical name as found in .gitmodules."""
        if not name or not isinstance(name, str):
            raise ValueError("Submodule name must be a non-empty string")

        if len(name) > cls.MAX_SUBMODULE_NAME_LENGTH:
            raise ValueError(
                f"Submodule name exceeds maximum length of "
                f"{cls.MAX_SUBMODULE_NAME_LENGTH}"
            )

        if ".." in name or name.startswith("-"):
            raise ValueError("Submodule name contains invalid sequences")

        if not cls.SAFE_SUBMODULE_NAME_PATTERN.match(name):
            raise ValueError("Submodule name contains invalid characters")

        return name

    @classmethod
    def validate_sha(cls, sha: str) -> str:
        """Validate a hexadecimal commit SHA."""
        if not sha or not isinstance(sha, str):
            raise ValueError("SHA must be a non-empty string")

        if not cls.SHA_PATTERN.match(sha):
            raise ValueError("SHA must be 4 to 64 hexadecimal characters")

        return sha.lower()

    @classmethod
    def validate_file_path(cls, path: str) -> str:
        """Validate file path for security."""
        if not path or not isinstance(path, str):
            raise ValueError("File path must be a non-empty string")

        if len(path) > cls.MAX_PATH_LENGTH:
            raise ValueError(
                f"File path exceeds maximum length of {cls.MAX_PATH_LENGTH}"
            )

        if "\x00" in path:
            raise ValueError("File path contains null bytes")

        if ".." in path.split(os.sep):
            raise ValueError("File path contains path traversal sequences")

        return os.path.normpath(path)

    @classmethod
    def sanitize_for_logging(cls, message: str) -> str:
        """Sanitize message for safe logging by removing potential credentials."""
        if not message:
            return message

        # Patterns to redact
        patterns = [
            (r"(https?)://[^/\s@]+@", r"\1://[REDACTED]@"),  # URLs with credentials
            (r"token\s*[=:]\s*[^\s]+", "token=[REDACTED]"),  # Token assignments
            (r"password\s*[=:]\s*[^\s]+", "password=[REDACTED]"),  # Password assignments
            (r"glpat-[A-Za-z0-9_-]+", "[GITLAB_TOKEN_REDACTED]"),  # GitLab PATs
            (r"glpat_[A-Za-z0-9_-]+", "[GITLAB_TOKEN_REDACTED]"),
            (r"gl(?:oas|dt|cbt|rt)-[A-Za-z0-9_-]+", "[GITLAB_TOKEN_REDACTED]"),
            (r"gh[pousr]_[A-Za-z0-9_]+", "[GITHUB_TOKEN_REDACTED]"),  # GitHub tokens
        ]

        sanitized = message
        for pattern, replacement in patterns:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)

        return sanitized
