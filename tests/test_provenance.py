"""Tests for the drift check on sync branches."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from errors import DriftDetected
from git_client import GitRepository
from provenance import ProvenanceValidator

SALT = 'submodule-auto-sync'


def _make_repo(subjects) -> MagicMock:
    repo = MagicMock(spec=GitRepository)
    repo.log_subjects.return_value = subjects
    return repo


def test_only_salted_commits_pass() -> None:
    repo = _make_repo([f"chore: update 'my-sdk' submodule to 'x' `{SALT}`"])
    ProvenanceValidator(repo, SALT).validate('main', 'my-sdk/x')

    repo.fetch.assert_called_once_with('main')
    repo.log_subjects.assert_called_once_with('origin/main', 'my-sdk/x')


def test_new_branch_without_commits_passes() -> None:
    ProvenanceValidator(_make_repo([]), SALT).validate('main', 'my-sdk/x')


def test_foreign_commit_is_drift() -> None:
    repo = _make_repo([f'chore: sync `{SALT}`', 'fix: manual tweak'])
    with pytest.raises(DriftDetected) as excinfo:
        ProvenanceValidator(repo, SALT).validate('main', 'my-sdk/x')
    assert excinfo.value.foreign_commits == 1
    assert excinfo.value.branch == 'my-sdk/x'


def test_drift_does_not_touch_the_branch() -> None:
    """Validation only reads; no reset or push happens on drift."""
    repo = _make_repo(['manual'])
    with pytest.raises(DriftDetected):
        ProvenanceValidator(repo, SALT).validate('main', 'my-sdk/x')
    repo.reset_hard.assert_not_called()
    repo.force_push.assert_not_called()


def _git(cwd: Path, *args: str) -> str:
    return subprocess.run(
        ['git', *args], cwd=cwd, check=True, capture_output=True, text=True
    ).stdout


def _commit(cwd: Path, name: str, message: str) -> None:
    (cwd / name).write_text(message)
    _git(cwd, 'add', name)
    _git(cwd, 'commit', '-q', '-m', message)


@pytest.fixture
def cloned_repo(tmp_path: Path) -> Path:
    """A clone of a local origin with 'main' and a sync branch."""
    origin = tmp_path / 'origin.git'
    seed = tmp_path / 'seed'
    clone = tmp_path / 'clone'
    seed.mkdir()
    _git(tmp_path, 'init', '-q', '--bare', str(origin))
    _git(seed, 'init', '-q')
    _git(seed, 'config', 'user.email', 'dev@example.com')
    _git(seed, 'config', 'user.name', 'dev')
    _git(seed, 'symbolic-ref', 'HEAD', 'refs/heads/main')
    _commit(seed, 'README', 'initial')
    _git(seed, 'checkout', '-q', '-b', 'my-sdk/x')
    _commit(seed, 'sdk', f'chore: update `{SALT}`')
    _git(seed, 'push', '-q', str(origin), 'main', 'my-sdk/x')
    _git(tmp_path, 'clone', '-q', '-b', 'main', str(origin), str(clone))
    _git(clone, 'config', 'user.email', 'dev@example.com')
    _git(clone, 'config', 'user.name', 'dev')
    _git(clone, 'checkout', '-q', '-b', 'my-sdk/x', 'origin/my-sdk/x')
    return clone


@pytest.mark.skipif(shutil.which('git') is None, reason='git is not installed')
def test_real_repository_salted_branch_passes(cloned_repo: Path) -> None:
    ProvenanceValidator(GitRepository(str(cloned_repo)), SALT).validate(
        'main', 'my-sdk/x'
    )


@pytest.mark.skipif(shutil.which('git') is None, reason='git is not installed')
def test_real_repository_manual_commit_is_drift(cloned_repo: Path) -> None:
    _commit(cloned_repo, 'manual', 'fix: hand edit')
    with pytest.raises(DriftDetected):
        ProvenanceValidator(GitRepository(str(cloned_repo)), SALT).validate(
            'main', 'my-sdk/x'
        )
