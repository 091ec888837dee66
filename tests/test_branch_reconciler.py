"""Tests for the sync branch upsert protocol."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from branch_reconciler import BranchReconciler, ReconcileState
from config import BehaviorConfig, SyncTargetConfig
from errors import CheckoutFailure, DriftDetected, FetchFailure, PushFailure
from gitlab_client import BotIdentity, GitLabProject
from submodule import SubmodulePointer

SOURCE_BRANCH = 'my-sdk/feature/x'


def _raise_given_failure(branch, start_point, failure):
    raise failure


def _make_reconciler(tmp_path: Path, sha='abc1234') -> BranchReconciler:
    gitlab_project = MagicMock(spec=GitLabProject)
    gitlab_project.current_user.return_value = BotIdentity('sync-bot', 'bot@example.com')
    gitlab_project.path_with_namespace.return_value = 'group/project'
    gitlab_project.clone_url.return_value = 'https://sync-bot:t@gitlab.example.com/group/project.git'
    target = SyncTargetConfig(
        project_id='123',
        target_branch='main',
        external_branch='feature/x',
        submodule_name='my-sdk',
        external_sha=sha,
    )
    behavior = BehaviorConfig(workspace_base_dir=str(tmp_path), git_timeout_s=30)
    return BranchReconciler(gitlab_project, target, behavior)


@pytest.fixture
def mocks():
    with patch('branch_reconciler.GitRepository') as repo_cls, \
            patch('branch_reconciler.ProvenanceValidator') as validator_cls, \
            patch('branch_reconciler.SubmodulePinner') as pinner_cls:
        pinner_cls.return_value.pin.return_value = SubmodulePointer('packages/sdk', 'abc1234')
        yield repo_cls.return_value, validator_cls, pinner_cls


def test_upsert_existing_branch_runs_every_step(tmp_path: Path, mocks) -> None:
    repo, validator_cls, pinner_cls = mocks
    reconciler = _make_reconciler(tmp_path)

    pointer = reconciler.upsert(SOURCE_BRANCH)

    assert pointer == SubmodulePointer('packages/sdk', 'abc1234')
    assert reconciler.state == ReconcileState.PUSHED
    repo.clone.assert_called_once_with(
        'https://sync-bot:t@gitlab.example.com/group/project.git'
    )
    repo.configure_identity.assert_called_once_with('sync-bot', 'bot@example.com')
    repo.fetch.assert_called_once_with(SOURCE_BRANCH)
    assert repo.checkout_new_branch.call_args.args[:2] == (
        SOURCE_BRANCH, f'origin/{SOURCE_BRANCH}'
    )
    validator_cls.return_value.validate.assert_called_once_with('main', SOURCE_BRANCH)
    repo.reset_hard.assert_called_once_with('origin/main')
    pinner_cls.assert_called_once_with(repo, 'my-sdk')
    pinner_cls.return_value.pin.assert_called_once_with('abc1234', 'feature/x')
    assert repo.add.call_args.args[0] == 'packages/sdk'
    repo.commit.assert_called_once_with(
        "chore: update 'my-sdk' submodule to 'feature/x' `submodule-auto-sync`"
    )
    repo.force_push.assert_called_once_with(SOURCE_BRANCH)


def test_upsert_creates_missing_branch_from_target(tmp_path: Path, mocks) -> None:
    """A missing sync branch falls back to branching off the target branch."""
    repo, _, _ = mocks
    repo.fetch.side_effect = [FetchFailure('no such ref', SOURCE_BRANCH), None]

    _make_reconciler(tmp_path).upsert(SOURCE_BRANCH)

    assert repo.fetch.call_args_list[1].args[0] == 'main'
    repo.checkout_new_branch.assert_called_once()
    assert repo.checkout_new_branch.call_args.args[:2] == (SOURCE_BRANCH, 'origin/main')
    repo.force_push.assert_called_once_with(SOURCE_BRANCH)


def test_fallback_checkout_failure_is_reported(tmp_path: Path, mocks) -> None:
    repo, _, _ = mocks
    repo.fetch.side_effect = [FetchFailure('no such ref', SOURCE_BRANCH), None]
    repo.checkout_new_branch.side_effect = _raise_given_failure

    reconciler = _make_reconciler(tmp_path)
    with pytest.raises(CheckoutFailure) as excinfo:
        reconciler.upsert(SOURCE_BRANCH)

    assert excinfo.value.fallback is True
    assert excinfo.value.ref == 'main'
    assert reconciler.state == ReconcileState.CLONED
    repo.reset_hard.assert_not_called()


def test_drift_stops_before_reset(tmp_path: Path, mocks) -> None:
    repo, validator_cls, pinner_cls = mocks
    validator_cls.return_value.validate.side_effect = DriftDetected(
        SOURCE_BRANCH, 'submodule-auto-sync', 1
    )

    reconciler = _make_reconciler(tmp_path)
    with pytest.raises(DriftDetected):
        reconciler.upsert(SOURCE_BRANCH)

    assert reconciler.state == ReconcileState.SOURCE_BRANCH_READY
    repo.reset_hard.assert_not_called()
    pinner_cls.return_value.pin.assert_not_called()
    repo.commit.assert_not_called()
    repo.force_push.assert_not_called()


def test_workspace_is_removed_after_failure(tmp_path: Path, mocks) -> None:
    repo, _, _ = mocks
    repo.force_push.side_effect = PushFailure('failed to push')

    with pytest.raises(PushFailure):
        _make_reconciler(tmp_path).upsert(SOURCE_BRANCH)

    assert os.listdir(tmp_path) == []


def test_workspace_is_removed_after_success(tmp_path: Path, mocks) -> None:
    _make_reconciler(tmp_path).upsert(SOURCE_BRANCH)
    assert os.listdir(tmp_path) == []


def test_resync_resets_and_recommits_new_sha(tmp_path: Path, mocks) -> None:
    """Re-running with a new SHA rewrites the branch instead of stacking commits."""
    repo, _, pinner_cls = mocks
    pinner_cls.return_value.pin.return_value = SubmodulePointer('packages/sdk', 'def4567')

    pointer = _make_reconciler(tmp_path, sha='def4567').upsert(SOURCE_BRANCH)

    assert pointer.sha == 'def4567'
    repo.reset_hard.assert_called_once_with('origin/main')
    assert repo.commit.call_count == 1
    pinner_cls.return_value.pin.assert_called_once_with('def4567', 'feature/x')
