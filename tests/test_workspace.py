"""Tests for the ephemeral workspace lifecycle."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from errors import WorkspaceNotEmpty
from workspace import (WORKSPACE_BASE_DIR_ENV, EphemeralWorkspace,
                       default_workspace_base_dir)


def test_workspace_is_created_empty_and_removed(tmp_path: Path) -> None:
    with EphemeralWorkspace(str(tmp_path)) as workspace:
        assert os.path.isdir(workspace.path)
        assert os.listdir(workspace.path) == []
        assert os.path.dirname(workspace.path) == str(tmp_path)
        (Path(workspace.path) / 'file.txt').write_text('data')
    assert not os.path.exists(workspace.path)


def test_workspace_is_removed_when_the_run_fails(tmp_path: Path) -> None:
    """Cleanup happens on exceptions raised inside the block."""
    with pytest.raises(RuntimeError):
        with EphemeralWorkspace(str(tmp_path)) as workspace:
            nested = Path(workspace.path) / '.git' / 'objects'
            nested.mkdir(parents=True)
            pack = nested / 'pack'
            pack.write_text('x')
            pack.chmod(0o400)
            raise RuntimeError('boom')
    assert not os.path.exists(workspace.path)


def test_workspace_is_removed_on_system_exit(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        with EphemeralWorkspace(str(tmp_path)) as workspace:
            raise SystemExit(143)
    assert not os.path.exists(workspace.path)


def test_cleanup_leaves_symlink_targets_alone(tmp_path: Path) -> None:
    """Links inside the checkout must not change modes outside the workspace."""
    outside_file = tmp_path / 'outside.txt'
    outside_file.write_text('keep')
    outside_file.chmod(0o644)
    outside_dir = tmp_path / 'outside_dir'
    outside_dir.mkdir()
    outside_dir.chmod(0o755)
    base = tmp_path / 'base'
    base.mkdir()

    with EphemeralWorkspace(str(base)) as workspace:
        os.symlink(outside_file, os.path.join(workspace.path, 'link'))
        os.symlink(outside_dir, os.path.join(workspace.path, 'dirlink'))

    assert not os.path.exists(workspace.path)
    assert outside_file.read_text() == 'keep'
    assert outside_file.stat().st_mode & 0o777 == 0o644
    assert outside_dir.is_dir()
    assert outside_dir.stat().st_mode & 0o777 == 0o755


@patch('workspace.time.time', return_value=1700000000.0)
def test_workspace_refuses_non_empty_directory(_mock_time, tmp_path: Path) -> None:
    """A leftover directory with the same name is never reused."""
    leftover = tmp_path / f'gitlab-sync-1700000000000-{os.getpid()}'
    leftover.mkdir()
    (leftover / 'stale').write_text('old run')

    with pytest.raises(WorkspaceNotEmpty):
        EphemeralWorkspace(str(tmp_path))

    assert (leftover / 'stale').exists()


def test_default_base_dir_from_environment(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv(WORKSPACE_BASE_DIR_ENV, str(tmp_path))
    assert default_workspace_base_dir() == str(tmp_path)


def test_default_base_dir_falls_back_to_tempdir(monkeypatch) -> None:
    monkeypatch.delenv(WORKSPACE_BASE_DIR_ENV, raising=False)
    with patch('workspace.tempfile.gettempdir', return_value='/var/tmp-x'):
        assert default_workspace_base_dir() == '/var/tmp-x'
