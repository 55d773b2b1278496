"""Tests for data path resolution and the repository safety guard."""

from __future__ import annotations

from pathlib import Path

import pytest

from focustimer.paths import DATA_ENV, default_data_path, resolve_data_path
from focustimer.safety import UnsafeDataPathError, assert_safe_data_path, find_git_root

# ---- resolve_data_path ----


def test_default_path_uses_profile():
    assert default_data_path("dev").name == "dev.json"
    assert default_data_path().name == "data.json"
    assert default_data_path().parent.name == "focustimer"


def test_data_arg_wins(tmp_path, monkeypatch):
    monkeypatch.setenv(DATA_ENV, str(tmp_path / "env.json"))
    assert resolve_data_path(str(tmp_path / "arg.json"), "dev") == (tmp_path / "arg.json").resolve()


def test_env_beats_profile(tmp_path, monkeypatch):
    monkeypatch.setenv(DATA_ENV, str(tmp_path / "env.json"))
    assert resolve_data_path(None, "dev") == (tmp_path / "env.json").resolve()


def test_profile_default(monkeypatch):
    monkeypatch.delenv(DATA_ENV, raising=False)
    assert resolve_data_path(None, "test").name == "test.json"


# ---- safety guard ----


def test_find_git_root(tmp_path: Path):
    (tmp_path / ".git").mkdir()
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    assert find_git_root(nested) == tmp_path


def test_guard_raises_inside_repo(tmp_path: Path):
    (tmp_path / ".git").mkdir()
    with pytest.raises(UnsafeDataPathError) as exc:
        assert_safe_data_path(tmp_path / "data.json", False)
    assert exc.value.repo_root == tmp_path


def test_guard_override(tmp_path: Path):
    (tmp_path / ".git").mkdir()
    assert_safe_data_path(tmp_path / "data.json", True)


def test_guard_outside_repo(tmp_path: Path):
    assert_safe_data_path(tmp_path / "nowhere" / "data.json", False)
