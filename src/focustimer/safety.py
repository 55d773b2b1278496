from __future__ import annotations

from pathlib import Path


class UnsafeDataPathError(Exception):
    def __init__(self, data_path: Path, repo_root: Path) -> None:
        super().__init__(f"data file {data_path} is inside the git work tree {repo_root}")
        self.data_path = data_path
        self.repo_root = repo_root


def find_git_root(start: Path) -> Path | None:
    cur = start
    for _ in range(200):
        if (cur / ".git").exists():
            return cur
        if cur.parent == cur:
            return None
        cur = cur.parent
    return None


def assert_safe_data_path(data_path: Path, allow_repo_data_path: bool) -> None:
    """Session history does not belong in a repository unless asked for explicitly."""
    if allow_repo_data_path:
        return
    git_root = find_git_root(data_path.parent)
    if git_root:
        raise UnsafeDataPathError(data_path, git_root)
