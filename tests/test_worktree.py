"""Tests for the working-tree scan used by diffing and snapshots."""

import os

import pytest
from dulwich.objects import Blob

from gwipt.core.errors import WorktreeReadError
from gwipt.services import worktree
from gwipt.services.worktree import (
    MODE_EXECUTABLE,
    MODE_SYMLINK,
    scan_worktree,
    tree_files,
    write_worktree_tree,
)
from tests.conftest import commit_on_main, write_files


def _head_tree(handle):
    _name, sha = handle.head_branch()
    return handle.commit(sha).tree


def test_scan_includes_untracked_and_skips_control_dir(git_repo):
    write_files(git_repo.root, {"notes/todo.txt": b"write tests\n"})

    files = scan_worktree(git_repo, _head_tree(git_repo))

    assert set(files) == {"README.md", "notes/todo.txt"}
    assert files["notes/todo.txt"][1].data == b"write tests\n"


def test_scan_respects_gitignore_but_keeps_tracked(git_repo):
    commit_on_main(
        git_repo,
        {
            "README.md": b"# Project\n",
            ".gitignore": b"build/\n*.log\n",
            "build/keep.txt": b"tracked before the ignore rule\n",
        },
        "Track a build file",
    )
    write_files(
        git_repo.root,
        {"build/new.o": b"\x00obj", "debug.log": b"noise\n", "src/app.py": b"print()\n"},
    )

    files = scan_worktree(git_repo, _head_tree(git_repo))

    assert "build/keep.txt" in files
    assert "build/new.o" not in files
    assert "debug.log" not in files
    assert "src/app.py" in files


def test_scan_respects_nested_gitignore(git_repo):
    write_files(
        git_repo.root,
        {
            "sub/.gitignore": b"secret.env\n",
            "sub/secret.env": b"TOKEN=1\n",
            "sub/app.py": b"print()\n",
            "secret.env": b"TOKEN=2\n",
        },
    )

    files = scan_worktree(git_repo, _head_tree(git_repo))

    assert "sub/secret.env" not in files
    assert "sub/app.py" in files
    assert "sub/.gitignore" in files
    # Rules in sub/.gitignore only apply below sub/
    assert "secret.env" in files


def test_scan_respects_user_excludes_file(git_repo, isolated_environment):
    excludes = isolated_environment / "global-ignore"
    excludes.write_text("*.swp\n")
    (isolated_environment / ".gitconfig").write_text(
        f"[core]\n\texcludesFile = {excludes}\n"
    )
    write_files(git_repo.root, {"a.swp": b"swap\n", "a.txt": b"text\n"})

    files = scan_worktree(git_repo, _head_tree(git_repo))

    assert "a.swp" not in files
    assert "a.txt" in files


def test_scan_skips_nested_repositories(git_repo):
    nested = git_repo.root / "vendor" / "lib"
    (nested / ".git").mkdir(parents=True)
    write_files(nested, {"lib.c": b"int x;\n"})

    files = scan_worktree(git_repo, _head_tree(git_repo))

    assert not any(path.startswith("vendor/") for path in files)


def test_scan_records_modes(git_repo):
    script = git_repo.root / "run.sh"
    script.write_text("#!/bin/sh\n")
    script.chmod(0o755)
    os.symlink("README.md", git_repo.root / "link.md")

    files = scan_worktree(git_repo, _head_tree(git_repo))

    assert files["run.sh"][0].mode == MODE_EXECUTABLE
    assert files["link.md"][0].mode == MODE_SYMLINK
    assert files["link.md"][1].data == b"README.md"


def test_vanished_file_is_skipped(git_repo, monkeypatch):
    write_files(git_repo.root, {"swap.tmp": b"x"})
    real_read = worktree._read_blob

    def flaky_read(path):
        if path.name == "swap.tmp":
            raise FileNotFoundError(path)
        return real_read(path)

    monkeypatch.setattr(worktree, "_read_blob", flaky_read)

    files = scan_worktree(git_repo, _head_tree(git_repo))

    assert "swap.tmp" not in files
    assert "README.md" in files


def test_unreadable_file_raises(git_repo, monkeypatch):
    write_files(git_repo.root, {"locked.txt": b"x"})
    real_read = worktree._read_blob

    def denied_read(path):
        if path.name == "locked.txt":
            raise PermissionError(13, "Permission denied", str(path))
        return real_read(path)

    monkeypatch.setattr(worktree, "_read_blob", denied_read)

    with pytest.raises(WorktreeReadError, match="locked.txt"):
        scan_worktree(git_repo, _head_tree(git_repo))


def test_write_worktree_tree_stores_blobs(git_repo):
    write_files(git_repo.root, {"src/main.py": b"print('hi')\n"})

    tree_id = write_worktree_tree(git_repo, _head_tree(git_repo))

    entries = tree_files(git_repo, tree_id)
    assert set(entries) == {"README.md", "src/main.py"}
    blob = git_repo.repo.object_store[entries["src/main.py"].sha]
    assert isinstance(blob, Blob)
    assert blob.data == b"print('hi')\n"
