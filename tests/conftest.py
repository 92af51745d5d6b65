"""Shared pytest fixtures for all tests."""

import time
from pathlib import Path

import pytest
from dulwich.index import commit_tree
from dulwich.objects import Blob, Commit
from dulwich.repo import Repo

from gwipt.core.repository import RepositoryHandle, branch_ref

AUTHOR = b"Test User <test@example.com>"


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path_factory):
    """Keep the developer's git config and API keys out of the tests."""
    home = Path(tmp_path_factory.mktemp("home"))
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.delenv("GIT_CONFIG_GLOBAL", raising=False)
    for key in (
        "OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "GWIPT_TRANSPORT",
        "GWIPT_MODEL",
        "GWIPT_TIME_DELAY",
        "GWIPT_TOKEN_BUDGET",
        "GWIPT_RESPONSE_TOKENS",
    ):
        monkeypatch.delenv(key, raising=False)
    return home


def write_files(root: Path, files: dict[str, bytes]) -> None:
    for path, data in files.items():
        target = root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


def make_commit(
    repo: Repo,
    files: dict[str, bytes],
    message: str,
    parents: list[bytes] | None = None,
) -> bytes:
    """Store a commit with exactly ``files`` as its tree. No ref is moved."""
    blobs = {path: Blob.from_string(data) for path, data in files.items()}
    repo.object_store.add_objects([(blob, None) for blob in blobs.values()])
    tree_id = commit_tree(
        repo.object_store,
        [(path.encode(), blob.id, 0o100644) for path, blob in blobs.items()],
    )

    commit = Commit()
    commit.tree = tree_id
    commit.parents = parents or []
    commit.author = commit.committer = AUTHOR
    commit.commit_time = commit.author_time = int(time.time())
    commit.commit_timezone = commit.author_timezone = 0
    commit.message = message.encode()
    repo.object_store.add_object(commit)
    return commit.id


def commit_on_main(
    handle: RepositoryHandle,
    files: dict[str, bytes],
    message: str,
    parents: list[bytes] | None = None,
) -> bytes:
    """Write ``files`` to disk, commit them and point main at the commit.

    ``parents`` defaults to the current main tip; pass an older commit to
    simulate an amend or a rebase.
    """
    write_files(handle.root, files)
    if parents is None:
        tip = handle.branch_tip("main")
        parents = [tip] if tip else []
    commit_id = make_commit(handle.repo, files, message, parents)
    handle.repo.refs[branch_ref("main")] = commit_id
    return commit_id


def init_repo(path: Path, identity: bool = True) -> Repo:
    repo = Repo.init(str(path))
    repo.refs.set_symbolic_ref(b"HEAD", branch_ref("main"))
    if identity:
        config = repo.get_config()
        config.set((b"user",), b"name", b"Test User")
        config.set((b"user",), b"email", b"test@example.com")
        config.write_to_path()
    return repo


@pytest.fixture
def empty_repo(tmp_path):
    """Repository on branch main with no commits yet."""
    root = tmp_path / "work"
    root.mkdir()
    return RepositoryHandle(init_repo(root))


@pytest.fixture
def git_repo(empty_repo):
    """Repository on main with one commit; working tree matches HEAD."""
    commit_on_main(empty_repo, {"README.md": b"# Project\n"}, "Initial commit")
    return empty_repo
