"""Repository handle over a dulwich ``Repo``.

All reads and writes of refs, trees and commits go through this class so the
pipeline stages never touch dulwich directly. Git binary is not required.
"""

from __future__ import annotations

import time
from collections import deque
from datetime import datetime
from pathlib import Path

from dulwich.errors import NotGitRepository
from dulwich.ignore import IgnoreFilterManager
from dulwich.objects import Commit
from dulwich.repo import Repo

from gwipt.core.errors import (
    InvalidRepositoryStateError,
    RefUpdateError,
    RepositoryError,
    RepositoryNotFoundError,
)
from gwipt.utils.logger import git_logger

BRANCH_REF_PREFIX = b"refs/heads/"
CONTROL_DIR_NAME = ".git"


def branch_ref(name: str) -> bytes:
    """Return the full ref for a local branch name."""
    return BRANCH_REF_PREFIX + name.encode("utf-8")


def local_timezone_offset() -> int:
    """Seconds east of UTC for the current local time."""
    offset = datetime.now().astimezone().utcoffset()
    return int(offset.total_seconds()) if offset else 0


class RepositoryHandle:
    """Handle to an on-disk, non-bare repository.

    Owned by the orchestrator for the lifetime of the process.
    """

    def __init__(self, repo: Repo) -> None:
        if repo.bare:
            raise RepositoryError("Bare repositories have no working tree to mirror.")
        self.repo = repo
        self.root = Path(repo.path).resolve()

    @classmethod
    def discover(cls, start: str | Path = ".") -> RepositoryHandle:
        """Find the repository containing ``start``, walking up parent dirs."""
        try:
            return cls(Repo.discover(str(start)))
        except NotGitRepository as exc:
            raise RepositoryNotFoundError(
                f"No git repository found at or above {Path(start).resolve()}"
            ) from exc

    @property
    def control_dir(self) -> Path:
        return Path(self.repo.controldir())

    # ---- refs ----
    def head_branch(self) -> tuple[str, bytes]:
        """Return (short branch name, commit id) of the checked-out branch.

        Raises:
            InvalidRepositoryStateError: HEAD is detached, or the branch has no
                commits yet.
        """
        try:
            refnames, sha = self.repo.refs.follow(b"HEAD")
        except KeyError as exc:
            raise InvalidRepositoryStateError("HEAD could not be resolved") from exc

        target = refnames[-1] if refnames else b""
        if len(refnames) < 2 or not target.startswith(BRANCH_REF_PREFIX):
            raise InvalidRepositoryStateError(
                "You must check out a branch for gwipt to work (HEAD is detached)."
            )
        name = target[len(BRANCH_REF_PREFIX) :].decode("utf-8")
        if not name:
            raise InvalidRepositoryStateError("Could not get branch name")
        if sha is None:
            raise InvalidRepositoryStateError(
                f"Branch '{name}' has no commits yet; make an initial commit first."
            )
        return name, sha

    def branch_tip(self, name: str) -> bytes | None:
        """Commit id the branch points at, or None if it does not exist."""
        try:
            return self.repo.refs[branch_ref(name)]
        except KeyError:
            return None

    def create_branch(self, name: str, commit_id: bytes) -> None:
        ok = self.repo.refs.add_if_new(
            branch_ref(name), commit_id, message=b"gwipt: created from HEAD"
        )
        if not ok:
            raise RefUpdateError(f"Branch '{name}' appeared while it was being created")

    def update_branch(
        self, name: str, old_id: bytes, new_id: bytes, reason: str = "gwipt"
    ) -> None:
        """Move a branch from ``old_id`` to ``new_id`` in one compare-and-swap.

        Raises:
            RefUpdateError: The branch no longer points at ``old_id``.
        """
        ok = self.repo.refs.set_if_equals(
            branch_ref(name), old_id, new_id, message=reason.encode("utf-8")
        )
        if not ok:
            raise RefUpdateError(
                f"Branch '{name}' moved from {old_id.decode()[:7]} during update"
            )

    # ---- objects ----
    def commit(self, commit_id: bytes) -> Commit:
        try:
            obj = self.repo[commit_id]
        except KeyError as exc:
            raise RepositoryError(
                f"Commit {commit_id.decode()[:7]} is missing from the object store"
            ) from exc
        if not isinstance(obj, Commit):
            raise RepositoryError(f"{commit_id.decode()} is not a commit")
        return obj

    def is_ancestor(self, ancestor: bytes, descendant: bytes) -> bool:
        """Return True if ``ancestor`` is reachable from ``descendant``.

        A commit counts as its own ancestor. Uses BFS over parent links as
        dulwich reports them, so shallow boundaries and grafts are honored.
        Parents missing from the object store are treated as unreachable.
        """
        if ancestor == descendant:
            return True

        parents_provider = self.repo.parents_provider()
        visited: set[bytes] = set()
        to_visit = deque([descendant])
        while to_visit:
            sha = to_visit.popleft()
            if sha in visited:
                continue
            visited.add(sha)
            if sha == ancestor:
                return True
            try:
                to_visit.extend(parents_provider.get_parents(sha))
            except KeyError:
                git_logger.debug("Commit not available locally", commit=sha.decode()[:7])
        return False

    def identity(self) -> tuple[str, str]:
        """Return (name, email) from user.name / user.email in git config."""
        config = self.repo.get_config_stack()
        try:
            name = config.get((b"user",), b"name")
            email = config.get((b"user",), b"email")
        except KeyError as exc:
            raise InvalidRepositoryStateError(
                "No commit identity configured; set user.name and user.email "
                "with git config."
            ) from exc
        return name.decode("utf-8"), email.decode("utf-8")

    def signature(self) -> bytes:
        name, email = self.identity()
        return f"{name} <{email}>".encode()

    def write_commit(self, tree_id: bytes, parents: list[bytes], message: str) -> bytes:
        """Store a commit object authored by the configured identity.

        No ref is touched; callers publish the commit with ``update_branch``.
        """
        me = self.signature()
        commit = Commit()
        commit.tree = tree_id
        commit.parents = parents
        commit.author = commit.committer = me
        commit.commit_time = commit.author_time = int(time.time())
        commit.commit_timezone = commit.author_timezone = local_timezone_offset()
        commit.encoding = b"UTF-8"
        commit.message = message.encode("utf-8")
        self.repo.object_store.add_object(commit)
        return commit.id

    # ---- ignore rules ----
    def ignore_filter(self) -> IgnoreFilterManager:
        """Git ignore rules for the working tree.

        Covers every ``.gitignore`` in the tree, ``.git/info/exclude`` and the
        user's ``core.excludesFile``. Check directories with a trailing slash.
        """
        return IgnoreFilterManager.from_repo(self.repo)
