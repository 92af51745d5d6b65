"""Commit the working tree onto the shadow branch."""

from __future__ import annotations

from gwipt.core.errors import RefUpdateError
from gwipt.core.repository import RepositoryHandle
from gwipt.services.worktree import write_worktree_tree
from gwipt.utils.logger import git_logger


def commit_snapshot(repo: RepositoryHandle, shadow_branch: str, message: str) -> str:
    """Stage the whole working tree and commit it on top of the shadow branch.

    The parent is read here rather than taken from reconciliation, and the ref
    only moves through a compare-and-swap, so a concurrent ref change makes
    this fail instead of dropping a commit.

    Returns:
        Hex id of the new commit.
    """
    parent = repo.branch_tip(shadow_branch)
    if parent is None:
        raise RefUpdateError(f"Shadow branch '{shadow_branch}' does not exist")

    _head_name, head_id = repo.head_branch()
    tree_id = write_worktree_tree(repo, repo.commit(head_id).tree)

    git_logger.debug(
        "Writing snapshot",
        branch=shadow_branch,
        parent=parent.decode(),
        tree=tree_id.decode(),
    )
    commit_id = repo.write_commit(tree_id, [parent], message)
    repo.update_branch(shadow_branch, parent, commit_id, reason="gwipt: snapshot")
    return commit_id.decode()
