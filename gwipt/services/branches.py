"""Shadow branch reconciliation.

The shadow branch ``wip/<branch>`` must never be behind the tracked branch and
must never lose a commit that was once its tip. Forward progress on either
side is handled without new commits; true divergence (rebase, amend, reset of
the tracked branch) is closed with a merge commit whose tree is the tracked
branch's tree.
"""

from __future__ import annotations

from gwipt.config.constants import MERGE_MESSAGE, WIP_BRANCH_PREFIX
from gwipt.core.repository import RepositoryHandle
from gwipt.utils.logger import git_logger


def shadow_branch_name(tracked_branch: str) -> str:
    return WIP_BRANCH_PREFIX + tracked_branch


def ensure_shadow_branch(repo: RepositoryHandle) -> str:
    """Make sure ``wip/<HEAD branch>`` exists and descends from HEAD.

    Returns:
        The shadow branch name.

    Raises:
        InvalidRepositoryStateError: HEAD is not a branch with commits.
        RefUpdateError: The shadow ref moved while it was being updated.
    """
    head_name, head_id = repo.head_branch()
    shadow = shadow_branch_name(head_name)

    shadow_tip = repo.branch_tip(shadow)
    if shadow_tip is None:
        repo.create_branch(shadow, head_id)
        git_logger.info("Created shadow branch", branch=shadow, commit=head_id.decode()[:6])
        return shadow

    if shadow_tip == head_id:
        return shadow

    # Snapshots on top of HEAD: the usual state between commits
    if repo.is_ancestor(head_id, shadow_tip):
        return shadow

    # HEAD moved forward and the shadow branch has nothing of its own
    if repo.is_ancestor(shadow_tip, head_id):
        repo.update_branch(shadow, shadow_tip, head_id, reason="gwipt: fast-forward to HEAD")
        git_logger.debug(
            "Fast-forwarded shadow branch",
            branch=shadow,
            commit=head_id.decode()[:6],
        )
        return shadow

    head_tree = repo.commit(head_id).tree
    merge_id = repo.write_commit(head_tree, [shadow_tip, head_id], MERGE_MESSAGE)
    repo.update_branch(shadow, shadow_tip, merge_id, reason="gwipt: merge HEAD")
    git_logger.info(f"{merge_id.decode()[:6]}: {MERGE_MESSAGE}", branch=shadow)
    return shadow
