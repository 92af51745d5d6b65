"""Tests for shadow branch reconciliation."""

from gwipt.config.constants import MERGE_MESSAGE
from gwipt.services.branches import ensure_shadow_branch, shadow_branch_name
from tests.conftest import commit_on_main, make_commit


def _snapshot_on(handle, branch, files):
    """Put a snapshot-like commit on top of ``branch``."""
    tip = handle.branch_tip(branch)
    commit_id = make_commit(handle.repo, files, "wip: snapshot", parents=[tip])
    handle.update_branch(branch, tip, commit_id)
    return commit_id


def test_shadow_branch_name():
    assert shadow_branch_name("main") == "wip/main"
    assert shadow_branch_name("feature/x") == "wip/feature/x"


def test_creates_shadow_branch_at_head(git_repo):
    head = git_repo.branch_tip("main")

    name = ensure_shadow_branch(git_repo)

    assert name == "wip/main"
    assert git_repo.branch_tip("wip/main") == head


def test_no_op_when_shadow_equals_head(git_repo):
    ensure_shadow_branch(git_repo)
    before = git_repo.branch_tip("wip/main")

    ensure_shadow_branch(git_repo)

    assert git_repo.branch_tip("wip/main") == before


def test_no_op_when_shadow_is_ahead(git_repo):
    ensure_shadow_branch(git_repo)
    snapshot = _snapshot_on(git_repo, "wip/main", {"README.md": b"draft\n"})

    ensure_shadow_branch(git_repo)

    assert git_repo.branch_tip("wip/main") == snapshot


def test_fast_forwards_when_head_moves_ahead(git_repo):
    ensure_shadow_branch(git_repo)
    new_head = commit_on_main(git_repo, {"README.md": b"v2\n"}, "Second")

    ensure_shadow_branch(git_repo)

    assert git_repo.branch_tip("wip/main") == new_head


def test_merges_when_history_diverges(git_repo):
    base = git_repo.branch_tip("main")
    first = commit_on_main(git_repo, {"README.md": b"v1\n"}, "First")
    ensure_shadow_branch(git_repo)
    snapshot = _snapshot_on(git_repo, "wip/main", {"README.md": b"v1 draft\n"})
    # Amend: replace First with a different commit on the same base
    amended = commit_on_main(
        git_repo, {"README.md": b"v1 amended\n"}, "First (amended)", parents=[base]
    )

    ensure_shadow_branch(git_repo)

    tip = git_repo.branch_tip("wip/main")
    merge = git_repo.commit(tip)
    assert merge.parents == [snapshot, amended]
    assert merge.tree == git_repo.commit(amended).tree
    assert merge.message.decode() == MERGE_MESSAGE
    # Earlier shadow history stays reachable
    assert git_repo.is_ancestor(snapshot, tip)
    assert git_repo.is_ancestor(first, tip)
    assert git_repo.is_ancestor(amended, tip)


def test_reconcile_is_idempotent_after_merge(git_repo):
    base = git_repo.branch_tip("main")
    ensure_shadow_branch(git_repo)
    _snapshot_on(git_repo, "wip/main", {"README.md": b"draft\n"})
    commit_on_main(git_repo, {"README.md": b"reset\n"}, "Reset", parents=[base])
    ensure_shadow_branch(git_repo)
    merged = git_repo.branch_tip("wip/main")

    ensure_shadow_branch(git_repo)

    assert git_repo.branch_tip("wip/main") == merged
