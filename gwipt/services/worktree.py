"""Working-tree scan shared by the diff and snapshot stages.

The scan mirrors what ``git add --all`` would stage:

- the control directory and nested repositories are never entered
- paths matched by any .gitignore, .git/info/exclude or core.excludesFile
  are skipped, unless the tracked branch already contains them (git keeps tracked files)
- executable bits and symlinks keep their git modes
- submodule entries are carried forward from the tracked tree untouched
"""

from __future__ import annotations

import os
import stat
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

from dulwich.ignore import IgnoreFilterManager
from dulwich.index import commit_tree
from dulwich.object_store import iter_tree_contents
from dulwich.objects import S_IFGITLINK, S_ISGITLINK, Blob

from gwipt.core.errors import WorktreeReadError
from gwipt.core.repository import CONTROL_DIR_NAME, RepositoryHandle
from gwipt.utils.logger import git_logger

# Number of failure entries to include in error messages
MAX_FAILURE_SAMPLES = 5

MODE_FILE = 0o100644
MODE_EXECUTABLE = 0o100755
MODE_SYMLINK = 0o120000


@dataclass(frozen=True)
class TreeFile:
    """One file as it would appear in a tree: git mode plus blob id."""

    mode: int
    sha: bytes


def tree_files(repo: RepositoryHandle, tree_id: bytes) -> dict[str, TreeFile]:
    """Flatten a tree into {posix path: TreeFile}, submodules included."""
    files: dict[str, TreeFile] = {}
    for entry in iter_tree_contents(repo.repo.object_store, tree_id):
        files[entry.path.decode("utf-8", errors="surrogateescape")] = TreeFile(
            mode=entry.mode, sha=entry.sha
        )
    return files


def _git_mode(st: os.stat_result) -> int:
    if stat.S_ISLNK(st.st_mode):
        return MODE_SYMLINK
    if st.st_mode & 0o111:
        return MODE_EXECUTABLE
    return MODE_FILE


def _read_blob(path: Path) -> tuple[int, Blob]:
    st = path.lstat()
    mode = _git_mode(st)
    if mode == MODE_SYMLINK:
        data = os.fsencode(os.readlink(path))
    else:
        data = path.read_bytes()
    return mode, Blob.from_string(data)


def _list_paths(
    root: Path, ignore: IgnoreFilterManager, tracked: set[str]
) -> list[tuple[Path, str]]:
    """Collect (absolute path, posix relative path) for every candidate file."""
    found: list[tuple[Path, str]] = []
    tracked_dirs = {p.rsplit("/", 1)[0] for p in tracked if "/" in p}

    for current, dirs, files in os.walk(root):
        current_path = Path(current)
        rel_root = current_path.relative_to(root).as_posix()
        rel_root = "" if rel_root == "." else rel_root

        kept_dirs = []
        for d in dirs:
            rel = f"{rel_root}/{d}" if rel_root else d
            if d == CONTROL_DIR_NAME:
                continue
            # Nested repositories belong to their own history
            if (current_path / d / CONTROL_DIR_NAME).exists():
                continue
            if ignore.is_ignored(rel + "/") and not any(
                t == rel or t.startswith(rel + "/") for t in tracked_dirs
            ):
                continue
            kept_dirs.append(d)
        dirs[:] = kept_dirs

        for filename in files:
            rel = f"{rel_root}/{filename}" if rel_root else filename
            if rel in tracked or not ignore.is_ignored(rel):
                found.append((current_path / filename, rel))

        # os.walk does not descend into symlinked dirs; record the link itself
        for d in list(dirs):
            if (current_path / d).is_symlink():
                dirs.remove(d)
                rel = f"{rel_root}/{d}" if rel_root else d
                found.append((current_path / d, rel))

    return found


def scan_worktree(
    repo: RepositoryHandle, tracked_tree: bytes | None = None
) -> dict[str, tuple[TreeFile, Blob]]:
    """Read every non-ignored file of the working tree into blobs.

    Args:
        repo: Repository whose working tree is scanned
        tracked_tree: Tree of the tracked branch; its paths are kept even when
            ignored, and its submodule entries are carried over.

    Returns:
        Dict of posix path -> (TreeFile, Blob). Submodule entries have no blob
        content and map to an empty placeholder Blob.
    """
    tracked = tree_files(repo, tracked_tree) if tracked_tree is not None else {}
    candidates = _list_paths(repo.root, repo.ignore_filter(), set(tracked))

    result: dict[str, tuple[TreeFile, Blob]] = {}
    failed_files: list[tuple[str, str]] = []

    max_workers = min(32, (len(candidates) or 1))
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(_read_blob, abs_path): rel for abs_path, rel in candidates
        }
        for future in as_completed(futures):
            rel = futures[future]
            try:
                mode, blob = future.result()
            except FileNotFoundError:
                # Deleted between listing and reading (editor swap files etc.)
                git_logger.debug("File vanished during scan", path=rel)
                continue
            except OSError as e:
                failed_files.append((rel, str(e)))
                continue
            result[rel] = (TreeFile(mode=mode, sha=blob.id), blob)

    if failed_files:
        git_logger.error(
            "Failed to read files from working tree",
            failed_count=len(failed_files),
            total_files=len(candidates),
        )
        sample_failures = failed_files[:MAX_FAILURE_SAMPLES]
        failure_details = "\n".join(f"  - {path}: {err}" for path, err in sample_failures)
        more_info = (
            f"\n  ... and {len(failed_files) - MAX_FAILURE_SAMPLES} more"
            if len(failed_files) > MAX_FAILURE_SAMPLES
            else ""
        )
        raise WorktreeReadError(
            f"Failed to read {len(failed_files)} file(s) from the working tree:\n"
            f"{failure_details}{more_info}"
        )

    for path, entry in tracked.items():
        if S_ISGITLINK(entry.mode):
            result[path] = (TreeFile(mode=S_IFGITLINK, sha=entry.sha), Blob())

    return result


def write_worktree_tree(
    repo: RepositoryHandle, tracked_tree: bytes | None = None
) -> bytes:
    """Stage the whole working tree into a new tree object and return its id."""
    files = scan_worktree(repo, tracked_tree)

    blobs = [
        blob for entry, blob in files.values() if not S_ISGITLINK(entry.mode)
    ]
    if blobs:
        repo.repo.object_store.add_objects([(blob, None) for blob in blobs])

    return commit_tree(
        repo.repo.object_store,
        [
            (path.encode("utf-8", errors="surrogateescape"), entry.sha, entry.mode)
            for path, (entry, _blob) in files.items()
        ],
    )
