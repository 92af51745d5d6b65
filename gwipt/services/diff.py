"""Diff between the shadow branch tree and the live working tree.

The rendered text follows ``git diff`` patch output closely enough for a
language model to read it as one. Content lines carry their origin so the
record can be inspected without re-parsing the text.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from enum import Enum

from dulwich.objects import S_ISGITLINK, Blob

from gwipt.core.errors import RefUpdateError
from gwipt.core.repository import RepositoryHandle
from gwipt.services.worktree import TreeFile, scan_worktree, tree_files
from gwipt.utils.logger import git_logger

# Prefixes every rendered diff; the generation prompt relies on it
SEPARATOR = "\n\n"
CONTEXT_LINES = 3
# Same window git uses to sniff for binary content
BINARY_SNIFF_BYTES = 8000
NO_NEWLINE_MARKER = "\\ No newline at end of file\n"
# Above this many lines on either side the matcher may drop popular lines
MINIMAL_DIFF_MAX_LINES = 1000
# Above this many lines the file is rendered as one replace-all hunk
LINE_DIFF_MAX_LINES = 10000


class LineOrigin(str, Enum):
    """Where a diff line came from."""

    ADDED = "+"
    REMOVED = "-"
    CONTEXT = " "
    FILE_HEADER = "F"
    HUNK_HEADER = "H"
    BINARY = "B"
    EOF_MARKER = "\\"


CONTENT_ORIGINS = frozenset({LineOrigin.ADDED, LineOrigin.REMOVED, LineOrigin.CONTEXT})


@dataclass(frozen=True)
class DiffLine:
    origin: LineOrigin
    content: str

    def render(self) -> str:
        if self.origin in CONTENT_ORIGINS:
            return f"{self.origin.value}{self.content}"
        return self.content


@dataclass
class DiffRecord:
    """Ordered diff lines for one pipeline run. Never persisted."""

    lines: list[DiffLine] = field(default_factory=list)
    # Set when files were left out to stay within a character limit
    truncated: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def text(self) -> str:
        return SEPARATOR + "".join(line.render() for line in self.lines)

    def __len__(self) -> int:
        return len(self.lines)


def _decode_lines(data: bytes) -> list[str]:
    """Split blob content into lines, substituting undecodable lines."""
    lines = []
    for raw in data.splitlines(keepends=True):
        try:
            lines.append(raw.decode("utf-8"))
        except UnicodeDecodeError:
            lines.append("\n" if raw.endswith(b"\n") else "")
    return lines


def _is_binary(data: bytes) -> bool:
    return b"\x00" in data[:BINARY_SNIFF_BYTES]


def _format_range(start: int, stop: int) -> str:
    """Unified diff range, 1-based, matching git's ``-l,s`` form."""
    beginning = start + 1
    length = stop - start
    if length == 1:
        return f"{beginning}"
    if not length:
        beginning -= 1
    return f"{beginning},{length}"


def _content_line(origin: LineOrigin, text: str) -> list[DiffLine]:
    if text.endswith("\n"):
        return [DiffLine(origin, text)]
    return [
        DiffLine(origin, text + "\n"),
        DiffLine(LineOrigin.EOF_MARKER, NO_NEWLINE_MARKER),
    ]


def _grouped_opcodes(old: list[str], new: list[str]) -> list[list[tuple]]:
    """Opcode groups for the hunks of one file.

    Small files get the closest difflib has to a minimal edit script. Larger
    files let the matcher drop popular lines; files over LINE_DIFF_MAX_LINES
    become a single replace-all hunk.
    """
    size = max(len(old), len(new))
    if size > LINE_DIFF_MAX_LINES:
        tag = "replace" if old and new else ("insert" if new else "delete")
        return [[(tag, 0, len(old), 0, len(new))]]
    matcher = difflib.SequenceMatcher(
        None, old, new, autojunk=size > MINIMAL_DIFF_MAX_LINES
    )
    return list(matcher.get_grouped_opcodes(CONTEXT_LINES))


def _hunks(old: list[str], new: list[str]) -> list[DiffLine]:
    out: list[DiffLine] = []
    for group in _grouped_opcodes(old, new):
        first, last = group[0], group[-1]
        header = (
            f"@@ -{_format_range(first[1], last[2])} "
            f"+{_format_range(first[3], last[4])} @@\n"
        )
        out.append(DiffLine(LineOrigin.HUNK_HEADER, header))
        for tag, i1, i2, j1, j2 in group:
            if tag == "equal":
                for text in old[i1:i2]:
                    out.extend(_content_line(LineOrigin.CONTEXT, text))
                continue
            if tag in ("replace", "delete"):
                for text in old[i1:i2]:
                    out.extend(_content_line(LineOrigin.REMOVED, text))
            if tag in ("replace", "insert"):
                for text in new[j1:j2]:
                    out.extend(_content_line(LineOrigin.ADDED, text))
    return out


def _file_diff(
    path: str,
    old: TreeFile | None,
    old_data: bytes,
    new: TreeFile | None,
    new_data: bytes,
) -> list[DiffLine]:
    header = [f"diff --git a/{path} b/{path}\n"]
    old_sha = old.sha.decode()[:7] if old else "0000000"
    new_sha = new.sha.decode()[:7] if new else "0000000"

    if old is None and new is not None:
        header.append(f"new file mode {new.mode:o}\n")
        header.append(f"index {old_sha}..{new_sha}\n")
    elif new is None and old is not None:
        header.append(f"deleted file mode {old.mode:o}\n")
        header.append(f"index {old_sha}..{new_sha}\n")
    elif old is not None and new is not None:
        if old.mode != new.mode:
            header.append(f"old mode {old.mode:o}\n")
            header.append(f"new mode {new.mode:o}\n")
        if old.sha != new.sha:
            mode_suffix = f" {new.mode:o}" if old.mode == new.mode else ""
            header.append(f"index {old_sha}..{new_sha}{mode_suffix}\n")

    lines = [DiffLine(LineOrigin.FILE_HEADER, text) for text in header]
    if old is not None and new is not None and old.sha == new.sha:
        return lines

    a_name = f"a/{path}" if old else "/dev/null"
    b_name = f"b/{path}" if new else "/dev/null"
    if _is_binary(old_data) or _is_binary(new_data):
        lines.append(
            DiffLine(LineOrigin.BINARY, f"Binary files {a_name} and {b_name} differ\n")
        )
        return lines

    hunks = _hunks(_decode_lines(old_data), _decode_lines(new_data))
    if hunks:
        lines.append(DiffLine(LineOrigin.FILE_HEADER, f"--- {a_name}\n"))
        lines.append(DiffLine(LineOrigin.FILE_HEADER, f"+++ {b_name}\n"))
        lines.extend(hunks)
    return lines


def compute_diff(
    repo: RepositoryHandle, shadow_branch: str, limit: int | None = None
) -> DiffRecord:
    """Diff the shadow branch tree against the working tree, untracked included.

    Args:
        repo: Repository to diff
        shadow_branch: Branch whose tree is the old side
        limit: Stop diffing further files once the rendered text reaches this
            many characters. The text is then a prefix of the full diff at
            least ``limit`` long, and ``truncated`` is set.

    Raises:
        RefUpdateError: The shadow branch does not exist.
    """
    tip = repo.branch_tip(shadow_branch)
    if tip is None:
        raise RefUpdateError(f"Shadow branch '{shadow_branch}' does not exist")
    shadow_tree = repo.commit(tip).tree

    _head_name, head_id = repo.head_branch()
    old_files = {
        path: entry
        for path, entry in tree_files(repo, shadow_tree).items()
        if not S_ISGITLINK(entry.mode)
    }
    new_files = {
        path: value
        for path, value in scan_worktree(repo, repo.commit(head_id).tree).items()
        if not S_ISGITLINK(value[0].mode)
    }

    store = repo.repo.object_store
    record = DiffRecord()
    rendered = len(SEPARATOR)
    for path in sorted(old_files.keys() | new_files.keys()):
        old = old_files.get(path)
        new_entry = new_files.get(path)
        new = new_entry[0] if new_entry else None
        if old == new:
            continue
        if limit is not None and record.lines and rendered >= limit:
            record.truncated = True
            break

        old_data = b""
        if old is not None:
            old_blob = store[old.sha]
            old_data = old_blob.data if isinstance(old_blob, Blob) else b""
        new_data = new_entry[1].data if new_entry else b""
        file_lines = _file_diff(path, old, old_data, new, new_data)
        rendered += sum(len(line.render()) for line in file_lines)
        record.lines.extend(file_lines)

    if record.truncated:
        git_logger.debug("Diff cut short at character limit", limit=limit)
    return record
