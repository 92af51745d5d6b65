"""Prompt text for commit summary generation."""

from __future__ import annotations

from datetime import datetime

COMMIT_SUMMARY_INSTRUCTIONS = """You write commit messages for automatic work-in-progress snapshots.

You receive the author, the date and a diff in `git diff` format. Reply with the summary line of a commit message for that diff:
- exactly one line, at most 72 characters
- imperative mood ("Add parser for config files", not "Added" or "Adds")
- optionally prefixed with a conventional type such as "feat: ", "fix: ", "refactor: ", "docs: ", "test: " or "chore: "
- describe what changed, not that a snapshot was taken
- no issue numbers, no trailing period, no quotes

Return the line through the CommitSummary tool."""

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def format_git_date(when: datetime) -> str:
    """Format like git's default date: ``Sat Oct 17 14:03:09 2026 +0200``.

    Names are spelled out here so the output does not depend on locale.
    """
    if when.tzinfo is None:
        when = when.astimezone()
    offset = when.utcoffset()
    total_minutes = int(offset.total_seconds() // 60) if offset else 0
    sign = "-" if total_minutes < 0 else "+"
    hours, minutes = divmod(abs(total_minutes), 60)
    return (
        f"{_WEEKDAYS[when.weekday()]} {_MONTHS[when.month - 1]} {when.day} "
        f"{when:%H:%M:%S} {when.year} {sign}{hours:02d}{minutes:02d}"
    )


def build_header(author_name: str, author_email: str, when: datetime) -> str:
    """Author/date block in the shape of ``git log`` output."""
    return f"Author: {author_name} <{author_email}>\nDate:   {format_git_date(when)}"
