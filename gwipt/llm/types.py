from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from gwipt.prompts.commit_summary import build_header


@dataclass(frozen=True)
class CommitMessageRequest:
    """Everything a transport needs to ask for one summary line.

    ``diff_text`` is already truncated to the character budget.
    """

    author_name: str
    author_email: str
    timestamp: datetime
    diff_text: str

    @property
    def header(self) -> str:
        return build_header(self.author_name, self.author_email, self.timestamp)


@dataclass(frozen=True)
class CommitMessageResponse:
    """Raw candidate summary as extracted from the service reply."""

    text: str
    transport: str
