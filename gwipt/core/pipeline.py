"""Change pipeline: reconcile, diff, summarize, commit.

One run is triggered at startup and one per debounced batch of filesystem
events. Runs are serialized; any stage failure ends the run in ``IDLE`` after
being logged here, and nothing propagates to the watcher.
"""

from __future__ import annotations

import traceback
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from os import PathLike
from pathlib import Path
from threading import Lock
from typing import Protocol

from gwipt.config.constants import WIP_MESSAGE_PREFIX
from gwipt.core.errors import GwiptError
from gwipt.core.repository import CONTROL_DIR_NAME, RepositoryHandle
from gwipt.services.branches import ensure_shadow_branch
from gwipt.services.diff import compute_diff
from gwipt.services.snapshot import commit_snapshot
from gwipt.utils.logger import logger


class PipelineState(str, Enum):
    """Pipeline run states."""

    IDLE = "idle"
    RECONCILING = "reconciling"
    DIFFING = "diffing"
    GENERATING_MESSAGE = "generating_message"
    COMMITTING = "committing"


class PipelineOutcome(str, Enum):
    COMMITTED = "committed"
    NO_CHANGES = "no_changes"  # Diff against the shadow branch was empty
    SKIPPED = "skipped"  # Batch only touched repository metadata
    FAILED = "failed"


@dataclass
class PipelineResult:
    outcome: PipelineOutcome
    commit_id: str | None = None
    message: str | None = None
    stage: PipelineState | None = None
    error: BaseException | None = None


class SummaryClient(Protocol):
    def generate_summary(
        self,
        author_name: str,
        author_email: str,
        timestamp: datetime,
        diff_text: str,
    ) -> str: ...

    def diff_char_limit(self) -> int | None: ...


def is_metadata_path(path: str | PathLike[str]) -> bool:
    """True if the path lies inside a version-control metadata directory."""
    return CONTROL_DIR_NAME in Path(path).parts


class ChangeOrchestrator:
    """Sequences the pipeline stages and owns the failure policy."""

    def __init__(
        self,
        repo: RepositoryHandle,
        message_client: SummaryClient,
        clock: Callable[[], datetime] = lambda: datetime.now().astimezone(),
    ):
        self.repo = repo
        self.message_client = message_client
        self._clock = clock
        self._lock = Lock()
        self.state = PipelineState.IDLE

    def handle_batch(self, paths: Iterable[str | PathLike[str]]) -> PipelineResult:
        """Run the pipeline for one debounced batch of changed paths."""
        paths = list(paths)
        relevant = [p for p in paths if not is_metadata_path(p)]
        logger.debug(
            "File events received", events=len(paths), outside_metadata=len(relevant)
        )
        if not relevant:
            logger.debug("No files outside of .git changed")
            return PipelineResult(outcome=PipelineOutcome.SKIPPED)
        return self.run()

    def run(self) -> PipelineResult:
        """Run the pipeline once, unconditionally."""
        with self._lock:
            try:
                return self._run()
            except GwiptError as exc:
                logger.error(
                    "Change cycle failed",
                    stage=self.state.value,
                    kind=exc.kind,
                    error=str(exc),
                )
                return PipelineResult(
                    outcome=PipelineOutcome.FAILED, stage=self.state, error=exc
                )
            except Exception as exc:
                logger.error(
                    "Change cycle failed",
                    stage=self.state.value,
                    kind="unexpected",
                    error=f"{type(exc).__name__}: {exc}",
                    traceback="".join(
                        traceback.format_exception(type(exc), exc, exc.__traceback__)
                    ),
                )
                return PipelineResult(
                    outcome=PipelineOutcome.FAILED, stage=self.state, error=exc
                )
            finally:
                self.state = PipelineState.IDLE

    def _run(self) -> PipelineResult:
        self.state = PipelineState.RECONCILING
        shadow = ensure_shadow_branch(self.repo)

        self.state = PipelineState.DIFFING
        diff = compute_diff(self.repo, shadow, self.message_client.diff_char_limit())
        if diff.is_empty:
            logger.debug("Empty diff", branch=shadow)
            return PipelineResult(outcome=PipelineOutcome.NO_CHANGES)

        self.state = PipelineState.GENERATING_MESSAGE
        author_name, author_email = self.repo.identity()
        summary = self.message_client.generate_summary(
            author_name, author_email, self._clock(), diff.text()
        )
        logger.debug("Got a commit message", summary=summary)

        self.state = PipelineState.COMMITTING
        message = WIP_MESSAGE_PREFIX + summary
        commit_id = commit_snapshot(self.repo, shadow, message)
        logger.info(f"{commit_id[:6]}: {message}", branch=shadow)
        return PipelineResult(
            outcome=PipelineOutcome.COMMITTED, commit_id=commit_id, message=message
        )
