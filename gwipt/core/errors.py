"""Error taxonomy shared by every pipeline stage.

Each stage raises exactly one of these. During a pipeline run the orchestrator
is the only place that decides whether a failure ends the run and the only
place that logs it, keyed on the ``kind`` attribute.
"""

from __future__ import annotations


class GwiptError(Exception):
    """Base class for all gwipt specific errors."""

    kind = "error"


# ---- repository state ----
class RepositoryError(GwiptError):
    """Raised when the repository cannot be read or written as expected."""

    kind = "repository"


class RepositoryNotFoundError(RepositoryError):
    kind = "repository_not_found"


class InvalidRepositoryStateError(RepositoryError):
    """HEAD is detached or unborn, or no commit identity is configured."""

    kind = "invalid_repository_state"


class RefUpdateError(RepositoryError):
    """A branch ref is missing or moved underneath us."""

    kind = "ref_update"


class WorktreeReadError(RepositoryError):
    kind = "worktree_read"


# ---- generation service ----
class GenerationError(GwiptError):
    """Raised when no commit summary could be obtained."""

    kind = "generation"


class MissingApiKeyError(GenerationError):
    kind = "missing_api_key"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "OPENAI_API_KEY is not set. Export it or add it to .env in the repository root."
        )


class RateLimitExceededError(GenerationError):
    """Still rate limited when the backoff ceiling was reached."""

    kind = "rate_limit_exceeded"

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class AuthenticationFailedError(GenerationError):
    kind = "authentication"


class MalformedResponseError(GenerationError):
    """The service answered, but not with the single field we asked for."""

    kind = "malformed_response"


class EmptyMessageError(MalformedResponseError):
    kind = "empty_message"


class TransportError(GenerationError):
    """Network failures, timeouts and any non-throttling API error."""

    kind = "transport"


# ---- filesystem watch ----
class WatchError(GwiptError):
    kind = "watch"
