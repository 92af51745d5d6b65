"""Commit summary generation with rate-limit retry and sanitation."""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from datetime import datetime

import openai

from gwipt.config.constants import CHARS_PER_TOKEN
from gwipt.config.settings import Settings
from gwipt.config.settings import settings as default_settings
from gwipt.core.errors import (
    AuthenticationFailedError,
    EmptyMessageError,
    RateLimitExceededError,
    TransportError,
)
from gwipt.llm.provider import SummaryProvider
from gwipt.llm.providers import create_provider
from gwipt.llm.retry import BackoffPolicy, RetryBudgetExhausted, retry_with_backoff
from gwipt.llm.types import CommitMessageRequest
from gwipt.prompts.commit_summary import build_header
from gwipt.utils.logger import llm_logger

# Issue references ("(fixes #12)", "closes #3", "#42") and "Merge pull request ..." lines
ISSUE_REFERENCE_RE = re.compile(
    r"(\(?(([Ff]ix(es)?)|([Cc]loses?))?\s*#\d+\)?)|([Mm]erge [Pp].*\n)"
)


def sanitize_summary(candidate: str) -> str:
    """Strip issue references and merge boilerplate, keep the first line.

    Raises:
        EmptyMessageError: Nothing is left after cleaning.
    """
    cleaned = ISSUE_REFERENCE_RE.sub("", candidate).strip()
    first_line = cleaned.split("\n", 1)[0].strip()
    if not first_line:
        raise EmptyMessageError(
            f"Generated summary was empty after cleaning: {candidate!r}"
        )
    return first_line


def is_rate_limited(exc: BaseException) -> bool:
    return isinstance(exc, openai.RateLimitError)


class MessageClient:
    """Turns a diff into a one-line summary via the configured transport."""

    def __init__(
        self,
        settings: Settings | None = None,
        provider_factory: Callable[[Settings], SummaryProvider] = create_provider,
        sleep: Callable[[float], None] = time.sleep,
        policy: BackoffPolicy | None = None,
    ):
        self.settings = settings or default_settings
        self._provider_factory = provider_factory
        self._provider: SummaryProvider | None = None
        self._sleep = sleep
        self.policy = policy or BackoffPolicy(
            max_elapsed_time=self.settings.backoff_max_elapsed
        )

    @property
    def provider(self) -> SummaryProvider:
        """Transport, built on first use so a missing key fails per run."""
        if self._provider is None:
            self._provider = self._provider_factory(self.settings)
        return self._provider

    def diff_char_limit(self) -> int:
        """Most diff characters any request can carry, before the fixed text."""
        tokens = self.settings.token_budget - self.settings.response_tokens
        return max(0, tokens * CHARS_PER_TOKEN)

    def char_budget(self, provider: SummaryProvider, header: str) -> int:
        """Characters of diff that fit next to the fixed request text."""
        return max(
            0, self.diff_char_limit() - len(provider.instructions) - len(header)
        )

    def build_request(
        self,
        provider: SummaryProvider,
        author_name: str,
        author_email: str,
        timestamp: datetime,
        diff_text: str,
    ) -> CommitMessageRequest:
        header = build_header(author_name, author_email, timestamp)
        limit = self.char_budget(provider, header)
        if len(diff_text) > limit:
            llm_logger.debug(
                "Truncating diff to fit request budget",
                diff_chars=len(diff_text),
                limit=limit,
            )
        return CommitMessageRequest(
            author_name=author_name,
            author_email=author_email,
            timestamp=timestamp,
            diff_text=diff_text[:limit],
        )

    def generate_summary(
        self,
        author_name: str,
        author_email: str,
        timestamp: datetime,
        diff_text: str,
    ) -> str:
        """Return a sanitized, non-empty, single-line summary of ``diff_text``.

        Only rate limiting is retried. Everything else surfaces at once as a
        ``GenerationError`` subclass.
        """
        provider = self.provider
        request = self.build_request(
            provider, author_name, author_email, timestamp, diff_text
        )
        llm_logger.debug("Diff prefix", header=request.header)

        try:
            response = retry_with_backoff(
                lambda: provider.generate_summary(request),
                is_rate_limited,
                policy=self.policy,
                sleep=self._sleep,
            )
        except RetryBudgetExhausted as exc:
            raise RateLimitExceededError(
                f"Rate limited by the generation service: {exc}",
                attempts=exc.attempts,
            ) from exc
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise AuthenticationFailedError(
                f"Generation service rejected the credential: {exc}"
            ) from exc
        except openai.APITimeoutError as exc:
            raise TransportError(
                f"Generation request timed out after {self.settings.request_timeout}s"
            ) from exc
        except openai.APIError as exc:
            raise TransportError(f"Generation request failed: {exc}") from exc

        return sanitize_summary(response.text)
