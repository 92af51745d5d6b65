"""Transport implementations and the factory that picks one from settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gwipt.config.settings import Settings
    from gwipt.llm.provider import SummaryProvider


def create_provider(settings: Settings) -> SummaryProvider:
    """Build the configured transport.

    Raises:
        MissingApiKeyError: No credential is configured.
    """
    settings.validate_or_raise()

    common = {
        "model": settings.model,
        "api_key": settings.openai_api_key,
        "base_url": settings.openai_base_url,
        "temperature": settings.temperature,
        "max_tokens": settings.response_tokens,
        "timeout": settings.request_timeout,
    }
    if settings.transport == "completion":
        from gwipt.llm.providers.openai.completion import CompletionSummaryProvider

        return CompletionSummaryProvider(**common)

    from gwipt.llm.providers.openai.chat import ChatSummaryProvider

    return ChatSummaryProvider(**common)
