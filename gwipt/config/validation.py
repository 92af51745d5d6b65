"""Configuration validation for the generation-service credential."""

from __future__ import annotations

import os

from gwipt.core.errors import MissingApiKeyError


def validate_or_raise(api_key: str | None) -> None:
    """Validate that an OpenAI API key is configured.

    Model names are not validated; any model served by the configured
    endpoint (OpenAI, OpenRouter, Ollama, ...) is accepted.
    """
    key = api_key or os.getenv("OPENAI_API_KEY")
    if not key:
        raise MissingApiKeyError(
            "OPENAI_API_KEY is required to generate commit messages. Export it or "
            "add it to a .env file in the repository root."
        )
