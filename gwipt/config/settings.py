"""Configuration settings for gwipt.

This module provides a Settings class with property-based access to
configuration values. Each value resolves from explicit overrides (CLI
flags) first, then environment variables, then the defaults in
``gwipt.config.constants``.
"""

from __future__ import annotations

import os
from typing import Any

from gwipt.config.constants import (
    DEFAULT_BACKOFF_MAX_ELAPSED,
    DEFAULT_CHAT_MODEL,
    DEFAULT_COMPLETION_MODEL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RESPONSE_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TIME_DELAY,
    DEFAULT_TOKEN_BUDGET,
    DEFAULT_TRANSPORT,
)
from gwipt.core.errors import MissingApiKeyError

TRANSPORTS = ("chat", "completion")


class Settings:
    """Application settings.

    Overrides are plain keys (``"model"``, ``"time_delay"``) set by the CLI;
    the environment is consulted only for keys without an override.
    """

    def __init__(self, overrides: dict[str, Any] | None = None):
        self._overrides: dict[str, Any] = dict(overrides or {})

    def update(self, **overrides: Any) -> None:
        """Apply explicit overrides, ignoring ``None`` values."""
        self._overrides.update({k: v for k, v in overrides.items() if v is not None})

    # Validation helper
    def validate_or_raise(self) -> None:
        from gwipt.config.validation import validate_or_raise as _v

        _v(self.openai_api_key)

    def validation_status(self) -> tuple[bool, list[str]]:
        """Return (is_valid, errors) without raising."""
        try:
            self.validate_or_raise()
            return True, []
        except MissingApiKeyError as exc:
            return False, ["API key not configured", str(exc)]

    def _get(
        self,
        key: str,
        default: Any,
        env_key: str | None = None,
    ) -> Any:
        """Get config value from overrides, fallback to env, then default."""
        if key in self._overrides:
            return self._overrides[key]
        if env_key and (env_val := os.getenv(env_key)):
            # Type conversion based on default type
            if isinstance(default, bool):
                return env_val.lower() in ("true", "1", "yes", "on")
            elif isinstance(default, int):
                return int(env_val)
            elif isinstance(default, float):
                return float(env_val)
            return env_val
        return default

    # OpenAI Configuration
    @property
    def openai_api_key(self) -> str | None:
        return self._get("openai_api_key", None, "OPENAI_API_KEY")

    @property
    def openai_base_url(self) -> str | None:
        return self._get("openai_base_url", None, "OPENAI_BASE_URL")

    @property
    def transport(self) -> str:
        value = str(self._get("transport", DEFAULT_TRANSPORT, "GWIPT_TRANSPORT"))
        value = value.lower()
        if value not in TRANSPORTS:
            raise ValueError(
                f"Unknown transport '{value}'. Expected one of: {', '.join(TRANSPORTS)}"
            )
        return value

    @property
    def model(self) -> str:
        default = (
            DEFAULT_COMPLETION_MODEL
            if self.transport == "completion"
            else DEFAULT_CHAT_MODEL
        )
        return self._get("model", default, "GWIPT_MODEL")

    @property
    def temperature(self) -> float:
        return self._get("temperature", DEFAULT_TEMPERATURE, "GWIPT_TEMPERATURE")

    @property
    def request_timeout(self) -> float:
        return self._get(
            "request_timeout", DEFAULT_REQUEST_TIMEOUT, "GWIPT_REQUEST_TIMEOUT"
        )

    @property
    def token_budget(self) -> int:
        return self._get("token_budget", DEFAULT_TOKEN_BUDGET, "GWIPT_TOKEN_BUDGET")

    @property
    def response_tokens(self) -> int:
        return self._get(
            "response_tokens", DEFAULT_RESPONSE_TOKENS, "GWIPT_RESPONSE_TOKENS"
        )

    @property
    def backoff_max_elapsed(self) -> float:
        return self._get(
            "backoff_max_elapsed",
            DEFAULT_BACKOFF_MAX_ELAPSED,
            "GWIPT_BACKOFF_MAX_ELAPSED",
        )

    # Watcher Configuration
    @property
    def time_delay(self) -> float:
        return self._get("time_delay", DEFAULT_TIME_DELAY, "GWIPT_TIME_DELAY")

    # LOG_* variables are read by gwipt.utils.logger at import time


# Global settings instance (CLI applies overrides at startup)
settings = Settings()
