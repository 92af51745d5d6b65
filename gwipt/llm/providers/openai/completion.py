"""Completion transport: insert mode between a ``git log`` header and the diff.

The prompt is the Author/Date block and the suffix is the diff, so the model
fills in what sits between them in ``git log -p`` output: the message.
"""

from __future__ import annotations

from typing import Any

from langchain_openai import OpenAI

from gwipt.core.errors import MalformedResponseError
from gwipt.llm.provider import SummaryProvider
from gwipt.llm.types import CommitMessageRequest, CommitMessageResponse
from gwipt.utils.logger import llm_logger


class CompletionSummaryProvider(SummaryProvider):
    instructions = ""

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 100,
        timeout: float = 60.0,
        llm: Any | None = None,
    ):
        self.model = model
        if llm is None:
            kwargs: dict[str, Any] = {
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "top_p": 1.0,
                "frequency_penalty": 0.0,
                "presence_penalty": 0.0,
                "timeout": timeout,
                "max_retries": 0,
            }
            if api_key:
                kwargs["api_key"] = api_key
            if base_url:
                kwargs["base_url"] = base_url
            llm = OpenAI(**kwargs)
        self.llm = llm

        llm_logger.debug("Initialized completion summary provider", model=model)

    def generate_summary(self, request: CommitMessageRequest) -> CommitMessageResponse:
        text = self.llm.invoke(request.header, suffix=request.diff_text)
        if not isinstance(text, str):
            raise MalformedResponseError(
                f"Expected completion text, got {type(text).__name__}"
            )
        return CommitMessageResponse(text=text, transport="completion")

    def get_model_name(self) -> str:
        return self.model
