"""Chat transport: a forced tool call returning one labeled field.

The model is bound to a single ``CommitSummary`` tool and must call it, which
keeps the reply to exactly one string instead of free-form chat text.
"""

from __future__ import annotations

from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from gwipt.core.errors import MalformedResponseError
from gwipt.llm.provider import SummaryProvider
from gwipt.llm.types import CommitMessageRequest, CommitMessageResponse
from gwipt.prompts.commit_summary import COMMIT_SUMMARY_INSTRUCTIONS
from gwipt.utils.logger import llm_logger

TOOL_NAME = "CommitSummary"


class CommitSummary(BaseModel):
    """Record the one-line summary of the commit."""

    message: str = Field(
        description="Single-line commit summary in imperative mood, at most 72 characters"
    )


class ChatSummaryProvider(SummaryProvider):
    instructions = COMMIT_SUMMARY_INSTRUCTIONS

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
                "timeout": timeout,
                # Retrying is the caller's job; the client must fail fast
                "max_retries": 0,
            }
            if api_key:
                kwargs["api_key"] = api_key
            if base_url:
                kwargs["base_url"] = base_url
            llm = ChatOpenAI(**kwargs)
        self.llm = llm
        self._bound = llm.bind_tools([CommitSummary], tool_choice=TOOL_NAME)

        llm_logger.debug("Initialized chat summary provider", model=model)

    def build_messages(self, request: CommitMessageRequest) -> list[BaseMessage]:
        return [
            SystemMessage(content=self.instructions),
            HumanMessage(content=f"{request.header}{request.diff_text}"),
        ]

    def generate_summary(self, request: CommitMessageRequest) -> CommitMessageResponse:
        response = self._bound.invoke(self.build_messages(request))
        return CommitMessageResponse(text=extract_tool_message(response), transport="chat")

    def get_model_name(self) -> str:
        return self.model


def extract_tool_message(response: Any) -> str:
    """Pull ``message`` out of the CommitSummary tool call.

    Raises:
        MalformedResponseError: No usable tool call in the reply.
    """
    if not isinstance(response, AIMessage):
        raise MalformedResponseError(
            f"Expected an AI message, got {type(response).__name__}"
        )

    calls = [c for c in response.tool_calls if c.get("name") == TOOL_NAME]
    if not calls:
        invalid = getattr(response, "invalid_tool_calls", None) or []
        if invalid:
            raise MalformedResponseError(
                f"Could not parse {TOOL_NAME} arguments: {invalid[0].get('error')}"
            )
        raise MalformedResponseError(f"Response did not call {TOOL_NAME}")

    message = calls[0].get("args", {}).get("message")
    if not isinstance(message, str):
        raise MalformedResponseError(f"{TOOL_NAME} call is missing a 'message' string")
    return message
