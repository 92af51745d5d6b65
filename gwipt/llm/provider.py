"""Summary provider abstraction so transports are interchangeable."""

from abc import ABC, abstractmethod

from gwipt.llm.types import CommitMessageRequest, CommitMessageResponse


class SummaryProvider(ABC):
    """Abstract base class for commit summary transports.

    Implementations let ``openai`` exceptions propagate untouched; the caller
    classifies them for retry. A reply without the expected field raises
    ``MalformedResponseError``.
    """

    # Fixed text sent with every request, counted against the size budget
    instructions: str = ""

    @abstractmethod
    def generate_summary(self, request: CommitMessageRequest) -> CommitMessageResponse:
        """Ask the service for one candidate summary."""
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        """Get the model name."""
        pass
