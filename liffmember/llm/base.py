from abc import ABC, abstractmethod
from typing import AsyncGenerator, Optional


class ProviderError(Exception):
    """A provider call failed before producing a usable answer."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderRateLimitError(ProviderError):
    """The provider refused the call because of quota or rate limits."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class LLMProvider(ABC):
    """Abstract base class for chat answer providers."""

    name: str

    @abstractmethod
    async def complete(
        self, messages: list[dict], model: str, **kwargs
    ) -> str:
        """Send messages and get a complete response."""
        ...

    @abstractmethod
    async def stream(
        self, messages: list[dict], model: str, **kwargs
    ) -> AsyncGenerator[str, None]:
        """Send messages and stream response tokens."""
        ...


def split_system(messages: list[dict]) -> tuple[Optional[str], list[dict]]:
    """Separate the system prompt from the turns that follow it."""
    system = None
    turns = []
    for msg in messages:
        if msg["role"] == "system":
            system = msg["content"] if system is None else f"{system}\n\n{msg['content']}"
        else:
            turns.append(msg)
    return system, turns


def last_user_content(messages: list[dict]) -> str:
    for msg in reversed(messages):
        if msg["role"] == "user":
            return msg["content"]
    return ""
