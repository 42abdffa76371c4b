"""
Base classes for LLM clients.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from ..models import Message, Role
from ..tools.base import ToolDeclaration


@dataclass
class LLMClientConfig:
    """Per-request overrides for the client defaults."""

    model: str = ""
    temperature: float = 0.7
    max_tokens: int = 4000
    top_p: float = 1.0


@dataclass
class LLMUsage:
    """Token usage reported by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class LLMRequest:
    """A completion request: context messages plus declared tools."""

    messages: list[Message]
    tools: list[ToolDeclaration] = field(default_factory=list)
    config: LLMClientConfig | None = None


@dataclass
class LLMResponse:
    """Response from an LLM."""

    assistant_message: Message = field(default_factory=lambda: Message(role=Role.ASSISTANT))
    usage: LLMUsage | None = None
    finish_reason: str | None = None
    model: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.assistant_message.tool_calls)


@dataclass
class LLMStreamChunk:
    """One increment of a streamed completion.

    The last chunk of a stream has ``is_complete`` set.
    """

    delta: Message | None = None
    is_complete: bool = False
    usage: LLMUsage | None = None
    error: str | None = None


class BaseLLM(ABC):
    """Base class for LLM clients."""

    def __init__(
        self,
        model: str,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @abstractmethod
    async def complete(self, request: LLMRequest) -> LLMResponse:
        """Complete a request and return the full response."""
        pass

    @abstractmethod
    def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """Stream a response as chunks, ending with one marked complete."""
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name."""
        pass
