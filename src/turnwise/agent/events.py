"""
Turn lifecycle events.

The agent publishes these to an EventBus while it runs a turn. Listeners
are plain callables invoked synchronously, in publish order.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

import structlog

from ..llm.base import LLMUsage
from ..models import Message, ToolCall, ToolResult, utcnow

logger = structlog.get_logger()


@dataclass(frozen=True)
class AgentEvent:
    """Base class for lifecycle events."""

    conversation_id: str = ""
    timestamp: datetime = field(default_factory=utcnow, kw_only=True)


@dataclass(frozen=True)
class TurnStarted(AgentEvent):
    user_message: str = ""
    turn_number: int = 0


@dataclass(frozen=True)
class TurnCompleted(AgentEvent):
    assistant_message: Message | None = None
    tool_calls_executed: int = 0
    duration: timedelta = timedelta(0)


@dataclass(frozen=True)
class LLMRequestStarted(AgentEvent):
    message_count: int = 0
    tool_count: int = 0
    is_retry_after_tools: bool = False


@dataclass(frozen=True)
class LLMResponseReceived(AgentEvent):
    response: Message | None = None
    usage: LLMUsage | None = None
    has_tool_calls: bool = False


@dataclass(frozen=True)
class StreamingTokenReceived(AgentEvent):
    delta: Message | None = None
    is_complete: bool = False


@dataclass(frozen=True)
class ToolExecutionStarted(AgentEvent):
    tool_call: ToolCall | None = None
    tool_name: str = ""


@dataclass(frozen=True)
class ToolExecutionCompleted(AgentEvent):
    tool_call: ToolCall | None = None
    result: ToolResult | None = None
    is_error: bool = False
    duration: timedelta = timedelta(0)


@dataclass(frozen=True)
class ToolNotFound(AgentEvent):
    tool_name: str = ""
    call_id: str = ""
    available_tools: tuple[str, ...] = ()


@dataclass(frozen=True)
class ToolValidationFailed(AgentEvent):
    tool_call: ToolCall | None = None
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class ErrorOccurred(AgentEvent):
    error: BaseException | None = None
    context: str = ""
    is_critical: bool = False


Listener = Callable[[AgentEvent], Any]


class EventBus:
    """Synchronous in-process publisher of lifecycle events.

    A listener subscribed without event types receives every event. A
    listener that raises is logged and skipped; the publisher never sees
    the exception.
    """

    def __init__(self):
        self._listeners: list[tuple[Listener, tuple[type[AgentEvent], ...]]] = []

    def subscribe(self, listener: Listener, *event_types: type[AgentEvent]) -> Listener:
        """Register a listener, optionally for specific event types only."""
        self._listeners.append((listener, event_types))
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        """Remove every subscription of ``listener``."""
        self._listeners = [(l, t) for l, t in self._listeners if l is not listener]

    def publish(self, event: AgentEvent) -> None:
        for listener, event_types in list(self._listeners):
            if event_types and not isinstance(event, event_types):
                continue
            try:
                listener(event)
            except Exception as e:
                logger.error(
                    "Event listener failed",
                    event_type=type(event).__name__,
                    error=str(e),
                )

    def __len__(self) -> int:
        return len(self._listeners)
