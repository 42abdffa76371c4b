"""
Agent module - turn orchestration and lifecycle events.
"""

from .core import Agent
from .events import (
    AgentEvent,
    ErrorOccurred,
    EventBus,
    LLMRequestStarted,
    LLMResponseReceived,
    StreamingTokenReceived,
    ToolExecutionCompleted,
    ToolExecutionStarted,
    ToolNotFound,
    ToolValidationFailed,
    TurnCompleted,
    TurnStarted,
)

__all__ = [
    "Agent",
    "AgentEvent",
    "ErrorOccurred",
    "EventBus",
    "LLMRequestStarted",
    "LLMResponseReceived",
    "StreamingTokenReceived",
    "ToolExecutionCompleted",
    "ToolExecutionStarted",
    "ToolNotFound",
    "ToolValidationFailed",
    "TurnCompleted",
    "TurnStarted",
]
