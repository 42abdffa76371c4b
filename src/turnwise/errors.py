"""Exception hierarchy for turnwise."""

from typing import Any


class TurnwiseError(Exception):
    """Base exception for all turnwise errors.

    Attributes:
        message: Human-readable error message.
        cause: Original exception that caused this error.
        details: Additional error context as key-value pairs.
    """

    def __init__(self, message: str, *, cause: BaseException | None = None, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.details = details

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class ToolExecutionError(TurnwiseError):
    """A tool handler failed while executing a call.

    Carries the tool name, the call id and the raw arguments so the failure
    can be reported back to the model as a tool result.
    """

    def __init__(
        self,
        tool_name: str,
        call_id: str,
        arguments_json: str,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(f"Tool execution failed: {tool_name}", cause=cause)
        self.tool_name = tool_name
        self.call_id = call_id
        self.arguments_json = arguments_json


class LLMError(TurnwiseError):
    """The LLM client reported an error (e.g. in a streamed chunk)."""
