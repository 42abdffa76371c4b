"""
Conversation data model.

Messages are immutable once created; a Turn groups the user (or system)
message with the assistant reply and any tool results it triggered; the
Conversation is the append-only store of turns plus a free-form state map.
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, TypeVar

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


class Role(str, Enum):
    """Roles roughly compatible with common chat schemas."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """Tool call emitted by an LLM in an assistant message."""

    name: str
    arguments_json: str = "{}"
    id: str = field(default_factory=new_id)

    def arguments(self) -> dict[str, Any]:
        """Parse the raw JSON arguments; a blank payload counts as ``{}``."""
        if not self.arguments_json or not self.arguments_json.strip():
            return {}
        parsed = json.loads(self.arguments_json)
        return parsed if isinstance(parsed, dict) else {"value": parsed}


@dataclass(frozen=True)
class ToolResult:
    """Tool execution result, carried by a message with Role.TOOL."""

    call_id: str
    name: str
    is_error: bool = False
    result_json: str = "{}"

    @classmethod
    def from_object(cls, call_id: str, name: str, result: Any, is_error: bool = False) -> "ToolResult":
        """Serialize any JSON-able object into a result payload."""
        return cls(
            call_id=call_id,
            name=name,
            is_error=is_error,
            result_json=json.dumps(result, default=str),
        )


@dataclass(frozen=True, eq=False)
class Message:
    """A single chat message.

    Content is plain text; tool calls and tool results are carried separately
    to stay vendor-agnostic. Equality is identity: two messages with the same
    text are still different messages.
    """

    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_results: tuple[ToolResult, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", Role(self.role))
        object.__setattr__(self, "tool_calls", tuple(self.tool_calls))
        object.__setattr__(self, "tool_results", tuple(self.tool_results))

    @classmethod
    def system(cls, content: str, **kwargs: Any) -> "Message":
        return cls(role=Role.SYSTEM, content=content, **kwargs)

    @classmethod
    def user(cls, content: str, **kwargs: Any) -> "Message":
        return cls(role=Role.USER, content=content, **kwargs)

    @classmethod
    def assistant(cls, content: str = "", tool_calls: list[ToolCall] | tuple[ToolCall, ...] = (), **kwargs: Any) -> "Message":
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls), **kwargs)

    @classmethod
    def tool(cls, result: ToolResult, **kwargs: Any) -> "Message":
        """Build a tool message whose content mirrors the result payload."""
        return cls(role=Role.TOOL, content=result.result_json, tool_results=(result,), **kwargs)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def __str__(self) -> str:
        return f"[{self.role.value}] {self.content}"


@dataclass
class Turn:
    """One user/system message, the assistant's reply and any tool exchanges.

    The assistant message is absent until the LLM answers and may be replaced
    once, after tool results come back.
    """

    user_or_system_message: Message = field(default_factory=lambda: Message.user(""))
    assistant_message: Message | None = None
    tool_messages: list[Message] = field(default_factory=list)

    def messages(self) -> Iterator[Message]:
        """Yield the turn's messages in their fixed order."""
        yield self.user_or_system_message
        if self.assistant_message is not None:
            yield self.assistant_message
        yield from self.tool_messages


class Conversation:
    """Append-only store of turns plus a mutable key/value state map.

    Not thread-safe: a conversation has a single writer at a time.
    """

    def __init__(self, id: str | None = None, created_at: datetime | None = None):
        self.id = id or new_id()
        self.created_at = created_at or utcnow()
        self.last_activity_at = self.created_at
        self._turns: list[Turn] = []
        self._state: dict[str, Any] = {}

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def turn_count(self) -> int:
        return len(self._turns)

    def add_turn(self, turn: Turn) -> None:
        """Append a turn and bump the last-activity timestamp."""
        self._turns.append(turn)
        self.last_activity_at = utcnow()

    def to_chrono_messages(self) -> Iterator[Message]:
        """Flatten all turns into messages, in insertion order.

        Returns a fresh generator on every call.
        """
        for turn in self._turns:
            yield from turn.messages()

    def get_state(self, key: str, expected_type: type[T] | None = None, default: Any = None) -> Any:
        """Read a state value; a value of the wrong type reads as missing."""
        if key not in self._state:
            return default
        value = self._state[key]
        if expected_type is not None and not isinstance(value, expected_type):
            return default
        return value

    def set_state(self, key: str, value: Any) -> None:
        self._state[key] = value

    def clear_state(self) -> None:
        self._state.clear()

    @property
    def state_keys(self) -> list[str]:
        return list(self._state.keys())

    def get_summary(self, max_length: int = 500) -> str:
        """Short transcript preview of the last 10 messages."""
        lines = []
        for message in list(self.to_chrono_messages())[-10:]:
            content = message.content
            if len(content) > 100:
                content = content[:100] + "..."
            lines.append(f"{message.role.value}: {content}")

        text = "\n".join(lines)
        if len(text) > max_length:
            return text[:max_length] + "..."
        return text

    def __repr__(self) -> str:
        return f"Conversation(id={self.id!r}, turns={len(self._turns)})"
