"""
Conversation statistics.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from .models import Conversation, Role


@dataclass(frozen=True)
class ConversationStats:
    """Counts over every message stored in a conversation."""

    total_turns: int = 0
    total_messages: int = 0
    user_messages: int = 0
    assistant_messages: int = 0
    tool_messages: int = 0
    system_messages: int = 0
    tool_calls: int = 0
    tool_results: int = 0
    tool_errors: int = 0
    first_message_at: datetime | None = None
    last_message_at: datetime | None = None

    @property
    def duration(self) -> timedelta | None:
        if self.first_message_at is None or self.last_message_at is None:
            return None
        return self.last_message_at - self.first_message_at


def get_stats(conversation: Conversation) -> ConversationStats:
    """Compute statistics for a conversation."""
    messages = list(conversation.to_chrono_messages())

    def count_role(role: Role) -> int:
        return sum(1 for m in messages if m.role == role)

    return ConversationStats(
        total_turns=conversation.turn_count,
        total_messages=len(messages),
        user_messages=count_role(Role.USER),
        assistant_messages=count_role(Role.ASSISTANT),
        tool_messages=count_role(Role.TOOL),
        system_messages=count_role(Role.SYSTEM),
        tool_calls=sum(len(m.tool_calls) for m in messages),
        tool_results=sum(len(m.tool_results) for m in messages),
        tool_errors=sum(1 for m in messages for r in m.tool_results if r.is_error),
        first_message_at=messages[0].timestamp if messages else None,
        last_message_at=messages[-1].timestamp if messages else None,
    )
