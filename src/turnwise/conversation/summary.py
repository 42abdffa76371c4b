"""
Offline summary synthesis.

Summaries are deterministic text built from counts and short previews;
no LLM is involved.
"""

from typing import Any, Iterable, Sequence

from ..models import Message, Role, Turn

PREVIEW_CHARS = 100
SUMMARIZED_TURNS = 5
TOPIC_WORDS = 5
TOPIC_CHARS = 50
TOPIC_SAMPLES = 3


def _preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def summarize_turns(turns: Sequence[Turn]) -> str:
    """Summarize turns: totals plus a preview of the first few."""
    message_count = sum(
        1 + (1 if t.assistant_message is not None else 0) + len(t.tool_messages)
        for t in turns
    )
    tool_count = sum(len(t.tool_messages) for t in turns)

    lines = [f"Summary of {len(turns)} turns ({message_count} messages, {tool_count} tool calls):"]

    for turn in turns[:SUMMARIZED_TURNS]:
        opener = turn.user_or_system_message
        label = "System" if opener.role == Role.SYSTEM else "User"
        lines.append(f"- {label}: {_preview(opener.content)}")

        if turn.assistant_message is not None and turn.tool_messages:
            lines.append(f"  Assistant used {len(turn.tool_messages)} tools")

    return "\n".join(lines) + "\n"


def _topics(messages: Sequence[Message]) -> str:
    """First few words of the first few messages, deduplicated."""
    topics: list[str] = []
    for message in messages[:TOPIC_SAMPLES]:
        words = message.content.split()
        if not words:
            continue
        topic = " ".join(words[:TOPIC_WORDS])
        if len(topic) > TOPIC_CHARS:
            topic = topic[:TOPIC_CHARS - 3] + "..."
        if topic not in topics:
            topics.append(topic)
    return ", ".join(topics)


def summarize_messages(messages: Sequence[Message]) -> str:
    """Summarize messages grouped by role."""
    user_messages = [m for m in messages if m.role == Role.USER]
    assistant_messages = [m for m in messages if m.role == Role.ASSISTANT]
    tool_messages = [m for m in messages if m.role == Role.TOOL]

    parts = []

    if user_messages:
        parts.append(f"User asked about: {_topics(user_messages)}")

    if assistant_messages:
        tool_call_count = sum(len(m.tool_calls) for m in assistant_messages)
        if tool_call_count > 0:
            parts.append(f"Assistant made {tool_call_count} tool calls")
        parts.append(f"Assistant discussed: {_topics(assistant_messages)}")

    if tool_messages:
        parts.append(f"{len(tool_messages)} tool executions completed")

    return ". ".join(parts)


def collect_preserved_metadata(messages: Iterable[Message], keys: Iterable[str]) -> dict[str, Any]:
    """Latest value of each preserved metadata key across ``messages``."""
    keys = set(keys)
    preserved: dict[str, Any] = {}
    if not keys:
        return preserved
    for message in messages:
        for key in keys & message.metadata.keys():
            preserved[key] = message.metadata[key]
    return preserved
