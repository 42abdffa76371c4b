"""
Context selection - deciding which messages go into the next request.

Every manager runs the same pipeline over the flattened history:

1. ``apply_filters`` drops stale, system or tool messages per the options.
2. A selection function picks a subset (recent window, smart, semantic...).
3. ``enforce_token_budget`` trims the result to the token budget.

Selection functions take messages in flatten order and return a subset in
that same order; ``chronological`` is applied last so the returned sequence
always has non-decreasing timestamps.
"""

from datetime import datetime
from typing import Any, Iterable, Protocol, Sequence

from ..models import Message, Role, utcnow
from .options import ConversationManagerOptions

# Approximate characters per token
CHARS_PER_TOKEN = 4

DEFAULT_IMPORTANT_KEYWORDS = frozenset({
    "important", "critical", "remember", "note", "key", "summary",
    "goal", "objective", "requirement", "constraint", "deadline",
    "error", "warning", "issue", "problem", "solution", "fix",
})

SUMMARY_STATE_KEY = "conversation_summary"


class Compressor(Protocol):
    """Pluggable replacement for the built-in token budget enforcement."""

    def compress(self, messages: list[Message], max_tokens: int) -> list[Message]:
        ...


def estimate_tokens(content: str) -> int:
    """Estimate the token count of a piece of text (~4 chars per token)."""
    return max(1, len(content) // CHARS_PER_TOKEN)


def total_tokens(messages: Iterable[Message]) -> int:
    return sum(estimate_tokens(m.content) for m in messages)


def chronological(messages: Iterable[Message]) -> list[Message]:
    """Sort by timestamp; ties keep their incoming order."""
    return sorted(messages, key=lambda m: m.timestamp)


def apply_filters(
    messages: Sequence[Message],
    options: ConversationManagerOptions,
    now: datetime | None = None,
) -> list[Message]:
    """Drop messages older than the max age and any excluded roles."""
    cutoff = (now or utcnow()) - options.max_message_age
    filtered = [m for m in messages if m.timestamp > cutoff]

    if not options.include_system_messages:
        filtered = [m for m in filtered if m.role != Role.SYSTEM]

    if not options.include_tool_messages:
        filtered = [m for m in filtered if m.role != Role.TOOL]

    return filtered


def _recent_start(count: int, max_recent: int) -> int:
    return max(0, count - max(0, max_recent))


def select_recent(messages: Sequence[Message], max_recent: int) -> list[Message]:
    """Keep only the last ``max_recent`` messages."""
    return list(messages[_recent_start(len(messages), max_recent):])


def _first_index(messages: Sequence[Message], role: Role) -> int | None:
    for i, message in enumerate(messages):
        if message.role == role:
            return i
    return None


def select_smart(
    messages: Sequence[Message],
    max_recent: int,
    preserve_tool_call_pairs: bool = True,
) -> list[Message]:
    """Keep recent messages plus the older tool exchanges and first system message.

    Older assistant messages that carry tool calls come back, together with
    the tool results answering them, so a call/result pair survives even
    after the call has left the recent window.
    """
    start = _recent_start(len(messages), max_recent)
    keep = set(range(start, len(messages)))

    if preserve_tool_call_pairs:
        older = messages[:start]
        call_ids = {call.id for m in older for call in m.tool_calls}
        for i, message in enumerate(older):
            if message.tool_calls:
                keep.add(i)
            elif message.role == Role.TOOL and any(r.call_id in call_ids for r in message.tool_results):
                keep.add(i)

    first_system = _first_index(messages, Role.SYSTEM)
    if first_system is not None:
        keep.add(first_system)

    return [messages[i] for i in sorted(keep)]


def ensure_tool_call_pairs(all_messages: Sequence[Message], selected: Iterable[Message]) -> list[Message]:
    """Add the tool results answering any tool call in ``selected``.

    Returns the union in the order of ``all_messages``.
    """
    chosen = {id(m) for m in selected}
    call_ids = {call.id for m in all_messages if id(m) in chosen for call in m.tool_calls}

    for message in all_messages:
        if message.role == Role.TOOL and id(message) not in chosen:
            if any(r.call_id in call_ids for r in message.tool_results):
                chosen.add(id(message))

    return [m for m in all_messages if id(m) in chosen]


def score_message(
    message: Message,
    position: int,
    total: int,
    keywords: Iterable[str] = DEFAULT_IMPORTANT_KEYWORDS,
) -> float:
    """Heuristic importance of a message, between 0 and 1."""
    score = (position / total) * 0.3 if total else 0.0

    if message.role == Role.SYSTEM:
        score += 0.8
    elif message.role == Role.USER:
        score += 0.6
    elif message.role == Role.ASSISTANT:
        score += 0.4
        if message.tool_calls:
            score += 0.3
    elif message.role == Role.TOOL:
        score += 0.5

    content_lower = message.content.lower()
    for keyword in keywords:
        if keyword and keyword.lower() in content_lower:
            score += 0.2

    if len(message.content) > 500:
        score += 0.1

    score += 0.2 * len(message.tool_calls)

    if (
        message.metadata.get("is_error")
        or any(r.is_error for r in message.tool_results)
        or "error" in content_lower
        or "exception" in content_lower
    ):
        score += 0.4

    if position == 0 or position == total - 1:
        score += 0.3

    return min(1.0, score)


def select_semantic(
    messages: Sequence[Message],
    max_messages: int,
    max_tokens: int,
    keywords: Iterable[str] = DEFAULT_IMPORTANT_KEYWORDS,
    preserve_tool_call_pairs: bool = True,
) -> list[Message]:
    """Greedy selection by importance score under count and token limits.

    The first system message is always included and charged to the budget
    first. Selection stops at the first message that would break a limit.
    """
    keywords = [k.lower() for k in keywords]
    total = len(messages)
    scores = [score_message(m, i, total, keywords) for i, m in enumerate(messages)]
    ranked = sorted(range(total), key=lambda i: scores[i], reverse=True)

    selected: set[int] = set()
    token_count = 0

    first_system = _first_index(messages, Role.SYSTEM)
    if first_system is not None:
        selected.add(first_system)
        token_count += estimate_tokens(messages[first_system].content)

    for i in ranked:
        if i == first_system:
            continue
        tokens = estimate_tokens(messages[i].content)
        if token_count + tokens > max_tokens:
            break
        if len(selected) >= max_messages:
            break
        selected.add(i)
        token_count += tokens

    result = [messages[i] for i in sorted(selected)]

    if preserve_tool_call_pairs:
        result = ensure_tool_call_pairs(messages, result)

    return result


def summary_message(
    summary: str,
    following: Sequence[Message],
    header: str,
    metadata: dict[str, Any] | None = None,
) -> Message:
    """Synthesize the system message that carries a stored summary.

    It is stamped no later than the messages it precedes so the extracted
    context stays in timestamp order.
    """
    timestamp = min((m.timestamp for m in following), default=utcnow())
    return Message.system(
        f"{header}\n{summary}",
        timestamp=timestamp,
        metadata={**(metadata or {}), "synthetic": True},
    )


def prepend_summary(
    messages: Sequence[Message],
    summary: str | None,
    max_recent: int,
    metadata: dict[str, Any] | None = None,
) -> list[Message]:
    """Recent messages, led by the stored conversation summary if there is one."""
    recent = select_recent(messages, max_recent)
    if not summary:
        return recent
    return [summary_message(summary, recent, "Previous conversation summary:", metadata)] + recent


def enforce_token_budget(
    messages: Sequence[Message],
    max_tokens: int,
    compressor: Compressor | None = None,
) -> list[Message]:
    """Trim messages until their estimated tokens fit ``max_tokens``.

    A leading system message is always kept. The rest is filled newest
    first and stops at the first message that does not fit, so what gets
    dropped is the older middle of the conversation.
    """
    if compressor is not None:
        return compressor.compress(list(messages), max_tokens)

    if total_tokens(messages) <= max_tokens:
        return list(messages)

    leading: list[Message] = []
    rest = list(messages)
    if rest and rest[0].role == Role.SYSTEM:
        leading = [rest.pop(0)]

    budget = max_tokens - total_tokens(leading)
    kept: list[Message] = []
    used = 0
    for message in reversed(rest):
        tokens = estimate_tokens(message.content)
        if used + tokens > budget:
            break
        kept.append(message)
        used += tokens

    kept.reverse()
    return leading + kept
