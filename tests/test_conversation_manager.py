"""
Tests for the policy-driven conversation manager.
"""

import pytest

from turnwise.conversation import (
    CompressionStrategy,
    ConversationManagerOptions,
    DefaultConversationManager,
)
from turnwise.conversation.compression import SUMMARY_STATE_KEY
from turnwise.conversation.manager import (
    COMPACTED_TURN_COUNT_STATE_KEY,
    LAST_COMPACTION_STATE_KEY,
    PRESERVED_METADATA_STATE_KEY,
)
from turnwise.conversation.summary import summarize_turns
from turnwise.models import Message, Role, ToolCall, ToolResult, Turn


def add_exchanges(manager, count, start=0):
    for i in range(start, start + count):
        manager.add_turn(Turn(Message.user(f"question {i}"), Message.assistant(f"answer {i}")))


def add_tool_turn(manager, call_id="c1"):
    call = ToolCall(name="weather", arguments_json='{"city": "Paris"}', id=call_id)
    manager.add_turn(Turn(
        Message.user("weather in Paris?"),
        Message.assistant("", tool_calls=[call]),
        [Message.tool(ToolResult(call_id=call_id, name="weather", result_json='{"temp": 20}'))],
    ))


def test_simple_strategy_keeps_most_recent():
    """Test that the simple strategy returns the newest messages."""
    options = ConversationManagerOptions(
        compression_strategy=CompressionStrategy.SIMPLE,
        max_recent_messages=4,
    )
    manager = DefaultConversationManager(options=options)
    add_exchanges(manager, 5)

    messages = manager.extract_messages_for_next_turn()

    assert len(messages) == 4
    assert messages[-1].role == Role.ASSISTANT
    assert messages[-1].content == "answer 4"


def test_none_strategy_returns_everything_under_budget():
    """Test that the none strategy keeps every filtered message."""
    options = ConversationManagerOptions(compression_strategy=CompressionStrategy.NONE)
    manager = DefaultConversationManager(options=options)
    add_exchanges(manager, 3)

    assert len(manager.extract_messages_for_next_turn()) == 6


def test_none_strategy_still_applies_budget():
    """Test that the token budget applies without a selection policy."""
    options = ConversationManagerOptions(compression_strategy="none", max_tokens=10)
    manager = DefaultConversationManager(options=options)
    manager.add_turn(Turn(Message.user("x" * 400)))
    manager.add_turn(Turn(Message.user("short")))

    messages = manager.extract_messages_for_next_turn()

    assert [m.content for m in messages] == ["short"]


@pytest.mark.parametrize("strategy", list(CompressionStrategy))
def test_extracted_messages_are_chronological(strategy):
    """Test the timestamp ordering of every strategy."""
    options = ConversationManagerOptions(
        compression_strategy=strategy,
        max_recent_messages=3,
        compaction_threshold=2,
        auto_compact=False,
    )
    manager = DefaultConversationManager(options=options)
    manager.add_turn(Turn(Message.system("You are terse.")))
    add_tool_turn(manager)
    add_exchanges(manager, 4)
    manager.schedule_compaction()

    messages = manager.extract_messages_for_next_turn()
    timestamps = [m.timestamp for m in messages]

    assert messages
    assert timestamps == sorted(timestamps)


def test_smart_strategy_preserves_tool_pairs():
    """Test that an old tool exchange stays in context."""
    options = ConversationManagerOptions(max_recent_messages=2)
    manager = DefaultConversationManager(options=options)
    add_tool_turn(manager)
    add_exchanges(manager, 3)

    messages = manager.extract_messages_for_next_turn()
    call_ids = {c.id for m in messages for c in m.tool_calls}
    result_ids = {r.call_id for m in messages for r in m.tool_results}

    assert call_ids == {"c1"}
    assert result_ids == {"c1"}


def test_should_compact_threshold():
    """Test that compaction is due only past the threshold."""
    options = ConversationManagerOptions(compaction_threshold=3, auto_compact=False)

    manager = DefaultConversationManager(options=options)
    add_exchanges(manager, 3)
    assert manager.should_compact() is False

    add_exchanges(manager, 1, start=3)
    assert manager.should_compact() is True


@pytest.mark.asyncio
async def test_compact_conversation_keeps_history():
    """Test that compaction stores a summary without removing turns."""
    options = ConversationManagerOptions(
        compaction_threshold=3,
        max_recent_messages=4,
        auto_compact=False,
    )
    manager = DefaultConversationManager(options=options)
    add_exchanges(manager, 4)

    assert await manager.compact_conversation() is True

    conversation = manager.conversation
    assert conversation.turn_count == 4
    assert conversation.get_state(SUMMARY_STATE_KEY) == summarize_turns(conversation.turns[:2])
    assert conversation.get_state(COMPACTED_TURN_COUNT_STATE_KEY) == 2
    assert isinstance(conversation.get_state(LAST_COMPACTION_STATE_KEY), str)


@pytest.mark.asyncio
async def test_compact_conversation_below_threshold():
    """Test that compaction is a no-op when not due."""
    manager = DefaultConversationManager()
    add_exchanges(manager, 2)

    assert await manager.compact_conversation() is False
    assert manager.conversation.state_keys == []


def test_add_turn_compacts_automatically():
    """Test auto-compaction outside an event loop."""
    options = ConversationManagerOptions(compaction_threshold=1, max_recent_messages=2)
    manager = DefaultConversationManager(options=options)

    add_exchanges(manager, 2)

    assert manager.conversation.get_state(COMPACTED_TURN_COUNT_STATE_KEY) == 1


@pytest.mark.asyncio
async def test_add_turn_compacts_in_background():
    """Test auto-compaction inside a running event loop."""
    options = ConversationManagerOptions(compaction_threshold=1, max_recent_messages=2)
    manager = DefaultConversationManager(options=options)

    add_exchanges(manager, 2)
    await manager.wait_for_compaction()

    assert manager.conversation.get_state(SUMMARY_STATE_KEY, str)


@pytest.mark.asyncio
async def test_background_compaction_failure_does_not_raise():
    """Test that a failing compaction only gets logged."""

    class FailingManager(DefaultConversationManager):
        async def compact_conversation(self):
            raise RuntimeError("disk full")

    manager = FailingManager()
    manager.schedule_compaction()
    await manager.wait_for_compaction()

    assert manager.conversation.turn_count == 0


@pytest.mark.asyncio
async def test_summary_strategy_prepends_stored_summary():
    """Test that the summary strategy leads with the stored summary."""
    options = ConversationManagerOptions(
        compression_strategy=CompressionStrategy.SUMMARY,
        compaction_threshold=3,
        max_recent_messages=4,
        auto_compact=False,
        preserve_metadata_keys={"topic"},
    )
    manager = DefaultConversationManager(options=options)
    manager.add_turn(Turn(Message.user("about billing", metadata={"topic": "billing"})))
    add_exchanges(manager, 3)
    await manager.compact_conversation()

    messages = manager.extract_messages_for_next_turn()

    assert len(messages) == 5
    assert messages[0].role == Role.SYSTEM
    assert messages[0].content.startswith("Previous conversation summary:")
    assert messages[0].metadata == {"topic": "billing", "synthetic": True}
    assert manager.conversation.get_state(PRESERVED_METADATA_STATE_KEY) == {"topic": "billing"}


@pytest.mark.asyncio
async def test_get_conversation_summary_without_compaction():
    """Test summarizing a conversation that was never compacted."""
    manager = DefaultConversationManager()
    add_exchanges(manager, 2)

    summary = await manager.get_conversation_summary()

    assert summary == summarize_turns(manager.conversation.turns)


@pytest.mark.asyncio
async def test_get_conversation_summary_extends_stored_summary():
    """Test that newer turns are appended without touching the stored summary."""
    options = ConversationManagerOptions(
        compaction_threshold=3,
        max_recent_messages=4,
        auto_compact=False,
    )
    manager = DefaultConversationManager(options=options)
    add_exchanges(manager, 4)
    await manager.compact_conversation()
    stored = manager.conversation.get_state(SUMMARY_STATE_KEY)

    summary = await manager.get_conversation_summary()

    assert summary == f"{stored}\n\n{summarize_turns(manager.conversation.turns[2:])}"
    assert manager.conversation.get_state(SUMMARY_STATE_KEY) == stored


def test_reset_clears_state_only():
    """Test that reset keeps the stored turns."""
    manager = DefaultConversationManager()
    add_exchanges(manager, 2)
    manager.conversation.set_state(SUMMARY_STATE_KEY, "old")

    manager.reset()

    assert manager.conversation.get_state(SUMMARY_STATE_KEY) is None
    assert manager.conversation.turn_count == 2


def test_get_statistics():
    """Test manager statistics."""
    manager = DefaultConversationManager()
    add_tool_turn(manager)

    stats = manager.get_statistics()

    assert stats.total_turns == 1
    assert stats.tool_calls == 1
    assert stats.tool_results == 1


def test_external_compressor_replaces_budget():
    """Test plugging in a compressor."""

    class KeepNewest:
        def __init__(self):
            self.calls = []

        def compress(self, messages, max_tokens):
            self.calls.append(max_tokens)
            return messages[-1:]

    compressor = KeepNewest()
    manager = DefaultConversationManager(
        options=ConversationManagerOptions(max_tokens=123),
        compressor=compressor,
    )
    add_exchanges(manager, 2)

    messages = manager.extract_messages_for_next_turn()

    assert [m.content for m in messages] == ["answer 1"]
    assert compressor.calls == [123]
