"""
Tests for the sliding window conversation manager.
"""

import pytest

from turnwise.conversation import ConversationManagerOptions, SlidingWindowConversationManager
from turnwise.models import Message, Role, Turn


def build_manager(window_size=2, preserve_first_message=True, users=5):
    manager = SlidingWindowConversationManager(
        window_size=window_size,
        preserve_first_message=preserve_first_message,
    )
    manager.add_turn(Turn(Message.system("You are terse.")))
    for i in range(users):
        manager.add_turn(Turn(Message.user(f"user message {i}")))
    return manager


def test_window_with_preserved_system_message():
    """Test that the window is the system message plus the newest messages."""
    manager = build_manager()

    messages = manager.extract_messages_for_next_turn()

    assert len(messages) == 3
    assert messages[0].role == Role.SYSTEM
    assert [m.content for m in messages[1:]] == ["user message 3", "user message 4"]


def test_window_without_preserving_first_message():
    """Test that the system message is treated like any other."""
    manager = build_manager(preserve_first_message=False)

    messages = manager.extract_messages_for_next_turn()

    assert [m.content for m in messages] == ["user message 3", "user message 4"]


@pytest.mark.parametrize("window_size", [1, 3, 5])
def test_window_size_is_exact(window_size):
    """Test that exactly window_size messages follow the system message."""
    manager = build_manager(window_size=window_size, users=6)

    messages = manager.extract_messages_for_next_turn()

    assert len(messages) == window_size + 1


def test_add_turn_does_not_compact_below_turn_threshold():
    """Test that overflowing the window alone does not queue summaries."""
    manager = build_manager()

    assert manager.should_compact() is True
    assert manager.queued_summaries == []


def test_should_compact():
    """Test the window overflow check."""
    manager = SlidingWindowConversationManager(window_size=2)
    manager.add_turn(Turn(Message.user("one")))
    manager.add_turn(Turn(Message.user("two")))

    assert manager.should_compact() is False

    manager.add_turn(Turn(Message.user("three")))
    assert manager.should_compact() is True


@pytest.mark.asyncio
async def test_compaction_queues_summary_ahead_of_window():
    """Test that messages outside the window come back as a summary."""
    manager = build_manager()

    assert await manager.compact_conversation() is True

    messages = manager.extract_messages_for_next_turn()

    assert manager.conversation.turn_count == 6
    assert len(messages) == 4
    assert messages[0].content == "You are terse."
    assert messages[1].role == Role.SYSTEM
    assert messages[1].content.startswith("Previous context summary:\nUser asked about: user message 0")
    assert [m.content for m in messages[2:]] == ["user message 3", "user message 4"]

    timestamps = [m.timestamp for m in messages]
    assert timestamps == sorted(timestamps)


@pytest.mark.asyncio
async def test_compaction_noop_inside_window():
    """Test that nothing is summarized when everything fits."""
    manager = build_manager(window_size=10)

    assert await manager.compact_conversation() is False
    assert manager.queued_summaries == []


@pytest.mark.asyncio
async def test_summary_queue_keeps_three():
    """Test that the oldest summaries are dropped first."""
    manager = build_manager()

    for i in range(4):
        manager.add_turn(Turn(Message.user(f"more {i}")))
        await manager.compact_conversation()

    assert len(manager.queued_summaries) == 3


@pytest.mark.asyncio
async def test_auto_compaction_follows_turn_threshold():
    """Test that add_turn compacts once the turn threshold is passed."""
    options = ConversationManagerOptions(compaction_threshold=3)
    manager = SlidingWindowConversationManager(window_size=2, options=options)

    for i in range(4):
        manager.add_turn(Turn(Message.user(f"user message {i}")))
    await manager.wait_for_compaction()

    assert len(manager.queued_summaries) == 1
