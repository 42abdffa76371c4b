"""
Tests for offline summary synthesis.
"""

from turnwise.conversation.summary import (
    collect_preserved_metadata,
    summarize_messages,
    summarize_turns,
)
from turnwise.models import Message, ToolCall, ToolResult, Turn


def test_summarize_turns():
    """Test turn summary header and previews."""
    turns = [
        Turn(Message.system("You are terse.")),
        Turn(
            Message.user("What is the weather?"),
            Message.assistant("", tool_calls=[ToolCall(name="weather", id="c1")]),
            [Message.tool(ToolResult(call_id="c1", name="weather"))],
        ),
    ]

    summary = summarize_turns(turns)

    assert summary == (
        "Summary of 2 turns (4 messages, 1 tool calls):\n"
        "- System: You are terse.\n"
        "- User: What is the weather?\n"
        "  Assistant used 1 tools\n"
    )


def test_summarize_turns_previews_first_five():
    """Test that only the first five turns get a preview line."""
    turns = [Turn(Message.user(f"question {i}")) for i in range(8)]

    summary = summarize_turns(turns)

    assert "question 4" in summary
    assert "question 5" not in summary
    assert summary.startswith("Summary of 8 turns (8 messages, 0 tool calls):")


def test_summarize_turns_truncates_long_content():
    """Test preview truncation."""
    summary = summarize_turns([Turn(Message.user("a" * 120))])

    assert "- User: " + "a" * 100 + "...\n" in summary


def test_summarize_messages():
    """Test summary of messages grouped by role."""
    messages = [
        Message.user("hello there"),
        Message.assistant("", tool_calls=[ToolCall(name="weather", id="c1")]),
        Message.tool(ToolResult(call_id="c1", name="weather")),
        Message.assistant("It is sunny today in Paris France"),
    ]

    assert summarize_messages(messages) == (
        "User asked about: hello there. "
        "Assistant made 1 tool calls. "
        "Assistant discussed: It is sunny today in. "
        "1 tool executions completed"
    )


def test_summarize_messages_long_topic():
    """Test that long topics are cut to fifty characters."""
    word = "w" * 20
    summary = summarize_messages([Message.user(" ".join([word] * 5))])

    topic = summary.removeprefix("User asked about: ")
    assert len(topic) == 50
    assert topic.endswith("...")


def test_summarize_messages_empty():
    """Test summarizing nothing."""
    assert summarize_messages([]) == ""


def test_collect_preserved_metadata():
    """Test that the latest value of each preserved key wins."""
    messages = [
        Message.user("a", metadata={"topic": "billing", "noise": 1}),
        Message.user("b", metadata={"topic": "refunds"}),
    ]

    assert collect_preserved_metadata(messages, {"topic"}) == {"topic": "refunds"}
    assert collect_preserved_metadata(messages, set()) == {}
