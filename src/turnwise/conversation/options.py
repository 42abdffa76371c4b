"""
Options shared by every conversation manager.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

from ..config import Settings


class CompressionStrategy(str, Enum):
    """Policy deciding which part of the history goes into the next request."""

    NONE = "none"  # every filtered message
    SIMPLE = "simple"  # only the most recent messages
    SMART = "smart"  # recent messages plus older tool exchanges
    SEMANTIC = "semantic"  # importance-scored selection
    SUMMARY = "summary"  # stored summary plus recent messages


DEFAULT_MAX_TOKENS = 4000
DEFAULT_MAX_RECENT_MESSAGES = 20
DEFAULT_MAX_MESSAGE_AGE = timedelta(hours=24)
DEFAULT_COMPACTION_THRESHOLD = 50


@dataclass
class ConversationManagerOptions:
    """Configuration for conversation management."""

    max_tokens: int = DEFAULT_MAX_TOKENS
    max_recent_messages: int = DEFAULT_MAX_RECENT_MESSAGES
    max_message_age: timedelta = DEFAULT_MAX_MESSAGE_AGE
    preserve_tool_call_pairs: bool = True
    include_system_messages: bool = True
    include_tool_messages: bool = True
    compression_strategy: CompressionStrategy = CompressionStrategy.SMART
    compaction_threshold: int = DEFAULT_COMPACTION_THRESHOLD
    auto_compact: bool = True
    # Metadata keys copied from compacted messages onto the summaries that replace them
    preserve_metadata_keys: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.compression_strategy = CompressionStrategy(self.compression_strategy)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConversationManagerOptions":
        """Build options from environment-backed settings."""
        return cls(
            max_tokens=settings.context_max_tokens,
            max_recent_messages=settings.max_recent_messages,
            max_message_age=timedelta(hours=settings.max_message_age_hours),
            preserve_tool_call_pairs=settings.preserve_tool_call_pairs,
            include_system_messages=settings.include_system_messages,
            include_tool_messages=settings.include_tool_messages,
            compression_strategy=CompressionStrategy(settings.compression_strategy),
            compaction_threshold=settings.compaction_threshold,
            auto_compact=settings.auto_compact,
        )
