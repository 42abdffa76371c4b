"""
Conversation managers.

A manager owns one Conversation and decides what part of it is sent to the
LLM on the next request. It also compacts older history into summaries;
compaction only adds state and never deletes stored turns.
"""

import asyncio
from abc import ABC, abstractmethod

import structlog

from ..models import Conversation, Message, Turn, utcnow
from ..stats import ConversationStats, get_stats
from .compression import (
    DEFAULT_IMPORTANT_KEYWORDS,
    SUMMARY_STATE_KEY,
    Compressor,
    apply_filters,
    chronological,
    enforce_token_budget,
    prepend_summary,
    select_recent,
    select_semantic,
    select_smart,
)
from .options import CompressionStrategy, ConversationManagerOptions
from .summary import collect_preserved_metadata, summarize_turns

logger = structlog.get_logger()

LAST_COMPACTION_STATE_KEY = "last_compaction"
COMPACTED_TURN_COUNT_STATE_KEY = "compacted_turn_count"
PRESERVED_METADATA_STATE_KEY = "preserved_metadata"


class ConversationManager(ABC):
    """Base class for conversation managers.

    Holds the conversation, the options and the optional external compressor,
    and implements the operations that do not depend on the selection policy.
    """

    def __init__(
        self,
        conversation: Conversation | None = None,
        options: ConversationManagerOptions | None = None,
        compressor: Compressor | None = None,
    ):
        self.options = options or ConversationManagerOptions()
        self._conversation = conversation if conversation is not None else Conversation()
        self._compressor = compressor
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    def add_turn(self, turn: Turn) -> None:
        """Append a turn; kick off compaction when it is due."""
        self._conversation.add_turn(turn)

        if self.options.auto_compact and self._auto_compaction_due():
            self.schedule_compaction()

    def _auto_compaction_due(self) -> bool:
        return self.should_compact()

    def schedule_compaction(self) -> None:
        """Run compaction without blocking the caller.

        Inside a running event loop compaction becomes a background task;
        outside one it runs to completion before returning.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._compact_in_background())
            return

        task = loop.create_task(self._compact_in_background())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _compact_in_background(self) -> None:
        try:
            compacted = await self.compact_conversation()
        except Exception as e:
            logger.error(
                "Background compaction failed",
                conversation_id=self._conversation.id,
                error=str(e),
            )
            return
        if compacted:
            logger.info(
                "Conversation compacted",
                conversation_id=self._conversation.id,
                turns=self._conversation.turn_count,
            )

    async def wait_for_compaction(self) -> None:
        """Wait for any background compaction still in flight."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    @abstractmethod
    def extract_messages_for_next_turn(self) -> list[Message]:
        """Messages to send with the next LLM request, in timestamp order."""

    @abstractmethod
    def should_compact(self) -> bool:
        """Whether the conversation has grown past the compaction point."""

    @abstractmethod
    async def compact_conversation(self) -> bool:
        """Compact older history. Returns False when nothing needed doing."""

    async def get_conversation_summary(self) -> str:
        """Summary of the whole conversation.

        With no stored summary, summarizes every turn. Otherwise the stored
        summary is extended with a summary of the turns added since the last
        compaction; the stored value itself is left untouched.
        """
        existing = self._conversation.get_state(SUMMARY_STATE_KEY, str)
        turns = self._conversation.turns

        if not existing:
            return summarize_turns(turns)

        compacted_count = self._conversation.get_state(COMPACTED_TURN_COUNT_STATE_KEY, int, 0)
        new_turns = turns[compacted_count:]

        if new_turns:
            return f"{existing}\n\n{summarize_turns(new_turns)}"

        return existing

    def reset(self) -> None:
        """Clear conversation state. Stored turns are kept."""
        self._conversation.clear_state()

    def get_statistics(self) -> ConversationStats:
        return get_stats(self._conversation)

    def _filtered_messages(self) -> list[Message]:
        return apply_filters(list(self._conversation.to_chrono_messages()), self.options)


class DefaultConversationManager(ConversationManager):
    """Manager driven by ``options.compression_strategy``."""

    def extract_messages_for_next_turn(self) -> list[Message]:
        options = self.options
        messages = self._filtered_messages()
        strategy = options.compression_strategy

        if strategy == CompressionStrategy.SEMANTIC:
            selected = select_semantic(
                messages,
                max_messages=options.max_recent_messages,
                max_tokens=options.max_tokens,
                keywords=DEFAULT_IMPORTANT_KEYWORDS,
                preserve_tool_call_pairs=options.preserve_tool_call_pairs,
            )
            return chronological(selected)

        if strategy == CompressionStrategy.SIMPLE:
            selected = select_recent(messages, options.max_recent_messages)
        elif strategy == CompressionStrategy.SMART:
            selected = select_smart(
                messages,
                options.max_recent_messages,
                options.preserve_tool_call_pairs,
            )
        elif strategy == CompressionStrategy.SUMMARY:
            selected = prepend_summary(
                messages,
                self._conversation.get_state(SUMMARY_STATE_KEY, str),
                options.max_recent_messages,
                self._conversation.get_state(PRESERVED_METADATA_STATE_KEY, dict),
            )
        else:
            selected = messages

        return chronological(enforce_token_budget(selected, options.max_tokens, self._compressor))

    def should_compact(self) -> bool:
        return self._conversation.turn_count > self.options.compaction_threshold

    async def compact_conversation(self) -> bool:
        if not self.should_compact():
            return False

        turns = self._conversation.turns
        # Roughly two messages per turn
        turns_to_keep = max(0, self.options.max_recent_messages // 2)

        if len(turns) <= turns_to_keep:
            return False

        older = turns[:len(turns) - turns_to_keep]
        self._conversation.set_state(SUMMARY_STATE_KEY, summarize_turns(older))

        if self.options.preserve_metadata_keys:
            preserved = collect_preserved_metadata(
                (m for t in older for m in t.messages()),
                self.options.preserve_metadata_keys,
            )
            self._conversation.set_state(PRESERVED_METADATA_STATE_KEY, preserved)

        self._conversation.set_state(LAST_COMPACTION_STATE_KEY, utcnow().isoformat())
        self._conversation.set_state(COMPACTED_TURN_COUNT_STATE_KEY, len(older))

        logger.debug(
            "Stored conversation summary",
            conversation_id=self._conversation.id,
            summarized_turns=len(older),
            kept_turns=turns_to_keep,
        )
        return True
