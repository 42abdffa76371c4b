"""
Semantic manager - keeps the messages that matter most, not just the newest.
"""

from typing import Iterable

from ..models import Conversation, Message
from .compression import (
    DEFAULT_IMPORTANT_KEYWORDS,
    chronological,
    score_message,
    select_semantic,
)
from .manager import DefaultConversationManager
from .options import ConversationManagerOptions


class SemanticConversationManager(DefaultConversationManager):
    """Selects context by importance score.

    Messages are scored on recency, role, tool usage, errors and important
    keywords, then taken best-first until ``max_recent_messages`` or
    ``max_tokens`` is reached. The selection is returned in timestamp order
    with tool results kept next to their calls.
    """

    def __init__(
        self,
        options: ConversationManagerOptions | None = None,
        conversation: Conversation | None = None,
        keywords: Iterable[str] | None = None,
    ):
        super().__init__(conversation=conversation, options=options)
        self._important_keywords: set[str] = set(DEFAULT_IMPORTANT_KEYWORDS)
        if keywords:
            self.add_important_keywords(*keywords)

    @property
    def important_keywords(self) -> frozenset[str]:
        return frozenset(self._important_keywords)

    def add_important_keywords(self, *keywords: str) -> None:
        """Add keywords that mark a message as worth keeping."""
        for keyword in keywords:
            if keyword.strip():
                self._important_keywords.add(keyword.strip().lower())

    def score_messages(self) -> dict[str, float]:
        """Importance score of every filtered message, keyed by message id."""
        messages = self._filtered_messages()
        return {
            m.id: score_message(m, i, len(messages), self._important_keywords)
            for i, m in enumerate(messages)
        }

    def extract_messages_for_next_turn(self) -> list[Message]:
        selected = select_semantic(
            self._filtered_messages(),
            max_messages=self.options.max_recent_messages,
            max_tokens=self.options.max_tokens,
            keywords=self._important_keywords,
            preserve_tool_call_pairs=self.options.preserve_tool_call_pairs,
        )
        return chronological(selected)
