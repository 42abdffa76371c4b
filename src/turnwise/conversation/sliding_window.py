"""
Sliding window manager - a fixed-size tail of recent messages plus a short
queue of rolling summaries of what fell out of the window.
"""

from collections import deque

import structlog

from ..models import Conversation, Message, Role
from .compression import chronological, summary_message
from .manager import DefaultConversationManager
from .options import ConversationManagerOptions
from .summary import collect_preserved_metadata, summarize_messages

logger = structlog.get_logger()

MAX_QUEUED_SUMMARIES = 3


class SlidingWindowConversationManager(DefaultConversationManager):
    """Keeps the last ``window_size`` messages.

    With ``preserve_first_message`` a leading system message is kept on top
    of the window. Compaction summarizes the messages outside the window into
    a queue of at most three summaries, oldest dropped first; queued summaries
    are sent as one system message ahead of the window.
    """

    def __init__(
        self,
        window_size: int = 10,
        preserve_first_message: bool = True,
        options: ConversationManagerOptions | None = None,
        conversation: Conversation | None = None,
    ):
        super().__init__(conversation=conversation, options=options)
        self.window_size = window_size
        self.preserve_first_message = preserve_first_message
        self._summary_queue: deque[Message] = deque(maxlen=MAX_QUEUED_SUMMARIES)

    @property
    def queued_summaries(self) -> list[str]:
        return [m.content for m in self._summary_queue]

    def extract_messages_for_next_turn(self) -> list[Message]:
        messages = self._filtered_messages()
        result: list[Message] = []

        if self.preserve_first_message and messages and messages[0].role == Role.SYSTEM:
            result.append(messages[0])
            messages = messages[1:]

        start = max(0, len(messages) - max(0, self.window_size))
        window = chronological(messages[start:])

        if self._summary_queue:
            result.append(summary_message(
                "\n".join(m.content for m in self._summary_queue),
                window,
                "Previous context summary:",
            ))

        result.extend(window)
        return chronological(result)

    def should_compact(self) -> bool:
        return sum(1 for _ in self._conversation.to_chrono_messages()) > self.window_size

    def _auto_compaction_due(self) -> bool:
        # Overflowing the window is the steady state, so automatic compaction
        # follows the turn threshold instead of the window size.
        return self._conversation.turn_count > self.options.compaction_threshold

    async def compact_conversation(self) -> bool:
        messages = list(self._conversation.to_chrono_messages())

        if len(messages) <= self.window_size:
            return False

        outside = messages[:len(messages) - max(0, self.window_size)]
        if not outside:
            return False

        self._summary_queue.append(Message.system(
            summarize_messages(outside),
            metadata=collect_preserved_metadata(outside, self.options.preserve_metadata_keys),
        ))

        logger.debug(
            "Queued window summary",
            conversation_id=self._conversation.id,
            summarized_messages=len(outside),
            queued=len(self._summary_queue),
        )
        return True
