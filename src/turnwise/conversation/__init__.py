"""
Conversation management - context selection and compaction.

Managers:
- DefaultConversationManager: policy-driven (none/simple/smart/semantic/summary)
- SlidingWindowConversationManager: fixed tail plus rolling summaries
- SemanticConversationManager: importance-scored selection
"""

from .compression import Compressor, estimate_tokens
from .manager import ConversationManager, DefaultConversationManager
from .options import CompressionStrategy, ConversationManagerOptions
from .semantic import SemanticConversationManager
from .sliding_window import SlidingWindowConversationManager

__all__ = [
    "Compressor",
    "CompressionStrategy",
    "ConversationManager",
    "ConversationManagerOptions",
    "DefaultConversationManager",
    "SemanticConversationManager",
    "SlidingWindowConversationManager",
    "estimate_tokens",
]
