"""
LLM module - vendor-neutral client contract and an OpenAI-compatible client.
"""

from .base import (
    BaseLLM,
    LLMClientConfig,
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMUsage,
)
from .factory import create_llm
from .openai import OpenAILLM

__all__ = [
    "BaseLLM",
    "LLMClientConfig",
    "LLMRequest",
    "LLMResponse",
    "LLMStreamChunk",
    "LLMUsage",
    "OpenAILLM",
    "create_llm",
]
