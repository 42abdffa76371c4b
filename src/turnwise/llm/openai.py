"""
OpenAI LLM client (also works with OpenRouter and compatible APIs).
"""

from typing import Any, AsyncIterator

import openai
import structlog

from ..models import Message, Role, ToolCall
from ..tools.base import ToolDeclaration
from .base import BaseLLM, LLMRequest, LLMResponse, LLMStreamChunk, LLMUsage

logger = structlog.get_logger()


class OpenAILLM(BaseLLM):
    """OpenAI chat completions client."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        client: Any = None,
    ):
        super().__init__(model, max_tokens, temperature)
        self.client = client or openai.AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
        )

    @property
    def provider_name(self) -> str:
        return "openai"

    @staticmethod
    def _pair_tool_messages(messages: list[Message]) -> list[Message]:
        """Place each tool message right after the assistant message that called it.

        The chat API rejects tool messages that do not follow their call, so
        results whose call is not in the context are dropped.
        """
        tool_messages: dict[str, list[Message]] = {}
        for msg in messages:
            if msg.role == Role.TOOL:
                for result in msg.tool_results[:1]:
                    tool_messages.setdefault(result.call_id, []).append(msg)

        ordered: list[Message] = []
        placed: set[int] = set()
        for msg in messages:
            if msg.role == Role.TOOL:
                continue
            ordered.append(msg)
            for call in msg.tool_calls:
                for tool_msg in tool_messages.get(call.id, []):
                    if id(tool_msg) not in placed:
                        ordered.append(tool_msg)
                        placed.add(id(tool_msg))

        dropped = sum(1 for m in messages if m.role == Role.TOOL and id(m) not in placed)
        if dropped:
            logger.debug("Dropped tool results without a matching call", count=dropped)

        return ordered

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert Messages to OpenAI format."""
        converted = []

        for msg in self._pair_tool_messages(messages):
            if msg.role == Role.TOOL:
                result = msg.tool_results[0]
                converted.append({
                    "role": "tool",
                    "tool_call_id": result.call_id,
                    "content": msg.content or result.result_json,
                })
            elif msg.role == Role.ASSISTANT and msg.tool_calls:
                tool_calls = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": tc.arguments_json or "{}",
                        },
                    }
                    for tc in msg.tool_calls
                ]
                converted.append({
                    "role": "assistant",
                    "content": msg.content or None,
                    "tool_calls": tool_calls,
                })
            else:
                converted.append({
                    "role": msg.role.value,
                    "content": msg.content,
                })

        return converted

    def _convert_tools(self, tools: list[ToolDeclaration]) -> list[dict[str, Any]]:
        """Convert ToolDeclarations to OpenAI format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in tools
        ]

    def _build_kwargs(self, request: LLMRequest) -> dict[str, Any]:
        config = request.config
        kwargs: dict[str, Any] = {
            "model": (config.model if config and config.model else self.model),
            "max_tokens": config.max_tokens if config else self.max_tokens,
            "temperature": config.temperature if config else self.temperature,
            "messages": self._convert_messages(request.messages),
        }
        if config:
            kwargs["top_p"] = config.top_p

        if request.tools:
            kwargs["tools"] = self._convert_tools(request.tools)

        return kwargs

    async def complete(self, request: LLMRequest) -> LLMResponse:
        """Complete a request with the chat completions API."""
        kwargs = self._build_kwargs(request)

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.APIError as e:
            logger.error("OpenAI API error", error=str(e))
            raise

        choice = response.choices[0]
        message = choice.message

        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments_json=tc.function.arguments or "{}",
            )
            for tc in (message.tool_calls or [])
        ]

        usage = None
        if response.usage:
            usage = LLMUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        return LLMResponse(
            assistant_message=Message.assistant(message.content or "", tool_calls=tool_calls),
            usage=usage,
            finish_reason=choice.finish_reason,
            model=response.model,
        )

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """Stream text deltas; tool calls arrive assembled in the final chunk."""
        kwargs = self._build_kwargs(request)
        kwargs["stream"] = True
        kwargs["stream_options"] = {"include_usage": True}

        # index -> [id, name, arguments]
        pending_calls: dict[int, list[str]] = {}
        usage = None

        try:
            stream = await self.client.chat.completions.create(**kwargs)

            async for chunk in stream:
                if chunk.usage:
                    usage = LLMUsage(
                        prompt_tokens=chunk.usage.prompt_tokens,
                        completion_tokens=chunk.usage.completion_tokens,
                        total_tokens=chunk.usage.total_tokens,
                    )
                if not chunk.choices:
                    continue

                delta = chunk.choices[0].delta
                for tc in delta.tool_calls or []:
                    entry = pending_calls.setdefault(tc.index, ["", "", ""])
                    if tc.id:
                        entry[0] = tc.id
                    if tc.function and tc.function.name:
                        entry[1] += tc.function.name
                    if tc.function and tc.function.arguments:
                        entry[2] += tc.function.arguments

                if delta.content:
                    yield LLMStreamChunk(delta=Message.assistant(delta.content))

        except openai.APIError as e:
            logger.error("OpenAI streaming error", error=str(e))
            raise

        tool_calls = [
            ToolCall(id=call_id, name=name, arguments_json=arguments or "{}")
            for call_id, name, arguments in (pending_calls[i] for i in sorted(pending_calls))
        ]
        yield LLMStreamChunk(
            delta=Message.assistant("", tool_calls=tool_calls) if tool_calls else None,
            is_complete=True,
            usage=usage,
        )
