"""
Turn orchestration.

The Agent drives one assistant turn at a time:
1. Records the user message as a new turn in the conversation manager
2. Sends the managed context and tool declarations to the LLM
3. Validates and executes any tool calls, recording the results on the turn
4. Asks the LLM again for the answer that follows the tool results
5. Schedules compaction in the background when the manager asks for it

Tool failures never abort a turn; they come back to the LLM as error tool
results. Anything else is reported as an ErrorOccurred event and re-raised.
"""

import time
from datetime import timedelta
from typing import Any, AsyncIterator

import structlog

from ..conversation.manager import ConversationManager
from ..errors import LLMError, ToolExecutionError
from ..llm.base import BaseLLM, LLMRequest, LLMResponse, LLMUsage
from ..models import Conversation, Message, ToolCall, ToolResult, Turn
from ..stats import ConversationStats
from ..tools.base import ToolDeclaration
from ..tools.registry import ToolRegistry
from ..tools.validator import validate_tool_call
from .events import (
    AgentEvent,
    ErrorOccurred,
    EventBus,
    LLMRequestStarted,
    LLMResponseReceived,
    StreamingTokenReceived,
    ToolExecutionCompleted,
    ToolExecutionStarted,
    ToolNotFound,
    ToolValidationFailed,
    TurnCompleted,
    TurnStarted,
)

logger = structlog.get_logger()


class Agent:
    """Runs turns against an LLM with tool support over a managed conversation."""

    def __init__(
        self,
        manager: ConversationManager,
        tool_registry: ToolRegistry,
        llm: BaseLLM,
        events: EventBus | None = None,
    ):
        if manager is None:
            raise ValueError("manager is required")
        if tool_registry is None:
            raise ValueError("tool_registry is required")
        if llm is None:
            raise ValueError("llm is required")

        self.manager = manager
        self.tool_registry = tool_registry
        self.llm = llm
        self.events = events or EventBus()

    @property
    def conversation(self) -> Conversation:
        return self.manager.conversation

    def _publish(self, event_type: type[AgentEvent], **fields: Any) -> None:
        self.events.publish(event_type(conversation_id=self.conversation.id, **fields))

    def _start_turn(self, text: str) -> Turn:
        self._publish(TurnStarted, user_message=text, turn_number=self.conversation.turn_count + 1)
        turn = Turn(user_or_system_message=Message.user(text))
        self.manager.add_turn(turn)
        return turn

    def _build_request(self, is_retry_after_tools: bool) -> LLMRequest:
        messages = self.manager.extract_messages_for_next_turn()
        tools = self.tool_registry.get_declarations()

        self._publish(
            LLMRequestStarted,
            message_count=len(messages),
            tool_count=len(tools),
            is_retry_after_tools=is_retry_after_tools,
        )
        return LLMRequest(messages=messages, tools=tools)

    def _finish_turn(self, turn: Turn, tool_calls_executed: int, started: float) -> Message:
        if self.manager.should_compact():
            self.manager.schedule_compaction()

        assistant = turn.assistant_message or Message.assistant("")
        duration = timedelta(seconds=time.perf_counter() - started)

        self._publish(
            TurnCompleted,
            assistant_message=assistant,
            tool_calls_executed=tool_calls_executed,
            duration=duration,
        )
        logger.info(
            "Turn completed",
            conversation_id=self.conversation.id,
            tool_calls=tool_calls_executed,
            duration_ms=int(duration.total_seconds() * 1000),
        )
        return assistant

    def _report_failure(self, error: Exception, context: str) -> None:
        logger.error(
            "Turn failed",
            conversation_id=self.conversation.id,
            context=context,
            error=str(error),
        )
        self._publish(ErrorOccurred, error=error, context=context, is_critical=True)

    @staticmethod
    def _final_message(first: Message, second: Message) -> Message:
        """The post-tool answer, still carrying the tool calls that led to it."""
        return Message.assistant(
            second.content,
            tool_calls=first.tool_calls,
            metadata=second.metadata,
            timestamp=second.timestamp,
            id=second.id,
        )

    async def run_turn(self, text: str) -> Message:
        """Run one turn and return the final assistant message."""
        started = time.perf_counter()
        tool_calls_executed = 0

        try:
            turn = self._start_turn(text)

            request = self._build_request(is_retry_after_tools=False)
            response = await self.llm.complete(request)
            self._publish_response(response.assistant_message, response.usage)
            turn.assistant_message = response.assistant_message

            if response.has_tool_calls:
                calls = response.assistant_message.tool_calls
                await self._execute_tool_calls(calls, turn, request.tools)
                tool_calls_executed = len(calls)

                second = await self.llm.complete(self._build_request(is_retry_after_tools=True))
                self._publish_response(second.assistant_message, second.usage)
                turn.assistant_message = self._final_message(response.assistant_message, second.assistant_message)

            return self._finish_turn(turn, tool_calls_executed, started)

        except Exception as e:
            self._report_failure(e, "run_turn")
            raise

    async def run_turn_stream(self, text: str) -> AsyncIterator[Message]:
        """Run one turn, yielding assistant deltas as they arrive.

        The turn's assistant message is assembled from the streamed text and
        the tool calls accumulated along the way.
        """
        started = time.perf_counter()
        tool_calls_executed = 0

        try:
            turn = self._start_turn(text)

            request = self._build_request(is_retry_after_tools=False)
            first = LLMResponse()
            async for delta in self._stream_response(request, first):
                yield delta
            turn.assistant_message = first.assistant_message

            if first.has_tool_calls:
                calls = first.assistant_message.tool_calls
                await self._execute_tool_calls(calls, turn, request.tools)
                tool_calls_executed = len(calls)

                second = LLMResponse()
                async for delta in self._stream_response(self._build_request(is_retry_after_tools=True), second):
                    yield delta
                turn.assistant_message = self._final_message(first.assistant_message, second.assistant_message)

            self._finish_turn(turn, tool_calls_executed, started)

        except Exception as e:
            self._report_failure(e, "run_turn_stream")
            raise

    async def _stream_response(self, request: LLMRequest, into: LLMResponse) -> AsyncIterator[Message]:
        """Relay a streamed completion and assemble it into ``into``."""
        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        usage: LLMUsage | None = None

        async for chunk in self.llm.stream(request):
            if chunk.error:
                raise LLMError(chunk.error)

            if chunk.usage is not None:
                usage = chunk.usage

            if chunk.delta is not None:
                text_parts.append(chunk.delta.content)
                tool_calls.extend(chunk.delta.tool_calls)
                self._publish(StreamingTokenReceived, delta=chunk.delta, is_complete=chunk.is_complete)
                yield chunk.delta

            if chunk.is_complete:
                break

        into.assistant_message = Message.assistant("".join(text_parts), tool_calls=tool_calls)
        into.usage = usage
        self._publish_response(into.assistant_message, usage)

    def _publish_response(self, message: Message, usage: LLMUsage | None) -> None:
        self._publish(
            LLMResponseReceived,
            response=message,
            usage=usage,
            has_tool_calls=message.has_tool_calls,
        )

    async def _execute_tool_calls(
        self,
        calls: tuple[ToolCall, ...],
        turn: Turn,
        declarations: list[ToolDeclaration],
    ) -> None:
        """Dispatch each call in order, appending one tool message per call."""
        declared = {d.name.lower(): d for d in declarations}

        for call in calls:
            declaration = declared.get(call.name.lower())
            if declaration is not None:
                validation = validate_tool_call(call, declaration)
                if not validation.is_valid:
                    self._publish(ToolValidationFailed, tool_call=call, errors=tuple(validation.errors))
                    logger.warning("Tool call failed validation", tool_name=call.name, errors=validation.errors)

                    result = ToolResult.from_object(
                        call.id,
                        call.name,
                        {"error": "validation_failed", "details": validation.errors},
                        is_error=True,
                    )
                    turn.tool_messages.append(Message.tool(
                        result,
                        metadata={"tool_name": call.name, "tool_call_id": call.id, "validation_error": True},
                    ))
                    continue

            tool = self.tool_registry.get(call.name)
            if tool is None:
                available = self.tool_registry.list_tools()
                self._publish(ToolNotFound, tool_name=call.name, call_id=call.id, available_tools=tuple(available))
                logger.warning("Tool not found", tool_name=call.name)

                result = ToolResult.from_object(
                    call.id,
                    call.name,
                    {"error": "tool_not_found", "available_tools": available},
                    is_error=True,
                )
                turn.tool_messages.append(Message.tool(
                    result,
                    metadata={"tool_name": call.name, "tool_call_id": call.id, "tool_not_found": True},
                ))
                continue

            self._publish(ToolExecutionStarted, tool_call=call, tool_name=call.name)
            tool_started = time.perf_counter()

            try:
                result = await tool.execute(call)
            except ToolExecutionError as e:
                result = ToolResult.from_object(
                    call.id,
                    call.name,
                    {"error": str(e), "tool_name": e.tool_name, "call_id": e.call_id},
                    is_error=True,
                )
            except Exception as e:
                result = ToolResult.from_object(
                    call.id,
                    call.name,
                    {"error": str(e), "type": type(e).__name__},
                    is_error=True,
                )

            duration = timedelta(seconds=time.perf_counter() - tool_started)
            self._publish(
                ToolExecutionCompleted,
                tool_call=call,
                result=result,
                is_error=result.is_error,
                duration=duration,
            )
            logger.info("Tool executed", tool_name=call.name, is_error=result.is_error)

            turn.tool_messages.append(Message.tool(
                result,
                metadata={"tool_name": call.name, "tool_call_id": call.id, "is_error": result.is_error},
            ))

    async def get_conversation_summary(self) -> str:
        return await self.manager.get_conversation_summary()

    async def compact_conversation(self) -> bool:
        """Compact now instead of waiting for the automatic trigger."""
        return await self.manager.compact_conversation()

    def get_conversation_stats(self) -> ConversationStats:
        return self.manager.get_statistics()
