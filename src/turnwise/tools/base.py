"""
Base classes for tools.
"""

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from ..errors import ToolExecutionError
from ..models import ToolCall, ToolResult


@dataclass
class ToolDeclaration:
    """What the LLM is told about a tool."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)  # JSON Schema


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    param_type: str  # string, integer, number, boolean, array, object
    description: str
    required: bool = True
    default: Any = None
    enum: list[str] | None = None


class BaseTool(ABC):
    """Base class for all tools."""

    @property
    @abstractmethod
    def declaration(self) -> ToolDeclaration:
        """Get the tool declaration."""
        pass

    @property
    def name(self) -> str:
        return self.declaration.name

    @abstractmethod
    async def execute(self, call: ToolCall) -> ToolResult:
        """Execute a tool call.

        May raise ToolExecutionError or any other exception; callers turn
        either into an error result.
        """
        pass


class FunctionTool(BaseTool):
    """
    Tool wrapper around a plain function.

    The handler receives the parsed call arguments as keyword arguments and
    may be sync or async. Whatever it returns is serialized as the result.
    """

    def __init__(
        self,
        name: str,
        description: str,
        parameters: list[ToolParameter],
        handler: Callable[..., Any | Awaitable[Any]],
    ):
        self._declaration = ToolDeclaration(
            name=name,
            description=description,
            parameters=self.build_parameters_schema(parameters),
        )
        self.parameters = parameters
        self.handler = handler

    @property
    def declaration(self) -> ToolDeclaration:
        return self._declaration

    @staticmethod
    def build_parameters_schema(parameters: list[ToolParameter]) -> dict[str, Any]:
        """Convert parameters to JSON Schema format."""
        properties = {}
        required = []

        for param in parameters:
            prop: dict[str, Any] = {
                "type": param.param_type,
                "description": param.description,
            }
            if param.enum:
                prop["enum"] = param.enum
            if param.default is not None:
                prop["default"] = param.default

            properties[param.name] = prop

            if param.required:
                required.append(param.name)

        return {
            "type": "object",
            "properties": properties,
            "required": required,
        }

    async def execute(self, call: ToolCall) -> ToolResult:
        """Run the handler and wrap its return value."""
        try:
            kwargs = call.arguments()
            output = self.handler(**kwargs)
            if inspect.isawaitable(output):
                output = await output
        except ToolExecutionError:
            raise
        except Exception as e:
            raise ToolExecutionError(self.name, call.id, call.arguments_json, cause=e) from e

        if isinstance(output, ToolResult):
            return output
        return ToolResult.from_object(call.id, self.name, output)
