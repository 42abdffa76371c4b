"""
Tool registry for managing available tools.
"""

import structlog

from .base import BaseTool, ToolDeclaration

logger = structlog.get_logger()


class ToolRegistry:
    """Registry for managing tools. Names are case-insensitive."""

    def __init__(self):
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """Register a tool, replacing any tool with the same name."""
        self._tools[tool.name.lower()] = tool
        logger.info("Tool registered", tool_name=tool.name)

    def unregister(self, name: str) -> None:
        """Unregister a tool."""
        if name.lower() in self._tools:
            del self._tools[name.lower()]
            logger.info("Tool unregistered", tool_name=name)

    def get(self, name: str) -> BaseTool | None:
        """Get a tool by name."""
        return self._tools.get(name.lower())

    def is_registered(self, name: str) -> bool:
        return name.lower() in self._tools

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return [tool.name for tool in self._tools.values()]

    def get_declarations(self) -> list[ToolDeclaration]:
        """Get all tool declarations for the LLM."""
        return [tool.declaration for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)
