"""
Tools module - declarations, execution and validation of tool calls.
"""

from .base import BaseTool, FunctionTool, ToolDeclaration, ToolParameter
from .registry import ToolRegistry
from .validator import ValidationResult, validate_tool_call

__all__ = [
    "BaseTool",
    "FunctionTool",
    "ToolDeclaration",
    "ToolParameter",
    "ToolRegistry",
    "ValidationResult",
    "validate_tool_call",
]
