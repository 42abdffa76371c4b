"""
Tool call validation.

Only checks that the arguments are present and parse as JSON;
schema conformance (required fields, types) is not enforced.
"""

import json
from dataclasses import dataclass, field

from ..models import ToolCall
from .base import ToolDeclaration


@dataclass
class ValidationResult:
    """Tool call validation result."""

    is_valid: bool = True
    errors: list[str] = field(default_factory=list)

    def add_error(self, error: str) -> None:
        self.errors.append(error)
        self.is_valid = False


def validate_tool_call(call: ToolCall, declaration: ToolDeclaration) -> ValidationResult:
    """Validate a tool call against its declaration. Never raises."""
    result = ValidationResult()

    if not call.arguments_json or not call.arguments_json.strip():
        result.add_error("Arguments cannot be empty")
        return result

    # TODO: enforce declaration.parameters once a JSON Schema validator is a dependency
    try:
        json.loads(call.arguments_json)
    except json.JSONDecodeError as e:
        result.add_error(f"Invalid JSON arguments: {e}")

    return result
