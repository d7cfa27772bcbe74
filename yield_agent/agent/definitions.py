"""Tool schema models shared by the registry and the executor."""

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ToolParameterType(str, Enum):
    """JSON schema types a tool argument can take"""
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    OBJECT = "object"


class ToolParameter(BaseModel):
    """One argument of a tool"""
    name: str
    type: ToolParameterType
    description: str
    required: bool = True
    enum: Optional[List[str]] = None
    default: Optional[Any] = None

    def to_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type.value, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.default is not None:
            schema["default"] = self.default
        return schema


class ToolDefinition(BaseModel):
    """Name, description and arguments of a callable tool"""
    name: str
    description: str
    parameters: List[ToolParameter] = Field(default_factory=list)

    @property
    def required_parameters(self) -> List[str]:
        return [p.name for p in self.parameters if p.required]

    def missing_arguments(self, arguments: Dict[str, Any]) -> List[str]:
        """Required arguments absent from ``arguments`` (``None`` counts as absent)."""
        return [name for name in self.required_parameters if arguments.get(name) is None]

    def unknown_arguments(self, arguments: Dict[str, Any]) -> List[str]:
        known = {p.name for p in self.parameters}
        return [name for name in arguments if name not in known]

    def to_anthropic_format(self) -> Dict[str, Any]:
        """Anthropic tool schema: name, description, input_schema"""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": {
                "type": "object",
                "properties": {p.name: p.to_schema() for p in self.parameters},
                "required": self.required_parameters,
            },
        }


class ToolCall(BaseModel):
    """A tool invocation requested by the orchestrating model"""
    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Outcome of one ToolCall"""
    tool_call_id: str
    result: Any
    error: Optional[str] = None

    def to_anthropic_format(self) -> Dict[str, Any]:
        if self.error:
            content = self.error
        elif isinstance(self.result, str):
            content = self.result
        else:
            content = json.dumps(self.result, default=str)
        return {
            "type": "tool_result",
            "tool_use_id": self.tool_call_id,
            "content": content,
            "is_error": self.error is not None,
        }
