"""
Agent Tooling

Tool definitions and the registry the orchestrating model calls into.
"""

from .definitions import ToolCall, ToolDefinition, ToolParameter, ToolParameterType, ToolResult
from .tools import ToolExecutor, ToolRegistry, create_default_registry

__all__ = [
    "ToolRegistry",
    "ToolExecutor",
    "create_default_registry",
    "ToolDefinition",
    "ToolParameter",
    "ToolParameterType",
    "ToolCall",
    "ToolResult",
]
