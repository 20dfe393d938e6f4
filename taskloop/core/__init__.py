"""
Core primitives that compose the action pipeline.
"""

from .primitives.context import ExecutionContext, HookSignal, ToolHooks
from .primitives.messages import Message, MessageRole
from .primitives.tools import Tool, ToolExecutionError, ToolNotFoundError, ToolRegistry, ToolResult

__all__ = [
    "ExecutionContext",
    "HookSignal",
    "ToolHooks",
    "Message",
    "MessageRole",
    "Tool",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ToolRegistry",
    "ToolResult",
]
