"""
Foundational data structures shared across the framework.
"""

from .context import ACTION_OUTPUT_KEY, ExecutionContext, HookSignal, ToolHooks
from .messages import (
    ContentBlock,
    ImageBlock,
    Message,
    MessageRole,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    assistant_message,
    block_from_dict,
    coerce_messages,
    message_from_dict,
    system_message,
    tool_result_message,
    tool_use_message,
    user_message,
)
from .tools import Tool, ToolCallable, ToolExecutionError, ToolNotFoundError, ToolRegistry, ToolResult

__all__ = [
    "ACTION_OUTPUT_KEY",
    "ExecutionContext",
    "HookSignal",
    "ToolHooks",
    "ContentBlock",
    "ImageBlock",
    "Message",
    "MessageRole",
    "TextBlock",
    "ToolResultBlock",
    "ToolUseBlock",
    "assistant_message",
    "block_from_dict",
    "coerce_messages",
    "message_from_dict",
    "system_message",
    "tool_result_message",
    "tool_use_message",
    "user_message",
    "Tool",
    "ToolCallable",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ToolRegistry",
    "ToolResult",
]
