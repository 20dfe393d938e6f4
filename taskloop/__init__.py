"""
High-level exports for the tool-calling action loop.

This package exposes the primary Action interface alongside the message,
tool and context types needed to supply tools and hooks.
"""

from .core.agent import Action, ActionAborted, ActionConfig
from .core.primitives import (
    ExecutionContext,
    HookSignal,
    Message,
    MessageRole,
    Tool,
    ToolHooks,
    ToolRegistry,
    ToolResult,
)
from .llm import LLMError, LLMParameters, LLMProvider, create_provider

__all__ = [
    "Action",
    "ActionAborted",
    "ActionConfig",
    "ExecutionContext",
    "HookSignal",
    "Message",
    "MessageRole",
    "Tool",
    "ToolHooks",
    "ToolRegistry",
    "ToolResult",
    "LLMError",
    "LLMParameters",
    "LLMProvider",
    "create_provider",
]
