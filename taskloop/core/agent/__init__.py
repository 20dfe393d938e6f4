"""
Action orchestration components (round execution, the action loop, prompts).
"""

from .action import Action, ActionConfig
from .context_tools import (
    RETURN_OUTPUT_TOOL,
    WRITE_CONTEXT_TOOL,
    create_return_tool,
    create_write_context_tool,
)
from .executor import ActionAborted, RoundExecutor, RoundResult, strip_history_images
from .prompts import DEFAULT_SYSTEM_PROMPT, build_user_prompt

__all__ = [
    "Action",
    "ActionConfig",
    "RETURN_OUTPUT_TOOL",
    "WRITE_CONTEXT_TOOL",
    "create_return_tool",
    "create_write_context_tool",
    "ActionAborted",
    "RoundExecutor",
    "RoundResult",
    "strip_history_images",
    "DEFAULT_SYSTEM_PROMPT",
    "build_user_prompt",
]
