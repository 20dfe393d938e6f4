"""
Convenience exports for built-in LLM providers.
"""

from .base import (
    CompleteEvent,
    ContentDelta,
    ErrorEvent,
    LLMError,
    LLMParameters,
    LLMProvider,
    LLMResponse,
    StartEvent,
    StreamEvent,
    StreamHandler,
    ToolCall,
    ToolReady,
)
from .claude import ClaudeProvider, ClaudeStreamAccumulator
from .openai import OpenAIProvider, OpenAIStreamAccumulator
from .providers import (
    ProviderSpec,
    create_provider,
    list_providers,
    register_provider,
)

__all__ = [
    "CompleteEvent",
    "ContentDelta",
    "ErrorEvent",
    "LLMError",
    "LLMParameters",
    "LLMProvider",
    "LLMResponse",
    "StartEvent",
    "StreamEvent",
    "StreamHandler",
    "ToolCall",
    "ToolReady",
    "ClaudeProvider",
    "ClaudeStreamAccumulator",
    "OpenAIProvider",
    "OpenAIStreamAccumulator",
    "ProviderSpec",
    "create_provider",
    "list_providers",
    "register_provider",
]
