"""
Base interfaces for LLM providers and the canonical stream events they emit.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from ..core.primitives.messages import ContentBlock, Message, TextBlock, ToolUseBlock


class LLMError(RuntimeError):
    """Raised when an LLM request fails."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@dataclass
class LLMParameters:
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Dict[str, Any]] = None

    def with_tools(self, tools: Sequence[Dict[str, Any]]) -> "LLMParameters":
        return replace(self, tools=list(tools))


@dataclass
class ToolCall:
    id: str
    name: str
    input: Any


@dataclass
class LLMResponse:
    text_content: Optional[str]
    tool_calls: List[ToolCall] = field(default_factory=list)
    content: List[ContentBlock] = field(default_factory=list)
    stop_reason: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None
    raw: Optional[Dict[str, Any]] = None

    @classmethod
    def from_blocks(
        cls,
        blocks: Sequence[ContentBlock],
        *,
        stop_reason: Optional[str] = None,
        usage: Optional[Dict[str, Any]] = None,
        raw: Optional[Dict[str, Any]] = None,
    ) -> "LLMResponse":
        texts = [block.text for block in blocks if isinstance(block, TextBlock)]
        calls = [
            ToolCall(id=block.id, name=block.name, input=block.input)
            for block in blocks
            if isinstance(block, ToolUseBlock)
        ]
        return cls(
            text_content="\n".join(texts) or None,
            tool_calls=calls,
            content=list(blocks),
            stop_reason=stop_reason,
            usage=usage,
            raw=raw,
        )


@dataclass
class StartEvent:
    pass


@dataclass
class ContentDelta:
    text: str


@dataclass
class ToolReady:
    call: ToolCall


@dataclass
class CompleteEvent:
    response: LLMResponse


@dataclass
class ErrorEvent:
    error: BaseException


StreamEvent = Union[StartEvent, ContentDelta, ToolReady, CompleteEvent, ErrorEvent]


class StreamHandler:
    """
    Sink for canonical stream events. Override the callbacks you need.
    """

    def on_start(self) -> None:
        pass

    def on_content(self, text: str) -> None:
        pass

    def on_tool_use(self, call: ToolCall) -> None:
        pass

    def on_complete(self, response: LLMResponse) -> None:
        pass

    def on_error(self, error: BaseException) -> None:
        pass

    def dispatch(self, event: StreamEvent) -> None:
        if isinstance(event, StartEvent):
            self.on_start()
        elif isinstance(event, ContentDelta):
            self.on_content(event.text)
        elif isinstance(event, ToolReady):
            self.on_tool_use(event.call)
        elif isinstance(event, CompleteEvent):
            self.on_complete(event.response)
        elif isinstance(event, ErrorEvent):
            self.on_error(event.error)
        else:
            raise TypeError(f"Unknown stream event: {event!r}")


class LLMProvider(ABC):
    """
    Abstract base class for all model vendors.

    Subclasses translate canonical messages to their wire protocol and turn
    streamed responses back into canonical ``StreamEvent`` sequences.
    """

    def __init__(
        self,
        model: str,
        *,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    @abstractmethod
    def generate_text(self, messages: Sequence[Message], params: LLMParameters) -> LLMResponse:
        raise NotImplementedError

    @abstractmethod
    def stream(self, messages: Sequence[Message], params: LLMParameters) -> Iterator[StreamEvent]:
        """
        Yield canonical events for one streamed call.

        Transport failures are reported as a final ``ErrorEvent`` rather than raised.
        """
        raise NotImplementedError

    def generate_stream(
        self,
        messages: Sequence[Message],
        params: LLMParameters,
        handler: StreamHandler,
    ) -> None:
        for event in self.stream(messages, params):
            handler.dispatch(event)

    def _resolve_kwargs(self, params: LLMParameters, *, default_max_tokens: Optional[int] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": params.model or self.model}
        temperature = params.temperature if params.temperature is not None else self.temperature
        if temperature is not None:
            payload["temperature"] = temperature
        final_max_tokens = params.max_tokens or self.max_output_tokens or default_max_tokens
        if final_max_tokens is not None:
            payload["max_tokens"] = final_max_tokens
        return payload
