"""
Client for OpenAI-style chat completion APIs.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .base import (
    CompleteEvent,
    ContentDelta,
    ErrorEvent,
    LLMError,
    LLMParameters,
    LLMResponse,
    StartEvent,
    StreamEvent,
    ToolCall,
    ToolReady,
)
from .http_client import HTTPProvider
from ..core.primitives.messages import (
    ContentBlock,
    ImageBlock,
    Message,
    MessageRole,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"


def _image_part(source: Dict[str, Any]) -> Dict[str, Any]:
    if source.get("type") == "url":
        url = source.get("url", "")
    else:
        url = f"data:{source.get('media_type', 'image/png')};base64,{source.get('data', '')}"
    return {"type": "image_url", "image_url": {"url": url}}


def _parse_arguments(arguments: Optional[str]) -> Any:
    try:
        return json.loads(arguments or "{}")
    except json.JSONDecodeError as exc:
        raise LLMError(f"Tool call arguments are not valid JSON: {arguments!r}") from exc


def convert_messages(messages: Sequence[Message]) -> List[Dict[str, Any]]:
    """
    Translate canonical messages into chat-completion messages.

    Tool results become ``tool`` role messages; images they carry are sent in
    a following user message because tool messages only accept text.
    """
    converted: List[Dict[str, Any]] = []
    for message in messages:
        if isinstance(message.content, str):
            converted.append({"role": message.role.value, "content": message.content})
            continue
        if message.role is MessageRole.ASSISTANT:
            text = "".join(b.text for b in message.content if isinstance(b, TextBlock))
            entry: Dict[str, Any] = {"role": "assistant", "content": text or None}
            tool_calls = [
                {
                    "id": block.id,
                    "type": "function",
                    "function": {"name": block.name, "arguments": json.dumps(block.input)},
                }
                for block in message.content
                if isinstance(block, ToolUseBlock)
            ]
            if tool_calls:
                entry["tool_calls"] = tool_calls
            converted.append(entry)
            continue
        parts: List[Dict[str, Any]] = []
        result_images: List[Dict[str, Any]] = []
        for block in message.content:
            if isinstance(block, ToolResultBlock):
                if isinstance(block.content, str):
                    text = block.content
                else:
                    text = "\n".join(b.text for b in block.content if isinstance(b, TextBlock))
                    result_images.extend(_image_part(b.source) for b in block.content if isinstance(b, ImageBlock))
                    if not text and block.has_images():
                        text = "(image attached below)"
                converted.append({"role": "tool", "tool_call_id": block.tool_use_id, "content": text})
            elif isinstance(block, TextBlock):
                parts.append({"type": "text", "text": block.text})
            elif isinstance(block, ImageBlock):
                parts.append(_image_part(block.source))
        if parts:
            converted.append({"role": message.role.value, "content": parts})
        if result_images:
            converted.append({"role": "user", "content": result_images})
    return converted


def convert_tools(tools: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool["name"],
                "description": tool.get("description", ""),
                "parameters": tool.get("input_schema") or {"type": "object", "properties": {}},
            },
        }
        for tool in tools
    ]


def convert_tool_choice(choice: Dict[str, Any]) -> Any:
    kind = choice.get("type")
    if kind == "any":
        return "required"
    if kind == "tool":
        return {"type": "function", "function": {"name": choice["name"]}}
    if kind in ("auto", "none"):
        return kind
    return choice


@dataclass
class _PartialToolCall:
    index: int
    id: str = ""
    name: str = ""
    arguments: str = ""


class OpenAIStreamAccumulator:
    """
    Turns chat-completion chunks into canonical events.

    Tool-call arguments arrive as JSON text fragments keyed by index; a call
    is complete when a new index starts or the choice reports a finish reason.
    """

    def __init__(self) -> None:
        self._text: List[str] = []
        self._current: Optional[_PartialToolCall] = None
        self._calls: List[ToolUseBlock] = []
        self._meta: Dict[str, Any] = {}
        self.finish_reason: Optional[str] = None
        self.usage: Optional[Dict[str, Any]] = None
        self.finished = False

    def feed(self, chunk: Dict[str, Any]) -> List[StreamEvent]:
        if chunk.get("error"):
            error = chunk["error"]
            raise LLMError(f"Stream error: {error.get('message', error)}", body=chunk)
        for key in ("id", "model"):
            if chunk.get(key):
                self._meta[key] = chunk[key]
        if chunk.get("usage"):
            self.usage = chunk["usage"]

        events: List[StreamEvent] = []
        for choice in chunk.get("choices") or []:
            if choice.get("index", 0) != 0:
                continue
            delta = choice.get("delta") or {}
            content = delta.get("content")
            if content:
                self._text.append(content)
                events.append(ContentDelta(content))
            for fragment in delta.get("tool_calls") or []:
                index = fragment.get("index", 0)
                if self._current is None or self._current.index != index:
                    events.extend(self._close_call())
                    self._current = _PartialToolCall(index=index)
                if fragment.get("id"):
                    self._current.id = fragment["id"]
                function = fragment.get("function") or {}
                self._current.name += function.get("name") or ""
                self._current.arguments += function.get("arguments") or ""
            if choice.get("finish_reason"):
                self.finish_reason = choice["finish_reason"]
                events.extend(self._close_call())
        return events

    def finish(self) -> List[StreamEvent]:
        events = self._close_call()
        self.finished = True
        events.append(CompleteEvent(self.final_response()))
        return events

    def _close_call(self) -> List[StreamEvent]:
        if self._current is None:
            return []
        partial = self._current
        self._current = None
        call = ToolCall(id=partial.id, name=partial.name, input=_parse_arguments(partial.arguments))
        self._calls.append(ToolUseBlock(id=call.id, name=call.name, input=call.input))
        return [ToolReady(call)]

    def final_response(self) -> LLMResponse:
        blocks: List[ContentBlock] = []
        text = "".join(self._text)
        if text:
            blocks.append(TextBlock(text))
        blocks.extend(self._calls)
        raw = dict(self._meta)
        raw["finish_reason"] = self.finish_reason
        return LLMResponse.from_blocks(blocks, stop_reason=self.finish_reason, usage=self.usage, raw=raw)


class OpenAIProvider(HTTPProvider):
    """
    Provider for the official OpenAI API and compatible endpoints.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        organization: Optional[str] = None,
        api_key_env: str = "OPENAI_API_KEY",
        include_usage: bool = True,
        default_headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> None:
        resolved_base_url = base_url or os.getenv("OPENAI_BASE_URL", DEFAULT_BASE_URL)
        headers = dict(default_headers or {})
        if organization:
            headers["OpenAI-Organization"] = organization
        super().__init__(
            model or DEFAULT_MODEL,
            api_key_env=api_key_env,
            api_key=api_key,
            base_url=resolved_base_url,
            default_headers=headers or None,
            **kwargs,
        )
        self.include_usage = include_usage

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def build_payload(
        self,
        messages: Sequence[Message],
        params: LLMParameters,
        *,
        stream: bool = False,
    ) -> Dict[str, Any]:
        payload = self._resolve_kwargs(params)
        payload["messages"] = convert_messages(messages)
        if params.tools:
            payload["tools"] = convert_tools(params.tools)
        if params.tool_choice:
            payload["tool_choice"] = convert_tool_choice(params.tool_choice)
        if stream:
            payload["stream"] = True
            if self.include_usage:
                payload["stream_options"] = {"include_usage": True}
        return payload

    def generate_text(self, messages: Sequence[Message], params: LLMParameters) -> LLMResponse:
        body = self._post(self.build_payload(messages, params))
        try:
            choice = body["choices"][0]
            message = choice["message"]
            finish_reason = choice.get("finish_reason")
        except (KeyError, IndexError) as exc:
            raise LLMError(f"Malformed response structure: {body}") from exc
        blocks: List[ContentBlock] = []
        if message.get("content"):
            blocks.append(TextBlock(message["content"]))
        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            blocks.append(
                ToolUseBlock(
                    id=call.get("id", ""),
                    name=function.get("name", ""),
                    input=_parse_arguments(function.get("arguments")),
                )
            )
        return LLMResponse.from_blocks(blocks, stop_reason=finish_reason, usage=body.get("usage"), raw=body)

    def stream(self, messages: Sequence[Message], params: LLMParameters) -> Iterator[StreamEvent]:
        payload = self.build_payload(messages, params, stream=True)
        accumulator = OpenAIStreamAccumulator()
        yield StartEvent()
        try:
            for sse in self._post_stream(payload):
                if sse.data.strip() == "[DONE]":
                    break
                for event in accumulator.feed(sse.json()):
                    yield event
            for event in accumulator.finish():
                yield event
        except Exception as exc:
            logger.warning("OpenAI stream failed: %s", exc)
            yield ErrorEvent(exc)
