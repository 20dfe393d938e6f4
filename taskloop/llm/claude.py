"""
Client for the Anthropic Messages API.
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
    Message,
    MessageRole,
    TextBlock,
    ToolUseBlock,
    block_from_dict,
    system_prompt_of,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
ANTHROPIC_VERSION = "2023-06-01"
RESPONSE_BLOCK_TYPES = ("text", "tool_use")


@dataclass
class _PartialToolUse:
    id: str
    name: str
    partial_json: str = ""


class ClaudeStreamAccumulator:
    """
    Turns decoded Messages API stream events into canonical events.

    At most one tool-use block is open at a time; its input arrives as
    fragments of JSON text that are parsed when the block stops.
    """

    def __init__(self) -> None:
        self._current_tool: Optional[_PartialToolUse] = None
        self._current_text: Optional[List[str]] = None
        self._blocks: List[ContentBlock] = []
        self._message: Dict[str, Any] = {}
        self._usage: Dict[str, Any] = {}
        self.stop_reason: Optional[str] = None
        self.finished = False

    def feed(self, event: Dict[str, Any]) -> List[StreamEvent]:
        event_type = event.get("type")
        if event_type == "message_start":
            self._message = dict(event.get("message") or {})
            self._usage.update(self._message.get("usage") or {})
            return []
        if event_type == "content_block_start":
            block = event.get("content_block") or {}
            if block.get("type") == "text":
                self._current_text = [block.get("text", "")]
                return [ContentDelta("")]
            if block.get("type") == "tool_use":
                self._current_tool = _PartialToolUse(id=block["id"], name=block["name"])
            return []
        if event_type == "content_block_delta":
            delta = event.get("delta") or {}
            if delta.get("type") == "text_delta":
                text = delta.get("text", "")
                if self._current_text is not None:
                    self._current_text.append(text)
                return [ContentDelta(text)]
            if delta.get("type") == "input_json_delta" and self._current_tool is not None:
                self._current_tool.partial_json += delta.get("partial_json", "")
            return []
        if event_type == "content_block_stop":
            return self._close_block()
        if event_type == "message_delta":
            delta = event.get("delta") or {}
            self.stop_reason = delta.get("stop_reason", self.stop_reason)
            self._usage.update(event.get("usage") or {})
            return []
        if event_type == "message_stop":
            self.finished = True
            return [CompleteEvent(self.final_response())]
        if event_type == "error":
            error = event.get("error") or {}
            self.finished = True
            return [ErrorEvent(LLMError(f"{error.get('type', 'error')}: {error.get('message', '')}", body=event))]
        # ping and unknown event types carry nothing canonical
        return []

    def _close_block(self) -> List[StreamEvent]:
        if self._current_tool is not None:
            tool = self._current_tool
            self._current_tool = None
            call = ToolCall(id=tool.id, name=tool.name, input=json.loads(tool.partial_json or "{}"))
            self._blocks.append(ToolUseBlock(id=call.id, name=call.name, input=call.input))
            return [ToolReady(call)]
        if self._current_text is not None:
            self._blocks.append(TextBlock("".join(self._current_text)))
            self._current_text = None
        return []

    def final_response(self) -> LLMResponse:
        raw = dict(self._message)
        raw["content"] = [block.to_dict() for block in self._blocks]
        raw["stop_reason"] = self.stop_reason
        return LLMResponse.from_blocks(
            self._blocks,
            stop_reason=self.stop_reason,
            usage=dict(self._usage) or None,
            raw=raw,
        )


class ClaudeProvider(HTTPProvider):
    def __init__(
        self,
        model: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        resolved_base_url = base_url or os.getenv("ANTHROPIC_BASE_URL", DEFAULT_BASE_URL)
        kwargs.setdefault("api_key_env", "ANTHROPIC_API_KEY")
        super().__init__(
            model or DEFAULT_MODEL,
            api_key=api_key,
            base_url=resolved_base_url,
            **kwargs,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/messages"

    def _auth_headers(self, api_key: str) -> Dict[str, str]:
        return {"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION}

    def build_payload(
        self,
        messages: Sequence[Message],
        params: LLMParameters,
        *,
        stream: bool = False,
    ) -> Dict[str, Any]:
        payload = self._resolve_kwargs(params, default_max_tokens=4096 if stream else 1024)
        system = system_prompt_of(messages)
        if system:
            payload["system"] = system
        payload["messages"] = [m.to_dict() for m in messages if m.role is not MessageRole.SYSTEM]
        if params.tools:
            payload["tools"] = list(params.tools)
        if params.tool_choice:
            payload["tool_choice"] = params.tool_choice
        if stream:
            payload["stream"] = True
        return payload

    def generate_text(self, messages: Sequence[Message], params: LLMParameters) -> LLMResponse:
        body = self._post(self.build_payload(messages, params))
        try:
            blocks = [
                block_from_dict(item) for item in body["content"] if item.get("type") in RESPONSE_BLOCK_TYPES
            ]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise LLMError(f"Malformed response structure: {body}") from exc
        return LLMResponse.from_blocks(
            blocks,
            stop_reason=body.get("stop_reason"),
            usage=body.get("usage"),
            raw=body,
        )

    def stream(self, messages: Sequence[Message], params: LLMParameters) -> Iterator[StreamEvent]:
        payload = self.build_payload(messages, params, stream=True)
        accumulator = ClaudeStreamAccumulator()
        yield StartEvent()
        try:
            for sse in self._post_stream(payload):
                for event in accumulator.feed(sse.json()):
                    yield event
                if accumulator.finished:
                    return
        except Exception as exc:
            logger.warning("Claude stream failed: %s", exc)
            yield ErrorEvent(exc)
            return
        yield ErrorEvent(LLMError("Stream ended before message_stop"))
