"""
Runs a single model round: stream the response, execute requested tools
alongside the stream, and assemble the messages the round adds to history.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

from ..primitives.context import ExecutionContext, HookSignal
from ..primitives.messages import (
    ImageBlock,
    Message,
    MessageRole,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    assistant_message,
    tool_result_message,
    tool_use_message,
)
from ..primitives.tools import Tool, ToolRegistry, ToolResult
from ...llm import LLMParameters, LLMProvider, LLMResponse, StreamHandler, ToolCall

IMAGE_OMITTED_TEXT = "[image omitted]"
SKIPPED_RESULT = "skip"
EMPTY_RESULT_TEXT = "(no output)"


class ActionAborted(RuntimeError):
    """Raised when a hook or caller requested the action to stop."""


@dataclass
class RoundResult:
    response: Optional[LLMResponse]
    has_tool_use: bool
    round_messages: List[Message] = field(default_factory=list)
    error: Optional[BaseException] = None


def strip_history_images(messages: Sequence[Message]) -> None:
    """
    Drop images from every tool result except those in the latest user message.

    Messages are modified in place.
    """
    latest_user_seen = False
    for message in reversed(messages):
        if message.role is not MessageRole.USER:
            continue
        if not latest_user_seen:
            latest_user_seen = True
            continue
        if isinstance(message.content, str):
            continue
        for block in message.content:
            if not isinstance(block, ToolResultBlock) or isinstance(block.content, str):
                continue
            if not block.has_images():
                continue
            kept = [item for item in block.content if not isinstance(item, ImageBlock)]
            block.content = kept or [TextBlock(IMAGE_OMITTED_TEXT)]


def serialize_tool_result(result: Any) -> List[Any]:
    text: Any = None
    image: Any = None
    if isinstance(result, ToolResult):
        text, image = result.text, result.image
    elif isinstance(result, Mapping) and isinstance(result.get("image"), Mapping):
        text, image = result.get("text"), result["image"]
    if image and image.get("type"):
        blocks: List[Any] = [ImageBlock(dict(image))]
        if text:
            blocks.append(TextBlock(str(text)))
        return blocks
    if isinstance(result, ToolResult):
        return [TextBlock(result.text or EMPTY_RESULT_TEXT)]
    if isinstance(result, str):
        return [TextBlock(result or EMPTY_RESULT_TEXT)]
    return [TextBlock(json.dumps(result, ensure_ascii=False, default=str))]


class _RoundHandler(StreamHandler):
    def __init__(
        self,
        executor: "RoundExecutor",
        tools: ToolRegistry,
        context: ExecutionContext,
        pool: ThreadPoolExecutor,
    ) -> None:
        self._executor = executor
        self._tools = tools
        self._context = context
        self._pool = pool
        self.started = False
        self.has_tool_use = False
        self.text_parts: List[str] = []
        self.tool_uses: List[ToolUseBlock] = []
        self.pending: List[Future] = []
        self.response: Optional[LLMResponse] = None
        self.error: Optional[BaseException] = None

    def on_start(self) -> None:
        self.started = True

    def on_content(self, text: str) -> None:
        self.started = True
        if text.strip():
            self.text_parts.append(text)

    def on_tool_use(self, call: ToolCall) -> None:
        self.has_tool_use = True
        tool = self._tools.get(call.name)
        self.tool_uses.append(ToolUseBlock(id=call.id, name=tool.name, input=call.input))
        # single worker: tools run one at a time, in the order they were requested
        self.pending.append(self._pool.submit(self._executor.execute_tool, tool, call, self._context))

    def on_complete(self, response: LLMResponse) -> None:
        self.response = response

    def on_error(self, error: BaseException) -> None:
        self.error = error


class RoundExecutor:
    def __init__(self, provider: LLMProvider) -> None:
        self.provider = provider
        self._logger = logging.getLogger(__name__)

    def run_round(
        self,
        messages: List[Message],
        params: LLMParameters,
        tools: ToolRegistry,
        context: ExecutionContext,
    ) -> RoundResult:
        strip_history_images(messages)

        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="tool") as pool:
            handler = _RoundHandler(self, tools, context, pool)
            self.provider.generate_stream(messages, params, handler)
            # the stream has settled; wait for every tool before recording the round
            results: List[ToolResultBlock] = [future.result() for future in handler.pending]

        if handler.error is not None:
            self._logger.warning("Stream error: %s", handler.error)

        if context.abort:
            raise ActionAborted("Abort")

        round_messages: List[Message] = []
        text = "".join(handler.text_parts)
        if text:
            round_messages.append(assistant_message(text))
        if handler.tool_uses:
            round_messages.append(tool_use_message(handler.tool_uses))
            round_messages.append(tool_result_message(results))

        return RoundResult(
            response=handler.response,
            has_tool_use=handler.has_tool_use,
            round_messages=round_messages,
            error=handler.error,
        )

    def execute_tool(self, tool: Tool, call: ToolCall, context: ExecutionContext) -> ToolResultBlock:
        """
        Run one tool call with its hooks and convert the outcome to a result block.

        Errors raised by the tool or a hook become ``is_error`` results.
        """
        self._logger.info(
            "\n%s\n[TOOL CALL] %s\n%s\n%s",
            "-" * 80,
            tool.name,
            json.dumps(call.input, ensure_ascii=False, default=str),
            "-" * 80,
        )
        arguments = call.input
        try:
            context.skip = False
            hooks = context.hooks
            if hooks and hooks.before_tool_use:
                arguments = self._apply_before_hook(
                    hooks.before_tool_use(tool, context, arguments), arguments, context
                )
            if context.skip or context.abort:
                self._logger.info("Tool %s skipped (abort=%s)", tool.name, context.abort)
                return ToolResultBlock(tool_use_id=call.id, content=SKIPPED_RESULT)
            result = tool.execute(context, arguments)
            if hooks and hooks.after_tool_use:
                replacement = hooks.after_tool_use(tool, context, result)
                if replacement is not None:
                    result = replacement
            content = serialize_tool_result(result)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            self._logger.warning("Tool %s failed: %s", tool.name, message, exc_info=True)
            return ToolResultBlock(
                tool_use_id=call.id,
                content=[TextBlock(f"Error: {message}")],
                is_error=True,
            )
        self._logger.info(
            "\n%s\n[TOOL RESULT] %s\n%s\n%s",
            "-" * 80,
            tool.name,
            self._summarize(content),
            "-" * 80,
        )
        return ToolResultBlock(tool_use_id=call.id, content=content)

    def _apply_before_hook(self, outcome: Any, arguments: Any, context: ExecutionContext) -> Any:
        if outcome is None:
            return arguments
        if not isinstance(outcome, HookSignal):
            return outcome
        if outcome.kind == HookSignal.SKIP:
            context.skip = True
        elif outcome.kind == HookSignal.ABORT:
            context.request_abort()
        elif outcome.kind == HookSignal.REPLACE:
            return outcome.value
        return arguments

    def _summarize(self, content: Sequence[Any]) -> str:
        parts = []
        for block in content:
            if isinstance(block, ImageBlock):
                parts.append(f"<image {block.source.get('media_type', block.source.get('type'))}>")
            else:
                parts.append(block.text.strip())
        snippet = " ".join(parts)
        if len(snippet) > 400:
            snippet = f"{snippet[:397]}..."
        return snippet
