"""
Action loop: alternate model rounds and tool calls until the model returns a
result through ``return_output`` or the round budget runs out.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional

from ..primitives.context import ACTION_OUTPUT_KEY, ExecutionContext
from ..primitives.messages import Message, coerce_messages, system_message, user_message
from ..primitives.tools import Tool, ToolRegistry
from .context_tools import RETURN_OUTPUT_TOOL, create_return_tool, create_write_context_tool
from .executor import RoundExecutor, RoundResult, strip_history_images
from .prompts import (
    DEFAULT_SYSTEM_PROMPT,
    MAX_ROUNDS_REMINDER,
    RETURN_OUTPUT_REMINDER,
    build_user_prompt,
)
from ...llm import LLMError, LLMParameters, LLMProvider


@dataclass
class ActionConfig:
    max_rounds: int = 10
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


class Action:
    """
    A prompt-driven unit of work executed by the model with a set of tools.
    """

    type = "prompt"

    def __init__(
        self,
        name: str,
        description: str,
        tools: Iterable[Tool],
        provider: LLMProvider,
        *,
        llm_params: Optional[LLMParameters] = None,
        config: Optional[ActionConfig] = None,
    ) -> None:
        self.name = name
        self.description = description
        self.tools: List[Tool] = list(tools)
        self.provider = provider
        self.llm_params = llm_params or LLMParameters()
        self.config = config or ActionConfig()
        if self.config.max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.executor = RoundExecutor(provider)
        self.history: List[Message] = []
        self._write_context_tool = create_write_context_tool()
        self._logger = logging.getLogger(__name__)

    @classmethod
    def create_prompt_action(
        cls,
        name: str,
        description: str,
        tools: Iterable[Tool],
        provider: LLMProvider,
        llm_params: Optional[LLMParameters] = None,
    ) -> "Action":
        return cls(name, description, tools, provider, llm_params=llm_params)

    def execute(
        self,
        input_value: Any,
        context: ExecutionContext,
        output_schema: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return_tool = create_return_tool(output_schema)

        registry = ToolRegistry()
        registry.update(self.tools, override=True)
        registry.update(context.tools, override=True)
        registry.register(self._write_context_tool, override=True)
        registry.register(return_tool, override=True)
        return_only = ToolRegistry([return_tool])

        params = replace(self.llm_params, tools=registry.definitions())
        return_only_params = params.with_tools(return_only.definitions())

        messages: List[Message] = [
            system_message(self.config.system_prompt),
            user_message(build_user_prompt(self.name, self.description, context.variables, input_value)),
        ]
        self.history = messages
        # discard anything a previous run left in the result channel
        context.take_output()

        max_rounds = self.config.max_rounds
        self._logger.info(
            "\n%s\n[ACTION START] %s\nTools: %s\nMax rounds: %d\nOutput schema: %s\n%s",
            "=" * 80,
            self.name,
            ", ".join(registry.names()),
            max_rounds,
            json.dumps(output_schema) if output_schema else "(any)",
            "=" * 80,
        )

        for round_number in range(1, max_rounds + 1):
            self._logger.info("\n%s\n[ROUND %d/%d]\n%s", "-" * 80, round_number, max_rounds, "-" * 80)
            self._logger.debug("Conversation: %s", json.dumps(coerce_messages(messages), default=str))
            result = self._run_round(messages, params, registry, context)
            messages.extend(result.round_messages)
            strip_history_images(messages)

            if not result.has_tool_use and result.response is not None:
                self._logger.info("[ROUND %d] No tool use detected, requesting explicit return", round_number)
                self._force_return(messages, RETURN_OUTPUT_REMINDER, return_only_params, return_only, context)
                break

            if result.response is not None and any(
                call.name == RETURN_OUTPUT_TOOL for call in result.response.tool_calls
            ):
                self._logger.info("[ROUND %d] Task completed with %s", round_number, RETURN_OUTPUT_TOOL)
                break

            if round_number == max_rounds:
                self._logger.info("[ROUND %d] Max rounds reached, requesting explicit return", round_number)
                self._force_return(messages, MAX_ROUNDS_REMINDER, return_only_params, return_only, context)

        return self._finalize(context)

    def _run_round(
        self,
        messages: List[Message],
        params: LLMParameters,
        tools: ToolRegistry,
        context: ExecutionContext,
    ) -> RoundResult:
        result = self.executor.run_round(messages, params, tools, context)
        if result.error is not None:
            raise LLMError(f"Model stream failed during action '{self.name}': {result.error}") from result.error
        return result

    def _force_return(
        self,
        messages: List[Message],
        reminder: str,
        params: LLMParameters,
        tools: ToolRegistry,
        context: ExecutionContext,
    ) -> None:
        messages.append(user_message(reminder))
        final = self._run_round(messages, params, tools, context)
        messages.extend(final.round_messages)
        strip_history_images(messages)

    def _finalize(self, context: ExecutionContext) -> Any:
        has_output = context.has_output()
        output = context.take_output()
        context.variables.pop(ACTION_OUTPUT_KEY, None)
        if not has_output:
            self._logger.warning("Action '%s' completed without returning a value", self.name)
            return {}
        self._logger.info(
            "\n%s\n[ACTION OUTPUT] %s\n%s\n%s",
            "=" * 80,
            self.name,
            json.dumps(output, ensure_ascii=False, default=str),
            "=" * 80,
        )
        return output
