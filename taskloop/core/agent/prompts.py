"""
Prompt templates for the action loop.
"""

from __future__ import annotations

import json
from textwrap import dedent
from typing import Any, Mapping


DEFAULT_SYSTEM_PROMPT = dedent(
    """
    You are a task executor. You need to complete the task specified by the user, using the tools provided.
    When you need to store results or outputs, use the write_context tool.
    When you are ready to return the final output, use the return_output tool.

    Remember to:
    1. Use tools when needed to accomplish the task
    2. Store important results using write_context, including intermediate and final results
    3. Think step by step about what needs to be done
    """
).strip()

RETURN_OUTPUT_REMINDER = (
    "Please process the above information and return a final result using the return_output tool."
)

MAX_ROUNDS_REMINDER = (
    "Maximum number of steps reached. Please return the best result possible with the return_output tool."
)


def _describe_variables(variables: Mapping[str, Any]) -> str:
    lines = [f"{key}: {json.dumps(value, ensure_ascii=False, default=str)}" for key, value in variables.items()]
    return "\n".join(lines)


def _describe_input(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    return json.dumps(value, ensure_ascii=False, indent=2, default=str)


def build_user_prompt(name: str, description: str, variables: Mapping[str, Any], input_value: Any) -> str:
    context_section = _describe_variables(variables) or "No context variables set"
    input_section = _describe_input(input_value) or "No additional input provided"
    return (
        f'You are executing the action "{name}". The specific instructions are: "{description}". '
        "You have access to the following context:\n\n"
        f"{context_section}\n\n"
        "You have been provided with the following input:\n"
        f"{input_section}"
    )
