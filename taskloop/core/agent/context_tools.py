"""
Tools the action loop injects into every run.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from ..primitives.context import ACTION_OUTPUT_KEY, ExecutionContext
from ..primitives.tools import Tool, ToolExecutionError

WRITE_CONTEXT_TOOL = "write_context"
RETURN_OUTPUT_TOOL = "return_output"

_ANY_JSON_VALUE: Dict[str, Any] = {
    "type": ["string", "number", "boolean", "object", "array", "null"],
    "description": "The output value",
}


def _write_context(context: ExecutionContext, params: Dict[str, Any]) -> Dict[str, Any]:
    key = params["key"]
    value = params["value"]
    if key == ACTION_OUTPUT_KEY:
        raise ToolExecutionError(f"'{ACTION_OUTPUT_KEY}' is reserved; use {RETURN_OUTPUT_TOOL} instead.")
    try:
        context.variables[key] = json.loads(value)
    except (TypeError, ValueError):
        context.variables[key] = value
    return {"success": True, "key": key, "value": value}


def create_write_context_tool() -> Tool:
    return Tool(
        name=WRITE_CONTEXT_TOOL,
        description=(
            "Write a value to the workflow context. Use this to store intermediate results or outputs."
        ),
        func=_write_context,
        input_schema={
            "type": "object",
            "properties": {
                "key": {"type": "string", "description": "The key to store the value under"},
                "value": {
                    "type": "string",
                    "description": "The value to store (must be JSON stringified if object/array)",
                },
            },
            "required": ["key", "value"],
        },
    )


def create_return_tool(output_schema: Optional[Dict[str, Any]] = None) -> Tool:
    """
    Build the ``return_output`` tool; ``output_schema`` shapes the advertised ``value``.
    """

    def _return_output(context: ExecutionContext, params: Dict[str, Any]) -> Dict[str, Any]:
        value = params.get("value")
        context.set_output(value)
        return {"returned": value}

    return Tool(
        name=RETURN_OUTPUT_TOOL,
        description=(
            "Return the final output of this action. "
            "Use this to return a value matching the required output schema."
        ),
        func=_return_output,
        input_schema={
            "type": "object",
            "properties": {"value": output_schema or dict(_ANY_JSON_VALUE)},
            "required": ["value"],
        },
    )
