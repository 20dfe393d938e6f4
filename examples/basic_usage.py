"""
Basic usage example for the action loop.
"""

import logging

from taskloop import Action, ExecutionContext, Tool, ToolHooks, create_provider


def calculator(context: ExecutionContext, arguments: dict) -> dict:
    expression = arguments["expression"]
    # Unsafe eval should be replaced with a safe parser in production.
    value = eval(expression, {"__builtins__": {}})
    return {"expression": expression, "result": value}


def log_tool_use(tool, context, tool_input):
    print(f"-> {tool.name}({tool_input})")


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    provider = create_provider("anthropic")
    action = Action.create_prompt_action(
        "calculate",
        "Compute the requested arithmetic expression and return the number.",
        [
            Tool(
                name="calculator",
                description="Evaluate a simple arithmetic expression",
                input_schema={
                    "type": "object",
                    "properties": {"expression": {"type": "string"}},
                    "required": ["expression"],
                },
                func=calculator,
            )
        ],
        provider,
    )
    context = ExecutionContext(hooks=ToolHooks(before_tool_use=log_tool_use))
    result = action.execute("(24 + 18) * 0.75", context, output_schema={"type": "number"})
    print("Result:", result)
    print("Context:", context.variables)


if __name__ == "__main__":
    main()
