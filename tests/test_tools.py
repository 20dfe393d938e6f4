import pytest

from taskloop.core.agent.context_tools import create_return_tool, create_write_context_tool
from taskloop.core.primitives.context import ACTION_OUTPUT_KEY, ExecutionContext
from taskloop.core.primitives.tools import Tool, ToolExecutionError, ToolNotFoundError, ToolRegistry


def _tool(name, result="ok"):
    return Tool(name=name, description=f"{name} tool", func=lambda context, arguments: result)


def test_registry_rejects_duplicates_unless_overriding():
    registry = ToolRegistry([_tool("click")])

    with pytest.raises(ValueError):
        registry.register(_tool("click"))

    replacement = _tool("click", result="new")
    registry.register(replacement, override=True)
    assert registry.get("click") is replacement
    assert len(registry) == 1


def test_unknown_tool_is_a_checked_failure():
    registry = ToolRegistry()

    with pytest.raises(ToolNotFoundError) as excinfo:
        registry.get("teleport")

    assert excinfo.value.name == "teleport"
    assert "teleport" in str(excinfo.value)


def test_definitions_default_to_empty_object_schema():
    registry = ToolRegistry([_tool("noop")])

    assert registry.definitions() == [
        {"name": "noop", "description": "noop tool", "input_schema": {"type": "object", "properties": {}}}
    ]


def test_write_context_parses_json_values():
    context = ExecutionContext()
    tool = create_write_context_tool()

    tool.execute(context, {"key": "x", "value": "42"})
    tool.execute(context, {"key": "y", "value": "not-json"})
    tool.execute(context, {"key": "z", "value": '{"a": [1, 2]}'})

    assert context.variables["x"] == 42
    assert context.variables["y"] == "not-json"
    assert context.variables["z"] == {"a": [1, 2]}


def test_write_context_refuses_reserved_output_key():
    context = ExecutionContext()

    with pytest.raises(ToolExecutionError):
        create_write_context_tool().execute(context, {"key": ACTION_OUTPUT_KEY, "value": "1"})

    assert ACTION_OUTPUT_KEY not in context.variables
    assert not context.has_output()


def test_return_tool_uses_result_channel_and_schema():
    schema = {"type": "object", "properties": {"title": {"type": "string"}}}
    tool = create_return_tool(schema)
    context = ExecutionContext()

    returned = tool.execute(context, {"value": {"title": "Example"}})

    assert returned == {"returned": {"title": "Example"}}
    assert tool.definition()["input_schema"]["properties"]["value"] is schema
    assert ACTION_OUTPUT_KEY not in context.variables
    assert context.take_output() == {"title": "Example"}
    assert not context.has_output()


def test_return_tool_accepts_any_json_value_by_default():
    value_schema = create_return_tool().definition()["input_schema"]["properties"]["value"]

    assert "object" in value_schema["type"]
    assert "null" in value_schema["type"]
