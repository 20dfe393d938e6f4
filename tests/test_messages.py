from taskloop.core.primitives.messages import (
    ImageBlock,
    MessageRole,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    message_from_dict,
    system_message,
    system_prompt_of,
    tool_result_message,
    tool_use_message,
    user_message,
)


PNG = {"type": "base64", "media_type": "image/png", "data": "aGVsbG8="}


def test_tool_messages_use_vendor_wire_shape():
    use = tool_use_message([ToolUseBlock(id="toolu_1", name="screenshot", input={})])
    result = tool_result_message(
        [ToolResultBlock(tool_use_id="toolu_1", content=[ImageBlock(PNG), TextBlock("done")])]
    )

    assert use.to_dict() == {
        "role": "assistant",
        "content": [{"type": "tool_use", "id": "toolu_1", "name": "screenshot", "input": {}}],
    }
    assert result.to_dict() == {
        "role": "user",
        "content": [
            {
                "type": "tool_result",
                "tool_use_id": "toolu_1",
                "content": [{"type": "image", "source": PNG}, {"type": "text", "text": "done"}],
            }
        ],
    }


def test_error_flag_only_serialized_when_set():
    ok = ToolResultBlock(tool_use_id="a", content="skip").to_dict()
    failed = ToolResultBlock(tool_use_id="b", content=[TextBlock("Error: boom")], is_error=True).to_dict()

    assert "is_error" not in ok
    assert ok["content"] == "skip"
    assert failed["is_error"] is True


def test_message_from_dict_parses_nested_tool_result():
    message = message_from_dict(
        {
            "role": "user",
            "content": [
                {
                    "type": "tool_result",
                    "tool_use_id": "t1",
                    "content": [{"type": "image", "source": PNG}],
                    "is_error": False,
                }
            ],
        }
    )

    assert message.role is MessageRole.USER
    block = message.content[0]
    assert isinstance(block, ToolResultBlock)
    assert block.has_images()
    assert isinstance(block.content[0], ImageBlock)


def test_system_prompt_extraction_ignores_blank_prompts():
    assert system_prompt_of([system_message("   "), user_message("hi")]) is None
    assert system_prompt_of([user_message("hi"), system_message("be brief")]) == "be brief"
    assert system_prompt_of([user_message("hi")]) is None
