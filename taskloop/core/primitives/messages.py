"""
Core message primitives shared across the action pipeline.

Messages follow the role + typed content block layout used by common
chat-completion APIs, so adapters can translate them to the wire directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union


class MessageRole(str, Enum):
    """Canonical chat roles accepted by the framework."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class TextBlock:
    text: str
    type: str = field(default="text", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass
class ImageBlock:
    source: Dict[str, Any]
    type: str = field(default="image", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "source": dict(self.source)}


@dataclass
class ToolUseBlock:
    id: str
    name: str
    input: Any
    type: str = field(default="tool_use", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "id": self.id, "name": self.name, "input": self.input}


@dataclass
class ToolResultBlock:
    """
    Result of a tool call, correlated to its ``tool_use`` block by id.

    ``content`` is either a plain string or an ordered list of text/image blocks.
    """

    tool_use_id: str
    content: Union[str, List[Union[TextBlock, ImageBlock]]]
    is_error: bool = False
    type: str = field(default="tool_result", init=False)

    def to_dict(self) -> Dict[str, Any]:
        if isinstance(self.content, str):
            content: Any = self.content
        else:
            content = [block.to_dict() for block in self.content]
        payload: Dict[str, Any] = {
            "type": self.type,
            "tool_use_id": self.tool_use_id,
            "content": content,
        }
        if self.is_error:
            payload["is_error"] = True
        return payload

    def has_images(self) -> bool:
        if isinstance(self.content, str):
            return False
        return any(isinstance(block, ImageBlock) for block in self.content)


ContentBlock = Union[TextBlock, ImageBlock, ToolUseBlock, ToolResultBlock]


@dataclass
class Message:
    """
    A role-tagged message holding either raw text or a sequence of content blocks.
    """

    role: MessageRole
    content: Union[str, List[ContentBlock]]

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON-serializable wire representation."""
        if isinstance(self.content, str):
            content: Any = self.content
        else:
            content = [block.to_dict() for block in self.content]
        return {"role": self.role.value, "content": content}

    def blocks(self) -> List[ContentBlock]:
        if isinstance(self.content, str):
            return [TextBlock(self.content)] if self.content else []
        return list(self.content)

    def text(self) -> str:
        """Concatenate the text carried by this message."""
        if isinstance(self.content, str):
            return self.content
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))


def block_from_dict(payload: Mapping[str, Any]) -> ContentBlock:
    block_type = payload.get("type")
    if block_type == "text":
        return TextBlock(payload.get("text", ""))
    if block_type == "image":
        return ImageBlock(dict(payload.get("source") or {}))
    if block_type == "tool_use":
        return ToolUseBlock(id=payload["id"], name=payload["name"], input=payload.get("input", {}))
    if block_type == "tool_result":
        raw_content = payload.get("content", "")
        if isinstance(raw_content, str):
            content: Union[str, List[Any]] = raw_content
        else:
            content = [block_from_dict(item) for item in raw_content]
        return ToolResultBlock(
            tool_use_id=payload["tool_use_id"],
            content=content,
            is_error=bool(payload.get("is_error", False)),
        )
    raise ValueError(f"Unsupported content block type: {block_type!r}")


def message_from_dict(payload: Mapping[str, Any]) -> Message:
    content = payload.get("content", "")
    if not isinstance(content, str):
        content = [block_from_dict(item) for item in content]
    return Message(role=MessageRole(payload["role"]), content=content)


def system_message(content: str) -> Message:
    return Message(role=MessageRole.SYSTEM, content=content)


def user_message(content: Union[str, List[ContentBlock]]) -> Message:
    return Message(role=MessageRole.USER, content=content)


def assistant_message(content: Union[str, List[ContentBlock]]) -> Message:
    return Message(role=MessageRole.ASSISTANT, content=content)


def tool_use_message(blocks: Sequence[ToolUseBlock]) -> Message:
    return Message(role=MessageRole.ASSISTANT, content=list(blocks))


def tool_result_message(blocks: Sequence[ToolResultBlock]) -> Message:
    return Message(role=MessageRole.USER, content=list(blocks))


def coerce_messages(messages: Sequence[Message]) -> List[Dict[str, Any]]:
    """Convert a list of message objects into dictionaries."""
    return [message.to_dict() for message in messages]


def system_prompt_of(messages: Sequence[Message]) -> Optional[str]:
    """
    Return the first system prompt in ``messages``.

    Block content contributes its first text block. Blank prompts count as absent.
    """
    for message in messages:
        if message.role is not MessageRole.SYSTEM:
            continue
        if isinstance(message.content, str):
            text = message.content
        else:
            first = next((b for b in message.content if isinstance(b, TextBlock)), None)
            text = first.text if first else ""
        return text if text.strip() else None
    return None
