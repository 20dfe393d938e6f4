"""
Utilities for registering and invoking tools in the action loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Iterator, List, Optional

if TYPE_CHECKING:
    from .context import ExecutionContext


class ToolExecutionError(RuntimeError):
    """Raised when a tool invocation fails."""


class ToolNotFoundError(LookupError):
    """Raised when the model asks for a tool that is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool not found: {name}")
        self.name = name


@dataclass
class ToolResult:
    """Structured response produced by a tool."""

    text: Optional[str] = None
    image: Optional[Dict[str, Any]] = None

    def has_image(self) -> bool:
        return bool(self.image and self.image.get("type"))


ToolCallable = Callable[["ExecutionContext", Any], Any]


@dataclass
class Tool:
    name: str
    description: str
    func: ToolCallable
    input_schema: Optional[Dict[str, Any]] = None

    def execute(self, context: "ExecutionContext", arguments: Any) -> Any:
        return self.func(context, arguments)

    def definition(self) -> Dict[str, Any]:
        """Return the vendor-neutral tool definition sent to the model."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema or {"type": "object", "properties": {}},
        }


class ToolRegistry:
    """In-memory registry responsible for resolving tool instances."""

    def __init__(self, tools: Optional[Iterable[Tool]] = None, *, override: bool = False) -> None:
        self._tools: Dict[str, Tool] = {}
        if tools:
            self.update(tools, override=override)

    def register(self, tool: Tool, *, override: bool = False) -> None:
        if tool.name in self._tools and not override:
            raise ValueError(f"Tool named '{tool.name}' already registered.")
        self._tools[tool.name] = tool

    def update(self, tools: Iterable[Tool], *, override: bool = False) -> None:
        for tool in tools:
            self.register(tool, override=override)

    def remove(self, name: str) -> None:
        if name in self._tools:
            del self._tools[name]

    def get(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError as exc:
            raise ToolNotFoundError(name) from exc

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def definitions(self) -> List[Dict[str, Any]]:
        return [tool.definition() for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(list(self._tools.values()))
