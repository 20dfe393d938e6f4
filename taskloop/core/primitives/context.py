"""
Mutable state threaded through one action's execution.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

if TYPE_CHECKING:
    from .tools import Tool

# Reserved variables key. Action output travels through the context's result
# channel instead; the key is only cleaned up and protected from writes.
ACTION_OUTPUT_KEY = "__action_output"

_MISSING = object()


@dataclass(frozen=True)
class HookSignal:
    """
    Explicit decision returned by a ``before_tool_use`` hook.
    """

    kind: str
    value: Any = None

    PROCEED = "proceed"
    SKIP = "skip"
    ABORT = "abort"
    REPLACE = "replace"

    @classmethod
    def proceed(cls) -> "HookSignal":
        return cls(cls.PROCEED)

    @classmethod
    def skip(cls) -> "HookSignal":
        return cls(cls.SKIP)

    @classmethod
    def abort(cls) -> "HookSignal":
        return cls(cls.ABORT)

    @classmethod
    def replace(cls, value: Any) -> "HookSignal":
        return cls(cls.REPLACE, value)


BeforeToolUse = Callable[["Tool", "ExecutionContext", Any], Any]
AfterToolUse = Callable[["Tool", "ExecutionContext", Any], Any]


@dataclass
class ToolHooks:
    before_tool_use: Optional[BeforeToolUse] = None
    after_tool_use: Optional[AfterToolUse] = None


@dataclass
class ExecutionContext:
    """
    Variables, tools, hooks and cooperative control flags for an action run.

    A context may outlive several actions; ``variables`` persists between
    them. Running actions concurrently over the same context is not
    synchronised here.
    """

    variables: Dict[str, Any] = field(default_factory=dict)
    tools: List["Tool"] = field(default_factory=list)
    hooks: Optional[ToolHooks] = None
    abort: bool = False
    skip: bool = False
    _output: Any = field(default=_MISSING, init=False, repr=False)

    def request_abort(self) -> None:
        self.abort = True

    def set_output(self, value: Any) -> None:
        self._output = value

    def has_output(self) -> bool:
        return self._output is not _MISSING

    def take_output(self, default: Any = None) -> Any:
        """Return the stored action output and clear the channel."""
        value = self._output
        self._output = _MISSING
        return default if value is _MISSING else value
