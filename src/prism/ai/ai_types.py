"""Conversation data types shared by the client, dispatcher and driver."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence


class Role(str, Enum):
    """Speaker of a conversation message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A capability invocation requested by the model.

    ``arguments`` is the raw text the model streamed. It is expected to hold a
    JSON object but may be truncated or malformed, so it is never parsed here.
    """

    id: str
    name: str
    arguments: str = ""


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Outcome of a tool call, correlated to the call through ``id``."""

    id: str
    data: Any = None


@dataclass(frozen=True, slots=True)
class Tool:
    """Capability declaration advertised to the model."""

    name: str
    description: str
    parameters: Mapping[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


@dataclass(frozen=True, slots=True)
class Message:
    """Immutable conversation entry.

    Attributes:
        role: Speaker of the message.
        content: Text content, possibly empty.
        tool_calls: Calls requested by an assistant turn.
        tool_result: Result carried by a tool-role message.
    """

    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_result: ToolResult | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", Role(self.role))
        object.__setattr__(self, "tool_calls", tuple(self.tool_calls))
        if self.content is None:
            object.__setattr__(self, "content", "")
        if self.tool_calls and self.role is not Role.ASSISTANT:
            raise ValueError("Only assistant messages may carry tool calls")
        if self.tool_result is not None and self.role is not Role.TOOL:
            raise ValueError("Only tool messages may carry a tool result")

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str = "", tool_calls: Sequence[ToolCall] = ()) -> "Message":
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, result: ToolResult) -> "Message":
        return cls(role=Role.TOOL, content="", tool_result=result)


__all__ = ["Role", "ToolCall", "ToolResult", "Tool", "Message"]
