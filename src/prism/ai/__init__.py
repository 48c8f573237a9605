"""AI client, wire codec, and request-editing tools."""

from .ai_types import Message, Role, Tool, ToolCall, ToolResult
from .client import ClientSettings, CompletionClient
from .errors import CompletionHTTPError, CompletionNoBodyError, CompletionTransportError

__all__ = [
    "ClientSettings",
    "CompletionClient",
    "CompletionHTTPError",
    "CompletionNoBodyError",
    "CompletionTransportError",
    "Message",
    "Role",
    "Tool",
    "ToolCall",
    "ToolResult",
]
